import json

from shop_ranker.reporting import write_json_object, write_results_json


def test_write_json_object_nested_atomic(tmp_path):
    path = tmp_path / "stats.json"
    payload = {
        "cache": {"hits": 3, "misses": 1},
        "nested": {"list": [1, 2, 3], "word": "Pāṭalipuṭra"},
    }

    write_json_object(str(path), payload)

    text = path.read_text(encoding="utf-8")
    data = json.loads(text)
    assert data == payload
    assert "ā" in text

    leftovers = [p for p in tmp_path.iterdir() if p.name != "stats.json"]
    assert not leftovers


def test_write_results_json_keeps_row_order(tmp_path):
    path = tmp_path / "results.json"
    rows = [{"rank": 1, "name": "Brew Lab"}, {"rank": 2, "name": "Chai Point"}]

    write_results_json(str(path), iter(rows))

    assert json.loads(path.read_text(encoding="utf-8")) == rows

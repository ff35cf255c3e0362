import csv

from shop_ranker.geo import Coordinate
from shop_ranker.models import RankedEntry, RankingContext, ShopRecord
from shop_ranker.reporting import (
    RESULT_FIELDS,
    build_category_rows,
    build_result_rows,
    render_summary,
    write_results_csv,
)

PATNA = Coordinate(25.5941, 85.1376)


def test_result_rows_carry_rank_and_distance_text():
    entries = [
        RankedEntry(ShopRecord(display_name="Brew Lab", primary_id="s2", is_paid=True), 0.4448),
        RankedEntry(ShopRecord(display_name="Ghost Listing", primary_id="s8"), None),
    ]
    rows = build_result_rows(entries)

    assert rows[0]["rank"] == 1
    assert rows[0]["key"] == "id:s2"
    assert rows[0]["distance_km"] == 0.445
    assert rows[0]["distance_text"] == "445 m"
    assert rows[0]["eta_text"] == "1 min"
    assert rows[1]["rank"] == 2
    assert rows[1]["distance_km"] is None
    assert rows[1]["distance_text"] is None


def test_category_rows_use_sample_label():
    shop = ShopRecord(display_name="Book Nook", primary_id="s7", coordinates=Coordinate(25.5981, 85.1376))
    rows = build_category_rows([("Uncategorized", shop)], RankingContext(coordinate=PATNA))
    assert rows[0]["category"] == "Uncategorized"
    assert rows[0]["distance_text"] == "445 m"


def test_results_csv_has_header_even_when_empty(tmp_path):
    path = tmp_path / "results.csv"
    write_results_csv(str(path), [])
    with open(path, newline="", encoding="utf-8") as f:
        assert next(csv.reader(f)) == RESULT_FIELDS


def test_render_summary_lists_top_results():
    lines = render_summary(
        {
            "generated_at": "2026-01-01T00:00:00+00:00",
            "mode": "ranked",
            "location": "25.59410,85.13760",
            "location_status": "success",
            "city": "Patna",
            "pages": 2,
            "results": 1,
            "with_distance": 1,
            "has_more": False,
            "cache": {"size": 2, "hits": 0, "misses": 2, "hit_rate": 0.0},
            "top": [{"rank": 1, "name": "Brew Lab", "category": "Cafe", "distance_text": "445 m", "is_paid": True}],
        }
    )
    assert "Location: 25.59410,85.13760 (success)" in lines
    assert "Category filter: all" in lines
    assert "City filter: Patna" in lines
    assert "Cache: size=2 hits=0 misses=2 hit_rate=0.0%" in lines
    assert lines[-1] == "  1. Brew Lab [Cafe] 445 m paid"

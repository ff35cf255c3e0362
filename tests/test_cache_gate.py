import pytest

from shop_ranker.cache import CacheGate, CacheKey
from shop_ranker.geo import Coordinate
from shop_ranker.models import RankingContext


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_key(category="Cafe", page=1, lat=25.5941):
    ctx = RankingContext(coordinate=Coordinate(lat, 85.1376), category=category, locality="Patna")
    return CacheKey.from_context(ctx, "chai", page=page, page_size=5)


def test_second_call_within_ttl_is_served_from_cache():
    clock = FakeClock()
    gate = CacheGate(clock=clock)
    calls = []

    def compute():
        calls.append(1)
        return ["a", "b"]

    assert gate.get_or_compute(make_key(), 300000, compute) == ["a", "b"]
    clock.now += 299.0
    assert gate.get_or_compute(make_key(), 300000, compute) == ["a", "b"]
    assert len(calls) == 1
    assert gate.stats() == {"size": 1, "hits": 1, "misses": 1, "hit_rate": 50.0}


def test_expired_entry_is_recomputed():
    clock = FakeClock()
    gate = CacheGate(clock=clock)
    values = iter(["old", "new"])

    assert gate.get_or_compute(make_key(), 1000, lambda: next(values)) == "old"
    clock.now += 1.0
    assert gate.get_or_compute(make_key(), 1000, lambda: next(values)) == "new"


def test_errors_are_not_cached():
    gate = CacheGate(clock=FakeClock())

    def boom():
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        gate.get_or_compute(make_key(), 300000, boom)
    assert len(gate) == 0
    assert gate.get_or_compute(make_key(), 300000, lambda: "ok") == "ok"


def test_every_input_is_part_of_the_key():
    base = make_key()
    assert base != make_key(category="Gym")
    assert base != make_key(page=2)
    assert base != make_key(lat=25.7)
    ctx = RankingContext(coordinate=Coordinate(25.5941, 85.1376), category="Cafe", locality="Patna")
    assert base != CacheKey.from_context(ctx, "samosa", page=1, page_size=5)
    assert base != CacheKey.from_context(ctx, "chai", page=1, page_size=15)


def test_nearby_coordinates_share_a_key():
    assert make_key(lat=25.59412) == make_key(lat=25.59408)


def test_text_filters_are_normalized():
    a = CacheKey.from_context(RankingContext(locality=" Patna "), " Chai ")
    b = CacheKey.from_context(RankingContext(locality="patna"), "chai")
    assert a == b
    assert CacheKey.from_context(RankingContext(category="all")).category == ""


def test_invalidate_filters_drops_only_that_combination():
    gate = CacheGate(clock=FakeClock())
    gate.get_or_compute(make_key(page=1), 300000, lambda: 1)
    gate.get_or_compute(make_key(page=2), 300000, lambda: 2)
    gate.get_or_compute(make_key(category="Gym"), 300000, lambda: 3)

    ctx = RankingContext(coordinate=Coordinate(1.0, 1.0), category="Cafe", locality="patna")
    assert gate.invalidate_filters(ctx, "chai") == 2
    assert len(gate) == 1
    assert gate.invalidate(make_key(category="Gym"))
    assert not gate.invalidate(make_key(category="Gym"))


def test_lists_come_back_as_independent_lists():
    gate = CacheGate(clock=FakeClock())
    source = ["a", "b"]

    first = gate.get_or_compute(make_key(), 300000, lambda: source)
    assert isinstance(first, list)
    source.append("c")
    first.append("d")

    again = gate.get_or_compute(make_key(), 300000, lambda: ["unused"])
    assert again == ["a", "b"]
    assert isinstance(again, list)
    again.append("e")
    assert gate.get_or_compute(make_key(), 300000, lambda: ["unused"]) == ["a", "b"]

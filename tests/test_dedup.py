from shop_ranker.dedup import dedupe, is_same_place, merge_sources
from shop_ranker.geo import Coordinate
from shop_ranker.models import ShopRecord


def test_repeated_primary_id_keeps_first():
    first = ShopRecord(display_name="Chai Point", primary_id="x1", rating=4.0)
    second = ShopRecord(display_name="Chai Point (old)", primary_id="x1", rating=2.0)
    out = dedupe([first, second])
    assert out == [first]


def test_dedupe_preserves_order_and_is_idempotent():
    shops = [
        ShopRecord(display_name="A", primary_id="1"),
        ShopRecord(display_name="B", external_id="g1"),
        ShopRecord(display_name="A again", primary_id="1"),
        ShopRecord(display_name="C"),
        ShopRecord(display_name="B dup", external_id="g1"),
        ShopRecord(display_name="C"),
        ShopRecord(display_name="D", primary_id="4"),
    ]
    once = dedupe(shops)
    assert [s.display_name for s in once] == ["A", "B", "C", "D"]
    assert dedupe(once) == once
    assert len({s.key for s in once}) == len(once)


def test_records_without_identity_are_never_merged():
    blank_a = ShopRecord(display_name="", category="Cafe")
    blank_b = ShopRecord(display_name=" ", category="Gym")
    out = dedupe([blank_a, blank_b])
    assert out == [blank_a, blank_b]


def test_is_same_place_needs_name_and_nearby_coordinates():
    internal = ShopRecord(display_name="Sharma Sweets", primary_id="s5", coordinates=Coordinate(25.59, 85.14))
    near = ShopRecord(display_name="sharma sweets", external_id="g5", coordinates=Coordinate(25.5905, 85.1404))
    far = ShopRecord(display_name="Sharma Sweets", external_id="g6", coordinates=Coordinate(25.60, 85.14))
    other = ShopRecord(display_name="Gupta Sweets", external_id="g7", coordinates=Coordinate(25.59, 85.14))
    assert is_same_place(near, internal)
    assert not is_same_place(far, internal)
    assert not is_same_place(other, internal)
    assert not is_same_place(ShopRecord(display_name="Sharma Sweets"), internal)


def test_merge_sources_skips_external_copies_of_internal_shops():
    internal = [
        ShopRecord(display_name="Sharma Sweets", primary_id="s5", coordinates=Coordinate(25.59, 85.14)),
        ShopRecord(display_name="Brew Lab", primary_id="s2", coordinates=Coordinate(25.5981, 85.1376)),
    ]
    external = [
        ShopRecord(display_name="Sharma Sweets", external_id="g5", coordinates=Coordinate(25.5902, 85.1401)),
        ShopRecord(display_name="Fresh Mart", external_id="g9", coordinates=Coordinate(25.63, 85.05)),
        ShopRecord(display_name="Fresh Mart", external_id="g9", coordinates=Coordinate(25.63, 85.05)),
    ]
    merged = merge_sources(internal, external)
    assert [s.key for s in merged] == ["id:s5", "id:s2", "ext:g9"]


def test_merge_by_source_splits_a_mixed_pool():
    from shop_ranker.dedup import merge_by_source

    shops = [
        ShopRecord(display_name="Sharma Sweets", external_id="g5", coordinates=Coordinate(25.5902, 85.1401), source="external"),
        ShopRecord(display_name="Sharma Sweets", primary_id="s5", coordinates=Coordinate(25.59, 85.14)),
        ShopRecord(display_name="Brew Lab", primary_id="s2"),
        ShopRecord(display_name="Brew Lab", primary_id="s2"),
    ]
    assert [s.key for s in merge_by_source(shops)] == ["id:s5", "id:s2"]
    internal_only = shops[1:]
    assert merge_by_source(internal_only) == dedupe(internal_only)

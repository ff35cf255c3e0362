import pytest

from shop_ranker.pagination import FetchInFlightError, PaginationCursor


def test_full_first_page_means_more():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    assert cursor.advance() == 1
    assert cursor.page_size == 5
    cursor.record_fetch(5)
    assert cursor.has_more


def test_short_later_page_ends_the_feed():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    cursor.advance()
    cursor.record_fetch(5)
    assert cursor.advance() == 2
    assert cursor.page_size == 15
    assert cursor.offset == 5
    cursor.record_fetch(3)
    assert not cursor.has_more


def test_second_advance_while_in_flight_is_rejected():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    cursor.advance()
    with pytest.raises(FetchInFlightError):
        cursor.advance()
    assert cursor.page == 1


def test_failure_retries_the_same_page():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    cursor.advance()
    cursor.record_fetch(5)
    cursor.advance()
    cursor.record_failure()
    assert not cursor.in_flight
    assert cursor.has_more
    assert cursor.advance() == 2


def test_failure_on_first_page_stays_on_first_page():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    cursor.advance()
    cursor.record_failure()
    assert cursor.page == 1
    assert cursor.advance() == 1
    assert cursor.offset == 0


def test_offsets_follow_uneven_page_sizes():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    offsets = []
    for _ in range(4):
        cursor.advance()
        offsets.append(cursor.offset)
        cursor.record_fetch(cursor.page_size)
    assert offsets == [0, 5, 20, 35]


def test_reset_returns_to_first_page():
    cursor = PaginationCursor(first_page_size=5, page_size=15)
    cursor.advance()
    cursor.record_fetch(2)
    assert not cursor.has_more
    cursor.reset()
    assert cursor.page == 1
    assert cursor.has_more
    assert cursor.advance() == 1


def test_defaults_come_from_config(monkeypatch):
    from shop_ranker import config

    monkeypatch.setattr(config, "FIRST_PAGE_SIZE", 2)
    monkeypatch.setattr(config, "PAGE_SIZE", 4)
    cursor = PaginationCursor()
    assert (cursor.first_page_size, cursor.next_page_size) == (2, 4)


def test_page_sizes_must_be_positive():
    with pytest.raises(ValueError):
        PaginationCursor(first_page_size=-1, page_size=15)

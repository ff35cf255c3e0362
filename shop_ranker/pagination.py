"""Page/offset state for incremental feeds."""
from __future__ import annotations

from typing import Optional

from . import config


class FetchInFlightError(RuntimeError):
    pass


class PaginationCursor:
    """Tracks which page to fetch next and whether more results exist.

    The first page is smaller than the rest so the initial paint is quick.
    ``advance()`` marks a fetch as in flight; a second ``advance()`` is
    rejected until ``record_fetch()`` or ``record_failure()`` settles it.
    """

    def __init__(
        self,
        first_page_size: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> None:
        self.first_page_size = int(first_page_size or config.FIRST_PAGE_SIZE)
        self.next_page_size = int(page_size or config.PAGE_SIZE)
        if self.first_page_size <= 0 or self.next_page_size <= 0:
            raise ValueError("Page sizes must be positive")
        self.page = 1
        self.has_more = True
        self.in_flight = False
        self._fetched_pages = 0

    @property
    def page_size(self) -> int:
        return self.first_page_size if self.page == 1 else self.next_page_size

    @property
    def offset(self) -> int:
        if self.page == 1:
            return 0
        return self.first_page_size + (self.page - 2) * self.next_page_size

    def reset(self) -> None:
        self.page = 1
        self.has_more = True
        self.in_flight = False
        self._fetched_pages = 0

    def advance(self) -> int:
        """Mark the next unfetched page as in flight and return its number."""
        if self.in_flight:
            raise FetchInFlightError(f"Page {self.page} is already being fetched")
        self.page = self._fetched_pages + 1
        self.in_flight = True
        return self.page

    def record_fetch(self, result_count: int) -> None:
        self.has_more = result_count >= self.page_size
        self.in_flight = False
        self._fetched_pages = self.page

    def record_failure(self) -> None:
        # No progress is recorded, so the next advance() asks for the same page.
        self.in_flight = False
        self.page = max(1, self._fetched_pages)

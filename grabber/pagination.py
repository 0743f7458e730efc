from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class PageDecision(str, enum.Enum):
    NEXT_PAGE = "next_page"
    LAST_PAGE = "last_page"
    EMPTY_PAGE = "empty_page"
    ABORTED = "aborted"


@dataclass
class PaginationState:
    page_index: int = 0
    item_count: int = 0
    consecutive_errors: int = 0
    error_count: int = 0
    aborted: bool = False
    deadline: Optional[float] = None  # loop time at which a pending defense wait gives up

    def start_page(self) -> None:
        self.page_index += 1

    def record_item(self) -> None:
        self.item_count += 1
        self.consecutive_errors = 0

    def record_error(self) -> None:
        self.error_count += 1
        self.consecutive_errors += 1


class PaginationPolicy:
    """Continue/stop decisions for a row-based search result listing.

    A page with fewer (or more) rows than a full page is taken to be the last
    one. This assumes the server never changes its page size.
    """

    def __init__(self, full_page_size: int = 26, abort_on_error: bool = False) -> None:
        self.full_page_size = full_page_size
        self.abort_on_error = abort_on_error

    def on_row_error(self, state: PaginationState) -> bool:
        """Record a failed row; True when the whole crawl should stop."""
        state.record_error()
        if self.abort_on_error:
            state.aborted = True
        return state.aborted

    def after_page(self, state: PaginationState, row_count: int) -> PageDecision:
        if state.aborted:
            return PageDecision.ABORTED
        if row_count <= 0:
            return PageDecision.EMPTY_PAGE
        if row_count != self.full_page_size:
            return PageDecision.LAST_PAGE
        return PageDecision.NEXT_PAGE

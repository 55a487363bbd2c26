"""Infinite-scroll pagination window."""

from typing import Optional, Sequence, TypeVar

from .search import normalize_query

T = TypeVar("T")


class PaginationCursor:
    """Visible-count cursor driven by a scroll sentinel.

    The window starts at ``initial_window`` items and grows by ``page_size``
    each time the sentinel becomes visible. It never shrinks while the
    search query stays the same and resets to the initial window when the
    query changes.
    """

    def __init__(self, initial_window: int = 12, page_size: int = 8, query: str = ""):
        self.initial_window = initial_window
        self.page_size = page_size
        self.query = normalize_query(query)
        self.visible_count = initial_window

    def load_more(self, total: Optional[int] = None) -> int:
        """Grow the window by one page.

        Args:
            total: Length of the list being paged; no growth once it is fully shown

        Returns:
            The new visible count
        """
        if total is None or self.visible_count < total:
            self.visible_count += self.page_size
        return self.visible_count

    def set_query(self, query: Optional[str]) -> bool:
        """Track the search query, resetting the window when it changes.

        Returns:
            True if the window was reset
        """
        normalized = normalize_query(query)
        if normalized == self.query:
            return False
        self.query = normalized
        self.reset()
        return True

    def reset(self) -> None:
        self.visible_count = self.initial_window

    def window(self, items: Sequence[T]) -> list[T]:
        return list(items[: self.visible_count])

    def has_more(self, total: int) -> bool:
        return total > self.visible_count

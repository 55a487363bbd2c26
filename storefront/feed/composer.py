"""Feed composer combining search, ordering, featured selection and paging."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..storage.models import ProductRecord
from .featured import select_featured
from .ordering import OrderingStrategy, RecencyOrdering, sort_by_recency
from .pagination import PaginationCursor
from .search import filter_products, normalize_query


@dataclass
class FeedView:
    """What the storefront shows for one render."""

    items: List[ProductRecord]  # paged slice of ``ordered``
    ordered: List[ProductRecord]  # full ordered/filtered list
    featured: Optional[ProductRecord]
    total: int
    visible_count: int
    has_more: bool
    query: str = ""
    searching: bool = False
    ordering: str = ""


class FeedComposer:
    """Turns the product snapshot plus UI state into the rendered feed.

    Pipeline:
    1. Filter by the search query (title, and category when enabled)
    2. Order with the configured strategy, or by recency while searching
    3. Pick the featured product from the ordered list
    4. Slice to the pagination window
    """

    def __init__(
        self,
        ordering: Optional[OrderingStrategy] = None,
        include_category: bool = True,
        initial_window: int = 12,
        page_size: int = 8,
        related_initial: int = 6,
        related_page_size: int = 6,
    ):
        """Initialize feed composer.

        Args:
            ordering: Ordering strategy used when no search is active
            include_category: Whether search matches categories too
            initial_window: Items shown before any "load more"
            page_size: Items added per "load more"
            related_initial: Related items shown on a product page
            related_page_size: Related items added per "load more"
        """
        self.ordering = ordering or RecencyOrdering()
        self.include_category = include_category
        self.initial_window = initial_window
        self.page_size = page_size
        self.related_initial = related_initial
        self.related_page_size = related_page_size

    def new_cursor(self, query: str = "") -> PaginationCursor:
        """Cursor configured with this composer's window sizes"""
        return PaginationCursor(self.initial_window, self.page_size, query=query)

    def order(self, products: Sequence[ProductRecord], query: str = "") -> List[ProductRecord]:
        """Filter and order without paging.

        Args:
            products: Full product snapshot
            query: Search text

        Returns:
            Ordered, filtered products
        """
        if not products:
            return []

        if normalize_query(query):
            # Search results always use recency order
            return sort_by_recency(filter_products(products, query, self.include_category))

        return self.ordering.order(products)

    def compose(
        self,
        products: Sequence[ProductRecord],
        query: str = "",
        cursor: Optional[PaginationCursor] = None,
    ) -> FeedView:
        """Compose the feed for one render.

        Args:
            products: Full product snapshot
            query: Search text
            cursor: Pagination state; a fresh one is used when omitted

        Returns:
            FeedView instance
        """
        if cursor is None:
            cursor = self.new_cursor(query)
        else:
            cursor.set_query(query)

        searching = bool(normalize_query(query))
        ordered = self.order(products, query)
        total = len(ordered)

        return FeedView(
            items=cursor.window(ordered),
            ordered=ordered,
            featured=select_featured(ordered),
            total=total,
            visible_count=cursor.visible_count,
            has_more=cursor.has_more(total),
            query=query or "",
            searching=searching,
            ordering=RecencyOrdering.name if searching else self.ordering.name,
        )

    def new_related_cursor(self) -> PaginationCursor:
        """Cursor for the related-products strip of a product page"""
        return PaginationCursor(self.related_initial, self.related_page_size)

    def related(
        self,
        product: ProductRecord,
        products: Sequence[ProductRecord],
        cursor: Optional[PaginationCursor] = None,
    ) -> tuple[List[ProductRecord], bool]:
        """Other products of the same category, windowed.

        Args:
            product: Product being viewed
            products: Full product snapshot
            cursor: Pagination state of the related strip

        Returns:
            Tuple of (visible related products, whether more are available)
        """
        if cursor is None:
            cursor = self.new_related_cursor()

        same_category = [
            p for p in products if p.category == product.category and p.id != product.id
        ]
        return cursor.window(same_category), cursor.has_more(len(same_category))

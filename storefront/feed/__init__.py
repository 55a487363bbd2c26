"""Feed composition: search, ordering, featured selection, paging and carousel"""

from .search import filter_products
from .ordering import (
    PriorityShuffleOrdering,
    RandomChooser,
    RecencyOrdering,
    ordering_for,
    sort_by_recency,
)
from .featured import select_featured
from .pagination import PaginationCursor
from .composer import FeedComposer, FeedView
from .carousel import CarouselLoop, MarqueeScroller, top_products

__all__ = [
    "filter_products",
    "PriorityShuffleOrdering",
    "RandomChooser",
    "RecencyOrdering",
    "ordering_for",
    "sort_by_recency",
    "select_featured",
    "PaginationCursor",
    "FeedComposer",
    "FeedView",
    "CarouselLoop",
    "MarqueeScroller",
    "top_products",
]

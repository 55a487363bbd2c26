"""Ordering strategies for the product feed.

Two policies exist:

- Recency: newest first by ``added_at``, stable for ties.
- Priority shuffle: up to ``head_size`` curator offers are picked by an
  injected chooser and pinned to the top; everything else, including the
  curator offers that were not picked, follows in recency order.

The shuffle is split into a deterministic partition/sort stage and the
chooser, so callers that need reproducible output pass a seeded or stub
chooser.
"""

import random
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from loguru import logger

from ..storage.models import ProductRecord

Chooser = Callable[[Sequence[ProductRecord], int], list[ProductRecord]]


def sort_by_recency(products: Sequence[ProductRecord]) -> list[ProductRecord]:
    """Stable sort, newest ``added_at`` first"""
    return sorted(products, key=lambda p: p.added_at or 0, reverse=True)


def partition_by_curator(
    products: Sequence[ProductRecord],
) -> tuple[list[ProductRecord], list[ProductRecord]]:
    """Split into (curator offers, other offers), keeping input order"""
    curator = [p for p in products if p.is_curator]
    others = [p for p in products if not p.is_curator]
    return curator, others


class RandomChooser:
    """Picks ``k`` distinct items uniformly at random.

    Args:
        seed: Optional seed for reproducible picks
    """

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def __call__(self, items: Sequence[ProductRecord], k: int) -> list[ProductRecord]:
        return self._random.sample(list(items), k)


class OrderingStrategy(ABC):
    """Orders the full product list shown in the feed"""

    name: str = ""

    @abstractmethod
    def order(self, products: Sequence[ProductRecord]) -> list[ProductRecord]:
        """Return a new ordered list"""


class RecencyOrdering(OrderingStrategy):
    """Newest offers first"""

    name = "recency"

    def order(self, products: Sequence[ProductRecord]) -> list[ProductRecord]:
        return sort_by_recency(products)


class PriorityShuffleOrdering(OrderingStrategy):
    """Pins a random pick of curator offers above a recency-ordered remainder.

    The head has ``min(head_size, curator_count)`` items, all curator
    offers. Every other product appears exactly once in the remainder.
    """

    name = "priority_shuffle"

    def __init__(self, head_size: int = 2, chooser: Optional[Chooser] = None):
        """Initialize the strategy.

        Args:
            head_size: Maximum number of pinned curator offers
            chooser: ``chooser(items, k)`` returning ``k`` distinct items
        """
        self.head_size = head_size
        self.chooser = chooser or RandomChooser()

    def order(self, products: Sequence[ProductRecord]) -> list[ProductRecord]:
        curator, others = partition_by_curator(products)

        k = min(self.head_size, len(curator))
        head = self.chooser(curator, k) if k > 0 else []

        picked = {id(p) for p in head}
        remainder = [p for p in curator if id(p) not in picked] + others

        return list(head) + sort_by_recency(remainder)


def ordering_for(
    name: str, head_size: int = 2, chooser: Optional[Chooser] = None
) -> OrderingStrategy:
    """Build an ordering strategy from its configured name.

    Unknown names fall back to recency.
    """
    if name == PriorityShuffleOrdering.name:
        return PriorityShuffleOrdering(head_size=head_size, chooser=chooser)
    if name != RecencyOrdering.name:
        logger.warning(f"Unknown feed ordering '{name}', using recency")
    return RecencyOrdering()

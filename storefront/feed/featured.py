"""Featured (hero) product selection."""

from typing import Optional, Sequence

from ..storage.models import ProductRecord


def select_featured(ordered: Sequence[ProductRecord]) -> Optional[ProductRecord]:
    """Pick the product shown in the hero section.

    The first flagged product wins; without one, the first product of the
    already ordered and filtered list is used. The featured product is not
    removed from the grid.
    """
    for product in ordered:
        if product.is_featured:
            return product
    return ordered[0] if ordered else None

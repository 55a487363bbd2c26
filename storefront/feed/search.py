"""Search filtering for the product feed."""

from typing import Optional, Sequence

from ..storage.models import ProductRecord


def normalize_query(query: Optional[str]) -> str:
    """Lower-cased, stripped query. Empty string means no search."""
    return (query or "").strip().lower()


def matches(product: ProductRecord, query: str, include_category: bool = True) -> bool:
    """Case-insensitive substring match on title and, optionally, category.

    Args:
        product: Product to test
        query: Lower-cased query, surrounding spaces included
        include_category: Whether the category is searched too
    """
    if query in (product.title or "").lower():
        return True
    if include_category and query in (product.category or "").lower():
        return True
    return False


def filter_products(
    products: Sequence[ProductRecord],
    query: Optional[str],
    include_category: bool = True,
) -> list[ProductRecord]:
    """Keep products matching the search query.

    A blank query returns every product in the input order. Otherwise the
    query is matched as typed, so ``" fone"`` needs a space before "fone".
    """
    if not normalize_query(query):
        return list(products)
    needle = (query or "").lower()
    return [p for p in products if matches(p, needle, include_category)]

"""Click analytics for the curator dashboard."""

from typing import Dict, List, Sequence

from ..storage.models import ProductRecord


def total_clicks(products: Sequence[ProductRecord]) -> int:
    return sum(p.clicks or 0 for p in products)


def click_breakdown(products: Sequence[ProductRecord], limit: int = 5) -> List[Dict]:
    """Most clicked products with their share of all clicks.

    Args:
        products: Product snapshot
        limit: Number of products returned

    Returns:
        List of dictionaries with id, title, clicks and percentage (0-100)
    """
    total = total_clicks(products)
    ranked = sorted(products, key=lambda p: p.clicks or 0, reverse=True)[:limit]

    return [
        {
            "id": p.id,
            "title": p.title,
            "clicks": p.clicks or 0,
            "percentage": round((p.clicks or 0) / total * 100, 1) if total > 0 else 0.0,
        }
        for p in ranked
    ]

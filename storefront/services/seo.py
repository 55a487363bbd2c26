"""Page metadata and schema.org structured data for the storefront."""

import re
from typing import Dict, List, Optional, Sequence

from ..storage.models import ProductRecord

PRICE_CHARS = re.compile(r"[^0-9,.]")


def parse_price(text: Optional[str]) -> float:
    """Parse a free-text display price such as ``R$ 1.299,90``.

    A comma is read as the decimal separator (dots are then thousands
    separators). Without a comma, more than one dot means thousands
    separators. Unparseable or missing prices give 0.0.
    """
    if not text:
        return 0.0

    cleaned = PRICE_CHARS.sub("", str(text))
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".", 1).replace(",", "")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def build_item_list(
    products: Sequence[ProductRecord],
    site_url: str,
    currency: str = "BRL",
    limit: int = 15,
) -> Optional[Dict]:
    """schema.org ``ItemList`` JSON-LD for the first ``limit`` products.

    Returns:
        JSON-LD dictionary, or None when there are no products
    """
    if not products:
        return None

    elements: List[Dict] = []
    for index, product in enumerate(products[:limit]):
        elements.append({
            "@type": "ListItem",
            "position": index + 1,
            "item": {
                "@type": "Product",
                "name": (product.title or "Produto")[:100],
                "description": (product.description or "")[:200],
                "image": product.image_url or "",
                "offers": {
                    "@type": "Offer",
                    "priceCurrency": currency,
                    "price": f"{parse_price(product.estimated_price):.2f}",
                    "availability": "https://schema.org/InStock",
                    "url": product.url or site_url,
                },
            },
        })

    return {
        "@context": "https://schema.org",
        "@type": "ItemList",
        "itemListElement": elements,
    }


def page_meta(
    title: str, description: str, site_url: str, products: Sequence[ProductRecord]
) -> Dict[str, str]:
    """Document title, description and Open Graph tags"""
    meta = {
        "title": title,
        "description": description,
        "og:type": "website",
        "og:title": title,
        "og:description": description,
        "og:url": site_url,
    }
    image = next((p.image_url for p in products if p.image_url), None)
    if image:
        meta["og:image"] = image
    return meta

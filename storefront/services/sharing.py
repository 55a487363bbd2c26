"""Share payloads and mail links for product pages."""

from urllib.parse import quote

from ..storage.models import ProductRecord


def share_payload(product: ProductRecord, page_url: str) -> dict:
    """Data handed to the platform share sheet (or copied as a link)"""
    return {
        "title": product.title,
        "text": f"🔥 Oferta Imperdível: {product.title}!",
        "url": page_url,
    }


def interest_mailto(email: str, product: ProductRecord, page_url: str) -> str:
    """``mailto:`` link a visitor can use to send the offer to themselves"""
    subject = quote(f"🔥 Oferta: {product.title}")
    body = quote(
        "Olá! Salvei esta oferta para ver depois:\n\n"
        f"Produto: {product.title}\n"
        f"Preço: {product.estimated_price or ''}\n"
        f"Link: {page_url}\n\n"
        "Enviado via Guia da Promoção."
    )
    return f"mailto:{email}?subject={subject}&body={body}"

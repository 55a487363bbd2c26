import asyncio
import json

import httpx
import pytest
from conftest import CLIENT_ID, SECRET, fake_openai, make_product, make_token

from storefront.errors import ConfigurationMissingError, MalformedInputError, SheetFetchError
from storefront.services.enrichment import (
    DEFAULT_PITCH,
    FAILURE_PITCH,
    EnrichmentClient,
    should_auto_enrich,
)
from storefront.services.identity import AuthSession, IdentityVerifier
from storefront.services.seo import build_item_list, page_meta, parse_price
from storefront.services.sharing import interest_mailto, share_payload
from storefront.services.sheets import convert_to_export_url, fetch_product_links, parse_links
from storefront.storage import InMemoryLocalStore


# ----------------------------------------------------------------------
# Identity
# ----------------------------------------------------------------------


def test_verify_returns_claims(verifier):
    claims = verifier.verify(make_token(sub="abc", email="ana@example.com", name="Ana"))

    assert claims.subject == "abc"
    assert claims.email == "ana@example.com"
    assert claims.name == "Ana"
    assert claims.picture_url == "https://img.test/abc.png"


def test_verify_rejects_bad_tokens(verifier):
    with pytest.raises(MalformedInputError):
        verifier.verify("")
    with pytest.raises(MalformedInputError):
        verifier.verify("not-a-jwt")
    with pytest.raises(MalformedInputError):
        verifier.verify(make_token(aud="someone-else"))
    with pytest.raises(MalformedInputError):
        verifier.verify(make_token(iss="https://evil.example.com"))


def test_verify_without_client_id_is_configuration_error():
    verifier = IdentityVerifier("", keys=SECRET, algorithms=["HS256"])
    with pytest.raises(ConfigurationMissingError):
        verifier.verify(make_token())


def test_verifier_fetches_keys_once():
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(200, json={"keys": []})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    verifier = IdentityVerifier(CLIENT_ID, http_client=http_client)

    assert verifier._get_keys() == {"keys": []}
    assert verifier._get_keys() == {"keys": []}
    assert len(calls) == 1


def test_auth_session_notifies_and_tracks_flag(verifier):
    local_store = InMemoryLocalStore()
    session = AuthSession(verifier, local_store)
    seen = []
    signed_in = []

    unsubscribe = session.on_auth_change(seen.append)
    session.on_sign_in(signed_in.append)
    assert seen == [None]

    claims = session.complete_sign_in(make_token(sub="abc"))
    assert session.current == claims
    assert signed_in == [claims]
    assert session.visitor.is_authorized is True

    session.logout()
    assert seen == [None, claims, None]
    assert session.visitor.is_authorized is False

    unsubscribe()
    session.complete_sign_in(make_token(sub="abc"))
    assert len(seen) == 3


# ----------------------------------------------------------------------
# Enrichment
# ----------------------------------------------------------------------


def test_enrich_keeps_known_fields_only():
    client = fake_openai(json.dumps({
        "title": "Fone",
        "description": "Bom",
        "category": "Áudio",
        "estimated_price": "R$ 10,00",
        "rating": 5,
        "image_search_term": "",
    }))
    enrichment = EnrichmentClient(client=client)

    result = asyncio.run(enrichment.enrich("https://mercadolivre.com.br/x"))
    assert result == {
        "title": "Fone",
        "description": "Bom",
        "category": "Áudio",
        "estimated_price": "R$ 10,00",
    }
    call = client.chat.completions.calls[0]
    assert call["response_format"] == {"type": "json_object"}


def test_enrich_failures_return_empty():
    assert asyncio.run(EnrichmentClient(client=fake_openai("not json")).enrich("u")) == {}
    assert asyncio.run(EnrichmentClient(client=fake_openai("")).enrich("u")) == {}
    broken = fake_openai(error=RuntimeError("quota"))
    assert asyncio.run(EnrichmentClient(client=broken).enrich("u")) == {}
    assert asyncio.run(EnrichmentClient(api_key="").enrich("u")) == {}


def test_pitch_fallbacks():
    assert asyncio.run(EnrichmentClient(client=fake_openai("Compre já!")).pitch("A", "B")) == (
        "Compre já!"
    )
    assert asyncio.run(EnrichmentClient(client=fake_openai("  ")).pitch("A", "B")) == DEFAULT_PITCH
    broken = fake_openai(error=RuntimeError("down"))
    assert asyncio.run(EnrichmentClient(client=broken).pitch("A", "B")) == FAILURE_PITCH
    assert asyncio.run(EnrichmentClient(api_key="your_key_here").pitch("A", "B")) == FAILURE_PITCH


def test_should_auto_enrich():
    domains = ["mercadolivre", "amazon"]
    assert should_auto_enrich("https://www.Amazon.com.br/dp/1", "", domains) is True
    assert should_auto_enrich("https://www.amazon.com.br/dp/1", "Já tenho", domains) is False
    assert should_auto_enrich("https://loja.test/x", "", domains) is False
    assert should_auto_enrich("", "", domains) is False


# ----------------------------------------------------------------------
# Sheets
# ----------------------------------------------------------------------


def test_convert_to_export_url():
    url = "https://docs.google.com/spreadsheets/d/abc-123_X/edit#gid=0"
    assert convert_to_export_url(url) == (
        "https://docs.google.com/spreadsheets/d/abc-123_X/export?format=csv"
    )
    assert convert_to_export_url("https://files.test/links.csv") == "https://files.test/links.csv"


def test_parse_links_skips_headers_and_junk():
    csv_text = 'link,obs\n"https://a.test/1",x\nhttp://b.test/2\nsem link\n\n'
    assert parse_links(csv_text) == ["https://a.test/1", "http://b.test/2"]


def test_fetch_product_links():
    def handler(request):
        assert request.url.path.endswith("/export")
        return httpx.Response(200, text="link\nhttps://a.test/1\n")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_product_links(
                "https://docs.google.com/spreadsheets/d/abc/edit", client=client
            )

    assert asyncio.run(run()) == ["https://a.test/1"]


def test_fetch_product_links_http_error():
    def handler(request):
        return httpx.Response(404)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_product_links("https://files.test/x.csv", client=client)

    with pytest.raises(SheetFetchError) as excinfo:
        asyncio.run(run())
    assert "404" in excinfo.value.message


# ----------------------------------------------------------------------
# SEO and sharing
# ----------------------------------------------------------------------


def test_parse_price():
    assert parse_price("R$ 1.299,90") == 1299.9
    assert parse_price("R$ 199,90") == 199.9
    assert parse_price("1.299.000") == 1299000.0
    assert parse_price("49.90") == 49.9
    assert parse_price("consulte") == 0.0
    assert parse_price(None) == 0.0


def test_build_item_list():
    products = [
        make_product(1, "Fone", 100, estimated_price="R$ 99,90", url="https://a.test/1"),
        make_product(2, "", 50),
    ]
    data = build_item_list(products, "https://site.test", limit=1)

    assert data["@type"] == "ItemList"
    assert len(data["itemListElement"]) == 1
    item = data["itemListElement"][0]
    assert item["position"] == 1
    assert item["item"]["offers"]["price"] == "99.90"
    assert item["item"]["offers"]["priceCurrency"] == "BRL"

    fallback = build_item_list(products[1:], "https://site.test")
    assert fallback["itemListElement"][0]["item"]["name"] == "Produto"
    assert fallback["itemListElement"][0]["item"]["offers"]["url"] == "https://site.test"

    assert build_item_list([], "https://site.test") is None


def test_page_meta_uses_first_image():
    products = [make_product(1, "Fone", image_url="https://img.test/1.png")]
    meta = page_meta("Loja", "Ofertas", "https://site.test", products)
    assert meta["og:image"] == "https://img.test/1.png"
    assert "og:image" not in page_meta("Loja", "Ofertas", "https://site.test", [])


def test_share_payload_and_mailto():
    product = make_product(1, "Fone", estimated_price="R$ 10,00")
    payload = share_payload(product, "https://site.test/products/1")
    assert payload["url"] == "https://site.test/products/1"
    assert "Fone" in payload["text"]

    link = interest_mailto("ana@example.com", product, "https://site.test/products/1")
    assert link.startswith("mailto:ana@example.com?subject=")
    assert "Fone" in link

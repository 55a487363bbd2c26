import asyncio

import httpx
import pytest
from conftest import draft, fake_openai, make_token

from storefront.errors import (
    MalformedInputError,
    NotFoundError,
    PermissionDeniedError,
    TransientStoreError,
)
from storefront.feed.ordering import PriorityShuffleOrdering
from storefront.orchestrator.coordinator import (
    STORE_UNAVAILABLE_BANNER,
    StorefrontCoordinator,
    build_composer,
)
from storefront.services.enrichment import FAILURE_PITCH, EnrichmentClient
from storefront.storage import Database, InMemoryLocalStore, ProductStatus, ProductStore


def offer(title="Fone", url="https://loja.test/fone", **extra):
    return {"title": title, "url": url, "estimated_price": "R$ 99,90", **extra}


def test_curator_is_matched_by_email_case_insensitively(coordinator, curator, user):
    assert coordinator.is_curator(curator) is True
    assert coordinator.is_curator(user) is False
    assert coordinator.is_curator(None) is False


def test_sign_in_creates_and_merges_profile(coordinator, db):
    token = make_token(sub="u9", name="Carla", email="carla@x.com")
    profile = coordinator.sign_in(token, visitor_id="visitor-a")
    assert profile.uid == "u9"
    assert profile.display_name == "Carla"
    assert coordinator.visitor_state("visitor-a").is_authorized is True
    assert coordinator.visitor_state("visitor-b").is_authorized is False

    db.upsert_user_profile(profile.model_copy(update={"saved_products": [4]}))
    again = coordinator.authenticate(make_token(sub="u9", name="Carla S.", email="carla@x.com"))
    assert again.display_name == "Carla S."
    assert again.saved_products == [4]

    coordinator.logout("visitor-a")
    assert coordinator.visitor_state("visitor-a").is_authorized is False


def test_post_offer_requires_sign_in_and_fields(coordinator, user):
    with pytest.raises(PermissionDeniedError):
        coordinator.post_offer(None, offer())
    with pytest.raises(MalformedInputError):
        coordinator.post_offer(user, offer(url=" "))
    with pytest.raises(MalformedInputError):
        coordinator.post_offer(user, offer(title=""))


def test_post_offer_sets_author_and_curator_flag(coordinator, user, curator):
    mine = coordinator.post_offer(user, offer(is_featured=True, clicks=50))
    assert mine.author_id == "user-1"
    assert mine.author_name == "Ana"
    assert mine.is_curator is False
    assert mine.is_featured is False
    assert mine.clicks == 0
    assert mine.status == ProductStatus.READY

    theirs = coordinator.post_offer(curator, offer("Cadeira", "https://loja.test/cadeira"))
    assert theirs.is_curator is True


def test_edit_and_delete_rules(coordinator, user, other_user, curator):
    product = coordinator.post_offer(user, offer())

    with pytest.raises(PermissionDeniedError):
        coordinator.edit_offer(other_user, product.id, {"title": "Hack"})
    with pytest.raises(PermissionDeniedError):
        coordinator.delete_offer(other_user, product.id)
    with pytest.raises(PermissionDeniedError):
        coordinator.edit_offer(None, product.id, {"title": "Hack"})

    edited = coordinator.edit_offer(curator, product.id, {"title": "Fone Pro", "clicks": 9})
    assert edited.title == "Fone Pro"
    assert edited.clicks == 0
    assert edited.is_curator is True

    edited = coordinator.edit_offer(user, product.id, {"category": "Áudio"})
    assert edited.is_curator is False

    coordinator.delete_offer(user, product.id)
    assert coordinator.products == []
    with pytest.raises(NotFoundError):
        coordinator.get_product(product.id)


def test_set_featured_is_curator_only(coordinator, user, curator):
    product = coordinator.post_offer(user, offer())

    with pytest.raises(PermissionDeniedError):
        coordinator.set_featured(user, product.id)

    assert coordinator.set_featured(curator, product.id).is_featured is True
    assert coordinator.feed().featured.id == product.id


def test_feed_shows_ready_products_only(coordinator, store):
    store.add(draft("Fone", 100))
    store.add(draft("Mouse", 200))
    store.add(draft("Pendente", 300, status=ProductStatus.PENDING))

    view = coordinator.feed()
    assert [p.title for p in view.items] == ["Mouse", "Fone"]

    assert [p.title for p in coordinator.feed("fone").items] == ["Fone"]
    assert [p.title for p in coordinator.feed(visible=1).items] == ["Mouse"]
    assert coordinator.feed(visible=1).has_more is True


def test_build_composer_uses_configured_ordering(config):
    config.feed.ordering = "priority_shuffle"
    composer = build_composer(config, chooser=lambda items, k: list(items)[:k])

    assert isinstance(composer.ordering, PriorityShuffleOrdering)
    assert composer.initial_window == 12
    assert composer.page_size == 8


def test_toggle_like_mirrors_local_liked_set(coordinator, user, store):
    product = store.add(draft("Fone", 100))

    result = coordinator.toggle_like(user.uid, product.id)
    assert result == {"liked": True, "likes": 1, "liker_id": user.uid}
    assert coordinator.visitor_state(user.uid).is_liked(product.id)
    assert coordinator.product_detail(product.id, liker_id=user.uid)["liked"] is True

    result = coordinator.toggle_like(user.uid, product.id)
    assert result == {"liked": False, "likes": 0, "liker_id": user.uid}
    assert not coordinator.visitor_state(user.uid).is_liked(product.id)


def test_anonymous_like_issues_a_visitor_id(coordinator, store):
    product = store.add(draft("Fone", 100))

    result = coordinator.toggle_like(None, product.id)
    assert result["liker_id"].startswith("visitor-")
    assert coordinator.get_product(product.id).likes == [result["liker_id"]]


def test_anonymous_visitors_like_independently(coordinator, store):
    product = store.add(draft("Fone", 100))

    first = coordinator.toggle_like(None, product.id, visitor_id="visitor-a")
    second = coordinator.toggle_like(None, product.id, visitor_id="visitor-b")

    assert first == {"liked": True, "likes": 1, "liker_id": "visitor-a"}
    assert second == {"liked": True, "likes": 2, "liker_id": "visitor-b"}
    assert coordinator.product_detail(product.id, liker_id="visitor-a")["liked"] is True
    assert coordinator.product_detail(product.id, liker_id="visitor-c")["liked"] is False
    assert coordinator.product_detail(product.id)["liked"] is False


def test_comments(coordinator, user, store):
    product = store.add(draft("Fone", 100))

    with pytest.raises(PermissionDeniedError):
        coordinator.add_comment(None, product.id, "Oi")
    with pytest.raises(MalformedInputError):
        coordinator.add_comment(user, product.id, "   ")

    comment = coordinator.add_comment(user, product.id, " Chegou rápido ")
    assert comment.text == "Chegou rápido"
    assert comment.user_name == "Ana"
    assert coordinator.get_product(product.id).comments_count == 1
    assert [c.text for c in coordinator.comments(product.id)] == ["Chegou rápido"]


def test_register_interest_validates_email(coordinator, store, db):
    product = store.add(draft("Fone", 100))

    with pytest.raises(MalformedInputError):
        coordinator.register_interest("sem-arroba", product.id)
    with pytest.raises(NotFoundError):
        coordinator.register_interest("ana@x.com", 999)

    result = coordinator.register_interest(" ana@x.com ", product.id)
    assert result["mailto"].startswith("mailto:ana@x.com?")
    leads = db.get_leads()
    assert leads[0].email == "ana@x.com"
    assert leads[0].product_title == "Fone"


def test_record_click_counts_and_returns_url(coordinator, store):
    product = store.add(draft("Fone", 100))

    assert coordinator.record_click(product.id) == "https://loja.test/fone"
    assert coordinator.get_product(product.id).clicks == 1


def test_record_click_is_best_effort(coordinator, store, monkeypatch):
    product = store.add(draft("Fone", 100))

    def unavailable(product_id):
        raise TransientStoreError("offline")

    monkeypatch.setattr(store, "increment_clicks", unavailable)
    assert coordinator.record_click(product.id) == "https://loja.test/fone"


def test_new_offer_pushes_notification_and_counts_it(coordinator, user, db):
    assert coordinator.notifications.items == []

    coordinator.post_offer(user, offer())
    assert coordinator.notifications.unread_count == 1
    assert coordinator.notifications.items[0].message == "Fone"
    assert db.get_stat("notificationsSent") == 1


def test_status_change_does_not_notify(coordinator, store, db):
    product = store.add(draft("Fone", 100, status=ProductStatus.PENDING))
    sent = db.get_stat("notificationsSent")

    store.update(product.id, {"status": ProductStatus.READY})

    assert db.get_stat("notificationsSent") == sent
    assert len(coordinator.notifications.items) == sent


def test_feed_picks_up_writes_from_another_process(tmp_path, verifier, config, openai_client):
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    api_db = Database(url)
    coordinator = StorefrontCoordinator(
        db=api_db,
        store=ProductStore(api_db),
        verifier=verifier,
        enrichment=EnrichmentClient(client=openai_client),
        local_store=InMemoryLocalStore(),
        config=config,
    )
    assert coordinator.feed().total == 0

    worker = ProductStore(Database(url))
    product = worker.add(draft("Fone", 100))
    assert [p.title for p in coordinator.feed().items] == ["Fone"]

    worker.update(product.id, {"status": ProductStatus.ERROR})
    assert coordinator.feed().items == []
    coordinator.close()


def test_subscription_error_sets_banner(coordinator, store, db, monkeypatch):
    def unavailable():
        raise TransientStoreError("offline")

    monkeypatch.setattr(db, "list_products", unavailable)
    store._publish()
    assert coordinator.banner == STORE_UNAVAILABLE_BANNER

    monkeypatch.undo()
    store._publish()
    assert coordinator.banner is None


def test_product_detail(coordinator, store):
    product = store.add(draft("Fone", 100, category="Áudio"))
    store.add(draft("Caixa de som", 200, category="Áudio"))
    store.add(draft("Mouse", 300, category="Informática"))

    detail = coordinator.product_detail(product.id)
    assert detail["product"].id == product.id
    assert [p.title for p in detail["related"]] == ["Caixa de som"]
    assert detail["has_more_related"] is False
    assert detail["share"]["url"].endswith(f"/products/{product.id}")
    assert detail["liked"] is False


def test_marketing_pitch_is_cached(coordinator, store, openai_client):
    product = store.add(draft("Fone", 100))

    first = asyncio.run(coordinator.marketing_pitch(product.id))
    second = asyncio.run(coordinator.marketing_pitch(product.id))

    assert first == second
    assert coordinator.get_product(product.id).marketing_pitch == first
    assert len(openai_client.chat.completions.calls) == 1


def test_failed_pitch_is_not_cached(coordinator, store):
    product = store.add(draft("Fone", 100))

    coordinator.enrichment.client = fake_openai(error=RuntimeError("quota"))
    assert asyncio.run(coordinator.marketing_pitch(product.id)) == FAILURE_PITCH
    assert coordinator.get_product(product.id).marketing_pitch is None

    coordinator.enrichment.client = fake_openai("Compre agora!")
    assert asyncio.run(coordinator.marketing_pitch(product.id)) == "Compre agora!"
    assert coordinator.get_product(product.id).marketing_pitch == "Compre agora!"


def test_enrich_url_applies_domain_rule(coordinator):
    assert asyncio.run(coordinator.enrich_url("https://loja.test/x")) == {}
    assert asyncio.run(coordinator.enrich_url("https://amazon.com.br/x", "Meu título")) == {}

    suggestions = asyncio.run(coordinator.enrich_url("https://amazon.com.br/x"))
    assert suggestions["title"] == "Fone Bluetooth"


def test_dashboard(coordinator, curator, user, store):
    product = store.add(draft("Fone", 100))
    coordinator.record_click(product.id)
    coordinator.track_visit()
    coordinator.register_interest("ana@x.com", product.id)

    with pytest.raises(PermissionDeniedError):
        coordinator.dashboard(user)

    stats = coordinator.dashboard(curator)
    assert stats["total_visits"] == 1
    assert stats["total_clicks"] == 1
    assert stats["notifications_sent"] == 1
    assert len(stats["leads"]) == 1
    assert stats["top_products"][0]["percentage"] == 100.0


def test_sheet_import_creates_pending_curator_offers(coordinator, store, monkeypatch):
    store.add(draft("Existente", 100, url="https://a.test/1"))

    def handler(request):
        return httpx.Response(200, text="link\nhttps://a.test/1\nhttps://a.test/2\n")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coordinator.run_sheet_import("https://files.test/x.csv", client=client)

    assert asyncio.run(run()) == 1

    imported = coordinator.db.find_product_by_url("https://a.test/2")
    assert imported.status == ProductStatus.PENDING
    assert imported.is_curator is True
    assert [p.title for p in coordinator.feed().items] == ["Existente"]


def test_sheet_import_without_url_does_nothing(coordinator):
    assert asyncio.run(coordinator.run_sheet_import()) == 0


def test_run_enrichment_marks_ready_or_error(coordinator, store, db):
    ready = store.add(draft("", 100, url="https://a.test/1", status=ProductStatus.PENDING))
    assert coordinator.feed().items == []

    assert asyncio.run(coordinator.run_enrichment()) == 1
    enriched = db.get_product(ready.id)
    assert enriched.status == ProductStatus.READY
    assert enriched.title == "Fone Bluetooth"
    assert enriched.estimated_price == "R$ 99,90"
    assert [p.id for p in coordinator.feed().items] == [ready.id]

    failed = store.add(draft("", 200, url="https://a.test/2", status=ProductStatus.PENDING))
    coordinator.enrichment.client = fake_openai(error=RuntimeError("quota"))
    assert asyncio.run(coordinator.run_enrichment()) == 0
    assert db.get_product(failed.id).status == ProductStatus.ERROR


def test_run_enrichment_requeues_offer_when_a_write_fails(coordinator, store, db, monkeypatch):
    product = store.add(draft("", 100, url="https://a.test/1", status=ProductStatus.PENDING))
    update = store.update

    def ready_write_fails(product_id, changes):
        if changes.get("status") == ProductStatus.READY:
            raise TransientStoreError("offline")
        return update(product_id, changes)

    monkeypatch.setattr(store, "update", ready_write_fails)

    assert asyncio.run(coordinator.run_enrichment()) == 0
    assert db.get_product(product.id).status == ProductStatus.PENDING

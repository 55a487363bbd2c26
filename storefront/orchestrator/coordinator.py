"""Storefront coordination: the operations behind every user action."""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..alerts.notifications import ArrivalDetector, NotificationCenter, NotificationItem
from ..errors import (
    MalformedInputError,
    NotFoundError,
    PermissionDeniedError,
    StorefrontError,
)
from ..feed.analytics import click_breakdown, total_clicks
from ..feed.carousel import CarouselLoop, top_products
from ..feed.composer import FeedComposer, FeedView
from ..feed.ordering import Chooser, ordering_for
from ..services.enrichment import FALLBACK_PITCHES, EnrichmentClient, should_auto_enrich
from ..services.identity import AuthSession, IdentityClaims, IdentityVerifier
from ..services.sharing import interest_mailto, share_payload
from ..services.sheets import fetch_product_links
from ..storage.database import Database
from ..storage.local import (
    InMemoryLocalStore,
    JsonFileLocalStore,
    LocalStore,
    VisitorState,
    new_visitor_id,
)
from ..storage.models import (
    ProductDraft,
    ProductRecord,
    ProductStatus,
    UserProfileRecord,
)
from ..storage.store import ProductStore
from ..utils.config import Config, Settings, get_config, get_settings

NOTIFICATIONS_STAT = "notificationsSent"
STORE_UNAVAILABLE_BANNER = "Banco de dados indisponível. Tentando reconectar..."

# Fields a poster can set through the offer form
FORM_FIELDS = (
    "url",
    "title",
    "description",
    "category",
    "estimated_price",
    "image_url",
    "additional_images",
    "video_url",
)


def build_composer(config: Config, chooser: Optional[Chooser] = None) -> FeedComposer:
    """Feed composer configured from the ``feed`` section"""
    feed = config.feed
    return FeedComposer(
        ordering=ordering_for(feed.ordering, head_size=feed.priority_head_size, chooser=chooser),
        include_category=feed.search_categories,
        initial_window=feed.initial_window,
        page_size=feed.page_size,
        related_initial=feed.related_initial,
        related_page_size=feed.related_page_size,
    )


class StorefrontCoordinator:
    """Wires the store, identity, enrichment and feed composer together.

    Clients are passed in explicitly; ``from_config`` builds them once at
    startup. The coordinator keeps a read-through copy of the product
    collection fed by its store subscription. Visitor state is keyed by the
    visitor id each client keeps, so nothing about one visitor is shared
    with another.
    """

    def __init__(
        self,
        db: Database,
        store: ProductStore,
        verifier: IdentityVerifier,
        enrichment: EnrichmentClient,
        local_store: LocalStore,
        config: Optional[Config] = None,
        composer: Optional[FeedComposer] = None,
    ):
        """Initialize storefront coordinator.

        Args:
            db: Database used for profiles, leads and stats
            store: Live product store
            verifier: Identity token verifier
            enrichment: Generative enrichment client
            local_store: Visitor key-value state, scoped per visitor id
            config: Configuration; defaults to the global configuration
            composer: Feed composer; built from ``config`` when omitted
        """
        self.config = config or get_config()
        self.db = db
        self.store = store
        self.verifier = verifier
        self.enrichment = enrichment
        self.composer = composer or build_composer(self.config)

        self.local_store = local_store

        self.detector = ArrivalDetector()
        self.notifications = NotificationCenter(on_push=self._count_notification)

        self.products: List[ProductRecord] = []
        self.banner: Optional[str] = None

        self._unsubscribe = self.store.subscribe(self._on_snapshot, self._on_store_error)

    @classmethod
    def from_config(
        cls, config: Optional[Config] = None, settings: Optional[Settings] = None
    ) -> "StorefrontCoordinator":
        """Build every client from configuration"""
        config = config or get_config()
        settings = settings or get_settings()

        db = Database(config.database.url, echo=config.database.echo)
        verifier = IdentityVerifier(
            client_id=config.identity.client_id,
            certs_url=config.identity.certs_url,
            algorithms=config.identity.algorithms,
            issuers=config.identity.issuers,
        )
        enrichment = EnrichmentClient(settings.openai_api_key, model=config.enrichment.model)

        return cls(
            db=db,
            store=ProductStore(db),
            verifier=verifier,
            enrichment=enrichment,
            local_store=JsonFileLocalStore(config.local_store.path),
            config=config,
        )

    def close(self):
        """Stop listening to the store"""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def _on_snapshot(self, products: List[ProductRecord]):
        self.products = products
        self.banner = None

        notification = self.detector.observe(products)
        if notification:
            self.notifications.push(notification)

    def _on_store_error(self, error: Exception):
        logger.error(f"Product subscription error: {error}")
        self.banner = STORE_UNAVAILABLE_BANNER

    def _count_notification(self, item: NotificationItem):
        try:
            self.db.increment_stat(NOTIFICATIONS_STAT)
        except StorefrontError as e:
            logger.warning(f"Could not count notification: {e}")

    def visible_products(self) -> List[ProductRecord]:
        """Products shown to visitors: only offers ready for display"""
        return [p for p in self.products if p.status == ProductStatus.READY]

    def page_url(self, product: ProductRecord) -> str:
        return f"{self.config.site.url.rstrip('/')}/products/{product.id}"

    def get_product(self, product_id: int) -> ProductRecord:
        self.store.refresh()
        for product in self.products:
            if product.id == product_id:
                return product

        product = self.db.get_product(product_id)
        if product is None:
            raise NotFoundError("Produto não encontrado.")
        return product

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def is_curator(self, user: Optional[UserProfileRecord]) -> bool:
        """Whether the user is the configured curator account"""
        curator_email = self.config.curator.email.strip().lower()
        if not user or not curator_email:
            return False
        return (user.email or "").strip().lower() == curator_email

    def visitor_state(self, visitor_id: Optional[str]) -> VisitorState:
        """Local state of one visitor.

        Without an id the state is throwaway: nothing is kept for the caller.
        """
        if not visitor_id:
            return VisitorState(InMemoryLocalStore())
        return VisitorState.for_visitor(self.local_store, visitor_id)

    def sign_in(self, token: str, visitor_id: Optional[str] = None) -> UserProfileRecord:
        """Complete a provider sign-in, flagging the visitor as authorized"""
        session = AuthSession(self.verifier, self.visitor_state(visitor_id).store)
        claims = session.complete_sign_in(token)
        return self._profile_for(claims)

    def authenticate(self, token: str) -> UserProfileRecord:
        """Verify a token for a single request and return the merged profile"""
        return self._profile_for(self.verifier.verify(token))

    def logout(self, visitor_id: Optional[str] = None):
        AuthSession(self.verifier, self.visitor_state(visitor_id).store).logout()

    def _profile_for(self, claims: IdentityClaims) -> UserProfileRecord:
        return self.db.upsert_user_profile(
            UserProfileRecord(
                uid=claims.subject,
                display_name=claims.name or "Usuário",
                email=claims.email,
                photo_url=claims.picture_url,
            )
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def feed(self, query: str = "", visible: Optional[int] = None) -> FeedView:
        """Compose the public feed.

        Args:
            query: Search text
            visible: Visible count reached by the client; initial window when omitted
        """
        self.store.refresh()
        cursor = self.composer.new_cursor(query)
        if visible is not None:
            cursor.visible_count = max(1, visible)
        return self.composer.compose(self.visible_products(), query, cursor)

    def carousel(self, copies: Optional[int] = None) -> Dict[str, Any]:
        """Top products and the looped sequence rendered by the marquee"""
        self.store.refresh()
        top = top_products(self.visible_products(), limit=self.config.carousel.size)
        loop = CarouselLoop(top, copies=copies or self.config.carousel.copies)
        return {"top": top, "sequence": loop.sequence, "keys": loop.keys()}

    def product_detail(
        self,
        product_id: int,
        related_visible: Optional[int] = None,
        liker_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Product page: the product, related offers, comments and share data.

        ``liked`` comes from the local liked set of ``liker_id``, the signed-in
        user id or the anonymous visitor id.
        """
        product = self.get_product(product_id)

        cursor = self.composer.new_related_cursor()
        if related_visible is not None:
            cursor.visible_count = max(1, related_visible)
        related, has_more = self.composer.related(product, self.visible_products(), cursor)

        page_url = self.page_url(product)
        return {
            "product": product,
            "related": related,
            "has_more_related": has_more,
            "comments": self.db.list_comments(product.id),
            "share": share_payload(product, page_url),
            "liked": self.visitor_state(liker_id).is_liked(product.id),
        }

    def comments(self, product_id: int):
        self.get_product(product_id)
        return self.db.list_comments(product_id)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def post_offer(self, user: Optional[UserProfileRecord], form: Dict[str, Any]) -> ProductRecord:
        """Publish a new offer authored by ``user``.

        Raises:
            PermissionDeniedError: Not signed in
            MalformedInputError: Missing link or title
        """
        if user is None:
            raise PermissionDeniedError("Faça login para publicar ofertas.")

        fields = {k: v for k, v in form.items() if k in FORM_FIELDS and v is not None}
        if not str(fields.get("url", "")).strip():
            raise MalformedInputError("Informe o link da oferta.")
        if not str(fields.get("title", "")).strip():
            raise MalformedInputError("Informe o título da oferta.")

        draft = ProductDraft(
            **fields,
            status=ProductStatus.READY,
            author_id=user.uid,
            author_name=user.display_name,
            author_photo=user.photo_url,
            is_curator=self.is_curator(user),
        )
        product = self.store.add(draft)
        logger.info(f"Offer published by {user.email or user.uid}: {product.title}")
        return product

    def edit_offer(
        self, user: Optional[UserProfileRecord], product_id: int, changes: Dict[str, Any]
    ) -> ProductRecord:
        """Edit an offer. Allowed for its author and the curator.

        The curator flag is reset to whether the editor is the curator.
        """
        product = self._require_owner_or_curator(user, product_id)

        fields = {k: v for k, v in changes.items() if k in FORM_FIELDS}
        fields["is_curator"] = self.is_curator(user)
        return self.store.update(product.id, fields)

    def delete_offer(self, user: Optional[UserProfileRecord], product_id: int):
        """Delete an offer. Allowed for its author and the curator."""
        product = self._require_owner_or_curator(user, product_id)
        self.store.delete(product.id)
        logger.info(f"Offer {product.id} deleted by {user.email or user.uid}")

    def set_featured(
        self, user: Optional[UserProfileRecord], product_id: int, featured: bool = True
    ) -> ProductRecord:
        """Toggle the featured flag. Curator only."""
        if not self.is_curator(user):
            raise PermissionDeniedError("Apenas a curadoria pode destacar ofertas.")
        self.get_product(product_id)
        return self.store.update(product_id, {"is_featured": featured})

    def toggle_like(
        self, user_id: Optional[str], product_id: int, visitor_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Flip a liker's membership in the product's like set.

        The liker is the signed-in user, else the anonymous ``visitor_id``. A
        fresh visitor id is issued when neither is given; clients keep the
        returned ``liker_id`` and send it back on later calls.
        """
        product = self.get_product(product_id)
        liker_id = user_id or visitor_id or new_visitor_id()

        is_liked = liker_id in product.likes
        liked = self.store.toggle_like(product.id, liker_id, is_liked)

        state = self.visitor_state(liker_id)
        if liked:
            state.mark_liked(product.id)
        else:
            state.unmark_liked(product.id)

        updated = self.get_product(product.id)
        return {"liked": liked, "likes": len(updated.likes), "liker_id": liker_id}

    def add_comment(self, user: Optional[UserProfileRecord], product_id: int, text: str):
        """Comment on a product as a signed-in user"""
        if user is None:
            raise PermissionDeniedError("Faça login para comentar.")
        text = (text or "").strip()
        if not text:
            raise MalformedInputError("Escreva um comentário.")

        self.get_product(product_id)
        return self.store.add_comment(
            product_id,
            user.uid,
            text,
            user_name=user.display_name,
            user_photo=user.photo_url,
        )

    def register_interest(self, email: str, product_id: int) -> Dict[str, Any]:
        """Capture a lead for a product.

        Returns:
            The stored lead and a ``mailto:`` link the visitor can send to themselves
        """
        email = (email or "").strip()
        if not email or "@" not in email:
            raise MalformedInputError("Informe um e-mail válido.")

        product = self.get_product(product_id)
        lead = self.db.save_lead(email, product.id, product.title)
        logger.info(f"Lead captured for product {product.id}")
        return {"lead": lead, "mailto": interest_mailto(email, product, self.page_url(product))}

    def record_click(self, product_id: int) -> str:
        """Count a click-through and return the affiliate URL.

        Counting is best-effort; the URL is returned even if it fails.
        """
        product = self.get_product(product_id)
        try:
            self.store.increment_clicks(product.id)
        except StorefrontError as e:
            logger.warning(f"Could not count click on {product.id}: {e}")
        return product.url

    def track_visit(self):
        try:
            self.db.record_site_visit()
        except StorefrontError as e:
            logger.warning(f"Could not track visit: {e}")

    async def marketing_pitch(self, product_id: int) -> str:
        """Cached pitch copy for a product, generated on first request.

        Fallback copy is returned but never cached, so a later request retries.
        """
        product = self.get_product(product_id)
        if product.marketing_pitch:
            return product.marketing_pitch

        text = await self.enrichment.pitch(product.title, product.description)
        if text in FALLBACK_PITCHES:
            return text

        try:
            self.store.update(product.id, {"marketing_pitch": text})
        except StorefrontError as e:
            logger.warning(f"Could not cache pitch for {product.id}: {e}")
        return text

    async def enrich_url(self, url: str, current_title: str = "") -> Dict[str, str]:
        """Auto-fill suggestions for the offer form"""
        if not should_auto_enrich(url, current_title, self.config.enrichment.auto_enrich_domains):
            return {}
        return await self.enrichment.enrich(url)

    # ------------------------------------------------------------------
    # Curator dashboard
    # ------------------------------------------------------------------

    def dashboard(self, user: Optional[UserProfileRecord]) -> Dict[str, Any]:
        """Visits, clicks, notifications and leads. Curator only."""
        if not self.is_curator(user):
            raise PermissionDeniedError("Acesso restrito à curadoria.")

        self.store.refresh()
        return {
            "total_products": len(self.products),
            "total_visits": self.db.count_site_visits(),
            "total_clicks": total_clicks(self.products),
            "notifications_sent": self.db.get_stat(NOTIFICATIONS_STAT),
            "leads": self.db.get_leads(limit=100),
            "top_products": click_breakdown(self.products),
        }

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    async def run_sheet_import(self, sheet_url: Optional[str] = None, client=None) -> int:
        """Create pending curator offers for new links listed in the sheet.

        Returns:
            Number of offers created
        """
        sheet_url = sheet_url or self.config.sheets.url
        if not sheet_url:
            logger.info("No offers sheet configured")
            return 0

        logger.info("Starting sheet import")
        links = await fetch_product_links(sheet_url, client=client)

        created = 0
        for link in links:
            try:
                if self.db.find_product_by_url(link):
                    continue
                self.store.add(
                    ProductDraft(
                        url=link,
                        status=ProductStatus.PENDING,
                        author_name="Curadoria",
                        is_curator=True,
                    )
                )
                created += 1
            except StorefrontError as e:
                logger.error(f"Error importing {link}: {e}")

        logger.info(f"Imported {created} new offers from {len(links)} links")
        return created

    async def run_enrichment(self, limit: int = 20) -> int:
        """Enrich pending offers and mark them ready, or errored when nothing came back.

        Returns:
            Number of offers that became ready
        """
        pending = self.db.list_products_by_status(ProductStatus.PENDING, limit=limit)
        if not pending:
            logger.info("No offers pending enrichment")
            return 0

        ready = 0
        for product in pending:
            claimed = False
            try:
                self.store.update(product.id, {"status": ProductStatus.ENRICHING})
                claimed = True
                data = await self.enrichment.enrich(product.url)

                if not data.get("title") and not product.title:
                    self.store.update(product.id, {"status": ProductStatus.ERROR})
                    logger.warning(f"Enrichment returned nothing for offer {product.id}")
                    continue

                changes: Dict[str, Any] = {
                    key: value for key, value in data.items() if not getattr(product, key, None)
                }
                changes["status"] = ProductStatus.READY
                self.store.update(product.id, changes)
                ready += 1

            except StorefrontError as e:
                logger.error(f"Error enriching offer {product.id}: {e}")
                if claimed:
                    self._release_claim(product.id)

        logger.info(f"Enriched {ready}/{len(pending)} pending offers")
        return ready

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _release_claim(self, product_id: int):
        """Put an offer stuck in ENRICHING back in the pending queue"""
        try:
            self.store.update(product_id, {"status": ProductStatus.PENDING})
        except StorefrontError as e:
            logger.error(f"Offer {product_id} left in ENRICHING: {e}")

    def _require_owner_or_curator(
        self, user: Optional[UserProfileRecord], product_id: int
    ) -> ProductRecord:
        if user is None:
            raise PermissionDeniedError("Faça login para gerenciar ofertas.")

        product = self.get_product(product_id)
        if product.author_id != user.uid and not self.is_curator(user):
            raise PermissionDeniedError("Você só pode alterar as suas próprias ofertas.")
        return product

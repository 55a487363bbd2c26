"""Database operations and management"""

from contextlib import contextmanager
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger
from sqlalchemy import create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, TransientStoreError
from .models import (
    Base,
    Comment,
    CommentRecord,
    Lead,
    LeadRecord,
    Product,
    ProductDraft,
    ProductLike,
    ProductRecord,
    ProductStatus,
    SiteVisit,
    Stat,
    UserProfile,
    UserProfileRecord,
    now_ms,
)

# Fields a partial update may touch. Counters and likes have dedicated operations.
UPDATABLE_FIELDS = {
    "url",
    "title",
    "description",
    "category",
    "estimated_price",
    "image_url",
    "additional_images",
    "video_url",
    "image_search_term",
    "marketing_pitch",
    "status",
    "is_curator",
    "is_featured",
}

# Stat bumped by every product write, read by other processes to detect changes
PRODUCTS_REVISION = "productsRevision"


class Database:
    """Database management class"""

    def __init__(self, db_url: str = "sqlite:///data/db/storefront.db", echo: bool = False):
        self.db_url = db_url
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url:
                engine_kwargs["poolclass"] = StaticPool
            elif db_url.startswith("sqlite:///"):
                Path(db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(db_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)
        logger.info(f"Database initialized: {db_url}")

    @contextmanager
    def session(self):
        """Context manager for database sessions"""
        session = self.Session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise TransientStoreError("Erro ao conectar com o banco de dados.") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def add_product(self, draft: ProductDraft) -> ProductRecord:
        """Insert a new product with zeroed counters and an empty like set."""
        with self.session() as session:
            data = draft.model_dump()
            data["status"] = draft.status.value
            product = Product(**data, clicks=0, comments_count=0)
            session.add(product)
            session.flush()
            self._bump_revision(session)
            logger.debug(f"Added product: {product.title} (ID: {product.id})")
            return self._to_record(product)

    def update_product(self, product_id: int, changes: dict) -> ProductRecord:
        """Apply a partial update. Unknown and protected fields are ignored."""
        with self.session() as session:
            product = self._require_product(session, product_id)
            for key, value in changes.items():
                if key not in UPDATABLE_FIELDS:
                    continue
                if key == "status" and isinstance(value, ProductStatus):
                    value = value.value
                setattr(product, key, value)
            self._bump_revision(session)
            session.flush()
            return self._to_record(product)

    def delete_product(self, product_id: int):
        """Delete a product together with its likes and comments"""
        with self.session() as session:
            product = self._require_product(session, product_id)
            session.delete(product)
            self._bump_revision(session)
            logger.info(f"Deleted product {product_id}")

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        """Get a single product by ID"""
        with self.session() as session:
            product = session.query(Product).filter(Product.id == product_id).first()
            return self._to_record(product) if product else None

    def list_products(self) -> list[ProductRecord]:
        """All products, newest first"""
        with self.session() as session:
            products = (
                session.query(Product)
                .order_by(Product.added_at.desc(), Product.id.desc())
                .all()
            )
            return [self._to_record(p) for p in products]

    def list_products_by_status(
        self, status: ProductStatus, limit: Optional[int] = None
    ) -> list[ProductRecord]:
        """Products in a lifecycle state, oldest first"""
        with self.session() as session:
            query = (
                session.query(Product)
                .filter(Product.status == status.value)
                .order_by(Product.added_at.asc(), Product.id.asc())
            )
            if limit:
                query = query.limit(limit)
            return [self._to_record(p) for p in query.all()]

    def find_product_by_url(self, url: str) -> Optional[ProductRecord]:
        """Find a product by its affiliate URL"""
        with self.session() as session:
            product = session.query(Product).filter(Product.url == url).first()
            return self._to_record(product) if product else None

    def count_products(self) -> int:
        """Count total products"""
        with self.session() as session:
            return session.query(Product).count()

    def increment_clicks(self, product_id: int):
        """Atomic click counter increment"""
        with self.session() as session:
            updated = (
                session.query(Product)
                .filter(Product.id == product_id)
                .update({Product.clicks: Product.clicks + 1}, synchronize_session=False)
            )
            if not updated:
                raise NotFoundError("Produto não encontrado.")
            self._bump_revision(session)

    def set_like(self, product_id: int, user_id: str, liked: bool) -> bool:
        """Add or remove a user from a product's like set.

        Both directions are idempotent. Returns whether the user is in the set
        afterwards.
        """
        with self.session() as session:
            self._require_product(session, product_id)
            existing = (
                session.query(ProductLike)
                .filter(ProductLike.product_id == product_id, ProductLike.user_id == user_id)
                .first()
            )
            if liked and not existing:
                session.add(ProductLike(product_id=product_id, user_id=user_id))
            elif not liked and existing:
                session.delete(existing)
            if liked != bool(existing):
                self._bump_revision(session)
            return liked

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self,
        product_id: int,
        user_id: str,
        text: str,
        user_name: str = "",
        user_photo: str = "",
        timestamp: Optional[int] = None,
    ) -> CommentRecord:
        """Store a comment and bump the product's comment counter"""
        with self.session() as session:
            product = self._require_product(session, product_id)
            comment = Comment(
                product_id=product_id,
                user_id=user_id,
                user_name=user_name,
                user_photo=user_photo,
                text=text,
                timestamp=timestamp or now_ms(),
            )
            session.add(comment)
            product.comments_count = (product.comments_count or 0) + 1
            self._bump_revision(session)
            session.flush()
            return CommentRecord.model_validate(comment, from_attributes=True)

    def list_comments(self, product_id: int) -> list[CommentRecord]:
        """Comments for a product, newest first"""
        with self.session() as session:
            comments = (
                session.query(Comment)
                .filter(Comment.product_id == product_id)
                .order_by(Comment.timestamp.desc(), Comment.id.desc())
                .all()
            )
            return [CommentRecord.model_validate(c, from_attributes=True) for c in comments]

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def save_lead(self, email: str, product_id: int, product_title: str) -> LeadRecord:
        """Record email interest in a product"""
        with self.session() as session:
            lead = Lead(
                email=email,
                product_id=product_id,
                product_title=product_title,
                timestamp=now_ms(),
            )
            session.add(lead)
            session.flush()
            return LeadRecord.model_validate(lead, from_attributes=True)

    def get_leads(self, limit: int = 100) -> list[LeadRecord]:
        """Most recent leads"""
        with self.session() as session:
            leads = (
                session.query(Lead)
                .order_by(Lead.timestamp.desc(), Lead.id.desc())
                .limit(limit)
                .all()
            )
            return [LeadRecord.model_validate(lead, from_attributes=True) for lead in leads]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user_profile(self, uid: str) -> Optional[UserProfileRecord]:
        """Get a stored profile"""
        with self.session() as session:
            profile = session.query(UserProfile).filter(UserProfile.uid == uid).first()
            if not profile:
                return None
            return UserProfileRecord.model_validate(profile, from_attributes=True)

    def upsert_user_profile(self, profile: UserProfileRecord) -> UserProfileRecord:
        """Create a profile or merge identity fields into the stored one.

        Stored ``saved_products`` survive; identity fields come from the new
        profile when present.
        """
        with self.session() as session:
            stored = session.query(UserProfile).filter(UserProfile.uid == profile.uid).first()
            if stored is None:
                stored = UserProfile(**profile.model_dump())
                session.add(stored)
            else:
                stored.display_name = profile.display_name or stored.display_name
                stored.email = profile.email or stored.email
                stored.photo_url = profile.photo_url or stored.photo_url
                saved = list(stored.saved_products or [])
                for product_id in profile.saved_products:
                    if product_id not in saved:
                        saved.append(product_id)
                stored.saved_products = saved
            session.flush()
            return UserProfileRecord.model_validate(stored, from_attributes=True)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def record_site_visit(self):
        """Record one storefront visit"""
        with self.session() as session:
            session.add(
                SiteVisit(
                    timestamp=now_ms(),
                    date=datetime.now(timezone.utc).isoformat(),
                )
            )

    def count_site_visits(self) -> int:
        """Count recorded visits"""
        with self.session() as session:
            return session.query(func.count(SiteVisit.id)).scalar() or 0

    def increment_stat(self, key: str, amount: int = 1) -> int:
        """Increment a global counter, creating it on first use"""
        with self.session() as session:
            return self._bump_stat(session, key, amount)

    def get_stat(self, key: str) -> int:
        """Read a global counter, 0 when absent"""
        with self.session() as session:
            stat = session.query(Stat).filter(Stat.key == key).first()
            return stat.value if stat else 0

    def products_revision(self) -> int:
        """Counter advanced by every product write, from any process"""
        return self.get_stat(PRODUCTS_REVISION)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _bump_stat(self, session: Session, key: str, amount: int = 1) -> int:
        stat = session.query(Stat).filter(Stat.key == key).first()
        if stat is None:
            stat = Stat(key=key, value=0)
            session.add(stat)
        stat.value = (stat.value or 0) + amount
        return stat.value

    def _bump_revision(self, session: Session):
        self._bump_stat(session, PRODUCTS_REVISION)

    def _require_product(self, session: Session, product_id: int) -> Product:
        product = session.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Produto não encontrado.")
        return product

    def _to_record(self, product: Product) -> ProductRecord:
        """Detach a product row into a snapshot record"""
        return ProductRecord(
            id=product.id,
            url=product.url or "",
            title=product.title or "",
            description=product.description or "",
            category=product.category or "Geral",
            estimated_price=product.estimated_price,
            image_url=product.image_url,
            additional_images=list(product.additional_images or []),
            video_url=product.video_url,
            image_search_term=product.image_search_term,
            marketing_pitch=product.marketing_pitch,
            status=ProductStatus(product.status or ProductStatus.READY.value),
            added_at=product.added_at or 0,
            clicks=product.clicks or 0,
            likes=[like.user_id for like in product.likes],
            comments_count=product.comments_count or 0,
            author_id=product.author_id,
            author_name=product.author_name,
            author_photo=product.author_photo,
            is_curator=bool(product.is_curator),
            is_featured=bool(product.is_featured),
        )

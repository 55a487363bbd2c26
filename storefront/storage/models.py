"""Database models for the deal storefront."""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class ProductStatus(str, Enum):
    """Lifecycle of a posted offer."""

    PENDING = "PENDING"
    ENRICHING = "ENRICHING"
    READY = "READY"
    ERROR = "ERROR"


# ============================================================================
# Pydantic Models (for data transfer)
# ============================================================================


class ProductRecord(BaseModel):
    """In-memory view of a product as delivered in store snapshots.

    Every field except ``id`` has a default so that incomplete upstream data
    renders as empty values instead of failing validation.
    """

    id: int
    url: str = ""
    title: str = ""
    description: str = ""
    category: str = "Geral"
    estimated_price: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: list[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    image_search_term: Optional[str] = None
    marketing_pitch: Optional[str] = None
    status: ProductStatus = ProductStatus.READY
    added_at: int = 0
    clicks: int = 0
    likes: list[str] = Field(default_factory=list)
    comments_count: int = 0
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    author_photo: Optional[str] = None
    is_curator: bool = False
    is_featured: bool = False


class ProductDraft(BaseModel):
    """Fields accepted when an offer is posted."""

    url: str = ""
    title: str = ""
    description: str = ""
    category: str = "Geral"
    estimated_price: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: list[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    image_search_term: Optional[str] = None
    status: ProductStatus = ProductStatus.READY
    added_at: int = Field(default_factory=now_ms)
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    author_photo: Optional[str] = None
    is_curator: bool = False
    is_featured: bool = False


class CommentRecord(BaseModel):
    """A comment left on a product."""

    id: int
    product_id: int
    user_id: str
    user_name: str = ""
    user_photo: str = ""
    text: str
    timestamp: int


class UserProfileRecord(BaseModel):
    """Local profile mapped from identity claims."""

    uid: str
    display_name: str = "Usuário"
    email: str = ""
    photo_url: str = ""
    saved_products: list[int] = Field(default_factory=list)


class LeadRecord(BaseModel):
    """Email interest captured for a product."""

    id: int
    email: str
    product_id: int
    product_title: str = ""
    timestamp: int


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class Product(Base):
    """Affiliate offer shown in the storefront."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    url = Column(String, index=True, nullable=False, default="")
    title = Column(String, nullable=False, default="")
    description = Column(Text, default="")
    category = Column(String, index=True, default="Geral")
    estimated_price = Column(String)  # free text, e.g. "R$ 199,90"
    image_url = Column(String)
    additional_images = Column(JSON, default=list)
    video_url = Column(String)
    image_search_term = Column(String)
    marketing_pitch = Column(Text)

    status = Column(String, index=True, default=ProductStatus.READY.value)
    added_at = Column(BigInteger, index=True, default=now_ms)

    # Counters
    clicks = Column(Integer, default=0)
    comments_count = Column(Integer, default=0)

    # Author
    author_id = Column(String, index=True)
    author_name = Column(String)
    author_photo = Column(String)

    # Flags
    is_curator = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)

    # Relationships
    likes = relationship(
        "ProductLike",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductLike.id",
    )
    comments = relationship(
        "Comment", back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Product(id={self.id}, title='{self.title}', status={self.status})>"


class ProductLike(Base):
    """Membership of a user in a product's like set."""

    __tablename__ = "product_likes"
    __table_args__ = (UniqueConstraint("product_id", "user_id", name="uq_product_like"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    user_id = Column(String, nullable=False)

    product = relationship("Product", back_populates="likes")

    def __repr__(self):
        return f"<ProductLike(product_id={self.product_id}, user_id='{self.user_id}')>"


class Comment(Base):
    """Comment on a product. Immutable once written."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    user_id = Column(String, nullable=False)
    user_name = Column(String, default="")
    user_photo = Column(String, default="")
    text = Column(Text, nullable=False)
    timestamp = Column(BigInteger, index=True, default=now_ms)

    product = relationship("Product", back_populates="comments")

    def __repr__(self):
        return f"<Comment(id={self.id}, product_id={self.product_id})>"


class UserProfile(Base):
    """Profile created on first sign-in."""

    __tablename__ = "users"

    uid = Column(String, primary_key=True)
    display_name = Column(String, default="Usuário")
    email = Column(String, index=True, default="")
    photo_url = Column(String, default="")
    saved_products = Column(JSON, default=list)

    def __repr__(self):
        return f"<UserProfile(uid='{self.uid}', email='{self.email}')>"


class Lead(Base):
    """Email captured for marketing follow-up."""

    __tablename__ = "interest_list"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False)
    product_id = Column(Integer, index=True)
    product_title = Column(String, default="")
    timestamp = Column(BigInteger, index=True, default=now_ms)

    def __repr__(self):
        return f"<Lead(id={self.id}, product_id={self.product_id})>"


class SiteVisit(Base):
    """One storefront visit."""

    __tablename__ = "site_visits"

    id = Column(Integer, primary_key=True)
    timestamp = Column(BigInteger, default=now_ms)
    date = Column(String)


class Stat(Base):
    """Global named counter."""

    __tablename__ = "stats"

    key = Column(String, primary_key=True)
    value = Column(Integer, default=0)

    def __repr__(self):
        return f"<Stat(key='{self.key}', value={self.value})>"

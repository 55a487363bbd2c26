"""Data storage and persistence layer"""

from .models import (
    Comment,
    CommentRecord,
    Lead,
    LeadRecord,
    Product,
    ProductDraft,
    ProductLike,
    ProductRecord,
    ProductStatus,
    UserProfile,
    UserProfileRecord,
)
from .database import Database
from .store import ProductStore
from .local import (
    InMemoryLocalStore,
    JsonFileLocalStore,
    LocalStore,
    ScopedLocalStore,
    VisitorState,
)

__all__ = [
    "Comment",
    "CommentRecord",
    "Lead",
    "LeadRecord",
    "Product",
    "ProductDraft",
    "ProductLike",
    "ProductRecord",
    "ProductStatus",
    "UserProfile",
    "UserProfileRecord",
    "Database",
    "ProductStore",
    "LocalStore",
    "InMemoryLocalStore",
    "JsonFileLocalStore",
    "ScopedLocalStore",
    "VisitorState",
]

"""Local visitor state kept in a small key-value store.

Holds what a browser would keep in local storage: the anonymous visitor id,
the "is authorized" session flag and the set of liked product ids. One
backing store serves many visitors through ``ScopedLocalStore`` views keyed
by visitor id. There is no expiry and no sync with the remote store.
"""

import json
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from loguru import logger

VISITOR_ID_KEY = "visitor_id"
AUTHORIZED_KEY = "is_authorized"
LIKED_KEY = "liked_products"


def new_visitor_id() -> str:
    return f"visitor-{uuid.uuid4().hex}"


class LocalStore(ABC):
    """Key-value store for JSON-serialisable values"""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or ``default``"""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Forget a key; missing keys are ignored"""

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key)
        return value if isinstance(value, str) else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        return value if isinstance(value, bool) else default

    def get_list(self, key: str) -> list:
        value = self.get(key)
        return list(value) if isinstance(value, list) else []


class InMemoryLocalStore(LocalStore):
    """Process-local store"""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileLocalStore(LocalStore):
    """Store persisted as a single JSON object, rewritten on every change"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable local state {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()


class ScopedLocalStore(LocalStore):
    """View of a parent store where every key is prefixed with a scope"""

    def __init__(self, parent: LocalStore, scope: str):
        self.parent = parent
        self.scope = scope

    def _key(self, key: str) -> str:
        return f"{self.scope}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.parent.get(self._key(key), default)

    def set(self, key: str, value: Any) -> None:
        self.parent.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.parent.remove(self._key(key))


class VisitorState:
    """Typed access to the visitor keys of a ``LocalStore``"""

    def __init__(self, store: LocalStore):
        self.store = store

    @classmethod
    def for_visitor(cls, store: LocalStore, visitor_id: str) -> "VisitorState":
        """State of one visitor inside a store shared by many"""
        state = cls(ScopedLocalStore(store, visitor_id))
        if state.store.get_str(VISITOR_ID_KEY) != visitor_id:
            state.store.set(VISITOR_ID_KEY, visitor_id)
        return state

    @property
    def visitor_id(self) -> str:
        """Anonymous id, generated on first access and stable afterwards"""
        visitor_id = self.store.get_str(VISITOR_ID_KEY)
        if not visitor_id:
            visitor_id = new_visitor_id()
            self.store.set(VISITOR_ID_KEY, visitor_id)
        return visitor_id

    @property
    def is_authorized(self) -> bool:
        return self.store.get_bool(AUTHORIZED_KEY)

    def set_authorized(self, authorized: bool) -> None:
        if authorized:
            self.store.set(AUTHORIZED_KEY, True)
        else:
            self.store.remove(AUTHORIZED_KEY)

    def liked_ids(self) -> set[int]:
        return set(self.store.get_list(LIKED_KEY))

    def is_liked(self, product_id: int) -> bool:
        return product_id in self.liked_ids()

    def mark_liked(self, product_id: int) -> None:
        liked = self.liked_ids()
        liked.add(product_id)
        self.store.set(LIKED_KEY, sorted(liked))

    def unmark_liked(self, product_id: int) -> None:
        liked = self.liked_ids()
        liked.discard(product_id)
        self.store.set(LIKED_KEY, sorted(liked))

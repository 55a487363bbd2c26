"""New-offer notifications derived from product snapshots."""

import uuid
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional, Sequence

from loguru import logger

from ..storage.models import ProductRecord, now_ms


@dataclass
class NotificationItem:
    """Local notification shown in the notification drawer. Never persisted."""

    title: str
    message: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: int = field(default_factory=now_ms)
    read: bool = False
    url: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class ArrivalDetector:
    """Detects newly arrived products by comparing snapshot sizes.

    Fires only when a snapshot is strictly longer than the previous one and
    it is not the first snapshot. A delete and an add landing in the same
    snapshot, or a same-size replacement, go unnoticed.
    """

    def __init__(self):
        self.previous_count: Optional[int] = None

    def observe(self, snapshot: Sequence[ProductRecord]) -> Optional[NotificationItem]:
        """Record a snapshot and return a notification for the newest item if it grew.

        Args:
            snapshot: Full product list from the store

        Returns:
            NotificationItem or None
        """
        previous = self.previous_count
        self.previous_count = len(snapshot)

        if previous is None or len(snapshot) <= previous:
            return None

        newest = max(snapshot, key=lambda p: p.added_at or 0)
        return NotificationItem(
            title="Nova oferta!",
            message=newest.title or "Confira a nova oferta",
            url=newest.url or None,
            image_url=newest.image_url,
        )


class NotificationCenter:
    """In-memory notification drawer.

    Args:
        on_push: Optional callback invoked for every pushed notification
    """

    def __init__(self, on_push: Optional[Callable[[NotificationItem], None]] = None):
        self._items: List[NotificationItem] = []
        self.on_push = on_push

    def push(self, item: NotificationItem) -> None:
        self._items.append(item)
        logger.info(f"Notification: {item.title} - {item.message}")
        if self.on_push:
            try:
                self.on_push(item)
            except Exception as e:
                logger.warning(f"Notification hook failed: {e}")

    @property
    def items(self) -> List[NotificationItem]:
        """Notifications, newest first"""
        return list(reversed(self._items))

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._items if not item.read)

    def mark_all_read(self) -> None:
        for item in self._items:
            item.read = True

    def clear(self) -> None:
        self._items.clear()

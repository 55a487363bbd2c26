"""Live product store pushing full-collection snapshots to subscribers."""

import itertools
from typing import Callable, Optional

from loguru import logger

from ..errors import StorefrontError
from .database import Database
from .models import CommentRecord, ProductDraft, ProductRecord

SnapshotCallback = Callable[[list[ProductRecord]], None]
CommentsCallback = Callable[[list[CommentRecord]], None]
ErrorCallback = Callable[[Exception], None]


class ProductStore:
    """Read-through product collection with real-time subscriptions.

    ``subscribe`` delivers the current snapshot right away and a fresh full
    snapshot after every successful write. Writes made through another
    store on the same database are picked up by ``refresh``. Subscribers
    never receive diffs.
    Writes raise ``StorefrontError`` subclasses and are not retried.
    """

    def __init__(self, db: Database):
        """Initialize the store.

        Args:
            db: Database backing the collection
        """
        self.db = db
        self._tokens = itertools.count(1)
        self._revision: Optional[int] = None
        self._listeners: dict[int, tuple[SnapshotCallback, Optional[ErrorCallback]]] = {}
        self._comment_listeners: dict[
            int, tuple[int, CommentsCallback, Optional[ErrorCallback]]
        ] = {}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self, on_data: SnapshotCallback, on_error: Optional[ErrorCallback] = None
    ) -> Callable[[], None]:
        """Listen to product snapshots.

        Args:
            on_data: Called with the full product list, newest first
            on_error: Called instead of ``on_data`` when a snapshot cannot be loaded

        Returns:
            Callable removing the subscription
        """
        token = next(self._tokens)
        self._listeners[token] = (on_data, on_error)
        self._deliver(on_data, on_error)

        def unsubscribe():
            self._listeners.pop(token, None)

        return unsubscribe

    def subscribe_comments(
        self,
        product_id: int,
        on_data: CommentsCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Callable[[], None]:
        """Listen to the comments of one product, newest first."""
        token = next(self._tokens)
        self._comment_listeners[token] = (product_id, on_data, on_error)
        self._deliver_comments(product_id, on_data, on_error)

        def unsubscribe():
            self._comment_listeners.pop(token, None)

        return unsubscribe

    def snapshot(self) -> list[ProductRecord]:
        """Current products, newest first"""
        return self.db.list_products()

    def refresh(self) -> bool:
        """Publish a snapshot if the products changed since the last one.

        Catches writes from other processes sharing the database, such as
        the scheduler or the CLI jobs.

        Returns:
            Whether a snapshot was published
        """
        try:
            revision = self.db.products_revision()
        except StorefrontError as e:
            for _, on_error in list(self._listeners.values()):
                self._report(e, on_error, "products")
            return False

        if revision == self._revision:
            return False
        self._publish(revision)
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, draft: ProductDraft) -> ProductRecord:
        """Add a product with zeroed counters"""
        record = self.db.add_product(draft)
        self._publish()
        return record

    def update(self, product_id: int, changes: dict) -> ProductRecord:
        """Partially update a product"""
        record = self.db.update_product(product_id, changes)
        self._publish()
        return record

    def delete(self, product_id: int):
        """Delete a product"""
        self.db.delete_product(product_id)
        self._publish()
        self._publish_comments(product_id)

    def increment_clicks(self, product_id: int):
        """Increment the click counter of a product"""
        self.db.increment_clicks(product_id)
        self._publish()

    def toggle_like(self, product_id: int, user_id: str, is_liked: bool) -> bool:
        """Remove the user from the like set if ``is_liked``, add otherwise.

        Returns:
            Whether the user likes the product afterwards
        """
        liked = self.db.set_like(product_id, user_id, not is_liked)
        self._publish()
        return liked

    def add_comment(
        self,
        product_id: int,
        user_id: str,
        text: str,
        user_name: str = "",
        user_photo: str = "",
    ) -> CommentRecord:
        """Add a comment and bump the product's comment counter"""
        comment = self.db.add_comment(
            product_id, user_id, text, user_name=user_name, user_photo=user_photo
        )
        self._publish()
        self._publish_comments(product_id)
        return comment

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _publish(self, revision: Optional[int] = None):
        if revision is None:
            try:
                revision = self.db.products_revision()
            except StorefrontError as e:
                logger.warning(f"Products revision unavailable: {e}")
        self._revision = revision

        for on_data, on_error in list(self._listeners.values()):
            self._deliver(on_data, on_error)

    def _publish_comments(self, product_id: int):
        for listened_id, on_data, on_error in list(self._comment_listeners.values()):
            if listened_id == product_id:
                self._deliver_comments(product_id, on_data, on_error)

    def _deliver(self, on_data: SnapshotCallback, on_error: Optional[ErrorCallback]):
        try:
            products = self.db.list_products()
        except StorefrontError as e:
            self._report(e, on_error, "products")
            return

        try:
            on_data(products)
        except Exception as e:
            logger.error(f"Product subscriber failed: {e}")

    def _deliver_comments(
        self,
        product_id: int,
        on_data: CommentsCallback,
        on_error: Optional[ErrorCallback],
    ):
        try:
            comments = self.db.list_comments(product_id)
        except StorefrontError as e:
            self._report(e, on_error, "comments")
            return

        try:
            on_data(comments)
        except Exception as e:
            logger.error(f"Comment subscriber failed: {e}")

    def _report(self, error: Exception, on_error: Optional[ErrorCallback], what: str):
        logger.warning(f"Snapshot of {what} unavailable: {error}")
        if on_error:
            on_error(error)

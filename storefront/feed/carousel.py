"""Top products carousel: ranking, looped sequence and marquee autoscroll."""

from typing import List, Sequence

from ..storage.models import ProductRecord


def top_products(products: Sequence[ProductRecord], limit: int = 10) -> List[ProductRecord]:
    """Featured products first, then by clicks, capped at ``limit``.

    Ties keep their input order.
    """
    ranked = sorted(
        products,
        key=lambda p: (0 if p.is_featured else 1, -(p.clicks or 0)),
    )
    return ranked[:limit]


class CarouselLoop:
    """Repeats the top products to fake an endless horizontal strip.

    Args:
        top: Ranked products shown in the carousel
        copies: Number of repetitions rendered up front
    """

    def __init__(self, top: Sequence[ProductRecord], copies: int = 4):
        self.top = list(top)
        self.copies = copies if self.top else 0

    @property
    def sequence(self) -> List[ProductRecord]:
        return self.top * self.copies

    def extend(self) -> List[ProductRecord]:
        """Append one more copy when the end of the strip comes into view"""
        if self.top:
            self.copies += 1
        return self.sequence

    def keys(self) -> List[str]:
        """Render keys, unique even though products repeat"""
        return [f"{p.id}-{index}" for index, p in enumerate(self.sequence)]


class MarqueeScroller:
    """Pixel offset of an auto-scrolling strip.

    The offset advances by ``speed`` on every animation frame and wraps by
    half the scrollable width once past the midpoint, which lands on the
    same picture because the strip holds repeated copies. Frames are skipped
    while the user is touching or hovering.
    """

    def __init__(self, speed: float = 0.5):
        self.speed = speed
        self.offset = 0.0
        self.paused = False

    def tick(self, scroll_width: float) -> float:
        """Advance one frame.

        Args:
            scroll_width: Total scrollable width of the strip in pixels

        Returns:
            The new offset
        """
        if self.paused or scroll_width <= 0:
            return self.offset

        self.offset += self.speed
        half = scroll_width / 2
        if self.offset >= half:
            self.offset -= half
        return self.offset

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def reset(self) -> None:
        self.offset = 0.0

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Optional

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)


class ScrollVelocitySampler:
    """Keeps a short window of scroll speeds and maps it to a page size.

    Faster scrolling picks smaller pages so each load returns sooner.
    """

    def __init__(
        self,
        window_size: int = config.VELOCITY_WINDOW_SIZE,
        tick_seconds: float = config.VELOCITY_TICK_SECONDS,
        scale: float = config.VELOCITY_SCALE,
        fast_threshold: float = config.VELOCITY_FAST_THRESHOLD,
        medium_threshold: float = config.VELOCITY_MEDIUM_THRESHOLD,
        default_page_size: int = config.DEFAULT_DYNAMIC_PAGE_SIZE,
        clock: Callable[[], float] = time.monotonic
    ):
        self.samples: Deque[float] = deque(maxlen=window_size)
        self.tick_seconds = tick_seconds
        self.scale = scale
        self.fast_threshold = fast_threshold
        self.medium_threshold = medium_threshold
        self.default_page_size = default_page_size
        self.clock = clock
        self.page_size = default_page_size
        self._last_scroll: Optional[float] = None

    def record_scroll(self, now: Optional[float] = None) -> Optional[float]:
        """Turn a scroll event into a speed sample.

        The first event only sets the reference time.
        """
        now = self.clock() if now is None else now
        last, self._last_scroll = self._last_scroll, now
        if last is None:
            return None
        elapsed_ms = max((now - last) * 1000.0, 1.0)
        speed = self.scale / elapsed_ms
        self.add_sample(speed)
        return speed

    def add_sample(self, speed: float) -> None:
        self.samples.append(max(0.0, speed))
        self.recompute()

    def average(self) -> float:
        if not self.samples:
            return 0.0
        return sum(self.samples) / len(self.samples)

    def classify(self, average: float) -> int:
        if average >= self.fast_threshold:
            return config.FAST_SCROLL_PAGE_SIZE
        if average >= self.medium_threshold:
            return config.MEDIUM_SCROLL_PAGE_SIZE
        return config.SLOW_SCROLL_PAGE_SIZE

    def recompute(self) -> int:
        if not self.samples:
            self.page_size = self.default_page_size
            return self.page_size
        size = self.classify(self.average())
        if size != self.page_size:
            logger.debug(f"Scroll speed {self.average():.2f}/s, page size {self.page_size} -> {size}")
        self.page_size = size
        return size

    def tick(self) -> int:
        return self.recompute()

    async def run(self, stop_event: asyncio.Event) -> None:
        """Recompute the page size every tick until ``stop_event`` is set.

        ``CatalogSession.start_velocity_ticker`` runs this for a browsing session.
        """
        while not stop_event.is_set():
            self.tick()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.tick_seconds)
            except asyncio.TimeoutError:
                continue

"""Paged loading of the catalog for an infinite-scroll consumer."""
import asyncio
from typing import List, Optional

from utils.logger import setup_logger
from utils.connectivity import ConnectivityMonitor
from ingestion.models import Novel
from monitoring.renderer import Renderer, Severity
from pagination.velocity import ScrollVelocitySampler
from storage.database import NovelStore, StorageUnavailableError
import config

logger = setup_logger(__name__)


class PaginationController:
    """Owns the paging state of one browsing session.

    ``is_loading`` is the only guard against overlapping loads. It is set
    before the first suspension point of a load and cleared on every exit
    path.
    """

    def __init__(
        self,
        store: NovelStore,
        renderer: Renderer,
        connectivity: Optional[ConnectivityMonitor] = None,
        sampler: Optional[ScrollVelocitySampler] = None,
        initial_page_size: int = config.INITIAL_PAGE_SIZE,
        search_mode: str = config.SEARCH_MATCH_MODE
    ):
        self.store = store
        self.renderer = renderer
        self.connectivity = connectivity or ConnectivityMonitor()
        self.sampler = sampler or ScrollVelocitySampler()
        self.initial_page_size = initial_page_size
        self.search_mode = search_mode

        self.current_page_index = 0
        self.current_search_term = ""
        self.is_loading = False
        self.has_more = True
        self.suspended = False
        self._epoch = 0

    @property
    def dynamic_page_size(self) -> int:
        return self.sampler.page_size

    def page_size_for(self, page_index: int) -> int:
        return self.initial_page_size if page_index == 0 else self.dynamic_page_size

    def offset_for(self, page_index: int) -> int:
        """Offset of a page, assuming every page after the first used the current dynamic size.

        If the dynamic size changed mid-session this can skip or repeat
        records; the formula is kept as is.
        """
        if page_index == 0:
            return 0
        return self.initial_page_size + (page_index - 1) * self.dynamic_page_size

    def reset(self) -> None:
        """Start over from the first page and drop displayed results."""
        self._epoch += 1
        self.current_page_index = 0
        self.has_more = True
        self.renderer.clear_results()

    def suspend(self) -> None:
        """Refuse page loads until ``resume`` is called."""
        self.suspended = True
        self.reset()

    def resume(self) -> None:
        self.suspended = False
        self.reset()

    def set_search_term(self, term: str) -> None:
        self.current_search_term = term or ""
        self.reset()

    async def request_next_page(self) -> List[Novel]:
        """Load and display the next page.

        Returns:
            Records appended to the display, empty when nothing was loaded
        """
        if self.is_loading or self.suspended or not self.has_more:
            return []
        if not self.connectivity.online:
            self.renderer.notify("You are offline. More novels will load when you reconnect.", Severity.WARNING)
            return []

        self.is_loading = True
        epoch = self._epoch
        page_index = self.current_page_index
        term = self.current_search_term
        page_size = self.page_size_for(page_index)
        offset = self.offset_for(page_index)
        stale = False
        novels: List[Novel] = []
        try:
            novels = await self._query(term, offset, page_size)
            if epoch != self._epoch:
                stale = True
                logger.debug(f"Discarding page {page_index} for superseded query {term!r}")
            else:
                self._apply(novels, page_index, page_size, offset, term)
        except StorageUnavailableError as e:
            logger.error(f"Failed to load page {page_index}: {e}")
            if epoch == self._epoch:
                self.renderer.notify("Failed to load novels from local storage.", Severity.ERROR)
            novels = []
        finally:
            self.is_loading = False

        if stale and not self.suspended:
            return await self.request_next_page()
        return novels

    def _apply(self, novels: List[Novel], page_index: int, page_size: int, offset: int, term: str) -> None:
        if len(novels) == page_size:
            self.current_page_index += 1
        else:
            self.has_more = False

        if not novels and term:
            if page_index == 0:
                self.renderer.notify(f"No results for '{term}'.", Severity.INFO)
            else:
                self.renderer.notify("No more results.", Severity.INFO)

        if novels:
            self.renderer.append_page(novels)
        logger.debug(f"Page {page_index}: offset {offset}, size {page_size}, got {len(novels)}")

    async def _query(self, term: str, offset: int, limit: int) -> List[Novel]:
        if term:
            return await asyncio.to_thread(self.store.search_page, term, offset, limit, self.search_mode)
        return await asyncio.to_thread(self.store.page, offset, limit)

    # Event interfaces for the rendering surface

    def on_scroll(self, now: Optional[float] = None) -> None:
        self.sampler.record_scroll(now)

    def on_scroll_sample(self, speed: float) -> None:
        self.sampler.add_sample(speed)

    async def on_intersect(self) -> List[Novel]:
        return await self.request_next_page()

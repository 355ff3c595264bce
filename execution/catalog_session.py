"""Top-level session wiring the store, ingestion and pagination together."""
import asyncio
from typing import List, Optional

from utils.logger import setup_logger
from utils.connectivity import ConnectivityMonitor, OfflineError
from execution.retry_handler import BackoffExecutor
from ingestion.extractor import ExtractionError, NovelExtractor
from ingestion.fetcher import DocumentFetcher
from ingestion.models import IngestionReport, Novel
from ingestion.pipeline import IngestionFailedError, IngestionPipeline
from monitoring.renderer import Renderer, Severity
from pagination.controller import PaginationController
from storage.database import NovelStore, StorageUnavailableError
from storage.freshness import is_fresh
import config

logger = setup_logger(__name__)

THEME_KEY = "theme"
STORAGE_WARNING = "Local storage is unavailable. Cached novels cannot be used right now."


class CatalogSession:
    """One client's view of the catalog.

    Holds every piece of mutable state (store handle, paging state, theme)
    that the collaborators share.
    """

    def __init__(
        self,
        store: NovelStore,
        renderer: Renderer,
        connectivity: Optional[ConnectivityMonitor] = None,
        pipeline: Optional[IngestionPipeline] = None,
        controller: Optional[PaginationController] = None,
        fetcher: Optional[DocumentFetcher] = None,
        extractor: Optional[NovelExtractor] = None,
        executor: Optional[BackoffExecutor] = None
    ):
        self.store = store
        self.renderer = renderer
        self.connectivity = connectivity or ConnectivityMonitor()
        self.pipeline = pipeline or IngestionPipeline(
            store,
            renderer,
            fetcher=fetcher,
            extractor=extractor,
            executor=executor,
            connectivity=self.connectivity
        )
        self.controller = controller or PaginationController(store, renderer, self.connectivity)
        self.theme = config.DEFAULT_THEME
        self.is_refreshing = False
        self.last_report: Optional[IngestionReport] = None
        self._ticker: Optional[asyncio.Task] = None
        self._ticker_stop: Optional[asyncio.Event] = None

    async def start(self, search_term: str = "") -> List[Novel]:
        """Load settings, ingest if the cache is stale, then show the first page.

        Args:
            search_term: Filter applied to the first page
        """
        try:
            self.theme = self.get_theme()
            fresh = is_fresh(self.store)
        except StorageUnavailableError:
            self.renderer.notify(STORAGE_WARNING, Severity.WARNING)
            raise

        if not fresh:
            if self.connectivity.online:
                logger.info("Cached catalog is stale, ingesting")
                await self._ingest()
            else:
                self.renderer.notify("You are offline. Showing cached novels, which may be out of date.", Severity.WARNING)

        if search_term.strip():
            self.controller.set_search_term(search_term.strip())
        return await self.controller.request_next_page()

    async def refresh(self) -> List[Novel]:
        """Throw away the current generation and rebuild it from the source."""
        if self.is_refreshing:
            self.renderer.notify("A refresh is already running.", Severity.INFO)
            return []
        if not self.connectivity.online:
            self.renderer.notify("You are offline. Refresh is not possible right now.", Severity.WARNING)
            return []

        self.is_refreshing = True
        self.controller.suspend()
        try:
            try:
                self.store.destroy_generation()
                self.store.create_generation()
            except StorageUnavailableError:
                self.renderer.notify(STORAGE_WARNING, Severity.WARNING)
                raise
            await self._ingest()
        finally:
            self.controller.resume()
            self.is_refreshing = False
        return await self.controller.request_next_page()

    async def search(self, term: str) -> List[Novel]:
        """Filter the catalog by name and show the first matching page."""
        self.controller.set_search_term(term.strip())
        return await self.controller.request_next_page()

    async def load_more(self) -> List[Novel]:
        return await self.controller.request_next_page()

    def start_velocity_ticker(self) -> None:
        """Recompute the dynamic page size in the background until stopped."""
        if self._ticker is not None and not self._ticker.done():
            return
        self._ticker_stop = asyncio.Event()
        self._ticker = asyncio.create_task(self.controller.sampler.run(self._ticker_stop))

    async def stop_velocity_ticker(self) -> None:
        if self._ticker is None:
            return
        self._ticker_stop.set()
        await self._ticker
        self._ticker = None
        self._ticker_stop = None

    async def _ingest(self) -> Optional[IngestionReport]:
        # The pipeline notifies the user of its own failures
        try:
            self.last_report = await self.pipeline.run()
        except (OfflineError, IngestionFailedError, ExtractionError, StorageUnavailableError) as e:
            logger.warning(f"Continuing with cached data after failed ingestion: {e}")
            return None
        return self.last_report

    def get_theme(self) -> str:
        theme = self.store.settings_get(THEME_KEY, config.DEFAULT_THEME)
        if theme not in config.THEMES:
            logger.warning(f"Ignoring unknown theme {theme!r}")
            return config.DEFAULT_THEME
        return theme

    def set_theme(self, theme: str) -> str:
        if theme not in config.THEMES:
            raise ValueError(f"Theme must be one of {', '.join(config.THEMES)}")
        self.store.settings_put(THEME_KEY, theme)
        self.theme = theme
        return theme

    def toggle_theme(self) -> str:
        return self.set_theme("light" if self.get_theme() == "dark" else "dark")

"""Fetch, extract and merge the listing page into the store."""
import asyncio
import time
from typing import Callable, Iterator, List, Optional, Sequence

from utils.logger import setup_logger
from utils.connectivity import ConnectivityMonitor, OfflineError
from execution.retry_handler import BackoffExecutor, RetryExhaustedError
from ingestion.cleaner import sanitize_text, sanitize_url
from ingestion.extractor import ExtractionError, NovelExtractor
from ingestion.fetcher import DocumentFetcher
from ingestion.models import CandidateRecord, IngestionReport, IngestionState, InsertOutcome, ProgressEvent
from monitoring.renderer import Renderer, Severity
from storage.database import NovelStore, StorageUnavailableError
import config

logger = setup_logger(__name__)


class IngestionFailedError(Exception):
    """Raised when the listing page could not be fetched after all retries."""
    pass


class NoRecordsFoundError(ExtractionError):
    """Raised when the page yields no novels, usually after a layout change."""
    pass


def chunked(items: Sequence, size: int) -> Iterator[Sequence]:
    """Split a sequence into consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class IngestionPipeline:
    """Runs one ingestion: fetch with retries, extract, merge in chunks.

    Each chunk is merged in its own transaction. A failure part way
    through leaves the chunks merged so far committed.
    """

    def __init__(
        self,
        store: NovelStore,
        renderer: Renderer,
        fetcher: Optional[DocumentFetcher] = None,
        extractor: Optional[NovelExtractor] = None,
        executor: Optional[BackoffExecutor] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        chunk_size: int = config.MERGE_CHUNK_SIZE,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None
    ):
        self.store = store
        self.renderer = renderer
        self.fetcher = fetcher or DocumentFetcher()
        self.extractor = extractor or NovelExtractor()
        self.executor = executor or BackoffExecutor()
        self.connectivity = connectivity or ConnectivityMonitor()
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self.state = IngestionState.IDLE

    async def run(self) -> IngestionReport:
        """Ingest the listing page into the active generation.

        Returns:
            Report of the run

        Raises:
            OfflineError: If the client is offline
            IngestionFailedError: If fetching failed on every attempt
            NoRecordsFoundError: If the page contained no novels
            StorageUnavailableError: If the store cannot be written
        """
        if not self.connectivity.online:
            self.state = IngestionState.FAILED
            self.renderer.notify("You are offline. Novels cannot be loaded right now.", Severity.WARNING)
            raise OfflineError("Cannot ingest while offline")

        started = time.time()
        report = IngestionReport()
        self.renderer.show_progress()
        try:
            self.state = IngestionState.FETCHING
            try:
                document = await self.executor.run(self.fetcher.fetch)
            except RetryExhaustedError as e:
                raise IngestionFailedError(
                    f"Could not fetch the novel list after {e.attempts} attempts: {e.last_error}"
                ) from e

            self.state = IngestionState.EXTRACTING
            candidates = self.extractor.extract(document)
            if not candidates:
                raise NoRecordsFoundError("No novels found on the page")
            report.total_candidates = len(candidates)

            self.state = IngestionState.MERGING
            await self._merge(candidates, report)

            report.duration_seconds = time.time() - started
            self._emit(ProgressEvent(loaded=report.total_candidates, total=report.total_candidates))
            self.state = IngestionState.IDLE
        except Exception as e:
            self.state = IngestionState.FAILED
            logger.error(f"Ingestion failed: {e}")
            self.renderer.notify(self._failure_message(e), Severity.ERROR)
            raise
        finally:
            self.renderer.hide_progress()

        logger.info(
            f"Ingestion complete: {report.inserted} inserted, {report.duplicates} duplicates, "
            f"{report.skipped} skipped, {report.failed} failed in {report.duration_seconds:.1f}s"
        )
        self.renderer.notify(f"Loaded {report.inserted} novels.", Severity.SUCCESS)
        return report

    async def _merge(self, candidates: List[CandidateRecord], report: IngestionReport) -> None:
        total = len(candidates)
        loaded = 0
        for index, chunk in enumerate(chunked(candidates, self.chunk_size)):
            outcomes = await asyncio.to_thread(self._merge_chunk, chunk, report)
            report.chunks_committed += 1
            logger.debug(f"Committed chunk {index + 1} ({len(chunk)} candidates)")

            for outcome in outcomes:
                if outcome.inserted:
                    loaded += 1
                    report.inserted += 1
                    self._emit(ProgressEvent(loaded=loaded, total=total))

    def _merge_chunk(self, chunk: Sequence[CandidateRecord], report: IngestionReport) -> List[InsertOutcome]:
        outcomes = []
        with self.store.transaction() as tx:
            for candidate in chunk:
                record = self._sanitize(candidate)
                if record is None:
                    report.skipped += 1
                    continue
                try:
                    outcome = tx.insert_if_absent(record)
                except StorageUnavailableError as e:
                    logger.error(f"Failed to store {record.name!r}: {e}")
                    report.failed += 1
                    report.errors[type(e).__name__] = report.errors.get(type(e).__name__, 0) + 1
                    continue
                if not outcome.inserted:
                    report.duplicates += 1
                outcomes.append(outcome)
        return outcomes

    def _sanitize(self, candidate: CandidateRecord) -> Optional[CandidateRecord]:
        name = sanitize_text(candidate.name)
        pdf_url = sanitize_url(candidate.pdf_url)
        if not name or not pdf_url:
            logger.warning(f"Dropping unsafe or incomplete entry: {candidate.name!r}")
            return None
        return CandidateRecord(name=name, cover_url=sanitize_url(candidate.cover_url), pdf_url=pdf_url)

    def _emit(self, event: ProgressEvent) -> None:
        self.renderer.update_progress(event.percent)
        if self.on_progress:
            self.on_progress(event)

    @staticmethod
    def _failure_message(error: Exception) -> str:
        if isinstance(error, NoRecordsFoundError):
            return "No novels were found on the page. The site layout may have changed."
        if isinstance(error, IngestionFailedError):
            return "Failed to fetch novels. Please check your connection and try again."
        if isinstance(error, StorageUnavailableError):
            return "Local storage is unavailable. Close other windows using the catalog and retry."
        return f"Failed to load novels: {error}"

"""Startup check deciding whether the cached catalog must be re-ingested."""
from datetime import timedelta
from typing import Optional

from utils.logger import setup_logger
from storage.database import NovelStore
import config

logger = setup_logger(__name__)

DEFAULT_VALIDITY = timedelta(days=config.FRESHNESS_DAYS)


def is_fresh(
    store: NovelStore,
    now: Optional[int] = None,
    validity: timedelta = DEFAULT_VALIDITY
) -> bool:
    """Check whether the active generation can be served as is.

    The store is stale when it is empty, when a sampled record is missing
    a required field, or when that record is older than ``validity``.

    Args:
        store: Catalog store
        now: Current time in epoch milliseconds, defaults to the store clock
        validity: Maximum age of the cached data

    Returns:
        True if no ingestion is needed
    """
    if store.count() == 0:
        logger.info("Catalog is empty")
        return False

    record = store.sample_record()
    if record is None or not record.name or not record.pdf_url or not record.timestamp:
        logger.info("Cached record is incomplete")
        return False

    now = now if now is not None else store.clock()
    age_ms = now - record.timestamp
    if age_ms > validity.total_seconds() * 1000:
        logger.info(f"Catalog is {age_ms / 86_400_000:.1f} days old")
        return False

    return True

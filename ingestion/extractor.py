"""Listing page extraction module."""
from typing import List, Optional, Sequence, Union

from bs4 import Tag

from utils.logger import setup_logger
from ingestion.models import CandidateRecord
from ingestion.cleaner import sanitize_html
import config

logger = setup_logger(__name__)


class ExtractionError(Exception):
    """Base class for extraction failures."""
    pass


class DocumentParseError(ExtractionError):
    """Raised when the document as a whole cannot be parsed."""
    pass


def truncate_after_extension(src: str, extensions: Sequence[str] = config.IMAGE_EXTENSIONS) -> str:
    """Cut an image source right after its file extension.

    The earliest occurrence of any extension wins, so tracking suffixes
    such as ``?w=300`` are dropped.

    Args:
        src: Raw image source attribute
        extensions: Extensions to look for

    Returns:
        Truncated source, or empty string if no extension was found
    """
    if not src:
        return ""
    lowered = src.lower()
    best_index = -1
    best_ext = ""
    for ext in extensions:
        index = lowered.find(ext)
        if index != -1 and (best_index == -1 or index < best_index):
            best_index = index
            best_ext = ext
    if best_index == -1:
        return ""
    return src[:best_index + len(best_ext)]


def normalize_url(url: str, origin: str) -> str:
    """Make a scraped URL absolute against the site origin.

    Args:
        url: URL as found in the document
        origin: Site origin such as ``https://example.com``

    Returns:
        Absolute URL, or empty string for empty input
    """
    if not url:
        return ""
    origin = origin.rstrip("/")
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        return origin + url
    if not url.startswith("http"):
        return f"{origin}/{url}"
    return url


class NovelExtractor:
    """Extracts novel entries from the listing page."""

    def __init__(
        self,
        site_origin: str = config.NOVEL_SITE_ORIGIN,
        container_selector: str = config.CONTAINER_SELECTOR,
        name_selector: str = config.NAME_SELECTOR,
        link_selector: str = config.LINK_SELECTOR,
        image_holder_tag: str = config.IMAGE_HOLDER_TAG
    ):
        self.site_origin = site_origin
        self.container_selector = container_selector
        self.name_selector = name_selector
        self.link_selector = link_selector
        self.image_holder_tag = image_holder_tag

    def extract(self, document: Union[str, bytes]) -> List[CandidateRecord]:
        """Extract candidate records from a raw HTML document.

        Args:
            document: Raw HTML of the listing page

        Returns:
            Candidates in document order, possibly empty

        Raises:
            DocumentParseError: If the document cannot be parsed at all
        """
        if not isinstance(document, (str, bytes)):
            raise DocumentParseError(f"Expected HTML text, got {type(document).__name__}")

        try:
            soup = sanitize_html(document)
            containers = soup.select(self.container_selector)
        except Exception as e:
            raise DocumentParseError(f"Failed to parse document: {e}") from e

        logger.info(f"Found {len(containers)} containers")

        candidates = []
        for index, container in enumerate(containers):
            try:
                candidate = self._extract_container(container)
            except Exception as e:
                logger.warning(f"Skipping container {index}: {e}")
                continue
            if candidate is not None:
                candidates.append(candidate)

        logger.info(f"Extracted {len(candidates)} novels from {len(containers)} containers")
        return candidates

    def _extract_container(self, container: Tag) -> Optional[CandidateRecord]:
        name_node = container.select_one(self.name_selector)
        link_node = container.select_one(self.link_selector)
        if name_node is None or link_node is None:
            logger.warning("Container is missing its name or link node, skipping")
            return None

        name = name_node.get_text(strip=True)
        pdf_link = (link_node.get("href") or "").strip()
        cover_url = normalize_url(truncate_after_extension(self._image_source(container)), self.site_origin)

        if not name or not pdf_link:
            logger.warning(f"Incomplete entry (name={name!r}, link={pdf_link!r}), skipping")
            return None

        return CandidateRecord(
            name=name,
            cover_url=cover_url,
            pdf_url=normalize_url(pdf_link, self.site_origin)
        )

    def _image_source(self, container: Tag) -> str:
        """Read the image source from the element right after the container."""
        sibling = container.find_next_sibling()
        if sibling is None or sibling.name != self.image_holder_tag:
            return ""
        img = sibling.find("img")
        if img is None:
            return ""
        return (img.get("src") or img.get("data-src") or "").strip()

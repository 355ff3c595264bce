"""Remote listing page fetching."""
from typing import Optional

import httpx

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

BINARY_CONTENT_TYPES = ("image/", "audio/", "video/", "font/", "application/octet-stream", "application/pdf", "application/zip")


class TransportError(Exception):
    """Base class for failures fetching the remote document."""
    pass


class FetchTimeoutError(TransportError):
    """Raised when the fetch exceeds its time budget."""
    pass


class HttpStatusError(TransportError):
    """Raised when the server answers with a non-success status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} from {url}")


class EmptyResponseError(TransportError):
    """Raised when the body is empty or not text."""
    pass


class DocumentFetcher:
    """Fetches the listing page with a bounded timeout."""

    def __init__(
        self,
        url: str = config.NOVEL_SOURCE_URL,
        timeout: float = config.FETCH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def fetch(self) -> str:
        """Fetch the raw document.

        Returns:
            Response body as text

        Raises:
            FetchTimeoutError: If the request times out
            HttpStatusError: If the status is not 2xx
            EmptyResponseError: If the body is empty or binary
        """
        logger.debug(f"GET {self.url}")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=config.CRAWLER_HEADERS,
                follow_redirects=True,
                transport=self.transport
            ) as client:
                response = await client.get(self.url)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Timed out after {self.timeout}s fetching {self.url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        if not response.is_success:
            raise HttpStatusError(response.status_code, self.url)

        content_type = response.headers.get("content-type", "")
        # Anything textual goes to the extractor, which may find zero records
        if content_type.lower().startswith(BINARY_CONTENT_TYPES):
            raise EmptyResponseError(f"Expected text, got {content_type}")

        body = response.text
        if not body or not body.strip():
            raise EmptyResponseError(f"Empty response body from {self.url}")
        if "\x00" in body:
            raise EmptyResponseError(f"Binary response body from {self.url}")

        logger.info(f"Fetched {len(body):,} characters from {self.url}")
        return body

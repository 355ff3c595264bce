"""Online/offline status tracking."""
from typing import Optional

import httpx

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)


class OfflineError(Exception):
    """Raised when a network operation is requested while offline."""
    pass


class ConnectivityMonitor:
    """Holds the client's connectivity status."""

    def __init__(self, online: bool = True):
        self._online = online

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        if online != self._online:
            logger.info("Back online" if online else "Connection lost, working offline")
        self._online = online

    async def probe(
        self,
        url: str = config.NOVEL_SITE_ORIGIN,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> bool:
        """Check reachability of the source site and update the status."""
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                await client.head(url)
            self.set_online(True)
        except httpx.HTTPError as e:
            logger.debug(f"Connectivity probe failed: {e}")
            self.set_online(False)
        return self._online

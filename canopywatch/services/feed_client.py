"""
This module provides a client for the external imagery feed, which publishes
the dated RGB/mask image URLs and per-cell coverage tables for each monitored
area. It handles the asynchronous HTTP calls and nothing else.
"""

import logging
from typing import Optional

import httpx

from canopywatch.config import settings
from canopywatch.constants import AREA_FEED_KEYS, FEED_IMAGES_PATH
from canopywatch.errors import FeedError
from canopywatch.services.coverage_index import CoverageIndex

logger = logging.getLogger(__name__)


def area_feed_key(area: Optional[str]) -> Optional[str]:
    """Maps a display name such as 'Ba Vì' to the feed's key; other values pass through."""
    if area is None:
        return None
    return AREA_FEED_KEYS.get(area, area)


class FeedClient:
    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        logger.info("FeedClient initialized with URL: %s", self.base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_index(self, area: Optional[str] = None) -> CoverageIndex:
        """
        Fetches every observation published for an area.

        Args:
            area (Optional[str]): Area display name or feed key. None asks the
                                  feed for its default area.

        Returns:
            CoverageIndex: The observations, keyed by date.

        Raises:
            FeedError: If the feed is unreachable, answers with an error status
                       or returns a body that is not an observation table.
        """
        endpoint = f"{self.base_url}{FEED_IMAGES_PATH}"
        params = {}
        region = area_feed_key(area)
        if region:
            params["region"] = region

        try:
            response = await self.client.get(endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.RequestError as e:
            logger.error("Failed to connect to feed for area %s: %s", region, e)
            raise FeedError(f"Feed unreachable: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Feed returned error for area %s - Status: %s, Response: %s",
                region, e.response.status_code, e.response.text
            )
            raise FeedError(f"Feed returned status {e.response.status_code}") from e
        except ValueError as e:
            logger.error("Feed returned a non-JSON body for area %s: %s", region, e)
            raise FeedError("Feed returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise FeedError("Feed body is not an object keyed by date")
        try:
            return CoverageIndex.from_feed(payload)
        except ValueError as e:
            logger.error("Feed returned malformed observations for area %s: %s", region, e)
            raise FeedError(f"Malformed observations: {e}") from e

    async def fetch_image(self, url: str) -> bytes:
        """
        Downloads an image published by the feed.

        Raises:
            FeedError: If the download fails.
        """
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.RequestError as e:
            logger.error("Failed to download image %s: %s", url, e)
            raise FeedError(f"Image download failed: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error("Image download %s returned status %s", url, e.response.status_code)
            raise FeedError(f"Image download returned status {e.response.status_code}") from e
        return response.content


# Create a single, reusable instance of the feed client
feed_client = FeedClient(base_url=settings.FEED_BASE_URL, timeout=settings.FEED_TIMEOUT_SECONDS)


def get_feed_client() -> FeedClient:
    """
    Provides the shared FeedClient instance for dependency injection.
    """
    return feed_client

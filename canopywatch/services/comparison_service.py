"""
Compares the forest masks the feed publishes for two dates of one area.

This is glue: it fetches, decodes and hands the buffers to the diff engine.
All of the analysis lives in diff_engine.
"""

import asyncio
import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from canopywatch.models.raster import DiffResult
from canopywatch.services import diff_engine
from canopywatch.services.feed_client import FeedClient

logger = logging.getLogger(__name__)


class MissingObservation(LookupError):
    """Raised when the feed has no usable mask for a requested date."""


async def compare_dates(
    feed: FeedClient,
    date_a: str,
    date_b: str,
    area: Optional[str] = None,
    band_rows: Optional[int] = None,
) -> DiffResult:
    """
    Fetches the masks of two observation dates and compares them.

    Args:
        feed (FeedClient): Client for the external feed.
        date_a (str): Earlier observation date.
        date_b (str): Later observation date.
        area (Optional[str]): Area display name or feed key.
        band_rows (Optional[int]): Rows per band for the diff engine.

    Raises:
        MissingObservation: If either date has no observation or no mask URL.
        FeedError: If the feed or an image download fails.
        DecodeError: If either mask cannot be decoded.
        DimensionMismatch: If the masks differ in size.
    """
    index = await feed.fetch_index(area)

    urls = []
    for date in (date_a, date_b):
        observation = index.observation(date)
        if observation is None or not observation.mask:
            raise MissingObservation(f"No mask published for {date}")
        urls.append(observation.mask)

    logger.info("Comparing masks for %s and %s (area: %s)", date_a, date_b, area or "default")
    content_a, content_b = await asyncio.gather(*(feed.fetch_image(url) for url in urls))

    return await run_in_threadpool(
        diff_engine.compare_encoded, content_a, content_b, band_rows=band_rows
    )

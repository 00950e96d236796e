"""
This module defines the API routes for per-cell coverage published by the
feed.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from canopywatch.errors import FeedError
from canopywatch.models.coverage import CoverageComparison
from canopywatch.services.coverage_index import coverage_key
from canopywatch.services.feed_client import FeedClient, get_feed_client

logger = logging.getLogger(__name__)

router = APIRouter()


class ObservationDates(BaseModel):
    dates: List[str]
    default_pair: Optional[List[str]] = None


@router.get("/coverage/dates", response_model=ObservationDates, summary="Observation dates of an area")
async def get_observation_dates(
    area: Optional[str] = None,
    feed: FeedClient = Depends(get_feed_client),
):
    try:
        index = await feed.fetch_index(area)
    except FeedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    pair = index.default_pair()
    return ObservationDates(dates=index.dates(), default_pair=list(pair) if pair else None)


@router.get(
    "/coverage/{date}/{col}/{row}",
    response_model=CoverageComparison,
    summary="Coverage of one cell compared with its baseline",
)
async def get_cell_coverage(
    date: str,
    col: int,
    row: int,
    area: Optional[str] = None,
    baseline_date: Optional[str] = None,
    threshold: Optional[float] = Query(None, ge=0),
    feed: FeedClient = Depends(get_feed_client),
):
    """
    Looks up the coverage of the cell at (col, row) on a date and compares it
    with the baseline. Missing entries resolve to the configured defaults.

    Raises:
        HTTPException: 400 if col or row is negative.
        HTTPException: 502 if the feed cannot be read.
    """
    if col < 0 or row < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Column and row must be non-negative.",
        )

    try:
        index = await feed.fetch_index(area)
    except FeedError as e:
        logger.error("Coverage lookup for %s on %s failed: %s", coverage_key(col, row), date, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return index.compare(coverage_key(col, row), date, baseline_date=baseline_date, threshold=threshold)

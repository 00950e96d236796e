"""
This module defines the API routes for comparing two forest masks, either
uploaded directly or published by the feed for two dates.
"""

import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from canopywatch.errors import DecodeError, DimensionMismatch, FeedError
from canopywatch.models.raster import DiffResult
from canopywatch.services import diff_engine
from canopywatch.services.comparison_service import MissingObservation, compare_dates
from canopywatch.services.feed_client import FeedClient, get_feed_client
from canopywatch.utils.imaging import encode_png

logger = logging.getLogger(__name__)

router = APIRouter()


class ImageComparisonRequest(BaseModel):
    """Two encoded mask images (PNG/JPEG), base64 encoded."""
    image_a: str = Field(..., description="Earlier mask, base64")
    image_b: str = Field(..., description="Later mask, base64")
    band_rows: Optional[int] = Field(None, ge=0, description="Rows per processing band")


class DateComparisonRequest(BaseModel):
    """Two observation dates of one area published by the feed."""
    date_a: str = Field(..., description="Earlier observation date")
    date_b: str = Field(..., description="Later observation date")
    area: Optional[str] = Field(None, description="Area display name or feed key")


class ComparisonResponse(BaseModel):
    """Counts, percentages and the diff raster of a comparison."""
    width: int
    height: int
    loss_count: int
    gain_count: int
    stable_forest_count: int
    stable_non_forest_count: int
    total_pixels: int
    loss_percentage: float
    gain_percentage: float
    trend: str
    diff_image_png: str = Field(..., description="Diff raster as base64 PNG")


def _to_response(result: DiffResult) -> ComparisonResponse:
    png = encode_png(result.output)
    return ComparisonResponse(
        **result.model_dump(exclude={"output"}),
        diff_image_png=base64.b64encode(png).decode("ascii"),
    )


def _b64decode(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} is not valid base64.",
        )


@router.post(
    "/comparisons/images",
    response_model=ComparisonResponse,
    summary="Compare two uploaded forest masks",
)
async def compare_images(payload: ImageComparisonRequest):
    """
    Decodes both masks and runs the diff engine on them.

    Raises:
        HTTPException: 400 if either image cannot be decoded.
        HTTPException: 422 if the images differ in size.
    """
    content_a = _b64decode(payload.image_a, "image_a")
    content_b = _b64decode(payload.image_b, "image_b")

    try:
        result = await run_in_threadpool(
            diff_engine.compare_encoded, content_a, content_b, band_rows=payload.band_rows
        )
    except DecodeError as e:
        logger.warning("Rejected comparison with unreadable image: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DimensionMismatch as e:
        logger.warning("Rejected comparison: %s", e)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return _to_response(result)


@router.post(
    "/comparisons",
    response_model=ComparisonResponse,
    summary="Compare the feed's masks for two dates",
)
async def compare_observations(
    payload: DateComparisonRequest,
    feed: FeedClient = Depends(get_feed_client),
):
    """
    Fetches the masks published for both dates and compares them.

    Raises:
        HTTPException: 404 if either date has no published mask.
        HTTPException: 502 if the feed fails or publishes unreadable or
                       mismatched masks.
    """
    try:
        result = await compare_dates(feed, payload.date_a, payload.date_b, area=payload.area)
    except MissingObservation as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (FeedError, DecodeError, DimensionMismatch) as e:
        logger.error(
            "Comparison of %s and %s failed for area %s: %s",
            payload.date_a, payload.date_b, payload.area, e
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return _to_response(result)

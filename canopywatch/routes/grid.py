"""
This module defines the API routes for the monitoring grid.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from canopywatch.config import settings
from canopywatch.errors import InvalidRegion
from canopywatch.models.grid import GridCell, RectangleBounds, Region
from canopywatch.services.grid_model import build_grid, grid_bounds, locate_cell

logger = logging.getLogger(__name__)

router = APIRouter()


class GridResponse(BaseModel):
    """A built grid together with the region it was derived from."""
    region: Region
    bounds: RectangleBounds = Field(..., description="Outer extent of the grid")
    cells: List[GridCell]


def _grid_response(region: Region) -> GridResponse:
    try:
        cells = build_grid(region)
        bounds = grid_bounds(region)
    except InvalidRegion as e:
        logger.warning("Rejected grid request: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return GridResponse(region=region, bounds=bounds, cells=cells)


@router.get("/grid", response_model=GridResponse, summary="Grid of the configured region")
async def get_default_grid():
    """
    Returns the grid over the region configured through the GRID_* settings.
    """
    return _grid_response(settings.default_region())


@router.post("/grid", response_model=GridResponse, summary="Grid of an arbitrary region")
async def post_grid(region: Region):
    """
    Partitions the supplied region into cells.

    Raises:
        HTTPException: 400 if the region cannot be partitioned.
    """
    return _grid_response(region)


@router.get("/grid/locate", response_model=GridCell, summary="Cell of the configured grid containing a point")
async def locate(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    cells = _grid_response(settings.default_region()).cells
    cell = locate_cell(cells, lat, lng)
    if cell is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Point ({lat}, {lng}) is outside the monitored grid.",
        )
    return cell

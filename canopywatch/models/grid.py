"""
This module defines the Pydantic models for the monitoring grid: geographic
points and rectangles, the Region a grid is derived from, and the GridCell
records the grid model produces.
"""

from pydantic import BaseModel, ConfigDict, Field


class LatLng(BaseModel):
    """
    Pydantic model for a geographical point with latitude and longitude.
    """
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class RectangleBounds(BaseModel):
    """
    Pydantic model for the southwest and northeast corners of a rectangle.
    """
    model_config = ConfigDict(frozen=True)

    southWest: LatLng = Field(..., description="South-west corner of the rectangle")
    northEast: LatLng = Field(..., description="North-east corner of the rectangle")


class Region(BaseModel):
    """
    The externally supplied description of a monitored region. Every piece of
    GridCell geometry is derived deterministically from these five values.

    Grid dimensions are not constrained here; the grid model rejects
    non-positive dimensions with InvalidRegion.
    """
    model_config = ConfigDict(frozen=True)

    center_lat: float = Field(..., ge=-90, le=90, description="Latitude of the grid center")
    center_lng: float = Field(..., ge=-180, le=180, description="Longitude of the grid center")
    rows: int = Field(..., description="Number of grid rows (north to south)")
    cols: int = Field(..., description="Number of grid columns (west to east)")
    cell_size_degrees: float = Field(..., description="Cell height in degrees of latitude")


class GridCell(BaseModel):
    """
    One cell of a monitoring grid. Cells are immutable once built.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="1-based row-major identifier")
    row: int = Field(..., ge=0, description="0-based row, 0 is the northernmost row")
    col: int = Field(..., ge=0, description="0-based column, 0 is the westernmost column")
    center: LatLng = Field(..., description="Geographic center of the cell")
    bounds: RectangleBounds = Field(..., description="South-west and north-east corners")
    label: str = Field(..., description="Presentation label, e.g. 'B2'")

    @property
    def key(self) -> str:
        """Canonical coverage key of this cell, column first."""
        return f"{self.col},{self.row}"

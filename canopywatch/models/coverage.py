"""
This module defines the Pydantic models for per-cell coverage data supplied by
the external feed, and the key that ties it to grid cells.
"""

from typing import Annotated, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

Percentage = Annotated[float, Field(ge=0, le=100)]


class CoverageKey(BaseModel):
    """
    Address of a grid cell in a coverage table. Column precedes row; the
    canonical string form is "{col},{row}".
    """
    model_config = ConfigDict(frozen=True)

    col: int = Field(..., ge=0)
    row: int = Field(..., ge=0)

    def __str__(self) -> str:
        return f"{self.col},{self.row}"


class Observation(BaseModel):
    """
    One dated entry of the feed: the image URLs for that date and two coverage
    tables keyed by "{col},{row}".
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rgb: Optional[str] = Field(None, description="URL of the true-colour image")
    mask: Optional[str] = Field(None, description="URL of the forest mask image")
    forest_coverage: Dict[str, Percentage] = Field(
        default_factory=dict,
        alias="forestCoverage",
        description="Forest coverage per cell on this date",
    )
    baseline_coverage: Dict[str, Percentage] = Field(
        default_factory=dict,
        alias="forestCoverage2017",
        description="Forest coverage per cell in the feed's baseline year",
    )


class CoverageComparison(BaseModel):
    """Coverage of one cell on one date measured against a baseline."""
    key: str = Field(..., description="Coverage key, '{col},{row}'")
    date: str = Field(..., description="Observation date key")
    coverage: float = Field(..., description="Coverage percentage on the date")
    baseline_coverage: float = Field(..., description="Baseline coverage percentage")
    baseline_date: Optional[str] = Field(
        None, description="Baseline date key, or None when the feed's baseline table was used"
    )
    decrease: float = Field(..., description="Baseline minus current coverage, in percentage points")
    threshold: float = Field(..., description="Decrease above which the cell is at risk")
    at_risk: bool = Field(..., description="True when decrease exceeds threshold")

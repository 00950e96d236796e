"""
This module handles the application's configuration, loading environment variables
using Pydantic's BaseSettings for type-safe access.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from canopywatch.models.grid import Region


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or a .env file.

    Coverage comparisons read two of these:
    - COMPARISON_BASELINE_DATE: date key used as the baseline for coverage
      comparisons. Leave unset to use the baseline table shipped with each
      observation by the feed.
    - DECREASE_WARNING_THRESHOLD: percentage points of coverage decrease above
      which a cell is flagged as at risk.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    BACKEND_ENV: str = "local"  # "local" or "production"

    # External imagery/coverage feed
    FEED_BASE_URL: str = "http://localhost:3000"
    FEED_TIMEOUT_SECONDS: float = 30.0

    # Default monitored region (Tay Son, Hanoi)
    GRID_CENTER_LAT: float = 21.0245
    GRID_CENTER_LNG: float = 105.8412
    GRID_ROWS: int = 3
    GRID_COLS: int = 3
    GRID_CELL_SIZE_DEGREES: float = 0.005

    # Diff engine
    DIFF_BAND_ROWS: int = 256  # 0 processes the whole image as one band

    # Coverage lookups
    COVERAGE_MISSING_DEFAULT: float = 0.0
    BASELINE_MISSING_DEFAULT: float = 100.0
    DECREASE_WARNING_THRESHOLD: float = 1.0
    COMPARISON_BASELINE_DATE: Optional[str] = None

    @field_validator('BACKEND_ENV')
    @classmethod
    def validate_backend_env(cls, v: str) -> str:
        allowed = {"local", "production"}
        value = v.lower().strip()
        if value not in allowed:
            raise ValueError(f"BACKEND_ENV must be one of {allowed}")
        return value

    @field_validator('FEED_BASE_URL')
    @classmethod
    def validate_feed_url(cls, v: str) -> str:
        """Ensure the feed URL is set and drop trailing slashes for consistency."""
        if not v:
            raise ValueError("Feed URL cannot be empty")
        return v.rstrip('/')

    @field_validator('DIFF_BAND_ROWS')
    @classmethod
    def validate_band_rows(cls, v: int) -> int:
        if v < 0:
            raise ValueError("DIFF_BAND_ROWS cannot be negative")
        return v

    def default_region(self) -> Region:
        """Builds the Region described by the GRID_* settings."""
        return Region(
            center_lat=self.GRID_CENTER_LAT,
            center_lng=self.GRID_CENTER_LNG,
            rows=self.GRID_ROWS,
            cols=self.GRID_COLS,
            cell_size_degrees=self.GRID_CELL_SIZE_DEGREES,
        )


settings = Settings()

"""
This module defines the raster models used by the diff engine: the decoded
pixel buffer, the per-pixel labels and change categories, and the result of a
comparison.
"""

from enum import Enum
from typing import Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

CHANNELS = 4


class ClassificationLabel(str, Enum):
    FOREST = "forest"
    NON_FOREST = "non_forest"


class ChangeCategory(str, Enum):
    LOSS = "loss"
    GAIN = "gain"
    STABLE_FOREST = "stable_forest"
    STABLE_NON_FOREST = "stable_non_forest"


class PixelBuffer(BaseModel):
    """
    A decoded raster: width*height RGBA samples, four bytes each, stored
    row-major. Any image codec can produce or consume this shape.
    """
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=1, description="Width in pixels")
    height: int = Field(..., ge=1, description="Height in pixels")
    data: bytes = Field(..., repr=False, description="Row-major RGBA bytes")

    @model_validator(mode="after")
    def _check_length(self) -> "PixelBuffer":
        expected = self.width * self.height * CHANNELS
        if len(self.data) != expected:
            raise ValueError(
                f"Pixel data holds {len(self.data)} bytes, expected {expected} "
                f"for a {self.width}x{self.height} RGBA image"
            )
        return self

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Builds a buffer from a (height, width, 4) array of bytes."""
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise ValueError(f"Expected an array of shape (height, width, 4), got {array.shape}")
        height, width = array.shape[:2]
        data = np.ascontiguousarray(array, dtype=np.uint8).tobytes()
        return cls(width=width, height=height, data=data)

    @classmethod
    def filled(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> "PixelBuffer":
        """Builds a buffer where every pixel has the same colour."""
        return cls(width=width, height=height, data=bytes(rgba) * (width * height))

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def to_array(self) -> np.ndarray:
        """Read-only (height, width, 4) uint8 view of the pixel data."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, CHANNELS)

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) is outside a {self.width}x{self.height} image")
        offset = (y * self.width + x) * CHANNELS
        return tuple(self.data[offset:offset + CHANNELS])

    def rows(self, start: int, stop: int) -> np.ndarray:
        """Read-only view of the rows in [start, stop)."""
        return self.to_array()[start:stop]


class DiffBand(BaseModel):
    """
    The outcome of comparing one band of rows. Bands are independent, so they
    can be computed in any order or on separate workers.
    """
    model_config = ConfigDict(frozen=True)

    row_start: int
    row_stop: int
    loss_count: int = 0
    gain_count: int = 0
    stable_forest_count: int = 0
    stable_non_forest_count: int = 0
    data: bytes = Field(b"", repr=False, description="Encoded RGBA rows of the diff raster")


class DiffResult(BaseModel):
    """
    Aggregate counts and the encoded diff raster of one comparison.
    """
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    loss_count: int = Field(..., ge=0, description="Forest in the first image, not in the second")
    gain_count: int = Field(..., ge=0, description="Forest in the second image, not in the first")
    stable_forest_count: int = Field(..., ge=0, description="Forest in both images")
    stable_non_forest_count: int = Field(..., ge=0, description="Forest in neither image")
    output: PixelBuffer = Field(..., description="Diff raster, same size as the inputs")

    @model_validator(mode="after")
    def _check_partition(self) -> "DiffResult":
        counted = (
            self.loss_count
            + self.gain_count
            + self.stable_forest_count
            + self.stable_non_forest_count
        )
        if counted != self.total_pixels:
            raise ValueError(f"Change counts add up to {counted}, expected {self.total_pixels}")
        if self.output.size != (self.width, self.height):
            raise ValueError("Diff raster size does not match the compared images")
        return self

    @computed_field
    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    @computed_field
    @property
    def loss_percentage(self) -> float:
        return self.loss_count / self.total_pixels * 100.0

    @computed_field
    @property
    def gain_percentage(self) -> float:
        return self.gain_count / self.total_pixels * 100.0

    @computed_field
    @property
    def trend(self) -> str:
        """'decrease', 'increase' or 'unchanged' forest area."""
        if self.loss_count > self.gain_count:
            return "decrease"
        if self.loss_count < self.gain_count:
            return "increase"
        return "unchanged"

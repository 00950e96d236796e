"""
Pixel classification and change detection between two forest mask images.

Each pixel is classified as forest or non-forest in both images with a fixed
colour rule, the pair of labels is mapped to a change category, and the
category is written into a new RGBA raster while per-category counts are
accumulated. The work is done in bands of rows so a caller can bound each
unit of work, check for cancellation between bands, or shard bands across
workers; every pixel depends only on its own two samples.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

import numpy as np

from canopywatch.config import settings
from canopywatch.constants import (
    CATEGORY_COLORS,
    FOREST_MAX_BLUE,
    FOREST_MAX_RED,
    FOREST_MIN_GREEN,
)
from canopywatch.errors import ComparisonCancelled, DimensionMismatch
from canopywatch.models.raster import (
    ChangeCategory,
    ClassificationLabel,
    DiffBand,
    DiffResult,
    PixelBuffer,
)
from canopywatch.utils.imaging import decode_image

logger = logging.getLogger(__name__)

_COLORS = {category: np.array(CATEGORY_COLORS[category.value], dtype=np.uint8) for category in ChangeCategory}


def is_forest(red: int, green: int, blue: int) -> bool:
    return green > FOREST_MIN_GREEN and red < FOREST_MAX_RED and blue < FOREST_MAX_BLUE


def classify_pixel(red: int, green: int, blue: int) -> ClassificationLabel:
    """Classifies a single sample; alpha plays no part."""
    if is_forest(red, green, blue):
        return ClassificationLabel.FOREST
    return ClassificationLabel.NON_FOREST


def _forest_mask(rgba: np.ndarray) -> np.ndarray:
    return (
        (rgba[..., 1] > FOREST_MIN_GREEN)
        & (rgba[..., 0] < FOREST_MAX_RED)
        & (rgba[..., 2] < FOREST_MAX_BLUE)
    )


def classify(buffer: PixelBuffer) -> np.ndarray:
    """Boolean (height, width) array, True where the pixel is forest."""
    return _forest_mask(buffer.to_array())


def categorize(forest_a: bool, forest_b: bool) -> ChangeCategory:
    """Maps the labels of one pixel in the first and second image to its change."""
    if forest_a and not forest_b:
        return ChangeCategory.LOSS
    if not forest_a and forest_b:
        return ChangeCategory.GAIN
    if forest_a:
        return ChangeCategory.STABLE_FOREST
    return ChangeCategory.STABLE_NON_FOREST


def _check_dimensions(image_a: PixelBuffer, image_b: PixelBuffer) -> None:
    if image_a.size != image_b.size:
        raise DimensionMismatch(image_a.size, image_b.size)


def _resolve_band_rows(band_rows: Optional[int], height: int) -> int:
    if band_rows is None:
        band_rows = settings.DIFF_BAND_ROWS
    if band_rows < 0:
        raise ValueError("band_rows cannot be negative")
    if band_rows == 0:
        return height
    return min(band_rows, height)


def _compare_band(rows_a: np.ndarray, rows_b: np.ndarray, row_start: int) -> DiffBand:
    forest_a = _forest_mask(rows_a)
    forest_b = _forest_mask(rows_b)

    masks = {
        ChangeCategory.LOSS: forest_a & ~forest_b,
        ChangeCategory.GAIN: ~forest_a & forest_b,
        ChangeCategory.STABLE_FOREST: forest_a & forest_b,
        ChangeCategory.STABLE_NON_FOREST: ~forest_a & ~forest_b,
    }

    out = np.empty(rows_a.shape, dtype=np.uint8)
    for category, mask in masks.items():
        out[mask] = _COLORS[category]

    return DiffBand(
        row_start=row_start,
        row_stop=row_start + rows_a.shape[0],
        loss_count=int(np.count_nonzero(masks[ChangeCategory.LOSS])),
        gain_count=int(np.count_nonzero(masks[ChangeCategory.GAIN])),
        stable_forest_count=int(np.count_nonzero(masks[ChangeCategory.STABLE_FOREST])),
        stable_non_forest_count=int(np.count_nonzero(masks[ChangeCategory.STABLE_NON_FOREST])),
        data=out.tobytes(),
    )


def iter_bands(
    image_a: PixelBuffer, image_b: PixelBuffer, band_rows: Optional[int] = None
) -> Iterator[DiffBand]:
    """
    Yields the comparison of the two images one band of rows at a time,
    north to south.

    The dimension check runs before the first band is produced, so a mismatch
    fails immediately rather than on the first iteration step.

    Args:
        image_a (PixelBuffer): The earlier mask.
        image_b (PixelBuffer): The later mask.
        band_rows (Optional[int]): Rows per band. None uses DIFF_BAND_ROWS from
                                   the settings; 0 yields a single band.

    Raises:
        DimensionMismatch: If the images differ in width or height.
    """
    _check_dimensions(image_a, image_b)
    step = _resolve_band_rows(band_rows, image_a.height)
    return _generate_bands(image_a.to_array(), image_b.to_array(), step)


def _generate_bands(
    array_a: np.ndarray,
    array_b: np.ndarray,
    step: int,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> Iterator[DiffBand]:
    height = array_a.shape[0]
    for row_start in range(0, height, step):
        if should_cancel is not None and should_cancel():
            logger.info("Comparison cancelled before row %d of %d", row_start, height)
            raise ComparisonCancelled(f"Comparison cancelled at row {row_start}")
        row_stop = min(row_start + step, height)
        yield _compare_band(array_a[row_start:row_stop], array_b[row_start:row_stop], row_start)


def compare(
    image_a: PixelBuffer,
    image_b: PixelBuffer,
    *,
    band_rows: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> DiffResult:
    """
    Compares two forest masks of identical size.

    Args:
        image_a (PixelBuffer): The earlier mask.
        image_b (PixelBuffer): The later mask.
        band_rows (Optional[int]): Rows processed per band, see iter_bands.
        should_cancel (Optional[Callable[[], bool]]): Polled before each band;
            returning True aborts the comparison.

    Returns:
        DiffResult: Loss, gain and stable counts plus the diff raster.

    Raises:
        DimensionMismatch: If the images differ in width or height.
        ComparisonCancelled: If should_cancel returned True. No partial result
                             is produced.
    """
    _check_dimensions(image_a, image_b)
    step = _resolve_band_rows(band_rows, image_a.height)
    bands = _generate_bands(image_a.to_array(), image_b.to_array(), step, should_cancel)

    loss = gain = stable_forest = stable_non_forest = 0
    chunks = []

    for band in bands:
        loss += band.loss_count
        gain += band.gain_count
        stable_forest += band.stable_forest_count
        stable_non_forest += band.stable_non_forest_count
        chunks.append(band.data)
        logger.debug("Compared rows %d-%d", band.row_start, band.row_stop)

    result = DiffResult(
        width=image_a.width,
        height=image_a.height,
        loss_count=loss,
        gain_count=gain,
        stable_forest_count=stable_forest,
        stable_non_forest_count=stable_non_forest,
        output=PixelBuffer(width=image_a.width, height=image_a.height, data=b"".join(chunks)),
    )
    logger.info(
        "Compared %dx%d masks - Loss: %d px, Gain: %d px, Trend: %s",
        result.width,
        result.height,
        result.loss_count,
        result.gain_count,
        result.trend,
    )
    return result


def compare_encoded(content_a: bytes, content_b: bytes, **kwargs) -> DiffResult:
    """
    Decodes two encoded mask images and compares them.

    Both images are decoded before the comparison starts, so a DecodeError on
    either one aborts the pair without any pixel work.
    """
    image_a = decode_image(content_a)
    image_b = decode_image(content_b)
    return compare(image_a, image_b, **kwargs)

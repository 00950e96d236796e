"""
Unit tests for canopywatch.services.diff_engine.
"""

import numpy as np
import pytest
from PIL import Image

from canopywatch.errors import ComparisonCancelled, DecodeError, DimensionMismatch
from canopywatch.models.raster import ChangeCategory, ClassificationLabel, PixelBuffer
from canopywatch.services import diff_engine
from canopywatch.utils.imaging import encode_png

FOREST = (0, 255, 0, 255)
BLACK = (0, 0, 0, 255)

LOSS_RGBA = (255, 0, 0, 150)
GAIN_RGBA = (0, 255, 0, 150)
STABLE_FOREST_RGBA = (128, 128, 128, 255)
STABLE_NON_FOREST_RGBA = (0, 0, 0, 255)


def _counts(result):
    return (
        result.loss_count,
        result.gain_count,
        result.stable_forest_count,
        result.stable_non_forest_count,
    )


class TestClassification:

    @pytest.mark.parametrize(
        "rgb, expected",
        [
            ((0, 255, 0), ClassificationLabel.FOREST),
            ((99, 201, 99), ClassificationLabel.FOREST),
            ((100, 255, 0), ClassificationLabel.NON_FOREST),
            ((0, 200, 0), ClassificationLabel.NON_FOREST),
            ((0, 255, 100), ClassificationLabel.NON_FOREST),
            ((0, 0, 0), ClassificationLabel.NON_FOREST),
            ((128, 128, 128), ClassificationLabel.NON_FOREST),
        ],
    )
    def test_classify_pixel_thresholds(self, rgb, expected):
        assert diff_engine.classify_pixel(*rgb) == expected

    def test_classify_ignores_alpha(self, make_buffer):
        buffer = make_buffer([[(0, 255, 0, 0), (0, 255, 0, 255)]])
        assert diff_engine.classify(buffer).tolist() == [[True, True]]

    @pytest.mark.parametrize(
        "forest_a, forest_b, expected",
        [
            (True, False, ChangeCategory.LOSS),
            (False, True, ChangeCategory.GAIN),
            (True, True, ChangeCategory.STABLE_FOREST),
            (False, False, ChangeCategory.STABLE_NON_FOREST),
        ],
    )
    def test_categorize(self, forest_a, forest_b, expected):
        assert diff_engine.categorize(forest_a, forest_b) == expected


class TestCompare:

    def test_single_lost_pixel(self, make_buffer):
        image_a = make_buffer([[FOREST, BLACK], [BLACK, BLACK]])
        image_b = make_buffer([[BLACK, BLACK], [BLACK, BLACK]])

        result = diff_engine.compare(image_a, image_b)

        assert result.loss_count == 1
        assert result.gain_count == 0
        assert result.stable_non_forest_count == 3
        assert result.stable_forest_count == 0
        assert result.total_pixels == 4

    def test_output_encoding_is_exact(self, make_buffer):
        image_a = make_buffer([[FOREST, BLACK, FOREST, BLACK]])
        image_b = make_buffer([[BLACK, FOREST, FOREST, BLACK]])

        output = diff_engine.compare(image_a, image_b).output

        assert output.size == (4, 1)
        assert output.pixel(0, 0) == LOSS_RGBA
        assert output.pixel(1, 0) == GAIN_RGBA
        assert output.pixel(2, 0) == STABLE_FOREST_RGBA
        assert output.pixel(3, 0) == STABLE_NON_FOREST_RGBA

    @pytest.mark.parametrize("size, seed", [((1, 1), 1), ((7, 5), 2), ((64, 48), 3), ((33, 100), 4)])
    def test_counts_cover_every_pixel(self, random_mask, size, seed):
        width, height = size
        image_a = random_mask(width, height, seed)
        image_b = random_mask(width, height, seed + 100)

        result = diff_engine.compare(image_a, image_b)

        assert sum(_counts(result)) == width * height

    @pytest.mark.parametrize("seed", [5, 6, 7])
    def test_identical_images_have_no_change(self, random_mask, seed):
        image = random_mask(40, 30, seed)

        result = diff_engine.compare(image, image)

        assert result.loss_count == 0
        assert result.gain_count == 0
        assert result.trend == "unchanged"

    @pytest.mark.parametrize("seed", [8, 9, 10])
    def test_swapping_images_swaps_loss_and_gain(self, random_mask, seed):
        image_a = random_mask(25, 25, seed)
        image_b = random_mask(25, 25, seed + 1)

        forward = diff_engine.compare(image_a, image_b)
        backward = diff_engine.compare(image_b, image_a)

        assert forward.loss_count == backward.gain_count
        assert forward.gain_count == backward.loss_count
        assert forward.stable_forest_count == backward.stable_forest_count

    def test_matches_per_pixel_rules(self, random_mask):
        image_a = random_mask(12, 9, 11)
        image_b = random_mask(12, 9, 12)

        output = diff_engine.compare(image_a, image_b).output
        colors = {
            ChangeCategory.LOSS: LOSS_RGBA,
            ChangeCategory.GAIN: GAIN_RGBA,
            ChangeCategory.STABLE_FOREST: STABLE_FOREST_RGBA,
            ChangeCategory.STABLE_NON_FOREST: STABLE_NON_FOREST_RGBA,
        }

        for y in range(9):
            for x in range(12):
                a = diff_engine.classify_pixel(*image_a.pixel(x, y)[:3]) == ClassificationLabel.FOREST
                b = diff_engine.classify_pixel(*image_b.pixel(x, y)[:3]) == ClassificationLabel.FOREST
                assert output.pixel(x, y) == colors[diff_engine.categorize(a, b)]

    @pytest.mark.parametrize("band_rows", [0, 1, 3, 7, 50])
    def test_result_does_not_depend_on_band_size(self, random_mask, band_rows):
        image_a = random_mask(20, 17, 13)
        image_b = random_mask(20, 17, 14)

        whole = diff_engine.compare(image_a, image_b, band_rows=0)
        banded = diff_engine.compare(image_a, image_b, band_rows=band_rows)

        assert banded == whole

    def test_dimension_mismatch(self, random_mask):
        with pytest.raises(DimensionMismatch) as excinfo:
            diff_engine.compare(random_mask(4, 4, 1), random_mask(4, 5, 1))
        assert excinfo.value.first_size == (4, 4)
        assert excinfo.value.second_size == (4, 5)

    def test_dimension_mismatch_is_checked_before_cancellation(self, random_mask):
        polled = []

        def should_cancel():
            polled.append(True)
            return False

        with pytest.raises(DimensionMismatch):
            diff_engine.compare(random_mask(4, 4, 1), random_mask(5, 4, 1), should_cancel=should_cancel)
        assert polled == []

    def test_cancellation_aborts_without_result(self, random_mask):
        calls = []

        def should_cancel():
            calls.append(True)
            return len(calls) > 2

        with pytest.raises(ComparisonCancelled):
            diff_engine.compare(random_mask(10, 10, 1), random_mask(10, 10, 2), band_rows=2, should_cancel=should_cancel)
        assert len(calls) == 3

    def test_cancellation_before_first_band(self, random_mask):
        with pytest.raises(ComparisonCancelled, match="row 0"):
            diff_engine.compare(random_mask(6, 6, 1), random_mask(6, 6, 2), should_cancel=lambda: True)

    def test_cancellation_hook_polled_once_per_band(self, random_mask):
        calls = []

        def should_cancel():
            calls.append(True)
            return False

        diff_engine.compare(random_mask(10, 10, 1), random_mask(10, 10, 2), band_rows=4, should_cancel=should_cancel)

        assert len(calls) == 3

    def test_negative_band_rows_rejected(self, random_mask):
        with pytest.raises(ValueError):
            diff_engine.compare(random_mask(2, 2, 1), random_mask(2, 2, 1), band_rows=-1)

    def test_percentages_and_trend(self, make_buffer):
        image_a = make_buffer([[FOREST, FOREST], [BLACK, BLACK]])
        image_b = make_buffer([[BLACK, FOREST], [BLACK, BLACK]])

        result = diff_engine.compare(image_a, image_b)

        assert result.loss_percentage == pytest.approx(25.0)
        assert result.gain_percentage == pytest.approx(0.0)
        assert result.trend == "decrease"
        assert diff_engine.compare(image_b, image_a).trend == "increase"


class TestIterBands:

    def test_band_ranges(self, random_mask):
        bands = list(diff_engine.iter_bands(random_mask(3, 10, 1), random_mask(3, 10, 2), band_rows=4))

        assert [(band.row_start, band.row_stop) for band in bands] == [(0, 4), (4, 8), (8, 10)]

    def test_bands_add_up_to_compare(self, random_mask):
        image_a = random_mask(9, 11, 3)
        image_b = random_mask(9, 11, 4)

        bands = list(diff_engine.iter_bands(image_a, image_b, band_rows=5))
        result = diff_engine.compare(image_a, image_b)

        assert sum(band.loss_count for band in bands) == result.loss_count
        assert sum(band.gain_count for band in bands) == result.gain_count
        assert b"".join(band.data for band in bands) == result.output.data

    def test_mismatch_fails_before_iteration(self, random_mask):
        with pytest.raises(DimensionMismatch):
            diff_engine.iter_bands(random_mask(3, 3, 1), random_mask(3, 4, 1))


class TestCompareEncoded:

    def test_png_inputs(self, make_buffer):
        image_a = make_buffer([[FOREST, BLACK], [BLACK, BLACK]])
        image_b = make_buffer([[BLACK, BLACK], [BLACK, FOREST]])

        result = diff_engine.compare_encoded(encode_png(image_a), encode_png(image_b))

        assert _counts(result) == (1, 1, 0, 2)

    def test_malformed_image_aborts(self, make_buffer):
        valid = encode_png(make_buffer([[FOREST]]))

        with pytest.raises(DecodeError):
            diff_engine.compare_encoded(valid, b"definitely not an image")

    def test_oversized_image_aborts(self, make_buffer, oversized_png):
        valid = encode_png(make_buffer([[FOREST]]))

        with pytest.raises(DecodeError):
            diff_engine.compare_encoded(oversized_png, valid)

    def test_image_above_pixel_limit_aborts(self, random_mask, monkeypatch):
        # 12x10 pixels sits between the limit and twice the limit, where
        # Pillow itself only warns.
        content = encode_png(random_mask(12, 10, 1))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(DecodeError, match="limit"):
            diff_engine.compare_encoded(content, content)

    def test_truncated_image_aborts(self, random_mask):
        content = encode_png(random_mask(32, 32, 1))

        with pytest.raises(DecodeError):
            diff_engine.compare_encoded(content[: len(content) // 2], content)


def test_result_rejects_inconsistent_counts():
    output = PixelBuffer.filled(2, 2, BLACK)
    with pytest.raises(ValueError):
        diff_engine.DiffResult(
            width=2,
            height=2,
            loss_count=1,
            gain_count=1,
            stable_forest_count=1,
            stable_non_forest_count=0,
            output=output,
        )


def test_pixel_buffer_rejects_wrong_length():
    with pytest.raises(ValueError):
        PixelBuffer(width=2, height=2, data=bytes(15))


def test_pixel_buffer_array_view_is_read_only(random_mask):
    array = random_mask(3, 3, 1).to_array()
    assert array.shape == (3, 3, 4)
    assert array.dtype == np.uint8
    with pytest.raises(ValueError):
        array[0, 0, 0] = 1

"""
This module converts between encoded image bytes and PixelBuffer using Pillow.
It is the only place that touches an image codec; the diff engine works on
decoded buffers alone.
"""

import logging
from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError

from canopywatch.errors import DecodeError
from canopywatch.models.raster import PixelBuffer

logger = logging.getLogger(__name__)


def _check_pixel_limit(image: Image.Image) -> None:
    # Pillow only warns between MAX_IMAGE_PIXELS and twice that; reject both.
    limit = Image.MAX_IMAGE_PIXELS
    width, height = image.size
    if limit is not None and width * height > limit:
        logger.warning("Rejected %dx%d image above the %d pixel limit", width, height, limit)
        raise DecodeError(f"Image of {width}x{height} pixels exceeds the limit of {limit} pixels")


def decode_image(content: bytes) -> PixelBuffer:
    """
    Decodes PNG/JPEG (or anything else Pillow reads) into an RGBA PixelBuffer.

    Args:
        content (bytes): The encoded image.

    Returns:
        PixelBuffer: The decoded image. Images without an alpha channel get
                     a fully opaque one.

    Raises:
        DecodeError: If the bytes are empty, truncated, not an image, or
                     declare more pixels than Image.MAX_IMAGE_PIXELS.
    """
    if not content:
        raise DecodeError("Image data is empty")

    try:
        with Image.open(BytesIO(content)) as image:
            _check_pixel_limit(image)
            image.load()
            rgba = image.convert("RGBA")
    except DecodeError:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        logger.warning("Failed to decode image of %d bytes: %s", len(content), e)
        raise DecodeError(f"Unreadable image data: {e}") from e

    return PixelBuffer.from_array(np.asarray(rgba, dtype=np.uint8))


def encode_png(buffer: PixelBuffer) -> bytes:
    """Encodes a PixelBuffer as an RGBA PNG."""
    image = Image.fromarray(buffer.to_array())
    out = BytesIO()
    image.save(out, "PNG")
    return out.getvalue()

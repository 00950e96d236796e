"""
Pytest configuration and shared fixtures for CanopyWatch tests.

Feed traffic is served by httpx.MockTransport; nothing touches the network.
"""

import struct
import zlib

import httpx
import numpy as np
import pytest

from canopywatch.models.raster import PixelBuffer
from canopywatch.utils.imaging import encode_png

FOREST = (0, 255, 0, 255)
BLACK = (0, 0, 0, 255)
FEED_URL = "http://feed.test"


@pytest.fixture
def make_buffer():
    """Builds a PixelBuffer from rows of RGBA tuples."""
    def _make(rows):
        return PixelBuffer.from_array(np.array(rows, dtype=np.uint8))
    return _make


@pytest.fixture
def random_mask():
    """Builds reproducible masks mixing forest and non-forest colours."""
    palette = np.array(
        [
            FOREST,
            BLACK,
            (34, 139, 34, 255),   # dark green, not forest by the colour rule
            (50, 220, 60, 255),   # forest
            (255, 255, 255, 0),
        ],
        dtype=np.uint8,
    )

    def _make(width, height, seed):
        rng = np.random.default_rng(seed)
        indices = rng.integers(0, len(palette), size=(height, width))
        return PixelBuffer.from_array(palette[indices])
    return _make


def _png_chunk(kind, body):
    return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))


@pytest.fixture
def oversized_png():
    """PNG header declaring a 20000x20000 RGBA image with no pixel data."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 6, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header) + _png_chunk(b"IEND", b"")


@pytest.fixture
def feed_payload():
    """Observation table as the feed publishes it."""
    return {
        "2019-01-15": {
            "rgb": f"{FEED_URL}/rgb/2019-01-15.png",
            "mask": f"{FEED_URL}/masks/2019-01-15.png",
            "forestCoverage": {"0,0": 97.5, "2,3": 91.0},
            "forestCoverage2017": {"0,0": 98.0, "2,3": 95.0},
        },
        "2017-06-01": {
            "rgb": f"{FEED_URL}/rgb/2017-06-01.png",
            "mask": f"{FEED_URL}/masks/2017-06-01.png",
            "forestCoverage": {"0,0": 99.0, "2,3": 96.5},
            "forestCoverage2017": {"0,0": 99.0, "2,3": 96.5},
        },
        "2020-03-10": {
            "rgb": f"{FEED_URL}/rgb/2020-03-10.png",
            "forestCoverage": {"0,0": 96.0},
        },
    }


@pytest.fixture
def feed_masks():
    """Encoded masks served by the fake feed: one forest pixel is lost."""
    earlier = PixelBuffer.from_array(np.array([[FOREST, BLACK], [BLACK, FOREST]], dtype=np.uint8))
    later = PixelBuffer.from_array(np.array([[BLACK, BLACK], [BLACK, FOREST]], dtype=np.uint8))
    return {
        "/masks/2017-06-01.png": encode_png(earlier),
        "/masks/2019-01-15.png": encode_png(later),
    }


@pytest.fixture
def feed_transport(feed_payload, feed_masks):
    """MockTransport answering like the feed; records requests in .requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/cloudinary/images":
            return httpx.Response(200, json=feed_payload)
        if request.url.path in feed_masks:
            return httpx.Response(200, content=feed_masks[request.url.path])
        return httpx.Response(404, text="not found")

    transport = httpx.MockTransport(handler)
    transport.requests = seen
    return transport

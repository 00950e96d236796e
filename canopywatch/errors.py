"""
This module defines the exceptions raised by the CanopyWatch core.

All of them are structural preconditions: they are raised before any work is
done and never leave a partial result behind.
"""


class DimensionMismatch(ValueError):
    """Raised when two pixel buffers being compared differ in width or height."""

    def __init__(self, first_size, second_size):
        self.first_size = first_size
        self.second_size = second_size
        super().__init__(
            f"Cannot compare a {first_size[0]}x{first_size[1]} image with a "
            f"{second_size[0]}x{second_size[1]} image."
        )


class DecodeError(ValueError):
    """Raised when encoded image bytes cannot be decoded into a pixel buffer."""


class InvalidRegion(ValueError):
    """Raised when a region cannot be partitioned into a grid."""


class ComparisonCancelled(RuntimeError):
    """Raised when a caller cancels a comparison between two row bands."""


class FeedError(RuntimeError):
    """Raised when the external imagery/coverage feed cannot be used."""

"""
Synthetic fallback sources.

Used when capture is disabled or has never delivered a frame. Both sources
generate their frame once, at construction size, and return the cached
array on every call.
"""
from typing import Optional, Tuple

import numpy as np

from sources.base_provider import SourceFrame, SourceKind, SourceProvider


def gradient_pattern(width: int, height: int) -> np.ndarray:
    """
    Deterministic test gradient.

    R = 255*x/w, G = 255*(1 - x/w), B = 255*y/h, A = 255, with row 0 at
    the top of the image.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Pattern size must be positive, got {width}x{height}")
    fx = np.arange(width, dtype=np.float32) / float(width)
    fy = np.arange(height, dtype=np.float32) / float(height)

    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = (fx * 255.0).astype(np.uint8)[np.newaxis, :]
    pixels[:, :, 1] = ((1.0 - fx) * 255.0).astype(np.uint8)[np.newaxis, :]
    pixels[:, :, 2] = (fy * 255.0).astype(np.uint8)[:, np.newaxis]
    pixels[:, :, 3] = 255
    return pixels


class TestPatternSource(SourceProvider):
    """Gradient fallback at a fixed resolution (the initial output size)."""

    __test__ = False  # not a pytest test class

    def __init__(self, width: int, height: int):
        super().__init__("pattern")
        self._frame = SourceFrame.from_pixels(gradient_pattern(width, height), SourceKind.PATTERN)
        self._logger.debug("Gradient pattern generated at %dx%d", width, height)

    def try_grab(self) -> Optional[SourceFrame]:
        return self._frame

    def is_available(self) -> bool:
        return True


class SolidColorSource(SourceProvider):
    """Uniform RGBA fill."""

    def __init__(self, width: int, height: int, rgba: Tuple[int, int, int, int]):
        super().__init__("solid")
        if width <= 0 or height <= 0:
            raise ValueError(f"Pattern size must be positive, got {width}x{height}")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = np.asarray(rgba, dtype=np.uint8)
        self._rgba = tuple(int(c) for c in rgba)
        self._frame = SourceFrame.from_pixels(pixels, SourceKind.PATTERN)

    @property
    def rgba(self) -> Tuple[int, int, int, int]:
        return self._rgba

    def try_grab(self) -> Optional[SourceFrame]:
        return self._frame

    def is_available(self) -> bool:
        return True

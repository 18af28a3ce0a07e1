"""RGBA texture helpers and the BaseTexture holding the current source frame.

Source frames arrive top row first; GL stores row 0 at the bottom, so rows
are flipped on upload. Every texture in the pipeline is RGBA8 with linear
filtering and clamp-to-edge wrapping.
"""

from __future__ import annotations

import time
from typing import Optional

import numpy as np

from core.errors import ResourceError
from core.logging.logger import get_logger, is_perf_metrics_enabled, is_verbose_logging
from core.logging.tags import TAG_GL, TAG_PERF

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)


def _apply_sampling_params() -> None:
    gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MIN_FILTER, gl.GL_LINEAR)
    gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MAG_FILTER, gl.GL_LINEAR)
    gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_S, gl.GL_CLAMP_TO_EDGE)
    gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_T, gl.GL_CLAMP_TO_EDGE)


def to_gl_rows(pixels: np.ndarray) -> np.ndarray:
    """Return a contiguous bottom-row-first copy of a top-row-first RGBA array."""
    return np.ascontiguousarray(pixels[::-1])


def allocate_rgba_texture(width: int, height: int, pixels: Optional[np.ndarray] = None) -> int:
    """Create an RGBA8 texture, optionally filled from a top-row-first array.

    Raises:
        ResourceError: non-positive size, the driver reported GL_OUT_OF_MEMORY,
            or a checked GL call failed; the texture is deleted first
    """
    if width <= 0 or height <= 0:
        raise ResourceError(f"Cannot allocate {width}x{height} texture")

    data = to_gl_rows(pixels) if pixels is not None else None

    tex_id = int(gl.glGenTextures(1))
    try:
        gl.glBindTexture(gl.GL_TEXTURE_2D, tex_id)
        try:
            gl.glPixelStorei(gl.GL_UNPACK_ALIGNMENT, 1)
            _apply_sampling_params()
            gl.glTexImage2D(
                gl.GL_TEXTURE_2D, 0, gl.GL_RGBA8, width, height, 0,
                gl.GL_RGBA, gl.GL_UNSIGNED_BYTE, data,
            )
        finally:
            gl.glBindTexture(gl.GL_TEXTURE_2D, 0)
    except Exception as e:
        # PyOpenGL's error checking raises GLError from the failing call itself.
        gl.glDeleteTextures([tex_id])
        raise ResourceError(f"Texture allocation failed at {width}x{height}: {e}") from e

    if gl.glGetError() == gl.GL_OUT_OF_MEMORY:
        gl.glDeleteTextures([tex_id])
        raise ResourceError(f"Out of GPU memory allocating {width}x{height} texture")

    return tex_id


def update_rgba_texture(tex_id: int, width: int, height: int, pixels: np.ndarray) -> None:
    """Overwrite the full contents of an existing texture of the same size."""
    gl.glBindTexture(gl.GL_TEXTURE_2D, tex_id)
    try:
        gl.glPixelStorei(gl.GL_UNPACK_ALIGNMENT, 1)
        gl.glTexSubImage2D(
            gl.GL_TEXTURE_2D, 0, 0, 0, width, height,
            gl.GL_RGBA, gl.GL_UNSIGNED_BYTE, to_gl_rows(pixels),
        )
    finally:
        gl.glBindTexture(gl.GL_TEXTURE_2D, 0)


def delete_texture(tex_id: int) -> None:
    if gl is None or not tex_id:
        return
    gl.glDeleteTextures([int(tex_id)])


class BaseTexture:
    """The current frame's source image as a GPU texture.

    Replaced whenever the incoming frame's dimensions differ from the held
    texture, updated in place otherwise.

    Thread Safety:
    - All methods must be called from the render thread with a current context
    """

    def __init__(self) -> None:
        self._tex_id: int = 0
        self._width: int = 0
        self._height: int = 0
        self.reallocations: int = 0
        self.updates: int = 0

    @property
    def texture_id(self) -> int:
        return self._tex_id

    @property
    def size(self) -> tuple:
        return (self._width, self._height)

    @property
    def is_allocated(self) -> bool:
        return self._tex_id != 0

    def upload(self, pixels: np.ndarray) -> bool:
        """Upload an ``(h, w, 4)`` uint8 frame; returns True when the texture was reallocated."""
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected (h, w, 4) RGBA pixels, got shape {pixels.shape}")
        height, width = int(pixels.shape[0]), int(pixels.shape[1])

        start = time.perf_counter()
        if self._tex_id and (width, height) == (self._width, self._height):
            update_rgba_texture(self._tex_id, width, height, pixels)
            self.updates += 1
            reallocated = False
        else:
            new_id = allocate_rgba_texture(width, height, pixels)
            if self._tex_id:
                logger.info("%s Base texture %dx%d -> %dx%d", TAG_GL,
                            self._width, self._height, width, height)
                delete_texture(self._tex_id)
            self._tex_id = new_id
            self._width = width
            self._height = height
            self.reallocations += 1
            reallocated = True

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms > 20.0 and is_perf_metrics_enabled():
            logger.debug("%s Slow base texture upload: %.2fms (%dx%d, realloc=%s)",
                         TAG_PERF, elapsed_ms, width, height, reallocated)
        elif is_verbose_logging():
            logger.debug("%s Base texture upload %dx%d realloc=%s", TAG_GL, width, height, reallocated)
        return reallocated

    def release(self) -> None:
        delete_texture(self._tex_id)
        self._tex_id = 0
        self._width = 0
        self._height = 0


__all__ = [
    "BaseTexture",
    "allocate_rgba_texture",
    "delete_texture",
    "to_gl_rows",
    "update_rgba_texture",
]

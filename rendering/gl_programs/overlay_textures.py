"""Auxiliary sampler textures bound alongside the pass input.

An OverlayTextureSet is the single place that decides which extra textures
a pass sees. Each overlay owns one texture, a sampler uniform name and a
texture unit (unit 0 is reserved for the pass input). Passes that do not
declare an overlay's sampler never have it bound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from core.errors import ConfigError
from core.logging.logger import get_logger
from core.logging.tags import TAG_GL
from rendering.gl_programs.shader_compiler import ShaderPass
from rendering.gl_programs.texture_manager import allocate_rgba_texture, delete_texture

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)

FIRST_OVERLAY_UNIT = 1


class OverlayTexture(ABC):
    """One auxiliary texture and the sampler uniform that reads it."""

    uniform_name: str = ""

    def __init__(self) -> None:
        self._tex_id: int = 0
        self._width: int = 0
        self._height: int = 0

    @property
    def texture_id(self) -> int:
        return self._tex_id

    @property
    def size(self) -> tuple:
        return (self._width, self._height)

    @abstractmethod
    def build_pixels(self) -> np.ndarray:
        """Return the overlay image as a top-row-first ``(h, w, 4)`` uint8 array."""

    def create(self) -> None:
        if self._tex_id:
            return
        pixels = self.build_pixels()
        self._height, self._width = int(pixels.shape[0]), int(pixels.shape[1])
        self._tex_id = allocate_rgba_texture(self._width, self._height, pixels)
        logger.debug("%s %s overlay texture %d (%dx%d)", TAG_GL,
                     self.uniform_name, self._tex_id, self._width, self._height)

    def release(self) -> None:
        delete_texture(self._tex_id)
        self._tex_id = 0


class NoiseOverlay(OverlayTexture):
    """Static grayscale noise for grain or dithering shaders."""

    uniform_name = "NoiseTexture"

    def __init__(self, size: int = 256, seed: int = 1337) -> None:
        super().__init__()
        self._size = size
        self._seed = seed

    def build_pixels(self) -> np.ndarray:
        rng = np.random.default_rng(self._seed)
        luma = rng.integers(0, 256, size=(self._size, self._size), dtype=np.uint8)
        pixels = np.empty((self._size, self._size, 4), dtype=np.uint8)
        pixels[:, :, 0] = luma
        pixels[:, :, 1] = luma
        pixels[:, :, 2] = luma
        pixels[:, :, 3] = 255
        return pixels


class ImageOverlay(OverlayTexture):
    """An image file (bezel, mask, cursor sprite) loaded through Qt."""

    uniform_name = "OverlayTexture"

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def build_pixels(self) -> np.ndarray:
        from PySide6.QtGui import QImage
        from sources.qimage_frames import qimage_to_rgba

        image = QImage(str(self._path))
        if image.isNull():
            raise ConfigError(f"Failed to open overlay image: {self._path}")
        return qimage_to_rgba(image)


class OverlayTextureSet:
    """Ordered overlays, each assigned its own texture unit starting at 1."""

    def __init__(self, overlays: Optional[Sequence[OverlayTexture]] = None) -> None:
        self._overlays: List[OverlayTexture] = list(overlays or [])
        names = [o.uniform_name for o in self._overlays]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate overlay samplers: {names}")

    @classmethod
    def from_options(cls, noise: bool, overlay_path: Optional[str]) -> "OverlayTextureSet":
        overlays: List[OverlayTexture] = []
        if noise:
            overlays.append(NoiseOverlay())
        if overlay_path:
            overlays.append(ImageOverlay(overlay_path))
        return cls(overlays)

    @property
    def overlays(self) -> tuple:
        return tuple(self._overlays)

    def __len__(self) -> int:
        return len(self._overlays)

    def unit_for(self, overlay: OverlayTexture) -> int:
        return FIRST_OVERLAY_UNIT + self._overlays.index(overlay)

    def initialize(self) -> None:
        """Create every overlay texture; a failure releases the ones already created."""
        created: List[OverlayTexture] = []
        try:
            for overlay in self._overlays:
                overlay.create()
                created.append(overlay)
        except Exception:
            for overlay in created:
                overlay.release()
            raise

    def bind_for(self, shader_pass: ShaderPass) -> List[int]:
        """Bind the overlays ``shader_pass`` declares; returns the units used.

        Leaves GL_TEXTURE0 active so the caller's input binding is unaffected.
        """
        units: List[int] = []
        for index, overlay in enumerate(self._overlays):
            location = shader_pass.location(overlay.uniform_name)
            if location < 0 or not overlay.texture_id:
                continue
            unit = FIRST_OVERLAY_UNIT + index
            gl.glActiveTexture(gl.GL_TEXTURE0 + unit)
            gl.glBindTexture(gl.GL_TEXTURE_2D, overlay.texture_id)
            gl.glUniform1i(location, unit)
            units.append(unit)
        if units:
            gl.glActiveTexture(gl.GL_TEXTURE0)
        return units

    def cleanup(self) -> None:
        for overlay in self._overlays:
            overlay.release()


__all__ = [
    "FIRST_OVERLAY_UNIT",
    "ImageOverlay",
    "NoiseOverlay",
    "OverlayTexture",
    "OverlayTextureSet",
]

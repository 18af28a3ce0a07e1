"""
Utilities for constructing the QSurfaceFormat of the output window.

Centralizes GL surface configuration: OpenGL 3.3 core, double buffered,
8-bit alpha for the translucent window and no depth or stencil buffers
since every pass is a 2-D full-screen draw.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from PySide6.QtGui import QSurfaceFormat

from core.logging.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from core.settings.settings_manager import SettingsManager

logger = get_logger(__name__)

GL_MAJOR_VERSION = 3
GL_MINOR_VERSION = 3


@dataclass(frozen=True)
class SurfacePreferences:
    refresh_sync: bool = True
    alpha_bits: int = 8
    depth_bits: int = 0
    stencil_bits: int = 0


def _coerce_int(value, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def read_surface_preferences(
    settings_manager: Optional["SettingsManager"] = None,
    *,
    refresh_sync: Optional[bool] = None,
) -> SurfacePreferences:
    """Resolve surface preferences; an explicit ``refresh_sync`` wins over settings."""
    refresh_sync_default = True
    alpha_default = 8

    if settings_manager is not None:
        refresh_sync_value = settings_manager.get_bool("display.refresh_sync", refresh_sync_default)
        alpha_value = settings_manager.get("display.gl_alpha_bits", alpha_default)
    else:
        refresh_sync_value = refresh_sync_default
        alpha_value = alpha_default

    if refresh_sync is not None:
        refresh_sync_value = refresh_sync

    return SurfacePreferences(
        refresh_sync=bool(refresh_sync_value),
        alpha_bits=max(0, _coerce_int(alpha_value, alpha_default)),
    )


def build_surface_format(prefs: SurfacePreferences, *, reason: str = "") -> QSurfaceFormat:
    """Build a QSurfaceFormat from resolved preferences."""
    fmt = QSurfaceFormat()
    fmt.setRenderableType(QSurfaceFormat.RenderableType.OpenGL)
    fmt.setVersion(GL_MAJOR_VERSION, GL_MINOR_VERSION)
    fmt.setProfile(QSurfaceFormat.OpenGLContextProfile.CoreProfile)
    fmt.setSwapBehavior(QSurfaceFormat.SwapBehavior.DoubleBuffer)
    fmt.setSwapInterval(1 if prefs.refresh_sync else 0)
    fmt.setAlphaBufferSize(prefs.alpha_bits)
    fmt.setDepthBufferSize(prefs.depth_bits)
    fmt.setStencilBufferSize(prefs.stencil_bits)

    logger.debug(
        "[GL FORMAT] Requested %d.%d core interval=%s alpha=%s depth=%s stencil=%s%s",
        GL_MAJOR_VERSION,
        GL_MINOR_VERSION,
        fmt.swapInterval(),
        prefs.alpha_bits,
        prefs.depth_bits,
        prefs.stencil_bits,
        f" reason={reason}" if reason else "",
    )
    return fmt

"""GL adapter information and error draining.

Queried once after the context becomes current; software renderers are
flagged in the log because multi-pass chains at full resolution are slow
on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from core.logging.logger import get_logger
from core.logging.tags import TAG_GL

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)

# Known software GL implementations
SOFTWARE_GL_PATTERNS = frozenset({
    "gdi generic",
    "microsoft basic render driver",
    "llvmpipe",
    "softpipe",
    "swrast",
    "mesa software",
})

_MAX_DRAINED_ERRORS = 16


@dataclass(frozen=True)
class GLInfo:
    vendor: str = ""
    renderer: str = ""
    version: str = ""
    glsl_version: str = ""

    @property
    def is_software(self) -> bool:
        renderer_lower = self.renderer.lower()
        vendor_lower = self.vendor.lower()
        return any(p in renderer_lower or p in vendor_lower for p in SOFTWARE_GL_PATTERNS)


def _gl_string(name: int) -> str:
    value = gl.glGetString(name)
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def query_gl_info() -> GLInfo:
    """Read vendor/renderer/version strings from the current context and log them."""
    info = GLInfo(
        vendor=_gl_string(gl.GL_VENDOR),
        renderer=_gl_string(gl.GL_RENDERER),
        version=_gl_string(gl.GL_VERSION),
        glsl_version=_gl_string(gl.GL_SHADING_LANGUAGE_VERSION),
    )
    logger.info("%s Vendor=%s Renderer=%s Version=%s GLSL=%s",
                TAG_GL, info.vendor, info.renderer, info.version, info.glsl_version)
    if info.is_software:
        logger.warning("%s Software GL detected (%s); expect low frame rates", TAG_GL, info.renderer)
    return info


def drain_gl_errors(context: str) -> List[int]:
    """Pop pending GL error codes, logging each; returns the codes seen."""
    errors: List[int] = []
    while len(errors) < _MAX_DRAINED_ERRORS:
        code = int(gl.glGetError())
        if code == gl.GL_NO_ERROR:
            break
        errors.append(code)
    for code in errors:
        logger.warning("%s GL error 0x%04x after %s", TAG_GL, code, context)
    return errors


__all__ = ["GLInfo", "SOFTWARE_GL_PATTERNS", "drain_gl_errors", "query_gl_info"]

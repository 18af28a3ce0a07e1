"""RenderTargetPool - offscreen framebuffer+texture pairs for intermediate passes.

The pool holds exactly one target per intermediate stage, all sized to the
current output resolution. Resizes are atomic: the replacement set is
allocated in full before the previous set is released, so a failed resize
leaves the old targets usable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from core.errors import ResourceError
from core.logging.logger import get_logger
from core.logging.tags import TAG_GL
from rendering.gl_programs.texture_manager import allocate_rgba_texture, delete_texture

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)


@dataclass(frozen=True)
class RenderTarget:
    """One color-only framebuffer and the texture attached to it."""

    framebuffer: int
    texture: int
    width: int
    height: int


def _destroy_target(target: RenderTarget) -> None:
    gl.glDeleteFramebuffers(1, [target.framebuffer])
    delete_texture(target.texture)


def _create_target(width: int, height: int) -> RenderTarget:
    tex_id = allocate_rgba_texture(width, height)

    fbo_id = 0
    try:
        fbo_id = int(gl.glGenFramebuffers(1))
        gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, fbo_id)
        try:
            gl.glFramebufferTexture2D(
                gl.GL_FRAMEBUFFER, gl.GL_COLOR_ATTACHMENT0,
                gl.GL_TEXTURE_2D, tex_id, 0,
            )
            status = gl.glCheckFramebufferStatus(gl.GL_FRAMEBUFFER)
        finally:
            gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, 0)
    except Exception as e:
        if fbo_id:
            gl.glDeleteFramebuffers(1, [fbo_id])
        delete_texture(tex_id)
        raise ResourceError(f"Framebuffer creation failed at {width}x{height}: {e}") from e

    if status != gl.GL_FRAMEBUFFER_COMPLETE:
        gl.glDeleteFramebuffers(1, [fbo_id])
        delete_texture(tex_id)
        raise ResourceError(f"Framebuffer incomplete: status=0x{int(status):x} ({width}x{height})")

    return RenderTarget(framebuffer=fbo_id, texture=tex_id, width=width, height=height)


class RenderTargetPool:
    """Owns the intermediate render targets of one pipeline.

    Thread Safety:
    - All methods must be called from the render thread with a current context
    """

    def __init__(self) -> None:
        self._targets: List[RenderTarget] = []
        self._width: int = 0
        self._height: int = 0

    @property
    def targets(self) -> Tuple[RenderTarget, ...]:
        return tuple(self._targets)

    @property
    def size(self) -> Tuple[int, int]:
        return (self._width, self._height)

    def __len__(self) -> int:
        return len(self._targets)

    def ensure(self, width: int, height: int, count: int) -> Tuple[RenderTarget, ...]:
        """Hold exactly ``count`` targets of ``width`` x ``height``.

        Returns the held targets. Nothing is reallocated when size and count
        already match.

        Raises:
            ResourceError: non-positive size, incomplete framebuffer or out of
                memory. The previously held targets are left intact.
        """
        if width <= 0 or height <= 0:
            raise ResourceError(f"Invalid render target size {width}x{height}")
        if count < 0:
            raise ResourceError(f"Invalid render target count {count}")

        if (width, height) == (self._width, self._height) and count == len(self._targets):
            return self.targets

        if count == 0:
            self._release_all()
            self._width = width
            self._height = height
            return self.targets

        fresh: List[RenderTarget] = []
        try:
            for _ in range(count):
                fresh.append(_create_target(width, height))
        except ResourceError:
            logger.error("%s Render target allocation failed at %d of %d (%dx%d); keeping %d target(s) at %dx%d",
                         TAG_GL, len(fresh) + 1, count, width, height,
                         len(self._targets), self._width, self._height)
            for target in fresh:
                _destroy_target(target)
            raise

        previous = self._targets
        self._targets = fresh
        self._width = width
        self._height = height
        for target in previous:
            _destroy_target(target)

        logger.info("%s Render targets: %d x %dx%d", TAG_GL, count, width, height)
        return self.targets

    def target_for_stage(self, index: int) -> RenderTarget:
        if not self._targets:
            raise ResourceError("No intermediate render targets allocated")
        return self._targets[index % len(self._targets)]

    def _release_all(self) -> None:
        for target in self._targets:
            _destroy_target(target)
        self._targets = []

    def cleanup(self) -> None:
        """Delete every framebuffer and texture and forget the held size."""
        if gl is None:
            self._targets = []
        else:
            self._release_all()
        self._width = 0
        self._height = 0
        logger.debug("%s Render target pool cleaned up", TAG_GL)


__all__ = ["RenderTarget", "RenderTargetPool"]

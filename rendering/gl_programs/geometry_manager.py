"""Full-screen quad geometry shared by every pass.

Six vertices, two triangles, no index buffer. Each vertex is a clip-space
``vec4`` position followed by a ``vec2`` texture coordinate, matching the
``VertexCoord`` (location 0) and ``TexCoord`` (location 1) attributes the
shader compiler binds.
"""

from __future__ import annotations

import ctypes

from core.errors import ResourceError
from core.logging.logger import get_logger
from core.logging.tags import TAG_GL

logger = get_logger(__name__)

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

QUAD_VERTEX_COUNT = 6
FLOATS_PER_VERTEX = 6

QUAD_VERTICES = (
    # position (x, y, z, w)   # uv
    -1.0, -1.0, 0.0, 1.0,     0.0, 0.0,
     1.0, -1.0, 0.0, 1.0,     1.0, 0.0,
     1.0,  1.0, 0.0, 1.0,     1.0, 1.0,
    -1.0, -1.0, 0.0, 1.0,     0.0, 0.0,
     1.0,  1.0, 0.0, 1.0,     1.0, 1.0,
    -1.0,  1.0, 0.0, 1.0,     0.0, 1.0,
)


class FullscreenQuad:
    """Owns the VAO/VBO pair for the pass quad.

    Usage:
        quad = FullscreenQuad()
        quad.initialize()
        quad.draw()
    """

    def __init__(self) -> None:
        self._vao: int = 0
        self._vbo: int = 0

    @property
    def vao(self) -> int:
        return self._vao

    def is_initialized(self) -> bool:
        return self._vao != 0

    def initialize(self) -> None:
        """Create the quad. Must be called with a current context.

        Raises:
            ResourceError: PyOpenGL is unavailable or the driver returned no handles
        """
        if self._vao:
            return
        if gl is None:
            raise ResourceError("PyOpenGL not available")

        vertex_data = (ctypes.c_float * len(QUAD_VERTICES))(*QUAD_VERTICES)

        self._vao = int(gl.glGenVertexArrays(1))
        self._vbo = int(gl.glGenBuffers(1))
        if not self._vao or not self._vbo:
            self.cleanup()
            raise ResourceError("Failed to create full-screen quad buffers")

        gl.glBindVertexArray(self._vao)
        gl.glBindBuffer(gl.GL_ARRAY_BUFFER, self._vbo)
        gl.glBufferData(
            gl.GL_ARRAY_BUFFER,
            ctypes.sizeof(vertex_data),
            vertex_data,
            gl.GL_STATIC_DRAW,
        )

        stride = FLOATS_PER_VERTEX * ctypes.sizeof(ctypes.c_float)
        gl.glEnableVertexAttribArray(0)
        gl.glVertexAttribPointer(0, 4, gl.GL_FLOAT, gl.GL_FALSE, stride, ctypes.c_void_p(0))
        gl.glEnableVertexAttribArray(1)
        gl.glVertexAttribPointer(1, 2, gl.GL_FLOAT, gl.GL_FALSE, stride,
                                 ctypes.c_void_p(4 * ctypes.sizeof(ctypes.c_float)))

        gl.glBindVertexArray(0)
        gl.glBindBuffer(gl.GL_ARRAY_BUFFER, 0)

        logger.debug("%s Quad geometry created: VAO=%d, VBO=%d", TAG_GL, self._vao, self._vbo)

    def draw(self) -> None:
        gl.glBindVertexArray(self._vao)
        gl.glDrawArrays(gl.GL_TRIANGLES, 0, QUAD_VERTEX_COUNT)
        gl.glBindVertexArray(0)

    def cleanup(self) -> None:
        if gl is None:
            self._vao = 0
            self._vbo = 0
            return
        if self._vao:
            gl.glDeleteVertexArrays(1, [self._vao])
            self._vao = 0
        if self._vbo:
            gl.glDeleteBuffers(1, [self._vbo])
            self._vbo = 0
        logger.debug("%s Quad geometry cleaned up", TAG_GL)


__all__ = ["FullscreenQuad", "QUAD_VERTEX_COUNT", "QUAD_VERTICES"]

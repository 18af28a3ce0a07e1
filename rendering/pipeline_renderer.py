"""
Multi-pass pipeline renderer.

Threads one input texture through an ordered chain of shader passes. Every
pass but the last renders into an intermediate target from the
RenderTargetPool; the last pass renders into the presentation framebuffer.

Per-frame state machine:
    IDLE → BOUND(stage 0) → BOUND(stage 1) → ... → PRESENTED
    PRESENTED → IDLE (next frame)
    BOUND → IDLE (frame aborted by an exception)

Size tracking: stage 0 sees the source's native size as ``InputSize``;
every later stage sees the pipeline output size, because every
intermediate target is allocated at the output size.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import numpy as np

from core.errors import ResourceError, ShaderGlassError
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_PIPELINE
from rendering.gl_programs.geometry_manager import FullscreenQuad
from rendering.gl_programs.overlay_textures import OverlayTextureSet
from rendering.gl_programs.render_targets import RenderTargetPool
from rendering.gl_programs.shader_compiler import ShaderCompiler, ShaderPass

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)

FRAME_DIRECTION_FORWARD = 1
IDENTITY_MATRIX = np.identity(4, dtype=np.float32)
PRESENTATION_FRAMEBUFFER = 0


class PipelineState(Enum):
    """Per-frame pipeline states.

    State descriptions:
        IDLE: Between frames, nothing bound
        BOUND: A stage's target and program are bound
        PRESENTED: The last stage has drawn into the presentation framebuffer
    """
    IDLE = auto()
    BOUND = auto()
    PRESENTED = auto()


_VALID_PIPELINE_TRANSITIONS: Dict[PipelineState, Set[PipelineState]] = {
    PipelineState.IDLE: {
        PipelineState.BOUND,
    },
    PipelineState.BOUND: {
        PipelineState.BOUND,  # Next stage
        PipelineState.PRESENTED,
        PipelineState.IDLE,  # Aborted frame
    },
    PipelineState.PRESENTED: {
        PipelineState.IDLE,
    },
}


def is_valid_pipeline_transition(old_state: PipelineState, new_state: PipelineState) -> bool:
    """Check if a pipeline state transition is valid."""
    return new_state in _VALID_PIPELINE_TRANSITIONS.get(old_state, set())


@dataclass(frozen=True)
class FrameContext:
    """Transient per-frame values fed to the uniforms."""
    output_width: int
    output_height: int
    frame_count: int
    input_width: int
    input_height: int
    opacity: float
    time_seconds: float = 0.0


@dataclass(frozen=True)
class StageBinding:
    """What one stage read and wrote; kept for the most recent frame."""
    index: int
    pass_name: str
    input_texture: int
    framebuffer: int
    input_size: Tuple[int, int]


class PipelineRenderer:
    """
    Owns the passes, the intermediate render targets and the quad.

    Thread Safety:
    - All methods must be called from the render thread with a current context
    """

    def __init__(
        self,
        passes: Sequence[ShaderPass],
        width: int,
        height: int,
        overlays: Optional[OverlayTextureSet] = None,
        presentation_fbo: int = PRESENTATION_FRAMEBUFFER,
    ):
        """
        Args:
            passes: Linked passes in execution order; ownership moves here
            width: Output width in pixels
            height: Output height in pixels
            overlays: Auxiliary textures offered to every pass
            presentation_fbo: Framebuffer the last pass writes to
        """
        if not passes:
            raise ShaderGlassError("Pipeline requires at least one pass")
        self._passes: List[ShaderPass] = list(passes)
        self._width = width
        self._height = height
        self._overlays = overlays
        self._presentation_fbo = presentation_fbo
        self._pool = RenderTargetPool()
        self._quad = FullscreenQuad()
        self._state = PipelineState.IDLE
        self._initialized = False
        self._last_frame: Optional[FrameContext] = None
        self._last_bindings: List[StageBinding] = []

    @classmethod
    def from_paths(
        cls,
        shader_paths: Sequence[Union[str, Path]],
        width: int,
        height: int,
        overlays: Optional[OverlayTextureSet] = None,
        presentation_fbo: int = PRESENTATION_FRAMEBUFFER,
        compiler: Optional[ShaderCompiler] = None,
    ) -> "PipelineRenderer":
        """Compile ``shader_paths`` (or the default pass) and allocate GPU resources.

        Raises:
            ConfigError, CompileError, LinkError, ResourceError: nothing is
                left allocated when construction fails
        """
        compiler = compiler or ShaderCompiler()
        passes = compiler.build_pipeline(shader_paths)
        renderer = cls(passes, width, height, overlays=overlays, presentation_fbo=presentation_fbo)
        try:
            renderer.initialize()
        except Exception:
            renderer.cleanup()
            raise
        return renderer

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def passes(self) -> Tuple[ShaderPass, ...]:
        return tuple(self._passes)

    @property
    def pass_count(self) -> int:
        return len(self._passes)

    @property
    def intermediate_count(self) -> int:
        return max(0, len(self._passes) - 1)

    @property
    def pool(self) -> RenderTargetPool:
        return self._pool

    @property
    def size(self) -> Tuple[int, int]:
        return (self._width, self._height)

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def last_frame(self) -> Optional[FrameContext]:
        return self._last_frame

    @property
    def last_bindings(self) -> Tuple[StageBinding, ...]:
        return tuple(self._last_bindings)

    @property
    def presentation_fbo(self) -> int:
        return self._presentation_fbo

    @presentation_fbo.setter
    def presentation_fbo(self, fbo: int) -> None:
        self._presentation_fbo = int(fbo)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the quad, overlay textures and N-1 intermediate targets."""
        if self._initialized:
            return
        self._quad.initialize()
        if self._overlays is not None:
            self._overlays.initialize()
        self._pool.ensure(self._width, self._height, self.intermediate_count)
        self._initialized = True
        logger.info("%s Pipeline ready: %d pass(es), %d intermediate target(s), %dx%d",
                    TAG_PIPELINE, self.pass_count, self.intermediate_count,
                    self._width, self._height)

    def resize(self, width: int, height: int) -> bool:
        """Reallocate intermediate targets for a new output size.

        Returns True when the size changed. On ResourceError the previous
        size and targets stay in effect and the error propagates.
        """
        if (width, height) == (self._width, self._height):
            return False
        try:
            self._pool.ensure(width, height, self.intermediate_count)
        except ResourceError:
            logger.error("%s Resize to %dx%d failed; keeping %dx%d",
                         TAG_PIPELINE, width, height, self._width, self._height)
            raise
        logger.info("%s Resized %dx%d -> %dx%d", TAG_PIPELINE,
                    self._width, self._height, width, height)
        self._width = width
        self._height = height
        return True

    def cleanup(self) -> None:
        """Delete programs, render targets, overlays and the quad."""
        ShaderCompiler.destroy_passes(self._passes)
        self._passes = []
        self._pool.cleanup()
        if self._overlays is not None:
            self._overlays.cleanup()
        self._quad.cleanup()
        self._initialized = False
        self._state = PipelineState.IDLE
        logger.debug("%s Pipeline cleaned up", TAG_PIPELINE)

    # ------------------------------------------------------------------
    # Per-frame
    # ------------------------------------------------------------------

    def _transition(self, new_state: PipelineState) -> None:
        if not is_valid_pipeline_transition(self._state, new_state):
            raise ShaderGlassError(
                f"Invalid pipeline transition {self._state.name} -> {new_state.name}"
            )
        self._state = new_state

    def render(
        self,
        input_texture: int,
        input_width: int,
        input_height: int,
        frame_count: int,
        opacity: float,
        time_seconds: float = 0.0,
    ) -> FrameContext:
        """Run every pass for one frame and leave the result in the presentation framebuffer."""
        if not self._initialized:
            raise ShaderGlassError("Pipeline rendered before initialize()")

        if self._state is not PipelineState.IDLE:
            self._transition(PipelineState.IDLE)

        ctx = FrameContext(
            output_width=self._width,
            output_height=self._height,
            frame_count=frame_count,
            input_width=input_width,
            input_height=input_height,
            opacity=opacity,
            time_seconds=time_seconds,
        )

        bindings: List[StageBinding] = []
        current_texture = input_texture
        current_size = (input_width, input_height)
        last_index = len(self._passes) - 1
        verbose = is_verbose_logging()

        try:
            for index, shader_pass in enumerate(self._passes):
                if index == last_index:
                    target = None
                    framebuffer = self._presentation_fbo
                else:
                    target = self._pool.target_for_stage(index)
                    framebuffer = target.framebuffer

                self._transition(PipelineState.BOUND)
                self._draw_stage(shader_pass, framebuffer, current_texture, current_size, ctx)
                bindings.append(StageBinding(index, shader_pass.name, current_texture,
                                             framebuffer, current_size))
                if verbose:
                    logger.debug("%s stage %d (%s): tex %d %dx%d -> fbo %d",
                                 TAG_PIPELINE, index, shader_pass.name, current_texture,
                                 current_size[0], current_size[1], framebuffer)

                if target is not None:
                    current_texture = target.texture
                current_size = (self._width, self._height)
        except Exception:
            if self._state is PipelineState.BOUND:
                self._transition(PipelineState.IDLE)
            raise
        finally:
            gl.glUseProgram(0)
            gl.glBindTexture(gl.GL_TEXTURE_2D, 0)

        self._transition(PipelineState.PRESENTED)
        self._last_frame = ctx
        self._last_bindings = bindings
        return ctx

    def _draw_stage(
        self,
        shader_pass: ShaderPass,
        framebuffer: int,
        input_texture: int,
        input_size: Tuple[int, int],
        ctx: FrameContext,
    ) -> None:
        gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, framebuffer)
        gl.glViewport(0, 0, ctx.output_width, ctx.output_height)
        gl.glClearColor(0.0, 0.0, 0.0, 0.0)
        gl.glClear(gl.GL_COLOR_BUFFER_BIT)

        gl.glActiveTexture(gl.GL_TEXTURE0)
        gl.glBindTexture(gl.GL_TEXTURE_2D, input_texture)

        gl.glUseProgram(shader_pass.program)
        self._set_uniforms(shader_pass, input_size, ctx)
        if self._overlays is not None:
            self._overlays.bind_for(shader_pass)

        self._quad.draw()

    @staticmethod
    def _set_uniforms(shader_pass: ShaderPass, input_size: Tuple[int, int], ctx: FrameContext) -> None:
        """Set every recognized uniform the pass declared; the rest are skipped."""
        loc = shader_pass.uniforms.get
        in_w, in_h = float(input_size[0]), float(input_size[1])

        location = loc("Texture")
        if location is not None:
            gl.glUniform1i(location, 0)
        location = loc("InputSize")
        if location is not None:
            gl.glUniform2f(location, in_w, in_h)
        location = loc("TextureSize")
        if location is not None:
            gl.glUniform2f(location, in_w, in_h)
        location = loc("OutputSize")
        if location is not None:
            gl.glUniform2f(location, float(ctx.output_width), float(ctx.output_height))
        location = loc("FrameCount")
        if location is not None:
            gl.glUniform1i(location, ctx.frame_count)
        location = loc("FrameDirection")
        if location is not None:
            gl.glUniform1i(location, FRAME_DIRECTION_FORWARD)
        location = loc("MVPMatrix")
        if location is not None:
            gl.glUniformMatrix4fv(location, 1, gl.GL_FALSE, IDENTITY_MATRIX)
        location = loc("Time")
        if location is not None:
            gl.glUniform1f(location, float(ctx.time_seconds))
        location = loc("WindowOpacity")
        if location is not None:
            gl.glUniform1f(location, float(ctx.opacity))


__all__ = [
    "FRAME_DIRECTION_FORWARD",
    "FrameContext",
    "PipelineRenderer",
    "PipelineState",
    "StageBinding",
    "is_valid_pipeline_transition",
]

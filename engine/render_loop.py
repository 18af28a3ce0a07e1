"""
Single-threaded render loop.

One QTimer drives tick(): stop check, pending resize, source acquisition,
pipeline execution, buffer swap. Everything runs on the GUI thread that
owns the OpenGL context; nothing here is thread-safe.

Lifecycle:
    loop = RenderLoop(options, window, driver, overlays)
    loop.initialize()   # fatal errors propagate
    loop.start()
    app.exec()
    loop.shutdown()
"""
from __future__ import annotations

import time
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Qt, Signal
from PySide6.QtGui import QOpenGLContext

from core.errors import ResourceError, ShaderGlassError
from core.logging.logger import get_logger, is_perf_metrics_enabled
from core.logging.tags import TAG_LIFECYCLE, TAG_PERF
from core.settings.render_options import RenderOptions
from engine.frame_driver import FrameDriver
from rendering.gl_diagnostics import GLInfo, drain_gl_errors, query_gl_info
from rendering.gl_programs.overlay_textures import OverlayTextureSet
from rendering.gl_programs.shader_compiler import ShaderCompiler
from rendering.pipeline_renderer import PipelineRenderer
from rendering.render_window import RenderWindow

try:
    from OpenGL import GL as gl
except ImportError:
    gl = None

logger = get_logger(__name__)

PERF_LOG_INTERVAL_S = 5.0

EXIT_OK = 0
EXIT_FATAL = 1


class RenderLoop(QObject):
    """Drives one window through the pipeline until a stop is requested."""

    # Emitted with the exit code when the loop stops
    finished = Signal(int)

    def __init__(
        self,
        options: RenderOptions,
        window: RenderWindow,
        frame_driver: FrameDriver,
        overlays: Optional[OverlayTextureSet] = None,
        compiler: Optional[ShaderCompiler] = None,
    ):
        super().__init__()
        self._options = options
        self._window = window
        self._driver = frame_driver
        self._overlays = overlays
        self._compiler = compiler or ShaderCompiler()

        self._context = QOpenGLContext(self)
        self._renderer: Optional[PipelineRenderer] = None
        self._gl_info: Optional[GLInfo] = None

        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self._on_timer)

        self._running = False
        self._stopped = False
        self._skipping = False
        self._exit_code = EXIT_OK
        self._fatal_error: Optional[BaseException] = None
        self._frame_count = 0
        self._start_time = time.monotonic()

        self._perf_window_start = 0.0
        self._perf_window_frames = 0

        window.stop_requested.connect(self._on_stop_requested)

    @property
    def renderer(self) -> Optional[PipelineRenderer]:
        return self._renderer

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def exit_code(self) -> int:
        return self._exit_code

    @property
    def fatal_error(self) -> Optional[BaseException]:
        return self._fatal_error

    @property
    def gl_info(self) -> Optional[GLInfo]:
        return self._gl_info

    def is_running(self) -> bool:
        return self._running

    def initialize(self) -> None:
        """Create the context, enable blending and build the pipeline.

        Raises:
            ResourceError: the context could not be created or made current
            ConfigError, CompileError, LinkError: the pipeline could not be built
        """
        self._context.setFormat(self._window.requestedFormat())
        if not self._context.create():
            raise ResourceError("Failed to create OpenGL context")
        if not self._context.makeCurrent(self._window):
            raise ResourceError("Failed to make OpenGL context current")

        self._gl_info = query_gl_info()

        gl.glEnable(gl.GL_BLEND)
        gl.glBlendFunc(gl.GL_SRC_ALPHA, gl.GL_ONE_MINUS_SRC_ALPHA)

        width, height = self._window.framebuffer_size()
        if width <= 0 or height <= 0:
            width, height = self._options.width, self._options.height
        self._window.take_pending_resize()

        self._renderer = PipelineRenderer.from_paths(
            self._options.shader_paths,
            width,
            height,
            overlays=self._overlays,
            presentation_fbo=self._context.defaultFramebufferObject(),
            compiler=self._compiler,
        )
        drain_gl_errors("pipeline initialization")
        logger.info("%s Render loop initialized at %dx%d", TAG_LIFECYCLE, width, height)

    def start(self) -> None:
        if self._renderer is None:
            raise ShaderGlassError("RenderLoop.start() before initialize()")
        self._running = True
        self._start_time = time.monotonic()
        self._perf_window_start = self._start_time
        self._perf_window_frames = 0
        # Vsync throttles swapBuffers; without it the loop runs as fast as it can.
        self._timer.start(0)
        logger.info("%s Render loop started", TAG_LIFECYCLE)

    def _on_stop_requested(self) -> None:
        self.stop(EXIT_OK)

    def stop(self, exit_code: int = EXIT_OK) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._running = False
        self._exit_code = exit_code
        self._timer.stop()
        logger.info("%s Render loop stopped after %d frame(s) (code=%d)",
                    TAG_LIFECYCLE, self._frame_count, exit_code)
        self.finished.emit(exit_code)

    def _on_timer(self) -> None:
        try:
            self.tick()
        except Exception as e:
            logger.exception("Fatal error in render loop: %s", e)
            self._fatal_error = e
            self.stop(EXIT_FATAL)

    def tick(self) -> bool:
        """Run one frame. Returns False once the loop has stopped."""
        if self._stopped:
            return False
        if self._window.is_stop_requested():
            self.stop(EXIT_OK)
            return False

        if not self._context.makeCurrent(self._window):
            logger.warning("%s makeCurrent failed, skipping frame", TAG_LIFECYCLE)
            return True

        pending = self._window.take_pending_resize()
        if pending is not None:
            self._apply_resize(*pending)

        if self._skipping or not self._window.isExposed():
            return True

        texture_id, input_width, input_height = self._driver.next_frame()

        renderer = self._renderer
        renderer.presentation_fbo = self._context.defaultFramebufferObject()
        renderer.render(
            texture_id,
            input_width,
            input_height,
            frame_count=self._frame_count,
            opacity=self._options.opacity,
            time_seconds=time.monotonic() - self._start_time,
        )
        self._context.swapBuffers(self._window)
        self._frame_count += 1
        self._record_perf()
        return True

    def _apply_resize(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            if not self._skipping:
                logger.info("%s Window minimized or zero-sized, pausing rendering", TAG_LIFECYCLE)
            self._skipping = True
            return
        if self._skipping:
            logger.info("%s Window restored at %dx%d", TAG_LIFECYCLE, width, height)
        self._skipping = False
        # ResourceError propagates: the pipeline keeps its last good size but
        # the loop must not continue with mismatched dimensions.
        self._renderer.resize(width, height)

    def _record_perf(self) -> None:
        if not is_perf_metrics_enabled():
            return
        self._perf_window_frames += 1
        now = time.monotonic()
        elapsed = now - self._perf_window_start
        if elapsed >= PERF_LOG_INTERVAL_S:
            stats = self._driver.get_stats()
            logger.info("%s avg_fps=%.1f frames=%d source=%s capture_failures=%d",
                        TAG_PERF, self._perf_window_frames / elapsed, self._frame_count,
                        stats['source_kind'], stats['capture_failures'])
            self._perf_window_start = now
            self._perf_window_frames = 0

    def shutdown(self) -> None:
        """Release every GL object and the context."""
        self._timer.stop()
        if self._context.isValid() and self._context.makeCurrent(self._window):
            if self._renderer is not None:
                self._renderer.cleanup()
            self._driver.release()
            self._context.doneCurrent()
        self._renderer = None
        logger.info("%s Render loop shut down", TAG_LIFECYCLE)

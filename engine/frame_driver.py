"""
Frame acquisition policy for the render loop.

Each frame the driver asks the capture source for a fresh image. When the
capture cannot deliver, the last captured frame stays on screen; when no
capture has ever succeeded, the synthetic fallback pattern is shown.

Capture is a bounded poll. After FAILURE_BACKOFF_THRESHOLD consecutive
failures the driver only polls every FAILURE_BACKOFF_INTERVAL frames until
a grab succeeds again.
"""
import time
from typing import Optional, Tuple

from core.errors import CaptureError, ShaderGlassError
from core.logging.logger import get_logger, is_perf_metrics_enabled
from core.logging.tags import TAG_CAPTURE, TAG_FALLBACK, TAG_PERF
from rendering.gl_programs.texture_manager import BaseTexture
from sources.base_provider import SourceFrame, SourceProvider

logger = get_logger(__name__)

FAILURE_BACKOFF_THRESHOLD = 30
FAILURE_BACKOFF_INTERVAL = 15
SLOW_GRAB_MS = 25.0

KIND_CAPTURE = "capture"
KIND_HELD = "held"
KIND_PATTERN = "pattern"


class FrameDriver:
    """
    Chooses each frame's source image and keeps it resident in the BaseTexture.

    Features:
    - Capture preferred, last good capture held, pattern as last resort
    - Failure backoff for capture backends that keep failing
    - In-place texture updates unless the frame size changes
    - Skips uploads when the chosen frame is already resident
    """

    def __init__(
        self,
        capture: Optional[SourceProvider],
        fallback: SourceProvider,
        texture: Optional[BaseTexture] = None,
    ):
        """
        Args:
            capture: Capture source, or None when capture is disabled
            fallback: Synthetic source that always delivers a frame
            texture: BaseTexture to upload into; one is created if omitted
        """
        self._capture = capture
        self._fallback = fallback
        self._texture = texture or BaseTexture()

        self._current: Optional[SourceFrame] = None
        self._resident: Optional[SourceFrame] = None
        self._last_capture: Optional[SourceFrame] = None
        self._source_kind: Optional[str] = None

        self._consecutive_failures = 0
        self._frames_since_poll = 0

        # Statistics
        self.captured_frames = 0
        self.held_frames = 0
        self.pattern_frames = 0
        self.capture_failures = 0
        self.skipped_polls = 0

    @property
    def texture(self) -> BaseTexture:
        return self._texture

    @property
    def source_kind(self) -> Optional[str]:
        """'capture', 'held' or 'pattern' for the most recent frame."""
        return self._source_kind

    @property
    def current_frame(self) -> Optional[SourceFrame]:
        return self._current

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def in_backoff(self) -> bool:
        return self._consecutive_failures >= FAILURE_BACKOFF_THRESHOLD

    def _should_poll_capture(self) -> bool:
        if not self.in_backoff:
            return True
        self._frames_since_poll += 1
        if self._frames_since_poll >= FAILURE_BACKOFF_INTERVAL:
            self._frames_since_poll = 0
            return True
        self.skipped_polls += 1
        return False

    def _poll_capture(self) -> Optional[SourceFrame]:
        start = time.perf_counter()
        try:
            frame = self._capture.try_grab()
        except CaptureError as e:
            frame = None
            if self._consecutive_failures == 0:
                logger.warning("%s %s", TAG_CAPTURE, e)
            else:
                logger.debug("%s %s", TAG_CAPTURE, e)
        except Exception as e:
            # Backend faults outside CaptureError count as a failed grab.
            frame = None
            if self._consecutive_failures == 0:
                logger.exception("%s Unexpected capture failure: %s", TAG_CAPTURE, e)
            else:
                logger.debug("%s Unexpected capture failure: %s", TAG_CAPTURE, e)

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms > SLOW_GRAB_MS and is_perf_metrics_enabled():
            logger.debug("%s Slow capture: %.2fms", TAG_PERF, elapsed_ms)

        if frame is None:
            self._consecutive_failures += 1
            self.capture_failures += 1
            if self._consecutive_failures == FAILURE_BACKOFF_THRESHOLD:
                logger.warning("%s %d consecutive capture failures, polling every %d frames",
                               TAG_CAPTURE, FAILURE_BACKOFF_THRESHOLD, FAILURE_BACKOFF_INTERVAL)
            return None

        if self.in_backoff:
            logger.info("%s Capture recovered after %d failures", TAG_CAPTURE, self._consecutive_failures)
        self._consecutive_failures = 0
        self._frames_since_poll = 0
        return frame

    def _set_kind(self, kind: str, frame: SourceFrame) -> None:
        if kind == self._source_kind:
            return
        if kind == KIND_CAPTURE:
            logger.info("%s Using live capture (%dx%d)", TAG_CAPTURE, frame.width, frame.height)
        elif kind == KIND_HELD:
            logger.info("%s Capture unavailable, holding last frame (%dx%d)",
                        TAG_FALLBACK, frame.width, frame.height)
        else:
            logger.info("%s Showing %s pattern (%dx%d)",
                        TAG_FALLBACK, self._fallback.name, frame.width, frame.height)
        self._source_kind = kind

    def acquire(self) -> SourceFrame:
        """Pick this frame's source image according to the fallback policy."""
        frame: Optional[SourceFrame] = None
        if self._capture is not None and self._should_poll_capture():
            frame = self._poll_capture()

        if frame is not None:
            self._last_capture = frame
            self.captured_frames += 1
            kind = KIND_CAPTURE
        elif self._last_capture is not None:
            frame = self._last_capture
            self.held_frames += 1
            kind = KIND_HELD
        else:
            frame = self._fallback.try_grab()
            if frame is None:
                raise ShaderGlassError(f"Fallback source {self._fallback.name} produced no frame")
            self.pattern_frames += 1
            kind = KIND_PATTERN

        self._set_kind(kind, frame)
        self._current = frame
        return frame

    def bind(self) -> Tuple[int, int, int]:
        """Make the current frame resident; returns ``(texture_id, width, height)``."""
        frame = self._current if self._current is not None else self.acquire()
        if frame is not self._resident:
            self._texture.upload(frame.pixels)
            self._resident = frame
        return self._texture.texture_id, frame.width, frame.height

    def next_frame(self) -> Tuple[int, int, int]:
        """acquire() then bind()."""
        self.acquire()
        return self.bind()

    def get_stats(self) -> dict:
        return {
            'source_kind': self._source_kind,
            'captured_frames': self.captured_frames,
            'held_frames': self.held_frames,
            'pattern_frames': self.pattern_frames,
            'capture_failures': self.capture_failures,
            'skipped_polls': self.skipped_polls,
            'texture_reallocations': self._texture.reallocations,
            'texture_updates': self._texture.updates,
        }

    def release(self) -> None:
        """Delete the BaseTexture and close both sources."""
        self._texture.release()
        self._resident = None
        if self._capture is not None:
            self._capture.close()
        self._fallback.close()


def build_fallback_source(options) -> SourceProvider:
    """Gradient or solid fallback at the initial output size."""
    from sources.pattern_source import SolidColorSource, TestPatternSource

    color = options.pattern_color
    if color is None:
        return TestPatternSource(options.width, options.height)
    return SolidColorSource(options.width, options.height, color)


def build_frame_driver(options) -> FrameDriver:
    """Wire capture and fallback sources from RenderOptions."""
    capture: Optional[SourceProvider] = None
    if options.capture_enabled:
        from sources.capture_source import ScreenCaptureSource

        capture = ScreenCaptureSource(options.screen_index)
        if not capture.is_available():
            logger.warning("%s No screen available for capture, using fallback only", TAG_FALLBACK)
            capture = None
    else:
        logger.info("%s Capture disabled, using fallback only", TAG_FALLBACK)
    return FrameDriver(capture, build_fallback_source(options))

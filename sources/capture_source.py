"""
Screen capture source backed by Qt.

Grabs the whole of one QScreen each call. Display-server specifics
(X11 visuals, channel masks, DPI scaling) are left to Qt; the frame is
converted to RGBA8888 before it reaches the pipeline.
"""
from typing import Optional

from PySide6.QtGui import QGuiApplication, QScreen

from core.errors import CaptureError
from core.logging.tags import TAG_CAPTURE
from sources.base_provider import SourceFrame, SourceKind, SourceProvider
from sources.qimage_frames import qimage_to_rgba


class ScreenCaptureSource(SourceProvider):
    """
    Capture provider for a single screen.

    Wayland sessions and some virtual platforms hand back null pixmaps;
    that is reported as "no frame", not as an error.
    """

    def __init__(self, screen_index: int = 0):
        """
        Initialize the capture source.

        Args:
            screen_index: Index into QGuiApplication.screens(); falls back to
                the primary screen when out of range
        """
        super().__init__("capture")
        self._screen_index = screen_index
        self._warned_null = False

    @property
    def screen_index(self) -> int:
        return self._screen_index

    def _screen(self) -> Optional[QScreen]:
        if QGuiApplication.instance() is None:
            return None
        screens = QGuiApplication.screens()
        if 0 <= self._screen_index < len(screens):
            return screens[self._screen_index]
        return QGuiApplication.primaryScreen()

    def is_available(self) -> bool:
        return self._screen() is not None

    def try_grab(self) -> Optional[SourceFrame]:
        screen = self._screen()
        if screen is None:
            return None

        try:
            pixmap = screen.grabWindow(0)
        except RuntimeError as e:
            raise CaptureError(f"Screen grab failed on {screen.name()}: {e}") from e

        if pixmap is None or pixmap.isNull():
            if not self._warned_null:
                self._logger.warning("%s %s returned an empty grab", TAG_CAPTURE, screen.name())
                self._warned_null = True
            return None

        pixels = qimage_to_rgba(pixmap.toImage())
        if pixels.size == 0:
            return None
        self._warned_null = False
        return SourceFrame.from_pixels(pixels, SourceKind.CAPTURE)

    def __repr__(self) -> str:
        """Developer representation."""
        return f"<{self.__class__.__name__} screen_index={self._screen_index}>"

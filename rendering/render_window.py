"""
Output window for the pass chain.

A plain QWindow with an OpenGL surface; the render loop owns the context.
Resizes are recorded as pending and applied by the loop between frames,
never from inside the resize event.
"""
from __future__ import annotations

from typing import Optional, Tuple

from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtGui import QKeyEvent, QResizeEvent, QSurface, QSurfaceFormat, QWindow

from core.logging.logger import get_logger
from core.logging.tags import TAG_LIFECYCLE

logger = get_logger(__name__)

EXIT_KEYS = (Qt.Key.Key_Escape, Qt.Key.Key_Q)


class RenderWindow(QWindow):
    """Translucent OpenGL window the last pass presents into."""

    # Emitted once, on the first stop request (exit key or close)
    stop_requested = Signal()

    def __init__(
        self,
        width: int,
        height: int,
        opacity: float,
        surface_format: Optional[QSurfaceFormat] = None,
        title: str = "ShaderGlass",
    ):
        super().__init__()
        self.setSurfaceType(QSurface.SurfaceType.OpenGLSurface)
        if surface_format is not None:
            self.setFormat(surface_format)
        self.setTitle(title)
        self.setOpacity(opacity)
        self.resize(width, height)

        self._pending_size: Optional[Tuple[int, int]] = None
        self._stop = False

    def framebuffer_size(self) -> Tuple[int, int]:
        """Window size in device pixels."""
        dpr = self.devicePixelRatio()
        return (max(0, int(round(self.width() * dpr))), max(0, int(round(self.height() * dpr))))

    def resizeEvent(self, event: QResizeEvent) -> None:
        super().resizeEvent(event)
        self._pending_size = self.framebuffer_size()

    def take_pending_resize(self) -> Optional[Tuple[int, int]]:
        """Return and clear the size recorded by the last resize event."""
        size = self._pending_size
        self._pending_size = None
        return size

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() in EXIT_KEYS:
            logger.info("%s Exit key pressed (%s), requesting stop", TAG_LIFECYCLE, event.key())
            self.request_stop()
            event.accept()
            return
        super().keyPressEvent(event)

    def event(self, event: QEvent) -> bool:
        if event.type() == QEvent.Type.Close:
            self.request_stop()
        return super().event(event)

    def request_stop(self) -> None:
        if self._stop:
            return
        self._stop = True
        self.stop_requested.emit()

    def is_stop_requested(self) -> bool:
        return self._stop

"""QImage to numpy conversion shared by the capture backend and image overlays."""
from __future__ import annotations

import numpy as np
from PySide6.QtGui import QImage


def qimage_to_rgba(image: QImage) -> np.ndarray:
    """Copy a QImage into a ``(h, w, 4)`` uint8 RGBA array, top row first.

    Qt performs any pixel-format unpacking; scanline padding
    (``bytesPerLine`` beyond ``width * 4``) is dropped.
    """
    converted = image.convertToFormat(QImage.Format.Format_RGBA8888)
    width = converted.width()
    height = converted.height()
    if width <= 0 or height <= 0:
        return np.zeros((0, 0, 4), dtype=np.uint8)

    stride = converted.bytesPerLine()
    buffer = np.frombuffer(converted.constBits(), dtype=np.uint8, count=stride * height)
    rows = buffer.reshape(height, stride)[:, : width * 4]
    return rows.reshape(height, width, 4).copy()


__all__ = ["qimage_to_rgba"]

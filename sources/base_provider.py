"""
Base source provider interface for ShaderGlass.

Defines the abstract interface every frame source implements. The render
loop only ever sees this interface, never a concrete capture backend.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from core.logging.logger import get_logger

logger = get_logger(__name__)


class SourceKind(Enum):
    """Where a frame came from."""
    CAPTURE = "capture"
    PATTERN = "pattern"


@dataclass(frozen=True)
class SourceFrame:
    """
    One input image for the pass chain.

    ``pixels`` is a ``(height, width, 4)`` uint8 RGBA array, top row first.
    """
    pixels: np.ndarray
    width: int
    height: int
    origin: SourceKind

    def __post_init__(self):
        """Validate the pixel buffer against the declared size."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"SourceFrame must have a positive size, got {self.width}x{self.height}")
        expected = (self.height, self.width, 4)
        if tuple(self.pixels.shape) != expected:
            raise ValueError(f"SourceFrame pixels shaped {self.pixels.shape}, expected {expected}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"SourceFrame pixels must be uint8, got {self.pixels.dtype}")

    @classmethod
    def from_pixels(cls, pixels: np.ndarray, origin: SourceKind) -> "SourceFrame":
        """Build a frame whose size is read from the array shape."""
        return cls(pixels=pixels, width=int(pixels.shape[1]), height=int(pixels.shape[0]), origin=origin)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.origin.value} frame {self.width}x{self.height}"


class SourceProvider(ABC):
    """
    Abstract base class for frame sources.

    Implementations may legitimately fail on any call; failure is reported
    as ``None`` (or CaptureError, which the frame driver absorbs), never as
    a crash of the render loop.
    """

    def __init__(self, name: str):
        """
        Initialize the provider.

        Args:
            name: Short identifier used in logs
        """
        self._name = name
        self._logger = logger.getChild(name)

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def try_grab(self) -> Optional[SourceFrame]:
        """
        Produce the current frame.

        This is a bounded, best-effort poll: it must return promptly and
        never wait for a frame to become available.

        Returns:
            A SourceFrame, or None when no frame is available right now

        Raises:
            CaptureError: The backend failed in a way worth logging
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this source can currently deliver frames at all.

        Returns:
            True if source is available, False otherwise
        """
        pass

    def close(self) -> None:
        """Release backend resources. Default is a no-op."""

    def __str__(self) -> str:
        """String representation."""
        return self._name

    def __repr__(self) -> str:
        """Developer representation."""
        return f"<{self.__class__.__name__} name={self._name}>"

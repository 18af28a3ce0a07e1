"""Frame sources: screen capture and synthetic fallbacks."""

from .base_provider import SourceFrame, SourceKind, SourceProvider
from .pattern_source import SolidColorSource, TestPatternSource

__all__ = ['SourceFrame', 'SourceKind', 'SourceProvider', 'SolidColorSource', 'TestPatternSource']

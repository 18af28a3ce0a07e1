"""Standard logging tags for consistent log filtering.

Usage:
    from core.logging.tags import TAG_PERF
    logger.info("%s avg_fps=%.1f", TAG_PERF, fps)
"""

TAG_PERF = "[PERF]"
"""Performance metrics (frame rate, slow captures)."""

TAG_GL = "[GL]"
"""GL object creation and deletion."""

TAG_PIPELINE = "[PIPELINE]"
"""Pass chain construction, resize and teardown."""

TAG_CAPTURE = "[CAPTURE]"
"""Screen capture backend."""

TAG_FALLBACK = "[FALLBACK]"
"""Fallback operations when the primary path fails."""

TAG_LIFECYCLE = "[LIFECYCLE]"
"""Render loop start/stop."""

__all__ = [
    "TAG_PERF",
    "TAG_GL",
    "TAG_PIPELINE",
    "TAG_CAPTURE",
    "TAG_FALLBACK",
    "TAG_LIFECYCLE",
]

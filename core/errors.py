"""
Exception hierarchy for ShaderGlass.

Every error the pipeline raises derives from ShaderGlassError, which is a
RuntimeError so callers that only catch RuntimeError keep working.

Fatal at startup:
- ConfigError: malformed command-line values or unreadable shader paths
- CompileError / LinkError: shader text rejected by the driver
- ResourceError: framebuffer incomplete or texture allocation failure

Recoverable per frame:
- CaptureError: the capture source could not deliver a frame
"""
from __future__ import annotations

from typing import Optional


class ShaderGlassError(RuntimeError):
    """Base class for all ShaderGlass errors."""


class ConfigError(ShaderGlassError):
    """Invalid configuration value supplied on the command line or in settings."""


class CompileError(ShaderGlassError):
    """A shader stage failed to compile.

    Attributes:
        stage: "vertex" or "fragment"
        info_log: Driver-reported diagnostic text
        pass_name: Name of the pass being built (file stem or "default")
    """

    def __init__(self, stage: str, info_log: str, pass_name: Optional[str] = None):
        self.stage = stage
        self.info_log = info_log
        self.pass_name = pass_name
        label = f"{pass_name} " if pass_name else ""
        super().__init__(f"{label}{stage} shader compile failed: {info_log}")


class LinkError(ShaderGlassError):
    """A shader program failed to link."""

    def __init__(self, info_log: str, pass_name: Optional[str] = None):
        self.info_log = info_log
        self.pass_name = pass_name
        label = f"{pass_name} " if pass_name else ""
        super().__init__(f"{label}program link failed: {info_log}")


class ResourceError(ShaderGlassError):
    """A GPU resource (framebuffer, texture) could not be allocated."""


class CaptureError(ShaderGlassError):
    """The capture source could not deliver a frame this time."""

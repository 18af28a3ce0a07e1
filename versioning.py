"""Centralised version and naming information for ShaderGlass.

This module is the single source of truth for application version,
executable name, and human-readable metadata. The runtime and the settings
store read these names.
"""
from __future__ import annotations


APP_NAME: str = "ShaderGlassCRT"
APP_EXE_NAME: str = "shaderglass"
APP_VERSION: str = "0.3.0"
APP_DESCRIPTION: str = "ShaderGlass CRT - live screen capture through a chain of GLSL fragment passes."
APP_ORGANIZATION: str = "ShaderGlass"


def version_banner() -> str:
    """One-line banner logged at startup."""
    return f"{APP_NAME} {APP_VERSION}"


__all__ = [
    "APP_NAME",
    "APP_EXE_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "APP_ORGANIZATION",
    "version_banner",
]

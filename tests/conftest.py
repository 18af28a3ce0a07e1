"""
Shared pytest fixtures for ShaderGlass tests.
"""
import os
import sys

import pytest

# Headless runs (CI, containers) have no display server.
if sys.platform.startswith("linux") and not os.environ.get("DISPLAY") and not os.environ.get("WAYLAND_DISPLAY"):
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtGui import QGuiApplication

from tests._fake_gl import FakeGL

GL_MODULES = (
    "rendering.gl_programs.shader_compiler",
    "rendering.gl_programs.render_targets",
    "rendering.gl_programs.texture_manager",
    "rendering.gl_programs.geometry_manager",
    "rendering.gl_programs.overlay_textures",
    "rendering.pipeline_renderer",
    "rendering.gl_diagnostics",
    "engine.render_loop",
)


@pytest.fixture(scope='session')
def qt_app():
    """Create QGuiApplication instance for tests."""
    app = QGuiApplication.instance()
    if app is None:
        app = QGuiApplication(sys.argv[:1])
    yield app
    # Don't quit - causes issues with pytest


@pytest.fixture
def fake_gl(monkeypatch):
    """Swap the PyOpenGL module in every GL-using module for a recording fake."""
    import importlib

    fake = FakeGL()
    for name in GL_MODULES:
        module = importlib.import_module(name)
        monkeypatch.setattr(module, "gl", fake)
    return fake


@pytest.fixture
def settings_store():
    """QSettings store the test SettingsManager reads from, cleared around each test."""
    from PySide6.QtCore import QSettings
    store = QSettings("Test", "ShaderGlassTest")
    store.clear()
    yield store
    store.clear()
    store.sync()


@pytest.fixture
def settings_manager(settings_store):
    """Create SettingsManager instance for testing."""
    from core.settings import SettingsManager
    return SettingsManager(organization="Test", application="ShaderGlassTest")


@pytest.fixture
def write_shader(tmp_path):
    """Write GLSL text to a temp file and return its path."""
    def _write(name: str, source: str):
        path = tmp_path / f"{name}.glsl"
        path.write_text(source, encoding="utf-8")
        return path
    return _write

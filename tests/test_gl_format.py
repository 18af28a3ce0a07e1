"""
Tests for surface format construction.
"""
from PySide6.QtGui import QSurfaceFormat

from rendering.gl_format import (
    SurfacePreferences,
    build_surface_format,
    read_surface_preferences,
)


class TestReadSurfacePreferences:
    """Tests for resolving preferences."""

    def test_defaults_without_settings(self):
        """Test vsync on, 8-bit alpha, no depth or stencil."""
        prefs = read_surface_preferences()

        assert prefs == SurfacePreferences(refresh_sync=True, alpha_bits=8, depth_bits=0, stencil_bits=0)

    def test_explicit_refresh_sync_wins(self, settings_manager, settings_store):
        """Test the command-line vsync choice overrides the stored one."""
        settings_store.setValue('display.refresh_sync', True)

        prefs = read_surface_preferences(settings_manager, refresh_sync=False)

        assert prefs.refresh_sync is False

    def test_stored_refresh_sync(self, settings_manager, settings_store):
        """Test the stored vsync value is read when no override is given."""
        settings_store.setValue('display.refresh_sync', "false")

        assert read_surface_preferences(settings_manager).refresh_sync is False

    def test_bad_alpha_falls_back(self, settings_manager, settings_store):
        """Test an unparsable alpha size falls back to 8 bits."""
        settings_store.setValue('display.gl_alpha_bits', "lots")

        assert read_surface_preferences(settings_manager).alpha_bits == 8


class TestBuildSurfaceFormat:
    """Tests for the QSurfaceFormat produced."""

    def test_core_profile_33(self):
        """Test the format requests a 3.3 core double-buffered context."""
        fmt = build_surface_format(SurfacePreferences())

        assert (fmt.majorVersion(), fmt.minorVersion()) == (3, 3)
        assert fmt.profile() == QSurfaceFormat.OpenGLContextProfile.CoreProfile
        assert fmt.swapBehavior() == QSurfaceFormat.SwapBehavior.DoubleBuffer
        assert fmt.alphaBufferSize() == 8
        assert fmt.depthBufferSize() == 0
        assert fmt.stencilBufferSize() == 0

    def test_swap_interval_follows_vsync(self):
        """Test vsync maps to swap interval 1 and its absence to 0."""
        assert build_surface_format(SurfacePreferences(refresh_sync=True)).swapInterval() == 1
        assert build_surface_format(SurfacePreferences(refresh_sync=False)).swapInterval() == 0

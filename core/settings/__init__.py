"""Settings package: persisted defaults and per-run render options."""
from core.settings.settings_manager import SettingsManager
from core.settings.render_options import RenderOptions, parse_render_args

__all__ = ['SettingsManager', 'RenderOptions', 'parse_render_args']

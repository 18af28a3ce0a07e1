"""
Settings manager implementation for ShaderGlass.

Uses QSettings for persistent storage of the defaults the command line
falls back to. The render process only reads settings; command-line values
are never written back.
"""
from typing import Any, Dict, List
from PySide6.QtCore import QSettings
from core.logging.logger import get_logger, is_verbose_logging

logger = get_logger('SettingsManager')

DEFAULT_SETTINGS: Dict[str, Any] = {
    # Output window
    'display.width': 1280,
    'display.height': 720,
    'display.opacity': 0.8,
    'display.refresh_sync': True,
    # Capture
    'capture.enabled': True,
    'capture.screen_index': 0,
    # Fallback pattern: 'gradient' or '#RRGGBB'
    'capture.fallback_pattern': 'gradient',
    # Pass chain
    'shaders.paths': [],
    'overlays.noise': False,
    'overlays.image_path': '',
}


class SettingsManager:
    """
    Read access to the persisted defaults.

    Uses QSettings for persistent storage with organization/application name.
    Missing keys are seeded from DEFAULT_SETTINGS on construction so the
    store documents every supported key.
    """

    def __init__(self, organization: str = "ShaderGlass",
                 application: str = "ShaderGlassCRT"):
        """
        Initialize the settings manager.

        Args:
            organization: Organization name for QSettings
            application: Application name for QSettings
        """
        self._settings = QSettings(organization, application)
        self._organization = organization
        self._application = application

        self._set_defaults()
        logger.info("SettingsManager initialized (%s/%s)", organization, application)

    def _set_defaults(self) -> None:
        """Set default values if not already present."""
        for key, value in DEFAULT_SETTINGS.items():
            if not self._settings.contains(key):
                self._settings.setValue(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            key: Setting key in dot notation (e.g., 'display.width')
            default: Default value if key not found
        """
        value = self._settings.value(key, default)
        if is_verbose_logging():
            logger.debug("Setting read: %s = %r", key, value)
        return value

    @staticmethod
    def to_bool(value: Any, default: bool = False) -> bool:
        """Normalize a stored setting value to bool.

        QSettings backends on some platforms hand booleans back as the
        strings "true"/"false", so string forms are accepted too.
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("true", "1", "yes", "on"):
                return True
            if v in ("false", "0", "no", "off"):
                return False
            return default
        if value is None:
            return default
        return bool(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Convenience wrapper around get() that normalizes to bool."""
        return self.to_bool(self.get(key, default), default)

    def get_list(self, key: str) -> List[str]:
        """Return a list-valued setting, tolerating QSettings' scalar collapse.

        INI backends store a one-element list as a bare string and an empty
        list as None.
        """
        raw = self.get(key, [])
        if raw is None or raw == '':
            return []
        if isinstance(raw, str):
            return [raw]
        return [str(item) for item in raw]

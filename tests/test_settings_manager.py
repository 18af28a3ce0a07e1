"""
Tests for SettingsManager.

Tests the settings functionality including:
- Default population
- Reads and bool/list normalisation
"""
from unittest.mock import patch

import pytest
from PySide6.QtCore import QSettings

from core.settings.settings_manager import DEFAULT_SETTINGS, SettingsManager


def _dict_backed_qsettings(stored):
    """Patch QSettings so reads and writes go to ``stored``."""
    def mock_set(key, value):
        stored[key] = value

    def mock_get(key, default=None):
        return stored.get(key, default)

    def mock_contains(key):
        return key in stored

    return (
        patch.object(QSettings, 'setValue', side_effect=mock_set),
        patch.object(QSettings, 'value', side_effect=mock_get),
        patch.object(QSettings, 'contains', side_effect=mock_contains),
    )


class TestDefaults:
    """Tests for default population."""

    def test_defaults_written_when_missing(self):
        """Test every default key is stored on first construction."""
        stored = {}
        set_p, get_p, contains_p = _dict_backed_qsettings(stored)
        with set_p, get_p, contains_p:
            SettingsManager(organization="TestOrg", application="TestApp")

        assert set(stored) == set(DEFAULT_SETTINGS)
        assert stored['display.width'] == 1280

    def test_existing_values_not_overwritten(self):
        """Test stored values survive construction."""
        stored = {'display.width': 640}
        set_p, get_p, contains_p = _dict_backed_qsettings(stored)
        with set_p, get_p, contains_p:
            manager = SettingsManager(organization="TestOrg", application="TestApp")
            assert manager.get('display.width') == 640


class TestReads:
    """Tests for get and normalisation helpers."""

    def test_get_reads_stored_value(self, settings_manager, settings_store):
        """Test get returns what the store holds."""
        settings_store.setValue('display.height', 333)

        assert int(settings_manager.get('display.height')) == 333

    def test_get_missing_key_returns_default(self, settings_manager):
        """Test unknown keys fall back to the caller default."""
        assert settings_manager.get('display.unknown', 42) == 42

    @pytest.mark.parametrize("raw, expected", [
        (True, True),
        ("true", True),
        ("1", True),
        ("off", False),
        ("false", False),
        (None, False),
        (0, False),
    ])
    def test_to_bool(self, raw, expected):
        """Test to_bool normalises QSettings string forms."""
        assert SettingsManager.to_bool(raw) is expected

    def test_to_bool_unknown_string_uses_default(self):
        """Test unrecognized strings fall back to the default."""
        assert SettingsManager.to_bool("maybe", default=True) is True

    @pytest.mark.parametrize("raw, expected", [
        (None, []),
        ('', []),
        ("only.glsl", ["only.glsl"]),
        (["a.glsl", "b.glsl"], ["a.glsl", "b.glsl"]),
    ])
    def test_get_list_tolerates_collapse(self, raw, expected):
        """Test scalar-collapsed lists come back as lists."""
        stored = {'shaders.paths': raw}
        set_p, get_p, contains_p = _dict_backed_qsettings(stored)
        with set_p, get_p, contains_p:
            manager = SettingsManager(organization="TestOrg", application="TestApp")
            assert manager.get_list('shaders.paths') == expected


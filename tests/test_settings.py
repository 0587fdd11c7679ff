"""Tests for tool settings persistence."""

import pytest
from PySide6.QtCore import QSettings

from pinmark.settings import SETTINGS_KEY, AnnotatorSettings, load_settings, save_settings


@pytest.fixture
def qsettings(tmp_path, qapp):
    return QSettings(str(tmp_path / "pinmark.ini"), QSettings.Format.IniFormat)


class TestAnnotatorSettings:
    def test_defaults(self):
        s = AnnotatorSettings()
        assert s.overlap_threshold == 1.0
        assert s.connect_threshold == 1.0
        assert s.continue_threshold == 2.0
        assert s.preview_color == "#ffeb3b"
        assert s.final_color == "#555555"
        assert s.highlight_opacity == 0.3

    def test_from_dict_ignores_unknown(self):
        s = AnnotatorSettings.from_dict({"stroke_width": 6, "theme": "dark"})
        assert s.stroke_width == 6
        assert not hasattr(s, "theme")

    def test_dict_roundtrip(self):
        s = AnnotatorSettings(overlap_threshold=3, icon_url="")
        assert AnnotatorSettings.from_dict(s.to_dict()) == s


class TestQSettingsStorage:
    def test_missing_gives_defaults(self, qsettings):
        assert load_settings(qsettings) == AnnotatorSettings()

    def test_save_and_load(self, qsettings):
        values = AnnotatorSettings(overlap_threshold=2.5, final_color="#222222")
        save_settings(qsettings, values)
        assert load_settings(qsettings) == values

    def test_persisted_to_file(self, tmp_path, qsettings):
        save_settings(qsettings, AnnotatorSettings(stroke_width=8))
        reopened = QSettings(str(tmp_path / "pinmark.ini"), QSettings.Format.IniFormat)
        assert load_settings(reopened).stroke_width == 8

    def test_broken_value_gives_defaults(self, qsettings):
        qsettings.setValue(SETTINGS_KEY, "{not json")
        assert load_settings(qsettings) == AnnotatorSettings()

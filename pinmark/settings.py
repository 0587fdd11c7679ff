"""Tool settings shared by drawing and export."""

from dataclasses import dataclass, asdict, fields
import json
import logging

from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

SETTINGS_KEY = "annotator_settings"

DEFAULT_ICON_URL = "https://jb-glass-uat-apis.jarvistechnolabs.com/pdf-pin-design/shape-icon.svg"


@dataclass
class AnnotatorSettings:
    """Thresholds, colors and rendering options."""
    # Freehand drawing, all in page percentages
    overlap_threshold: float = 1.0
    connect_threshold: float = 1.0
    simplify_tolerance: float = 1.0
    continue_threshold: float = 2.0
    erase_threshold: float = 2.0
    stroke_width: float = 12.0
    preview_color: str = "#ffeb3b"
    final_color: str = "#555555"

    # Export
    highlight_opacity: float = 0.3
    note_opacity: float = 0.2
    stroke_opacity: float = 0.3
    pin_size: float = 19.2
    interpolation_step: float = 1.0
    max_interpolation_steps: int = 200
    icon_url: str = DEFAULT_ICON_URL
    icon_fill: str = "#000000"
    icon_size: float = 24.0
    icon_offset: float = 24.0
    key_point_padding: float = 60.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AnnotatorSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def load_settings(settings: QSettings) -> AnnotatorSettings:
    """Read settings saved by `save_settings`, defaults when absent or broken."""
    raw = settings.value(SETTINGS_KEY)
    if not raw:
        return AnnotatorSettings()
    try:
        return AnnotatorSettings.from_dict(json.loads(raw))
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable settings: {e}")
        return AnnotatorSettings()


def save_settings(settings: QSettings, values: AnnotatorSettings) -> None:
    settings.setValue(SETTINGS_KEY, json.dumps(values.to_dict()))
    settings.sync()

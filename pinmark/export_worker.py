"""Background export so the UI stays responsive."""

import logging
from typing import Optional

from PySide6.QtCore import QThread, Signal

from .exporter import ANNOTATIONS_SUFFIX, ExportError, export_filename, fetch_icon, load_source, render
from .models import StoreSnapshot
from .settings import AnnotatorSettings

logger = logging.getLogger(__name__)

EXPORT_FAILED_MESSAGE = "Failed to export the annotated PDF."


class ExportWorker(QThread):
    """Renders a snapshot of the annotations onto the source PDF.

    Emits `finished_export(bytes, filename)` once the whole document has been
    serialized, or `failed(message)`; never both.
    """

    finished_export = Signal(object, str)  # pdf bytes, download filename
    failed = Signal(str)
    progress = Signal(str)

    def __init__(self, source: str, snapshot: StoreSnapshot, scale: float = 1.0,
                 suffix: str = ANNOTATIONS_SUFFIX,
                 settings: Optional[AnnotatorSettings] = None,
                 with_icon: bool = True, parent=None):
        super().__init__(parent)
        self.source = source
        self.snapshot = snapshot
        self.scale = scale
        self.suffix = suffix
        self.settings = settings or AnnotatorSettings()
        self.with_icon = with_icon

    def run(self):
        try:
            self.progress.emit("Loading document...")
            data = load_source(self.source)

            icon = None
            if self.with_icon and self.snapshot.strokes:
                self.progress.emit("Fetching icon...")
                icon = fetch_icon(self.settings.icon_url, self.settings.icon_fill)

            self.progress.emit("Exporting annotations...")
            pdf = render(
                data,
                self.snapshot.pins,
                self.snapshot.highlights,
                self.snapshot.strokes,
                scale=self.scale,
                icon=icon,
                settings=self.settings,
            )
        except ExportError as e:
            logger.error(f"Export of {self.source} failed: {e}")
            self.failed.emit(EXPORT_FAILED_MESSAGE)
            return
        except Exception as e:
            logger.exception(f"Unexpected error exporting {self.source}: {e}")
            self.failed.emit(EXPORT_FAILED_MESSAGE)
            return

        self.finished_export.emit(pdf, export_filename(self.source, self.suffix))

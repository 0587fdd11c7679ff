"""Freehand drawing gestures on one page.

A gesture starts on pointer-down, collects points while the pointer moves
and is resolved on pointer-up. The newest stroke on a page stays a draft
so the next gesture can pick it up again from its last point.
"""

import logging
import math
from typing import Optional

from .merge import ConfirmMerge, find_overlaps, merge_strokes
from .models import AnnotationStore, Point, Stroke
from .settings import AnnotatorSettings

logger = logging.getLogger(__name__)


class FreehandSession:
    """Collects one drawing gesture and applies it to the store."""

    def __init__(self, store: AnnotationStore, page_number: int,
                 settings: Optional[AnnotatorSettings] = None):
        self._store = store
        self._page_number = page_number
        self._settings = settings or AnnotatorSettings()
        self._points: list = []
        self._draft_id: Optional[str] = None
        self._drawing = False

    @property
    def drawing(self) -> bool:
        return self._drawing

    @property
    def points(self) -> list:
        return list(self._points)

    @property
    def continuing_draft(self) -> bool:
        return self._draft_id is not None

    def begin(self, point: Point) -> None:
        """Start a gesture, continuing the page draft when close to its end."""
        settings = self._settings
        draft = self._store.draft_for_page(self._page_number)
        self._drawing = True

        if draft is not None:
            last = draft.last_point()
            if last is not None and math.hypot(last.x - point.x, last.y - point.y) <= settings.continue_threshold:
                self._draft_id = draft.id
                self._points = list(draft.points)
                return
            self._store.finalize_stroke(draft.id, color=settings.final_color)

        self._draft_id = None
        self._points = [point]

    def extend(self, point: Point) -> None:
        if self._drawing:
            self._points.append(point)

    def erase(self, point: Point) -> Optional[Stroke]:
        return erase_at(self._store, self._page_number, point,
                        self._settings.erase_threshold)

    def cancel(self) -> None:
        self._drawing = False
        self._points = []
        self._draft_id = None

    def finish(self, confirm: Optional[ConfirmMerge] = None) -> Optional[Stroke]:
        """End the gesture; merge, extend the draft or add a new draft.

        Returns the stroke that changed, or None if nothing was stored.
        """
        if not self._drawing:
            return None
        self._drawing = False
        settings = self._settings
        points, draft_id = self._points, self._draft_id
        self._points, self._draft_id = [], None

        candidate = Stroke(page_number=self._page_number, points=points,
                           width=settings.stroke_width)
        if draft_id is not None:
            candidate.id = draft_id

        overlaps = find_overlaps(candidate, self._store.strokes(),
                                 settings.overlap_threshold, confirm)
        if overlaps and overlaps[0].should_merge:
            merged = merge_strokes(
                self._store, overlaps, points,
                simplify_tolerance=settings.simplify_tolerance,
                connect_threshold=settings.connect_threshold,
                final_color=settings.final_color,
            )
            if draft_id is not None:
                self._store.delete_stroke(draft_id)
            return merged

        if len(candidate.real_points()) < 2:
            return None
        if draft_id is not None:
            return self._store.update_stroke(draft_id, points=points)
        return self._store.add_stroke(Stroke(
            page_number=self._page_number,
            points=points,
            color=settings.preview_color,
            width=settings.stroke_width,
            is_draft=True,
        ))


def erase_at(store: AnnotationStore, page_number: int, point: Point,
             threshold: float = 2.0) -> Optional[Stroke]:
    """Delete the first stroke on the page that has a point near `point`."""
    for stroke in store.strokes_for_page(page_number):
        for p in stroke.real_points():
            if math.hypot(p.x - point.x, p.y - point.y) < threshold:
                logger.debug(f"Erasing stroke {stroke.id}")
                return store.delete_stroke(stroke.id)
    return None

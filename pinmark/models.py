"""Data models for pins, highlights and freehand strokes.

All coordinates are percentages (0-100) of the page as the user sees it,
independent of zoom and page rotation.
"""

from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import NamedTuple, Optional, Union
import copy
import json
import uuid


PREVIEW_COLOR = "#ffeb3b"
FINAL_COLOR = "#555555"
HIGHLIGHT_COLOR = "#ffeb3b"

# Smallest highlight a resize may produce
MIN_HIGHLIGHT_WIDTH = 5.0
MIN_HIGHLIGHT_HEIGHT = 3.0

# Smallest drag selection that becomes a highlight
MIN_SELECTION_WIDTH = 1.0
MIN_SELECTION_HEIGHT = 0.5


class Point(NamedTuple):
    """A position in page percentages."""
    x: float
    y: float


class Lift:
    """Pen-lift marker between two sub-paths of one stroke."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "LIFT"

    def __reduce__(self):
        return (Lift, ())


LIFT = Lift()

StrokeEntry = Union[Point, Lift]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_created(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return datetime.now()


def point_to_dict(entry: StrokeEntry) -> dict:
    if isinstance(entry, Lift):
        return {"x": None, "y": None}
    return {"x": entry.x, "y": entry.y}


def point_from_dict(data) -> StrokeEntry:
    """Read a point from a dict or pair; null coordinates mean a lift."""
    if isinstance(data, dict):
        x, y = data.get("x"), data.get("y")
    else:
        x, y = data
    if x is None or y is None:
        return LIFT
    return Point(float(x), float(y))


def split_subpaths(points: list[StrokeEntry]) -> list[list[Point]]:
    """Split a stroke's point list at lifts, dropping empty runs."""
    subpaths: list[list[Point]] = []
    current: list[Point] = []
    for entry in points:
        if isinstance(entry, Lift):
            if current:
                subpaths.append(current)
            current = []
        else:
            current.append(entry)
    if current:
        subpaths.append(current)
    return subpaths


def real_points(points: list[StrokeEntry]) -> list[Point]:
    return [p for p in points if not isinstance(p, Lift)]


def normalize_pointer(offset_x: float, offset_y: float,
                      rect_width: float, rect_height: float) -> Optional[Point]:
    """Convert a pointer offset inside the rendered page to percentages.

    Returns None when the page has no size or the pointer is outside it.
    """
    if rect_width <= 0 or rect_height <= 0:
        return None
    x = offset_x / rect_width * 100
    y = offset_y / rect_height * 100
    if 0 <= x <= 100 and 0 <= y <= 100:
        return Point(x, y)
    return None


@dataclass
class Pin:
    """A point annotation with a title and description."""
    page_number: int = 1
    x: float = 0.0
    y: float = 0.0
    color: str = "#ff0000"
    title: str = ""
    description: str = ""
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.x = float(self.x)
        self.y = float(self.y)
        if not (0 <= self.x <= 100 and 0 <= self.y <= 100):
            raise ValueError(f"Pin position out of range: ({self.x}, {self.y})")

    def to_dict(self) -> dict:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Pin":
        data = dict(data)
        data['created_at'] = _parse_created(data.get('created_at'))
        if 'id' not in data or not data['id']:
            data['id'] = _new_id()
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Highlight:
    """A rectangular region annotation, optionally carrying a note."""
    page_number: int = 1
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    color: str = HIGHLIGHT_COLOR
    note: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.width = _clamp(float(self.width), 0.0, 100.0)
        self.height = _clamp(float(self.height), 0.0, 100.0)
        self.x = _clamp(float(self.x), 0.0, 100.0 - self.width)
        self.y = _clamp(float(self.y), 0.0, 100.0 - self.height)

    def moved(self, dx: float, dy: float) -> "Highlight":
        """Return a copy dragged by (dx, dy), kept inside the page."""
        return replace(
            self,
            x=_clamp(self.x + dx, 0.0, 100.0 - self.width),
            y=_clamp(self.y + dy, 0.0, 100.0 - self.height),
        )

    def resized(self, direction: str, dx: float, dy: float) -> "Highlight":
        """Return a copy resized from a handle.

        `direction` names the dragged edges, e.g. "right", "top-left".
        """
        x, y, width, height = self.x, self.y, self.width, self.height
        if "right" in direction:
            width = max(MIN_HIGHLIGHT_WIDTH, min(100 - self.x, self.width + dx))
        if "left" in direction:
            # right edge stays put
            right = self.x + self.width
            x = max(0.0, min(self.x + dx, right - MIN_HIGHLIGHT_WIDTH))
            width = right - x
        if "bottom" in direction:
            height = max(MIN_HIGHLIGHT_HEIGHT, min(100 - self.y, self.height + dy))
        if "top" in direction:
            bottom = self.y + self.height
            y = max(0.0, min(self.y + dy, bottom - MIN_HIGHLIGHT_HEIGHT))
            height = bottom - y
        return replace(self, x=x, y=y, width=width, height=height)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Highlight":
        data = dict(data)
        data['created_at'] = _parse_created(data.get('created_at'))
        if 'id' not in data or not data['id']:
            data['id'] = _new_id()
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


def highlight_from_drag(page_number: int, start: Point, end: Point,
                        color: str = HIGHLIGHT_COLOR,
                        note: Optional[str] = None) -> Optional[Highlight]:
    """Build the highlight spanned by a drag, or None if it is too small."""
    width = abs(end.x - start.x)
    height = abs(end.y - start.y)
    if width <= MIN_SELECTION_WIDTH or height <= MIN_SELECTION_HEIGHT:
        return None
    return Highlight(
        page_number=page_number,
        x=min(start.x, end.x),
        y=min(start.y, end.y),
        width=width,
        height=height,
        color=color,
        note=note,
    )


@dataclass
class Stroke:
    """A freehand polyline, possibly made of several lifted sub-paths."""
    page_number: int = 1
    points: list = field(default_factory=list)
    color: str = PREVIEW_COLOR
    width: float = 12.0
    is_draft: bool = True
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.points = [p if isinstance(p, (Point, Lift)) else point_from_dict(p)
                       for p in self.points]
        self.width = float(self.width)
        if self.width <= 0:
            raise ValueError(f"Stroke width must be positive, got {self.width}")

    def subpaths(self) -> list[list[Point]]:
        return split_subpaths(self.points)

    def real_points(self) -> list[Point]:
        return real_points(self.points)

    def last_point(self) -> Optional[Point]:
        for entry in reversed(self.points):
            if not isinstance(entry, Lift):
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'page_number': self.page_number,
            'points': [point_to_dict(p) for p in self.points],
            'color': self.color,
            'width': self.width,
            'is_draft': self.is_draft,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Stroke":
        data = dict(data)
        data['created_at'] = _parse_created(data.get('created_at'))
        data['points'] = [point_from_dict(p) for p in data.get('points', [])]
        if 'id' not in data or not data['id']:
            data['id'] = _new_id()
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class StoreSnapshot:
    """Read-only copy of the store contents handed to an export."""
    pins: list[Pin]
    highlights: list[Highlight]
    strokes: list[Stroke]


class AnnotationStore:
    """Holds all pins, highlights and strokes of the open document."""

    def __init__(self):
        self._pins: dict[str, Pin] = {}
        self._highlights: dict[str, Highlight] = {}
        self._strokes: dict[str, Stroke] = {}
        self._modified = False

    # --- pins ---

    def add_pin(self, pin: Pin) -> Pin:
        self._pins[pin.id] = pin
        self._modified = True
        return pin

    def update_pin(self, pin_id: str, **changes) -> Pin:
        pin = self._pins[pin_id]
        changes.pop('id', None)
        changes.pop('created_at', None)
        updated = replace(pin, **changes)
        self._pins[pin_id] = updated
        self._modified = True
        return updated

    def delete_pin(self, pin_id: str) -> Optional[Pin]:
        self._modified = True
        return self._pins.pop(pin_id, None)

    def get_pin(self, pin_id: str) -> Optional[Pin]:
        return self._pins.get(pin_id)

    def pins(self) -> list[Pin]:
        return list(self._pins.values())

    def pins_for_page(self, page_number: int) -> list[Pin]:
        return [p for p in self._pins.values() if p.page_number == page_number]

    # --- highlights ---

    def add_highlight(self, highlight: Highlight) -> Highlight:
        self._highlights[highlight.id] = highlight
        self._modified = True
        return highlight

    def update_highlight(self, highlight_id: str, **changes) -> Highlight:
        highlight = self._highlights[highlight_id]
        changes.pop('id', None)
        changes.pop('created_at', None)
        updated = replace(highlight, **changes)
        self._highlights[highlight_id] = updated
        self._modified = True
        return updated

    def move_highlight(self, highlight_id: str, dx: float, dy: float) -> Highlight:
        updated = self._highlights[highlight_id].moved(dx, dy)
        self._highlights[highlight_id] = updated
        self._modified = True
        return updated

    def resize_highlight(self, highlight_id: str, direction: str,
                         dx: float, dy: float) -> Highlight:
        updated = self._highlights[highlight_id].resized(direction, dx, dy)
        self._highlights[highlight_id] = updated
        self._modified = True
        return updated

    def delete_highlight(self, highlight_id: str) -> Optional[Highlight]:
        self._modified = True
        return self._highlights.pop(highlight_id, None)

    def get_highlight(self, highlight_id: str) -> Optional[Highlight]:
        return self._highlights.get(highlight_id)

    def highlights(self) -> list[Highlight]:
        return list(self._highlights.values())

    def highlights_for_page(self, page_number: int) -> list[Highlight]:
        return [h for h in self._highlights.values() if h.page_number == page_number]

    # --- strokes ---

    def add_stroke(self, stroke: Stroke) -> Stroke:
        if len(stroke.real_points()) < 2:
            raise ValueError("A stroke needs at least two points")
        self._strokes[stroke.id] = stroke
        self._modified = True
        return stroke

    def update_stroke(self, stroke_id: str, **changes) -> Stroke:
        stroke = self._strokes[stroke_id]
        changes.pop('id', None)
        changes.pop('created_at', None)
        updated = replace(stroke, **changes)
        if len(updated.real_points()) < 2:
            raise ValueError("A stroke needs at least two points")
        self._strokes[stroke_id] = updated
        self._modified = True
        return updated

    def finalize_stroke(self, stroke_id: str,
                        color: str = FINAL_COLOR) -> Stroke:
        """Close a draft stroke for further continuation."""
        return self.update_stroke(stroke_id, is_draft=False, color=color)

    def delete_stroke(self, stroke_id: str) -> Optional[Stroke]:
        self._modified = True
        return self._strokes.pop(stroke_id, None)

    def get_stroke(self, stroke_id: str) -> Optional[Stroke]:
        return self._strokes.get(stroke_id)

    def strokes(self) -> list[Stroke]:
        return list(self._strokes.values())

    def strokes_for_page(self, page_number: int) -> list[Stroke]:
        return [s for s in self._strokes.values() if s.page_number == page_number]

    def draft_for_page(self, page_number: int) -> Optional[Stroke]:
        """The open draft stroke on a page, if any."""
        for s in self._strokes.values():
            if s.page_number == page_number and s.is_draft:
                return s
        return None

    # --- whole store ---

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            pins=copy.deepcopy(self.pins()),
            highlights=copy.deepcopy(self.highlights()),
            strokes=copy.deepcopy(self.strokes()),
        )

    def clear(self) -> None:
        self._pins.clear()
        self._highlights.clear()
        self._strokes.clear()
        self._modified = True

    def count(self) -> int:
        return len(self._pins) + len(self._highlights) + len(self._strokes)

    @property
    def modified(self) -> bool:
        return self._modified

    @modified.setter
    def modified(self, value: bool):
        self._modified = value

    def to_json(self) -> str:
        data = {
            'pins': [p.to_dict() for p in self._pins.values()],
            'highlights': [h.to_dict() for h in self._highlights.values()],
            'strokes': [s.to_dict() for s in self._strokes.values()],
        }
        return json.dumps(data, indent=2)

    def from_json(self, json_str: str) -> None:
        data = json.loads(json_str)
        self.clear()
        for item in data.get('pins', []):
            self.add_pin(Pin.from_dict(item))
        for item in data.get('highlights', []):
            self.add_highlight(Highlight.from_dict(item))
        for item in data.get('strokes', []):
            self.add_stroke(Stroke.from_dict(item))

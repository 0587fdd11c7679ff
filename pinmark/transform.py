"""Map normalized page percentages into PDF page space.

PDF pages carry a /Rotate entry that is applied when the page is shown;
the stored page box is never rotated. Annotations are captured in the
orientation the user sees, so every placement is un-rotated here before
it is written as page content. All entity types go through `to_absolute`
so pins, highlight corners and stroke points agree for every rotation.

PDF space has its origin at the bottom-left of the unrotated page box.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)

VALID_ROTATIONS = (0, 90, 180, 270)


class PdfPoint(NamedTuple):
    x: float
    y: float


class PdfRect(NamedTuple):
    """Rectangle in PDF space, origin bottom-left, non-negative size."""
    x: float
    y: float
    width: float
    height: float

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


def normalize_rotation(rotation) -> int:
    """Return a supported rotation, falling back to 0 with a warning."""
    try:
        value = int(rotation)
    except (TypeError, ValueError):
        value = None
    if value is not None and value == rotation and value in VALID_ROTATIONS:
        return value
    logger.warning(f"Unsupported page rotation {rotation!r}, using 0")
    return 0


def to_absolute(px: float, py: float, page_width: float, page_height: float,
                rotation: int = 0) -> PdfPoint:
    """Percentages in the displayed orientation to a point in PDF space.

    `page_width` and `page_height` describe the unrotated page box.
    Rotation is clockwise, as in the PDF /Rotate entry.
    """
    rotation = normalize_rotation(rotation)
    w, h = page_width, page_height
    fx, fy = px / 100, py / 100

    if rotation == 90:
        return PdfPoint(fy * w, fx * h)
    if rotation == 180:
        return PdfPoint(w - fx * w, fy * h)
    if rotation == 270:
        return PdfPoint(w - fy * w, h - fx * h)
    return PdfPoint(fx * w, h - fy * h)


def to_relative(x: float, y: float, page_width: float, page_height: float,
                rotation: int = 0) -> tuple[float, float]:
    """Inverse of `to_absolute`: a PDF point back to displayed percentages."""
    rotation = normalize_rotation(rotation)
    w, h = page_width, page_height

    if rotation == 90:
        return (y / h * 100, x / w * 100)
    if rotation == 180:
        return ((w - x) / w * 100, y / h * 100)
    if rotation == 270:
        return ((h - y) / h * 100, (w - x) / w * 100)
    return (x / w * 100, (h - y) / h * 100)


def transform_rect(x: float, y: float, width: float, height: float,
                   page_width: float, page_height: float,
                   rotation: int = 0) -> PdfRect:
    """Transform a percentage rectangle into a normalized PDF rectangle.

    Both opposite corners are mapped; axis swaps under 90/270 can change
    which one ends up top-left.
    """
    rotation = normalize_rotation(rotation)
    a = to_absolute(x, y, page_width, page_height, rotation)
    b = to_absolute(x + width, y + height, page_width, page_height, rotation)
    return PdfRect(
        x=min(a.x, b.x),
        y=min(a.y, b.y),
        width=abs(b.x - a.x),
        height=abs(b.y - a.y),
    )


# Unit vector towards the viewer's top edge, in top-left page space
_DISPLAY_UP = {
    0: (0.0, -1.0),
    90: (-1.0, 0.0),
    180: (0.0, 1.0),
    270: (1.0, 0.0),
}


def display_up(rotation: int) -> tuple[float, float]:
    return _DISPLAY_UP[normalize_rotation(rotation)]


@dataclass(frozen=True)
class PageGeometry:
    """Size of the unrotated page box and its display rotation."""
    width: float
    height: float
    rotation: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'rotation', normalize_rotation(self.rotation))

    @classmethod
    def from_displayed(cls, width: float, height: float,
                       rotation: int = 0) -> "PageGeometry":
        """Build from the size the viewer shows, which is swapped at 90/270."""
        rotation = normalize_rotation(rotation)
        if rotation in (90, 270):
            return cls(height, width, rotation)
        return cls(width, height, rotation)

    @property
    def displayed_size(self) -> tuple[float, float]:
        if self.rotation in (90, 270):
            return (self.height, self.width)
        return (self.width, self.height)

    def point(self, px: float, py: float) -> PdfPoint:
        return to_absolute(px, py, self.width, self.height, self.rotation)

    def rect(self, x: float, y: float, width: float, height: float) -> PdfRect:
        return transform_rect(x, y, width, height,
                              self.width, self.height, self.rotation)

    def to_mupdf(self, point: PdfPoint) -> tuple[float, float]:
        """PDF space to PyMuPDF's unrotated top-left page space."""
        return (point.x, self.height - point.y)

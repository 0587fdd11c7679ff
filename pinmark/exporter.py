"""Burn annotations into a copy of a PDF using PyMuPDF.

Every coordinate is produced by the transform engine in PDF space and
then mapped to PyMuPDF's top-left page space, so placement is the same
on rotated and unrotated pages.
"""

import logging
import math
import re
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional, Sequence

import fitz
import requests

from .colors import parse_color
from .models import Highlight, Pin, Point, Stroke, split_subpaths
from .settings import AnnotatorSettings
from .transform import PageGeometry, PdfPoint, display_up

logger = logging.getLogger(__name__)

PINS_SUFFIX = "-with-pins.pdf"
HIGHLIGHTS_SUFFIX = "-with-highlights.pdf"
ANNOTATIONS_SUFFIX = "-with-annotations.pdf"

FETCH_TIMEOUT = 30


class ExportError(Exception):
    """The export could not produce a PDF."""


def export_filename(source_name: str, suffix: str = ANNOTATIONS_SUFFIX) -> str:
    """Derive the download name, e.g. report.pdf -> report-with-pins.pdf."""
    name = source_name.rstrip("/").split("/")[-1].split("?")[0] or "document"
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name + suffix


def load_source(location: str) -> bytes:
    """Read the source PDF from an http(s) URL or a local path."""
    try:
        if re.match(r"^https?://", location, re.IGNORECASE):
            resp = requests.get(location, timeout=FETCH_TIMEOUT)
            resp.raise_for_status()
            return resp.content
        return Path(location).expanduser().read_bytes()
    except (requests.RequestException, OSError) as e:
        logger.error(f"Failed to load source PDF {location}: {e}")
        raise ExportError(f"Could not load {location}") from e


def fetch_icon(url: str, fill: str = "#000000") -> Optional[bytes]:
    """Download the stroke decoration SVG and recolor it.

    The icon is decorative: any failure is logged and returns None.
    """
    if not url:
        return None
    try:
        resp = requests.get(url, timeout=FETCH_TIMEOUT)
        resp.raise_for_status()
        svg = resp.text
    except requests.RequestException as e:
        logger.warning(f"Decoration icon unavailable ({url}): {e}")
        return None
    svg = re.sub(r'fill="[^"]*"', f'fill="{fill}"', svg)
    return svg.encode("utf-8")


def _icon_document(icon: Optional[bytes]) -> Optional[fitz.Document]:
    """Convert SVG bytes into a one-page PDF usable with show_pdf_page."""
    if not icon:
        return None
    try:
        svg_doc = fitz.open(stream=icon, filetype="svg")
        pdf_bytes = svg_doc.convert_to_pdf()
        svg_doc.close()
        return fitz.open("pdf", pdf_bytes)
    except Exception as e:
        logger.warning(f"Decoration icon could not be converted: {e}")
        return None


def page_geometry(page: fitz.Page) -> PageGeometry:
    box = page.cropbox
    return PageGeometry(box.width, box.height, page.rotation)


def _mupdf_point(geometry: PageGeometry, point: PdfPoint) -> fitz.Point:
    return fitz.Point(*geometry.to_mupdf(point))


def _group_by_page(items: Iterable) -> dict[int, list]:
    grouped = defaultdict(list)
    for item in items:
        grouped[item.page_number].append(item)
    return grouped


def interpolate(p1: fitz.Point, p2: fitz.Point, step: float = 1.0,
                max_steps: int = 200) -> list[fitz.Point]:
    """Split a segment into evenly spaced points.

    The count grows with the length but never exceeds `max_steps`.
    """
    dist = math.hypot(p2.x - p1.x, p2.y - p1.y)
    count = max(2, math.ceil(dist / step)) if step > 0 else 2
    count = min(count, max(2, max_steps))
    return [
        fitz.Point(p1.x + (p2.x - p1.x) * i / count, p1.y + (p2.y - p1.y) * i / count)
        for i in range(count + 1)
    ]


def best_segment(points: list) -> Optional[tuple[Point, Point]]:
    """Segment used to anchor the decoration icon.

    Among the segments at least 90% as long as the longest one, pick the
    one whose midpoint is closest to the stroke's centroid.
    """
    segments = []
    for subpath in split_subpaths(points):
        for i in range(len(subpath) - 1):
            segments.append((subpath[i], subpath[i + 1]))
    if not segments:
        return None

    real = [p for sub in split_subpaths(points) for p in sub]
    cx = sum(p.x for p in real) / len(real)
    cy = sum(p.y for p in real) / len(real)

    def length(seg):
        return math.hypot(seg[1].x - seg[0].x, seg[1].y - seg[0].y)

    max_len = max(length(s) for s in segments)
    near_max = [s for s in segments if length(s) >= 0.9 * max_len]
    return min(
        near_max,
        key=lambda s: math.hypot((s[0].x + s[1].x) / 2 - cx, (s[0].y + s[1].y) / 2 - cy),
    )


class PdfExporter:
    """Draws pins, highlights and strokes onto the pages of a document."""

    def __init__(self, settings: Optional[AnnotatorSettings] = None,
                 scale: float = 1.0, icon: Optional[bytes] = None):
        self.settings = settings or AnnotatorSettings()
        self.scale = scale
        self._icon_doc = _icon_document(icon)

    def close(self) -> None:
        if self._icon_doc is not None:
            self._icon_doc.close()
            self._icon_doc = None

    # --- pins ---

    def draw_pin(self, page: fitz.Page, geometry: PageGeometry, pin: Pin) -> None:
        """Pin glyph with its tip on the point, upright for the viewer."""
        rgb, _ = parse_color(pin.color)
        tip = _mupdf_point(geometry, geometry.point(pin.x, pin.y))
        size = self.settings.pin_size * self.scale
        if size <= 0:
            raise ValueError(f"Degenerate pin size {size}")

        # Drawn pointing up on an unrotated page, then turned around the tip
        radius = size / 3
        head = fitz.Point(tip.x, tip.y - size + radius)
        left = fitz.Point(head.x - radius, head.y)
        right = fitz.Point(head.x + radius, head.y)
        morph = (tip, fitz.Matrix(geometry.rotation)) if geometry.rotation else None

        shape = page.new_shape()
        shape.draw_polyline([left, tip, right])
        shape.finish(color=(0, 0, 0), fill=rgb, width=1, closePath=True, morph=morph)
        shape.draw_circle(head, radius)
        shape.finish(color=(0, 0, 0), fill=rgb, width=1, morph=morph)
        shape.draw_circle(head, radius / 2)
        shape.finish(color=(0, 0, 0), fill=(1, 1, 1), width=0.5, morph=morph)
        shape.commit()

    # --- highlights ---

    def draw_highlight(self, page: fitz.Page, geometry: PageGeometry,
                       highlight: Highlight) -> None:
        rgb, _ = parse_color(highlight.color)
        box = geometry.rect(highlight.x, highlight.y, highlight.width, highlight.height)
        if box.width <= 0 or box.height <= 0:
            raise ValueError(f"Degenerate highlight {highlight.id}")

        rect = fitz.Rect(
            _mupdf_point(geometry, PdfPoint(box.x, box.y1)),
            _mupdf_point(geometry, PdfPoint(box.x1, box.y)),
        ).normalize()

        shape = page.new_shape()
        shape.draw_rect(rect)
        shape.finish(color=rgb, fill=rgb, width=1,
                     fill_opacity=self.settings.highlight_opacity,
                     stroke_opacity=self.settings.highlight_opacity)
        shape.commit()

        if highlight.note:
            self._add_note(page, rect, rgb, highlight.note)

    def _add_note(self, page: fitz.Page, rect: fitz.Rect, rgb, note: str) -> None:
        """Highlight annotation with a popup, so viewers list the note."""
        annot = page.add_highlight_annot(rect)
        annot.set_colors(stroke=rgb)
        annot.set_opacity(self.settings.note_opacity)
        annot.set_info(title="Note", content=note)
        annot.set_flags(fitz.PDF_ANNOT_IS_PRINT)
        annot.update()
        annot.set_popup(fitz.Rect(rect.x0 + 10, rect.y0 + 10, rect.x0 + 200, rect.y0 + 100))
        annot.set_open(False)
        annot.update()

    # --- strokes ---

    def draw_stroke(self, page: fitz.Page, geometry: PageGeometry,
                    stroke: Stroke) -> None:
        """Stroke sub-paths as densely interpolated lines, no line across lifts."""
        rgb, alpha = parse_color(stroke.color)
        width = stroke.width * self.scale
        if width <= 0:
            raise ValueError(f"Degenerate stroke width {width}")
        subpaths = [s for s in split_subpaths(stroke.points) if len(s) >= 2]
        if not subpaths:
            raise ValueError(f"Stroke {stroke.id} has no drawable segment")

        settings = self.settings
        shape = page.new_shape()
        for subpath in subpaths:
            absolute = [_mupdf_point(geometry, geometry.point(p.x, p.y)) for p in subpath]
            for p1, p2 in zip(absolute, absolute[1:]):
                steps = interpolate(p1, p2, settings.interpolation_step,
                                    settings.max_interpolation_steps)
                for a, b in zip(steps, steps[1:]):
                    shape.draw_line(a, b)
        shape.finish(color=rgb, width=width, lineCap=2, lineJoin=1,
                     stroke_opacity=settings.stroke_opacity * alpha,
                     closePath=False)
        shape.commit()

        if self._icon_doc is not None:
            self._draw_icon(page, geometry, stroke)

    def _draw_icon(self, page: fitz.Page, geometry: PageGeometry,
                   stroke: Stroke) -> None:
        segment = best_segment(stroke.points)
        if segment is None:
            return
        start = _mupdf_point(geometry, geometry.point(*segment[0]))
        end = _mupdf_point(geometry, geometry.point(*segment[1]))
        length = math.hypot(end.x - start.x, end.y - start.y)
        if length == 0:
            return

        # Offset to the side of the segment facing the viewer's top
        nx, ny = -(end.y - start.y) / length, (end.x - start.x) / length
        ux, uy = display_up(geometry.rotation)
        if nx * ux + ny * uy < 0:
            nx, ny = -nx, -ny
        offset = self.settings.icon_offset
        cx = (start.x + end.x) / 2 + nx * offset
        cy = (start.y + end.y) / 2 + ny * offset

        half = self.settings.icon_size / 2
        try:
            page.show_pdf_page(
                fitz.Rect(cx - half, cy - half, cx + half, cy + half),
                self._icon_doc, 0, rotate=geometry.rotation,
            )
        except Exception as e:
            logger.warning(f"Skipping decoration icon on stroke {stroke.id}: {e}")

    # --- document ---

    def annotate_page(self, page: fitz.Page, pins: Sequence[Pin],
                      highlights: Sequence[Highlight],
                      strokes: Sequence[Stroke]) -> tuple[int, int]:
        """Draw everything for one page. Returns (drawn, failed)."""
        geometry = page_geometry(page)
        drawn = failed = 0
        jobs = ([(self.draw_highlight, h) for h in highlights]
                + [(self.draw_stroke, s) for s in strokes]
                + [(self.draw_pin, p) for p in pins])
        for draw, item in jobs:
            try:
                draw(page, geometry, item)
                drawn += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Skipping {type(item).__name__.lower()} {item.id} "
                               f"on page {page.number + 1}: {e}")
        return drawn, failed

    def annotate(self, doc: fitz.Document, pins: Sequence[Pin],
                 highlights: Sequence[Highlight],
                 strokes: Sequence[Stroke]) -> tuple[int, int]:
        pins_by_page = _group_by_page(pins)
        highlights_by_page = _group_by_page(highlights)
        strokes_by_page = _group_by_page(strokes)
        pages = set(pins_by_page) | set(highlights_by_page) | set(strokes_by_page)

        drawn = failed = 0
        for page_number in sorted(pages):
            count = (len(pins_by_page[page_number]) + len(highlights_by_page[page_number])
                     + len(strokes_by_page[page_number]))
            if not 1 <= page_number <= len(doc):
                logger.warning(f"Page {page_number} not in document, skipping {count} item(s)")
                failed += count
                continue
            d, f = self.annotate_page(
                doc[page_number - 1],
                pins_by_page[page_number],
                highlights_by_page[page_number],
                strokes_by_page[page_number],
            )
            drawn += d
            failed += f
        return drawn, failed


def _open_document(document: bytes) -> fitz.Document:
    try:
        doc = fitz.open(stream=bytes(document), filetype="pdf")
    except Exception as e:
        logger.error(f"Failed to open source PDF: {e}")
        raise ExportError("The source document is not a readable PDF") from e
    if not doc.is_pdf or doc.page_count == 0:
        doc.close()
        raise ExportError("The source document is not a readable PDF")
    return doc


def _serialize(doc: fitz.Document) -> bytes:
    try:
        return doc.tobytes(garbage=4, deflate=True)
    except Exception as e:
        logger.error(f"Failed to serialize annotated PDF: {e}")
        raise ExportError("The annotated PDF could not be written") from e


def render(document: bytes, pins: Sequence[Pin] = (),
           highlights: Sequence[Highlight] = (),
           strokes: Sequence[Stroke] = (), scale: float = 1.0,
           icon: Optional[bytes] = None,
           settings: Optional[AnnotatorSettings] = None) -> bytes:
    """Return a new PDF with the annotations burned in.

    The input buffer is left untouched. Entities that cannot be drawn are
    skipped; if there were entities and none could be drawn the export
    fails as a whole.
    """
    doc = _open_document(document)
    exporter = PdfExporter(settings, scale, icon)
    try:
        drawn, failed = exporter.annotate(doc, pins, highlights, strokes)
        if failed and not drawn:
            raise ExportError(f"None of the {failed} annotation(s) could be drawn")
        if failed:
            logger.warning(f"Exported with {failed} annotation(s) skipped")
        return _serialize(doc)
    finally:
        exporter.close()
        doc.close()


def expand_to_aspect_ratio(min_x: float, min_y: float, max_x: float, max_y: float,
                           aspect_w: float, aspect_h: float,
                           page_width: float, page_height: float) -> fitz.Rect:
    """Grow a box around its center to an aspect ratio, clipped to the page."""
    box_w = max(max_x - min_x, 1e-6)
    box_h = max(max_y - min_y, 1e-6)
    target = aspect_w / aspect_h

    new_w, new_h = box_w, box_h
    if box_w / box_h > target:
        new_h = box_w / target
    else:
        new_w = box_h * target

    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2
    x0 = max(0.0, cx - new_w / 2)
    y0 = max(0.0, cy - new_h / 2)
    x1 = min(page_width, x0 + new_w)
    y1 = min(page_height, y0 + new_h)
    return fitz.Rect(x0, y0, x1, y1)


def render_key_point(document: bytes, stroke: Stroke, scale: float = 1.0,
                     icon: Optional[bytes] = None,
                     settings: Optional[AnnotatorSettings] = None) -> bytes:
    """One-page PDF of the stroke's page, cropped around the stroke."""
    settings = settings or AnnotatorSettings()
    doc = _open_document(document)
    exporter = PdfExporter(settings, scale, icon)
    out = fitz.open()
    try:
        if not 1 <= stroke.page_number <= len(doc):
            raise ExportError(f"Page {stroke.page_number} not in document")
        page = doc[stroke.page_number - 1]
        geometry = page_geometry(page)
        try:
            exporter.draw_stroke(page, geometry, stroke)
        except Exception as e:
            raise ExportError(f"Stroke {stroke.id} could not be drawn") from e

        corners = [_mupdf_point(geometry, geometry.point(p.x, p.y))
                   for p in stroke.real_points()]
        pad = settings.key_point_padding
        rotated = geometry.rotation != 0
        crop = expand_to_aspect_ratio(
            min(p.x for p in corners) - pad, min(p.y for p in corners) - pad,
            max(p.x for p in corners) + pad, max(p.y for p in corners) + pad,
            4 if rotated else 6, 6 if rotated else 4,
            geometry.width, geometry.height,
        )
        # set_cropbox wants mediabox-relative coordinates
        origin = page.cropbox.top_left
        crop = fitz.Rect(crop.x0 + origin.x, crop.y0 + origin.y,
                         crop.x1 + origin.x, crop.y1 + origin.y)

        out.insert_pdf(doc, from_page=page.number, to_page=page.number)
        out[0].set_cropbox(crop)
        return _serialize(out)
    finally:
        out.close()
        exporter.close()
        doc.close()

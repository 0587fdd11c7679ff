#!/usr/bin/env python3
"""PinMark - burn pins, highlights and freehand strokes into a PDF.

Reads annotations exported as JSON by the annotation store and writes a
new PDF next to the source (or to --output).
"""

import argparse
import logging
import os
import sys

from pinmark.exporter import (
    ANNOTATIONS_SUFFIX, HIGHLIGHTS_SUFFIX, PINS_SUFFIX,
    ExportError, export_filename, fetch_icon, load_source, render,
)
from pinmark.models import AnnotationStore
from pinmark.settings import AnnotatorSettings

logger = logging.getLogger("PinMark")

SUFFIXES = {
    "pins": PINS_SUFFIX,
    "highlights": HIGHLIGHTS_SUFFIX,
    "annotations": ANNOTATIONS_SUFFIX,
}


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Export a PDF with pins, highlights and strokes burned in",
    )
    parser.add_argument("source", help="PDF file path or http(s) URL")
    parser.add_argument("annotations", help="Annotations JSON file")
    parser.add_argument("-o", "--output", help="Output PDF path")
    parser.add_argument(
        "--kind",
        choices=sorted(SUFFIXES),
        default="annotations",
        help="Which annotations to export (default: annotations, i.e. all)",
    )
    parser.add_argument("--scale", type=float, default=1.0,
                        help="Viewer zoom the strokes were drawn at (default: 1.0)")
    parser.add_argument("--icon-url", default=None,
                        help="SVG decoration placed next to strokes")
    parser.add_argument("--no-icon", action="store_true",
                        help="Do not fetch the stroke decoration")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    settings = AnnotatorSettings()
    if args.icon_url:
        settings.icon_url = args.icon_url

    store = AnnotationStore()
    try:
        with open(args.annotations, "r", encoding="utf-8") as f:
            store.from_json(f.read())
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Cannot read annotations {args.annotations}: {e}")
        return 1

    pins = store.pins() if args.kind in ("pins", "annotations") else []
    highlights = store.highlights() if args.kind in ("highlights", "annotations") else []
    strokes = store.strokes() if args.kind == "annotations" else []

    icon = None
    if strokes and not args.no_icon:
        icon = fetch_icon(settings.icon_url, settings.icon_fill)

    try:
        data = load_source(args.source)
        pdf = render(data, pins, highlights, strokes,
                     scale=args.scale, icon=icon, settings=settings)
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        return 1

    output = args.output or os.path.join(
        os.getcwd(), export_filename(args.source, SUFFIXES[args.kind]))
    with open(output, "wb") as f:
        f.write(pdf)
    logger.info(f"Saved: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

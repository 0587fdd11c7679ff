"""Color string parsing for PDF drawing."""

from PIL import ImageColor


def parse_color(color: str) -> tuple[tuple[float, float, float], float]:
    """Parse a CSS color into a PDF (r, g, b) triple in 0-1 and an alpha.

    Accepts anything Pillow understands: "#rgb", "#rrggbb", "#rrggbbaa",
    "rgb(...)", "rgba(...)" and color names. Raises ValueError otherwise.
    """
    if not isinstance(color, str) or not color.strip():
        raise ValueError(f"Invalid color: {color!r}")
    value = color.strip()
    if value.lower().startswith("rgba("):
        # Pillow reads rgba() alpha as 0-255, browsers write it as 0-1
        parts = [p.strip() for p in value[5:].rstrip(")").split(",")]
        if len(parts) != 4:
            raise ValueError(f"Invalid color: {color!r}")
        r, g, b = ImageColor.getrgb(f"rgb({parts[0]},{parts[1]},{parts[2]})")
        alpha = max(0.0, min(1.0, float(parts[3])))
        return (r / 255, g / 255, b / 255), alpha

    rgba = ImageColor.getrgb(value)
    alpha = rgba[3] / 255 if len(rgba) == 4 else 1.0
    return (rgba[0] / 255, rgba[1] / 255, rgba[2] / 255), alpha

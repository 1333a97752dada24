"""Maps artwork colors to Hue light state values."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

XY = Tuple[float, float]
Gamut = Tuple[XY, XY, XY]

# D65 white point, used for pure black where xy is undefined
WHITE_POINT: XY = (0.3127, 0.3290)

# Gamut C (most current color bulbs and strips), red / green / blue corners
DEFAULT_GAMUT: Gamut = ((0.6915, 0.3083), (0.17, 0.7), (0.1532, 0.0475))


@dataclass(frozen=True)
class Color:
    """An 8-bit RGB color."""

    red: int
    green: int
    blue: int

    def __post_init__(self):
        for channel in (self.red, self.green, self.blue):
            if not 0 <= channel <= 255:
                raise ValueError(f"Color channel out of range 0-255: {channel}")

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.red, self.green, self.blue)

    def __str__(self) -> str:
        return f"#{self.red:02x}{self.green:02x}{self.blue:02x}"


def srgb_to_linear(c: float) -> float:
    """Undo sRGB gamma on a 0..1 channel value."""
    return c / 12.92 if c <= 0.04045 else ((c + 0.055) / 1.055) ** 2.4


def parse_gamut(raw) -> Optional[Gamut]:
    """Read a colorgamut entry from the bridge's light capabilities.

    Returns None when the light does not report a usable gamut.
    """
    if not raw or len(raw) != 3:
        return None
    try:
        return tuple((float(x), float(y)) for x, y in raw)
    except (TypeError, ValueError):
        return None


def _cross(o: XY, a: XY, b: XY) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def in_gamut(point: XY, gamut: Gamut) -> bool:
    red, green, blue = gamut
    d1 = _cross(red, green, point)
    d2 = _cross(green, blue, point)
    d3 = _cross(blue, red, point)
    has_neg = d1 < 0 or d2 < 0 or d3 < 0
    has_pos = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_neg and has_pos)


def _closest_on_segment(point: XY, a: XY, b: XY) -> XY:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return a
    t = ((point[0] - a[0]) * dx + (point[1] - a[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return (a[0] + t * dx, a[1] + t * dy)


def clamp_to_gamut(point: XY, gamut: Sequence[XY]) -> XY:
    """Move an xy point onto the nearest edge of the gamut triangle if outside."""
    if in_gamut(point, gamut):
        return point

    red, green, blue = gamut
    candidates = [
        _closest_on_segment(point, red, green),
        _closest_on_segment(point, green, blue),
        _closest_on_segment(point, blue, red),
    ]
    return min(candidates, key=lambda c: (c[0] - point[0]) ** 2 + (c[1] - point[1]) ** 2)


def rgb_to_xy(color: Color, gamut: Optional[Gamut] = DEFAULT_GAMUT) -> XY:
    """Convert an RGB color to CIE xy for the Hue API.

    Uses the wide gamut D65 conversion from the Hue developer docs. Pass
    ``gamut=None`` to skip clamping.
    """
    r = srgb_to_linear(color.red / 255)
    g = srgb_to_linear(color.green / 255)
    b = srgb_to_linear(color.blue / 255)

    x_ = r * 0.664511 + g * 0.154324 + b * 0.162028
    y_ = r * 0.283881 + g * 0.668433 + b * 0.047685
    z_ = r * 0.000088 + g * 0.072310 + b * 0.986039

    total = x_ + y_ + z_
    if total == 0:
        return WHITE_POINT

    point = (x_ / total, y_ / total)
    if gamut is not None:
        point = clamp_to_gamut(point, gamut)
    return (round(point[0], 4), round(point[1], 4))

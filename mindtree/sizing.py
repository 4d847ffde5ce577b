"""
Label sizing.

The layout engine only needs a width per label. Hosts that can measure real
text inject their own `measure_width`; `estimate_label_width` is the
font-metrics fallback used otherwise.
"""

from functools import lru_cache
from typing import Callable

MeasureWidth = Callable[[str], float]

MIN_WIDTH = 120
MAX_WIDTH = 600
HORIZONTAL_PADDING = 32
ICON_WIDTH = 30

# Average advance widths for a 14px sans-serif face
_NARROW = set("iljtf.,:;'|!()[] ")
_WIDE = set("mwMW@%")
_AVG_CHAR = 7.8


@lru_cache(maxsize=2048)
def estimate_label_width(label: str) -> float:
    """Approximate rendered width of a label, clamped to the node width range."""
    text_width = 0.0
    for ch in label:
        if ch in _NARROW:
            text_width += _AVG_CHAR * 0.5
        elif ch in _WIDE or ch.isupper():
            text_width += _AVG_CHAR * 1.3
        else:
            text_width += _AVG_CHAR
    return float(min(MAX_WIDTH, max(MIN_WIDTH, text_width + HORIZONTAL_PADDING)))


def node_width(label: str, measure: MeasureWidth, has_icons: bool = False) -> float:
    """Measured label width plus room for payload badges."""
    width = float(measure(label))
    if has_icons:
        width += ICON_WIDTH
    return width

from __future__ import annotations

import enum
import math

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16

# Absolute tolerance on width/height. Covers encoder rounding such as
# 854x480 (1.779) or 1080x1918 while keeping 4:3 (1.333) and square out.
ASPECT_TOLERANCE = 0.01


class AspectClass(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


def classify_aspect(width: int, height: int) -> AspectClass:
    """Bucket a frame size into landscape (16:9), portrait (9:16), or other."""
    if width <= 0 or height <= 0:
        return AspectClass.other
    ratio = width / height
    if math.isclose(ratio, LANDSCAPE_RATIO, rel_tol=0.0, abs_tol=ASPECT_TOLERANCE):
        return AspectClass.landscape
    if math.isclose(ratio, PORTRAIT_RATIO, rel_tol=0.0, abs_tol=ASPECT_TOLERANCE):
        return AspectClass.portrait
    return AspectClass.other


__all__ = ["AspectClass", "classify_aspect", "ASPECT_TOLERANCE", "LANDSCAPE_RATIO", "PORTRAIT_RATIO"]

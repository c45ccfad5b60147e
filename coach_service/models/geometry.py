"""
LIVECOACH Coach Service - Geometry

Joint angle calculation shared by every exercise analyzer.
"""

from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .pose_frame import Landmark


def angle_at(
    a: Optional["Landmark"],
    b: Optional["Landmark"],
    c: Optional["Landmark"],
) -> float:
    """
    Calculate the angle at vertex b formed by points a-b-c.

    Uses the arctangent difference of the rays b->a and b->c in the image
    plane, reflected into the non-reflex range.

    Args:
        a, b, c: Landmarks (only x and y are used)

    Returns:
        Angle in degrees (0-180). Returns 0 when any point is missing, so
        callers must check visibility before trusting a 0 reading.
    """
    if a is None or b is None or c is None:
        return 0.0

    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = abs(float(np.degrees(radians)))

    if angle > 180.0:
        angle = 360.0 - angle

    return angle

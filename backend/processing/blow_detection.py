from config import MOUTH_TOP, MOUTH_BOTTOM, MOUTH_LEFT, MOUTH_RIGHT
from config import MOUTH_MIN_WIDTH, BLOW_MIN_OPEN, BLOW_MAX_WIDTH, BLOW_MIN_RATIO


def _mouth_points(landmarks):
    try:
        points = [landmarks[i] for i in (MOUTH_TOP, MOUTH_BOTTOM, MOUTH_LEFT, MOUTH_RIGHT)]
    except (IndexError, KeyError, TypeError):
        return None
    if any(p is None for p in points):
        return None
    return points


def mouth_shape(landmarks):
    """Return (open_y, width) of the inner mouth in normalized image units, or None."""
    points = _mouth_points(landmarks)
    if points is None:
        return None
    top, bottom, left, right = points
    try:
        open_y = abs(float(bottom.y) - float(top.y))
        width = abs(float(right.x) - float(left.x))
    except (AttributeError, TypeError, ValueError):
        return None
    return open_y, width


def is_blowing_pose(
    landmarks,
    min_open: float = BLOW_MIN_OPEN,
    max_width: float = BLOW_MAX_WIDTH,
    min_ratio: float = BLOW_MIN_RATIO,
) -> bool:
    """Blowing = lips slightly parted and puckered.

    open/width above min_ratio means the mouth is closer to a circle than to
    the wide slit of a smile or speech.
    """
    shape = mouth_shape(landmarks)
    if shape is None:
        return False
    open_y, width = shape
    if width < MOUTH_MIN_WIDTH:
        return False
    ratio = open_y / width
    return open_y > min_open and width < max_width and ratio > min_ratio

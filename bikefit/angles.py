"""Joint angle computation from side-view pose landmarks.

Four bike-fit angles are measured on the side of the rider facing the
camera:

    - Knee: interior angle at the knee between hip and ankle. Read at
      bottom dead center (BDC) it reflects saddle height.
    - Hip: interior angle at the hip between shoulder and knee. Read at
      top dead center (TDC) it reflects hip closure.
    - Torso: deviation of the hip->shoulder segment from horizontal,
      0 = flat back, 90 = upright.
    - Elbow: interior angle at the elbow between shoulder and wrist.

Interior angles use the ``atan2(|cross|, dot)`` form, which stays
accurate near 0 and 180 degrees where ``arccos`` of a normalized dot
product loses precision.

Normalized landmark coordinates span [0, 1] over image width in x and
over image height in y, so on a non-square frame the same physical
distance maps to different normalized lengths. x is multiplied by the
aspect ratio (width / height) before any angle is measured.

Functions
---------
angle_at_vertex
    Interior angle at a vertex formed by two other points.
angle_from_horizontal
    Deviation of a segment from the horizontal axis.
get_side_landmarks
    Extract aspect-corrected joints for one side, all-or-nothing.
compute_angles
    Compute the knee / hip / torso / elbow angle set for one frame.
get_knee_landmark
    Raw knee position used as the pedal-stroke tracking signal.
detect_visible_side
    Pick the side of the body facing the camera.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np

from .constants import MP_LANDMARK_NAMES, SIDE_LANDMARKS, SIDES

logger = logging.getLogger(__name__)

VISIBILITY_THRESHOLD = 0.6
DEFAULT_ASPECT_RATIO = 16 / 9


# ── Landmark access ──────────────────────────────────────────────────


def _check_side(side: str) -> None:
    if side not in SIDES:
        raise ValueError(f"side must be one of {SIDES}, got {side!r}")


def _lookup(landmarks: Any, index: int) -> Any:
    """Fetch one landmark by MediaPipe index from a sequence or name mapping."""
    if landmarks is None:
        return None
    if isinstance(landmarks, dict):
        return landmarks.get(MP_LANDMARK_NAMES[index])
    if index >= len(landmarks):
        return None
    return landmarks[index]


def _field(lm: Any, key: str) -> Optional[float]:
    """Read x / y / visibility from a dict or a MediaPipe landmark object."""
    if isinstance(lm, dict):
        value = lm.get(key)
    else:
        value = getattr(lm, key, None)
    if value is None:
        return None
    value = float(value)
    if np.isnan(value):
        return None
    return value


def _visible_xy(lm: Any, threshold: float) -> Optional[np.ndarray]:
    """Return [x, y] if the landmark exists and passes the visibility gate."""
    if lm is None:
        return None
    x, y = _field(lm, "x"), _field(lm, "y")
    if x is None or y is None:
        return None
    vis = _field(lm, "visibility")
    if vis is not None and vis < threshold:
        return None
    return np.array([x, y])


# ── Geometry ─────────────────────────────────────────────────────────


def angle_at_vertex(a, b, c) -> float:
    """Unsigned interior angle at *b* formed by rays b->a and b->c.

    Parameters
    ----------
    a, b, c : array-like of shape (2,)
        Point coordinates; *b* is the vertex.

    Returns
    -------
    float
        Angle in degrees, in [0, 180]. Degenerate (zero-length) rays
        give 0.
    """
    v1 = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
    v2 = np.asarray(c, dtype=float) - np.asarray(b, dtype=float)
    dot = v1[0] * v2[0] + v1[1] * v2[1]
    cross = v1[0] * v2[1] - v1[1] * v2[0]
    return float(np.degrees(np.arctan2(abs(cross), dot)))


def angle_from_horizontal(a, b) -> float:
    """Absolute deviation of segment a->b from the horizontal axis.

    Orientation-agnostic: the result is the same whichever way the
    rider faces and whichever end is higher.

    Returns
    -------
    float
        Angle in degrees, in [0, 90].
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    return float(np.degrees(np.arctan2(abs(dy), abs(dx))))


# ── Frame-level extraction ───────────────────────────────────────────


def get_side_landmarks(
    landmarks: Any,
    side: str,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
    visibility_threshold: float = VISIBILITY_THRESHOLD,
) -> Optional[Dict[str, np.ndarray]]:
    """Extract the six joints of one side with x scaled by *aspect_ratio*.

    Parameters
    ----------
    landmarks : sequence or dict
        MediaPipe-ordered landmark list, or dict keyed by landmark name.
        Each landmark is a dict ``{"x", "y", "visibility"}`` or an object
        with the same attributes.
    side : {'left', 'right'}
        Body side to extract.
    aspect_ratio : float, optional
        Frame width / height (default 16/9).
    visibility_threshold : float, optional
        Minimum visibility for a joint to count as present (default 0.6).

    Returns
    -------
    dict or None
        ``{"shoulder", "elbow", "wrist", "hip", "knee", "ankle"}`` mapped
        to ``np.array([x * aspect_ratio, y])``, or None when any joint is
        missing or below the visibility threshold.

    Raises
    ------
    ValueError
        If *side* is not ``'left'`` or ``'right'``.
    """
    _check_side(side)
    result = {}
    for joint, idx in SIDE_LANDMARKS[side].items():
        xy = _visible_xy(_lookup(landmarks, idx), visibility_threshold)
        if xy is None:
            return None
        result[joint] = np.array([xy[0] * aspect_ratio, xy[1]])
    return result


def compute_angles(
    landmarks: Any,
    side: str,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
    visibility_threshold: float = VISIBILITY_THRESHOLD,
) -> Optional[Dict[str, float]]:
    """Compute the bike-fit angle set for one frame.

    Parameters
    ----------
    landmarks : sequence or dict
        Landmarks for a single frame (see :func:`get_side_landmarks`).
    side : {'left', 'right'}
        Side facing the camera.
    aspect_ratio : float, optional
        Frame width / height (default 16/9).
    visibility_threshold : float, optional
        Minimum joint visibility (default 0.6).

    Returns
    -------
    dict or None
        ``{"knee", "hip", "torso", "elbow"}`` in degrees, or None when
        the frame does not carry all six joints of *side*. A partial
        set is never returned.
    """
    lm = get_side_landmarks(landmarks, side, aspect_ratio, visibility_threshold)
    if lm is None:
        return None

    return {
        "knee": angle_at_vertex(lm["hip"], lm["knee"], lm["ankle"]),
        "hip": angle_at_vertex(lm["shoulder"], lm["hip"], lm["knee"]),
        "torso": angle_from_horizontal(lm["hip"], lm["shoulder"]),
        "elbow": angle_at_vertex(lm["shoulder"], lm["elbow"], lm["wrist"]),
    }


def get_knee_landmark(
    landmarks: Any,
    side: str,
    visibility_threshold: float = VISIBILITY_THRESHOLD,
) -> Optional[Dict[str, float]]:
    """Return the raw normalized knee position for *side*.

    No aspect correction is applied: only ``y`` is used, as the
    pedal-stroke tracking signal.

    Returns
    -------
    dict or None
        ``{"x", "y"}`` or None if the knee is missing or poorly visible.
    """
    _check_side(side)
    xy = _visible_xy(_lookup(landmarks, SIDE_LANDMARKS[side]["knee"]), visibility_threshold)
    if xy is None:
        return None
    return {"x": float(xy[0]), "y": float(xy[1])}


def detect_visible_side(landmarks: Any) -> str:
    """Pick the side of the body more visible to the camera.

    Sums the visibility of shoulder, elbow, wrist, hip, knee and ankle
    on each side. Missing landmarks count as 0. Ties go to the right.

    Returns
    -------
    str
        ``'left'`` or ``'right'``.
    """
    totals = {}
    for side in SIDES:
        total = 0.0
        for idx in SIDE_LANDMARKS[side].values():
            lm = _lookup(landmarks, idx)
            vis = _field(lm, "visibility") if lm is not None else None
            total += vis or 0.0
        totals[side] = total
    return "left" if totals["left"] > totals["right"] else "right"

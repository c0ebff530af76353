"""Session-level reduction of pedal cycles into fit recommendations.

A recording session yields one cycle summary per pedal revolution.
Each channel is reduced to a single representative value per cycle:

    - knee: maximum over the cycle (extension at BDC);
    - hip: minimum over the cycle (closure at TDC);
    - torso, elbow: cycle mean.

Across cycles, the session mean is compared with the channel's target
range. A mean inside the range is ``green``; outside it is ``yellow``,
or ``red`` when it misses the range by more than ``red_margin``
degrees. Only the mean drives the status: the standard deviation is
reported but a noisy channel centered in range stays green.

The last seconds of a session usually show the rider unclipping and
stepping off; :func:`trim_cycles` drops them before analysis.

Functions
---------
resolve_thresholds
    Default thresholds with target ranges overridden.
trim_cycles
    Drop cycles recorded during the dismount at the end of a session.
analyze_session
    Per-channel statistics, status and suggestion.
classify_mean
    Status and suggestion for one channel mean.
live_status
    Per-frame status of an instantaneous angle.
cadence_summary
    Descriptive statistics of per-cycle cadence.

Attributes
----------
THRESHOLDS : dict
    Default target range, label and rider-facing texts per channel.
"""

import copy
import logging
import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .config import validate_target_ranges
from .constants import ANGLE_CHANNELS, CHANNEL_STATISTIC

logger = logging.getLogger(__name__)

TRIM_END_MS = 5000.0
RED_MARGIN_DEG = 10.0

STATUS_GREEN = "green"
STATUS_YELLOW = "yellow"
STATUS_RED = "red"


class InsufficientDataError(ValueError):
    """Raised when a session holds no cycle that can be analyzed."""


class TrimmedCycles(list):
    """Cycle list whose dismount tail has already been removed.

    ``trim_end_ms`` records the tail length that was cut.
    """

    def __init__(self, iterable=(), trim_end_ms: float = TRIM_END_MS):
        super().__init__(iterable)
        self.trim_end_ms = trim_end_ms


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves upward, so 143.25 -> 143.3 and 62.5 -> 63.

    The builtin :func:`round` rounds halves to even.
    """
    scale = 10 ** ndigits
    return math.floor(value * scale + 0.5) / scale


THRESHOLDS = {
    "knee": {
        "name": "Knee (at BDC)",
        "category": "Injury risk",
        "min": 135,
        "max": 150,
        "low_text": (
            "Your knee is bending too much under load at the bottom of the pedal "
            "stroke. This places excessive stress on the patellar tendon and can "
            "lead to anterior knee pain over time. Raise your saddle in small "
            "increments (5 mm at a time) until this angle increases into the "
            "target range."
        ),
        "high_text": (
            "Your leg is overextending at the bottom of the pedal stroke. This can "
            "strain the hamstrings and IT band, and may cause your hips to rock "
            "side to side to reach the pedals. Lower your saddle in small "
            "increments (5 mm at a time) until this angle decreases into the "
            "target range."
        ),
        "good_text": (
            "Knee extension is in a healthy range. Your saddle height is well-set, "
            "no changes needed."
        ),
    },
    "hip": {
        "name": "Hip (at TDC)",
        "category": "Injury risk",
        "min": 60,
        "max": 80,
        "low_text": (
            "Your hip is closing too tightly at the top of the pedal stroke. Over "
            "time, this can lead to hip impingement, lower-back pain, and "
            "restricted breathing. Consider raising your handlebars, using a "
            "shorter stem, or moving the saddle back slightly to open up this angle."
        ),
        "high_text": (
            "Your hip angle is unusually open at the top of the stroke, which may "
            "indicate the saddle is too far back or too low relative to the "
            "handlebars. Check your saddle fore/aft position: you may need to "
            "slide it forward slightly."
        ),
        "good_text": (
            "Hip closure is in a comfortable, sustainable range. No risk of "
            "impingement or back strain from this angle."
        ),
    },
    "torso": {
        "name": "Torso",
        "category": "Mixed",
        "min": 30,
        "max": 55,
        "low_text": (
            "Your riding position is quite aggressive. While aerodynamically "
            "efficient, this degree of forward lean can cause lower-back strain, "
            "neck pain, and shoulder tension on longer rides. If you experience "
            "any discomfort, consider raising your handlebars or using a shorter "
            "stem. If you're comfortable, this is a performance-oriented position "
            "and may not need adjustment."
        ),
        "high_text": (
            "Your torso is relatively upright. This is a comfortable position but "
            "comes with an aerodynamic penalty. If you're looking to improve speed, "
            "consider lowering handlebars or extending the stem for a more aero "
            "profile. If comfort is your priority, there's no issue staying here."
        ),
        "good_text": (
            "Torso angle is in a good range: a solid balance between aerodynamic "
            "efficiency and comfort."
        ),
    },
    "elbow": {
        "name": "Elbow",
        "category": "Comfort",
        "min": 145,
        "max": 170,
        "low_text": (
            "Your arms are quite bent, which can lead to forearm fatigue and wrist "
            "pressure on longer rides. This usually means the handlebars are too "
            "close. Consider a longer stem, or slide your saddle back slightly. "
            "That said, this is a comfort concern: if it feels fine, it's not harmful."
        ),
        "high_text": (
            "Your arms are nearly locked out, which transmits road vibration "
            "directly into your shoulders and neck. A slight elbow bend acts as a "
            "natural shock absorber. Consider a shorter stem or sliding the saddle "
            "forward slightly. This is a comfort concern, not an injury risk, but "
            "you'll likely feel better with a bit more bend."
        ),
        "good_text": (
            "Elbow bend is in a comfortable range, enough to absorb road vibration "
            "without causing arm fatigue."
        ),
    },
}


def resolve_thresholds(target_ranges: Optional[dict] = None) -> Dict[str, dict]:
    """Return a copy of ``THRESHOLDS`` with target ranges overridden.

    Parameters
    ----------
    target_ranges : dict, optional
        ``{channel: [min, max]}`` for any subset of channels.

    Raises
    ------
    ValueError
        If a channel is unknown or a range does not satisfy min < max.
    """
    thresholds = copy.deepcopy(THRESHOLDS)
    if target_ranges:
        for channel, (lo, hi) in validate_target_ranges(target_ranges).items():
            thresholds[channel]["min"] = lo
            thresholds[channel]["max"] = hi
    return thresholds


def trim_cycles(cycles: Sequence[dict], trim_end_ms: float = TRIM_END_MS) -> Sequence[dict]:
    """Drop cycles recorded during the last *trim_end_ms* of a session.

    The cut is made on timestamps, not on counts: every cycle whose
    timestamp lies within *trim_end_ms* of the last cycle is removed.
    Sessions with at most one cycle, or spanning no more than
    *trim_end_ms*, are returned as-is.

    Parameters
    ----------
    cycles : list of dict
        Cycle summaries in chronological order.
    trim_end_ms : float, optional
        Length of the dismount tail in milliseconds (default 5000).

    Returns
    -------
    list of dict
        The input itself when nothing is trimmed, otherwise a
        :class:`TrimmedCycles` list. A :class:`TrimmedCycles` input already
        trimmed with the same *trim_end_ms* is returned unchanged, so
        trimming twice equals trimming once. With a different tail length
        it is trimmed again relative to its own last cycle.

    Raises
    ------
    TypeError
        If *cycles* is not a list or tuple.
    """
    if not isinstance(cycles, (list, tuple)):
        raise TypeError("cycles must be a list of cycle summaries")
    if len(cycles) <= 1:
        return cycles
    if isinstance(cycles, TrimmedCycles) and cycles.trim_end_ms == trim_end_ms:
        return cycles

    first_time = cycles[0]["timestamp"]
    last_time = cycles[-1]["timestamp"]
    if last_time - first_time <= trim_end_ms:
        return cycles

    cutoff = last_time - trim_end_ms
    trimmed = TrimmedCycles((c for c in cycles if c["timestamp"] <= cutoff), trim_end_ms)
    logger.debug(f"Trimmed {len(cycles) - len(trimmed)} dismount cycles")
    return trimmed


def classify_mean(mean: float, threshold: dict,
                  red_margin: float = RED_MARGIN_DEG) -> Tuple[str, str]:
    """Classify a channel mean against its threshold.

    Returns
    -------
    tuple of str
        ``(status, suggestion)`` with status in
        {``'green'``, ``'yellow'``, ``'red'``}.
    """
    lo, hi = threshold["min"], threshold["max"]
    if mean < lo:
        status = STATUS_RED if lo - mean > red_margin else STATUS_YELLOW
        return status, threshold["low_text"]
    if mean > hi:
        status = STATUS_RED if mean - hi > red_margin else STATUS_YELLOW
        return status, threshold["high_text"]
    return STATUS_GREEN, threshold["good_text"]


def analyze_session(
    cycles: Sequence[dict],
    target_ranges: Optional[dict] = None,
    red_margin: float = RED_MARGIN_DEG,
) -> list:
    """Reduce a session's cycles to one classified result per channel.

    Parameters
    ----------
    cycles : list of dict
        Cycle summaries (usually the output of :func:`trim_cycles`).
    target_ranges : dict, optional
        ``{channel: [min, max]}`` overriding the default ranges.
    red_margin : float, optional
        Distance outside the range, in degrees, beyond which a channel
        is red rather than yellow (default 10).

    Returns
    -------
    list of dict
        One entry per channel in the order knee, hip, torso, elbow, with
        keys ``key``, ``name``, ``category``, ``avg``, ``min``, ``max``,
        ``std`` (population), ``target_min``, ``target_max``, ``status``
        and ``suggestion``. Statistics are rounded to 0.1 degree.

    Raises
    ------
    TypeError
        If *cycles* is not a list or tuple.
    InsufficientDataError
        If *cycles* is empty.
    """
    if not isinstance(cycles, (list, tuple)):
        raise TypeError("cycles must be a list of cycle summaries")
    if len(cycles) == 0:
        raise InsufficientDataError("No pedal cycles to analyze")

    thresholds = resolve_thresholds(target_ranges)

    results = []
    for key in ANGLE_CHANNELS:
        threshold = thresholds[key]
        stat = CHANNEL_STATISTIC[key]
        values = np.array([c["angles"][key][stat] for c in cycles], dtype=float)

        avg = float(np.mean(values))
        status, suggestion = classify_mean(avg, threshold, red_margin)

        results.append({
            "key": key,
            "name": threshold["name"],
            "category": threshold["category"],
            "avg": round_half_up(avg, 1),
            "min": round_half_up(float(np.min(values)), 1),
            "max": round_half_up(float(np.max(values)), 1),
            "std": round_half_up(float(np.std(values)), 1),
            "target_min": threshold["min"],
            "target_max": threshold["max"],
            "status": status,
            "suggestion": suggestion,
        })

    logger.info(
        f"Analyzed {len(cycles)} cycles: "
        + ", ".join(f"{r['key']}={r['avg']} ({r['status']})" for r in results)
    )
    return results


def live_status(channel: str, value: float, target_ranges: Optional[dict] = None,
                margin: float = RED_MARGIN_DEG) -> str:
    """Status of an instantaneous angle, for live per-frame feedback.

    Green inside the target range (bounds included), yellow within
    *margin* degrees of it, red beyond.
    """
    if channel not in ANGLE_CHANNELS:
        raise ValueError(f"Unknown angle channel '{channel}'. Available: {list(ANGLE_CHANNELS)}")
    threshold = resolve_thresholds(target_ranges)[channel]
    lo, hi = threshold["min"], threshold["max"]
    if lo <= value <= hi:
        return STATUS_GREEN
    if lo - margin <= value <= hi + margin:
        return STATUS_YELLOW
    return STATUS_RED


def cadence_summary(cycles: Sequence[dict]) -> dict:
    """Descriptive statistics of per-cycle cadence.

    Returns
    -------
    dict
        Keys: ``n_cycles``, ``mean``, ``std``, ``cv`` (percent),
        ``min``, ``max``. All zero for an empty session.
    """
    values = np.array([c["cadence"] for c in cycles], dtype=float)
    if values.size == 0:
        return {"n_cycles": 0, "mean": 0.0, "std": 0.0, "cv": 0.0, "min": 0.0, "max": 0.0}

    mean_cad = float(np.mean(values))
    std_cad = float(np.std(values))
    cv_cad = float(std_cad / mean_cad * 100) if mean_cad > 0 else 0.0
    return {
        "n_cycles": int(values.size),
        "mean": round_half_up(mean_cad, 1),
        "std": round_half_up(std_cad, 1),
        "cv": round_half_up(cv_cad, 1),
        "min": round_half_up(float(np.min(values)), 1),
        "max": round_half_up(float(np.max(values)), 1),
    }

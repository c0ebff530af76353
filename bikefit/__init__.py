"""bikefit -- Side-view bike-fit analysis from pose landmarks.

Quick start, one frame at a time::

    from bikefit import FitSession
    session = FitSession()
    for landmarks, t_ms in frames:          # from any pose tracker
        if session.process_frame(landmarks, t_ms) == "complete":
            break
    session.stop()
    summary = session.summarize()
    for r in summary["results"]:
        print(r["name"], r["avg"], r["status"])

Lower-level building blocks::

    from bikefit import compute_angles, CadenceDetector, trim_cycles, analyze_session
    angles = compute_angles(landmarks, "left", aspect_ratio=16 / 9)
    detector = CadenceDetector()
    detector.register_cycle_listener(cycles.append)
    detector.add_sample(t_ms, knee_y, angles)
    results = analyze_session(trim_cycles(cycles), target_ranges={"knee": [138, 148]})
"""

__version__ = "0.2.0"

from .angles import (
    angle_at_vertex,
    angle_from_horizontal,
    get_side_landmarks,
    compute_angles,
    get_knee_landmark,
    detect_visible_side,
)
from .cadence import CadenceDetector
from .analysis import (
    THRESHOLDS,
    InsufficientDataError,
    TrimmedCycles,
    round_half_up,
    resolve_thresholds,
    trim_cycles,
    analyze_session,
    classify_mean,
    live_status,
    cadence_summary,
)
from .session import FitSession
from .schema import create_session_record, load_json, save_json, load_frames
from .config import (
    load_config,
    save_config,
    merge_config,
    get_target_ranges,
    validate_target_ranges,
    validate_config,
    DEFAULT_CONFIG,
)

__all__ = [
    # Angles
    "angle_at_vertex",
    "angle_from_horizontal",
    "get_side_landmarks",
    "compute_angles",
    "get_knee_landmark",
    "detect_visible_side",
    # Cycle segmentation
    "CadenceDetector",
    # Session analysis
    "THRESHOLDS",
    "InsufficientDataError",
    "TrimmedCycles",
    "round_half_up",
    "resolve_thresholds",
    "trim_cycles",
    "analyze_session",
    "classify_mean",
    "live_status",
    "cadence_summary",
    # Session
    "FitSession",
    # Schema
    "create_session_record",
    "load_json",
    "save_json",
    "load_frames",
    # Config
    "load_config",
    "save_config",
    "merge_config",
    "get_target_ranges",
    "validate_target_ranges",
    "validate_config",
    "DEFAULT_CONFIG",
    # Meta
    "__version__",
]

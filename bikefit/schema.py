"""JSON session record for bikefit.

A session record stores what a recording produced so it can be
re-analyzed later, for example against different target ranges.

Functions
---------
create_session_record
    Build a session record dict.
save_json
    Save a record to file with numpy type conversion.
load_json
    Load and validate a session record file.
load_frames
    Load a recorded landmark stream for replay.
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Union

import numpy as np


def _convert_numpy(obj: Any) -> Any:
    """Recursively convert numpy types to Python types for JSON serialization."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: _convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_numpy(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj


def create_session_record(
    cycles: List[dict],
    side: Optional[str] = None,
    aspect_ratio: Optional[float] = None,
    n_frames: int = 0,
    analysis: Optional[dict] = None,
) -> dict:
    """Create a session record.

    Parameters
    ----------
    cycles : list of dict
        Cycle summaries captured while recording (untrimmed).
    side : {'left', 'right'}, optional
        Side that was measured.
    aspect_ratio : float, optional
        Frame width / height used for the angles.
    n_frames : int
        Number of frames consumed.
    analysis : dict, optional
        Output of :meth:`FitSession.summarize`.

    Returns
    -------
    dict
    """
    from . import __version__
    return {
        "bikefit_version": __version__,
        "meta": {
            "side": side,
            "aspect_ratio": aspect_ratio,
            "n_frames": n_frames,
        },
        "cycles": list(cycles),
        "analysis": analysis,
    }


def save_json(data: dict, path: Union[str, Path], indent: int = 2) -> None:
    """Save a session record to file.

    Automatically converts numpy types to Python builtins before
    serialization.

    Parameters
    ----------
    data : dict
        Session record.
    path : str or Path
        Output file path. Parent directories are created if needed.
    indent : int, optional
        JSON indentation level (default 2).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    converted = _convert_numpy(data)
    with open(path, "w") as f:
        json.dump(converted, f, indent=indent, ensure_ascii=False)


def _read_json(path: Union[str, Path]) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path) as f:
        return json.load(f)


def load_json(path: Union[str, Path]) -> dict:
    """Load and validate a session record file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON content is not a session record.
    """
    data = _read_json(path)

    if not isinstance(data, dict):
        raise ValueError("JSON root must be a dict")
    if "meta" not in data:
        raise ValueError("Missing 'meta' key in JSON")
    if not isinstance(data.get("cycles"), list):
        raise ValueError("Missing 'cycles' list in JSON")

    return data


def load_frames(path: Union[str, Path]) -> dict:
    """Load a recorded landmark stream.

    The file holds ``{"aspect_ratio": float?, "frames": [{"timestamp":
    ms, "landmarks": [...] or {...}}, ...]}``. Frames are returned in
    file order.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If ``frames`` is missing or a frame lacks a timestamp.
    """
    data = _read_json(path)

    if not isinstance(data, dict) or not isinstance(data.get("frames"), list):
        raise ValueError("Frame recording must be a dict with a 'frames' list")
    for i, frame in enumerate(data["frames"]):
        if not isinstance(frame, dict) or "timestamp" not in frame:
            raise ValueError(f"Frame {i} has no 'timestamp'")
    return data

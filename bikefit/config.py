"""Analysis configuration management.

Supports JSON and YAML config files so a fitter can keep per-rider
target ranges and detector tuning alongside recorded sessions.
Configuration is merged against ``DEFAULT_CONFIG`` so partial
overrides work seamlessly.

Functions
---------
load_config
    Load config from a JSON or YAML file.
save_config
    Save config to a JSON or YAML file.
merge_config
    Merge a partial config over the defaults.
get_target_ranges
    Extract and validate the per-channel target ranges of a config.
validate_config
    Check section types, detector parameter names and target ranges.
validate_target_ranges
    Check that target ranges name known channels and have min < max.

Attributes
----------
DEFAULT_CONFIG : dict
    Default configuration values for all analysis stages.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .constants import ANGLE_CHANNELS

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "angles": {
        "visibility_threshold": 0.6,
        "aspect_ratio": 16 / 9,
    },
    "cadence": {
        "window_ms": 4000.0,
        "min_samples": 10,
        "lookback": 5,
        "smooth_radius": 2,
        "min_prominence": 0.01,
        "min_peak_gap_ms": 300.0,
        "min_cadence_rpm": 40.0,
        "max_cadence_rpm": 120.0,
        "steady_cycles": 3,
        "max_period_variation": 0.25,
        "stop_timeout_ms": 2000.0,
    },
    "analysis": {
        "trim_end_ms": 5000.0,
        "red_margin_deg": 10.0,
        "target_ranges": {
            "knee": [135, 150],
            "hip": [60, 80],
            "torso": [30, 55],
            "elbow": [145, 170],
        },
    },
}


def load_config(path: Union[str, Path]) -> dict:
    """Load config from a JSON or YAML file.

    The loaded configuration is merged against ``DEFAULT_CONFIG``
    so partial overrides work correctly.

    Parameters
    ----------
    path : str or Path
        Path to config file (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    dict
        Merged configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the config file does not exist.
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    ValueError
        If the file content is not a dict, names an unknown detector
        parameter, or its target ranges are invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path) as f:
            cfg = yaml.safe_load(f)
    else:
        with open(path) as f:
            cfg = json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError("Config must be a dict")

    merged = merge_config(cfg)
    validate_config(merged)
    logger.info(f"Loaded config from {path}")
    return merged


def save_config(config: dict, path: Union[str, Path]) -> str:
    """Save config to a JSON or YAML file.

    Parameters
    ----------
    config : dict
        Configuration dictionary.
    path : str or Path
        Output file path (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    str
        Path to the saved file.

    Raises
    ------
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        with open(path, "w") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved config to {path}")
    return str(path)


def validate_target_ranges(ranges: dict) -> Dict[str, Tuple[float, float]]:
    """Validate a ``{channel: [min, max]}`` mapping.

    Returns
    -------
    dict
        Same channels mapped to ``(float(min), float(max))`` tuples.

    Raises
    ------
    TypeError
        If *ranges* is not a dict.
    ValueError
        If a channel is unknown, a range is not a pair, or min >= max.
    """
    if not isinstance(ranges, dict):
        raise TypeError("target ranges must be a dict of channel -> [min, max]")
    result = {}
    for channel, bounds in ranges.items():
        if channel not in ANGLE_CHANNELS:
            raise ValueError(f"Unknown angle channel '{channel}'. Available: {list(ANGLE_CHANNELS)}")
        try:
            lo, hi = bounds
        except (TypeError, ValueError):
            raise ValueError(f"Target range for '{channel}' must be a [min, max] pair, got {bounds!r}")
        lo, hi = float(lo), float(hi)
        if not lo < hi:
            raise ValueError(f"Target range for '{channel}' must have min < max, got [{lo}, {hi}]")
        result[channel] = (lo, hi)
    return result


def merge_config(config: Optional[dict] = None) -> dict:
    """Return a fresh copy of ``DEFAULT_CONFIG`` with *config* merged over it."""
    return _deep_merge(copy.deepcopy(DEFAULT_CONFIG), config or {})


def get_target_ranges(config: Optional[dict] = None) -> Dict[str, Tuple[float, float]]:
    """Return validated target ranges from *config* (defaults when None)."""
    defaults = DEFAULT_CONFIG["analysis"]["target_ranges"]
    ranges = dict(defaults)
    if config:
        ranges.update(config.get("analysis", {}).get("target_ranges", {}))
    return validate_target_ranges(ranges)


def validate_config(config: dict) -> dict:
    """Check a merged config before it reaches the detector or analyzer.

    Returns
    -------
    dict
        The config, unchanged.

    Raises
    ------
    ValueError
        If a section is not a dict, the ``cadence`` section names a
        parameter the detector does not take, or the target ranges are
        not a valid ``{channel: [min, max]}`` dict.
    """
    for section in DEFAULT_CONFIG:
        if not isinstance(config.get(section), dict):
            raise ValueError(f"Config section '{section}' must be a dict")

    unknown = sorted(set(config["cadence"]) - set(DEFAULT_CONFIG["cadence"]))
    if unknown:
        raise ValueError(
            f"Unknown cadence parameter(s) {unknown}. "
            f"Available: {list(DEFAULT_CONFIG['cadence'])}"
        )

    ranges = config["analysis"].get("target_ranges", {})
    if not isinstance(ranges, dict):
        raise ValueError("analysis.target_ranges must be a dict of channel -> [min, max]")
    get_target_ranges(config)
    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result

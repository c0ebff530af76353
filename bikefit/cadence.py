"""Real-time pedal-stroke segmentation from a knee position signal.

The vertical coordinate of the drive-side knee oscillates once per
crank revolution. In normalized image coordinates y grows downward, so:

    - a local maximum of y (peak) is the knee at its lowest point,
      bottom dead center (BDC);
    - a local minimum of y (trough) is the knee at its highest point,
      top dead center (TDC).

A pedal cycle runs from one accepted peak to the next. Each sample is
examined once, ``lookback`` samples after it arrived, so that it can be
compared with neighbors on both sides. Every sample is smoothed with a
centered moving average (``smooth_radius`` on each side) before the
comparison.

Detections are filtered three ways before they count:

    - prominence: the smoothed value must differ from the mean of the
      sliding window by more than ``min_prominence`` (normalized units);
    - spacing: two peaks (or two troughs) closer than
      ``min_peak_gap_ms`` are treated as one;
    - plausibility: a peak-to-peak period outside
      [``min_cadence_rpm``, ``max_cadence_rpm``] does not form a cycle.

Pedaling is *steady* when the last ``steady_cycles`` periods all stay
within ``max_period_variation`` of their mean, and has *stopped* when
no cycle has been accepted for ``stop_timeout_ms``.

Time is supplied by the caller in milliseconds; the detector never
reads a clock.

Classes
-------
CadenceDetector
    Sliding-window peak/trough detector emitting one summary per cycle.
"""

import logging
import math
from collections import deque
from typing import Callable, Dict, List, Optional

import numpy as np

from .constants import ANGLE_CHANNELS

logger = logging.getLogger(__name__)

CycleListener = Callable[[dict], None]


def _summarize_cycle(cycle_number: int, timestamp: float, rpm: float,
                     cycle_angles: List[Dict[str, float]]) -> dict:
    """Reduce the per-frame angle sets of one cycle to a cycle summary."""
    knee = np.array([a["knee"] for a in cycle_angles], dtype=float)
    hip = np.array([a["hip"] for a in cycle_angles], dtype=float)
    torso = np.array([a["torso"] for a in cycle_angles], dtype=float)
    elbow = np.array([a["elbow"] for a in cycle_angles], dtype=float)
    return {
        "cycle_number": cycle_number,
        "timestamp": timestamp,
        "cadence": int(math.floor(rpm + 0.5)),
        "angles": {
            "knee": {"max": float(np.max(knee))},
            "hip": {"min": float(np.min(hip))},
            "torso": {"avg": float(np.mean(torso))},
            "elbow": {"avg": float(np.mean(elbow))},
        },
    }


class CadenceDetector:
    """Detect pedal cycles in a stream of knee positions.

    Parameters
    ----------
    window_ms : float
        Duration of the sliding sample window (default 4000).
    min_samples : int
        Samples required before detection starts (default 10).
    lookback : int
        Delay, in samples, before a sample is examined; also the number
        of neighbors compared on each side (default 5).
    smooth_radius : int
        Half-width of the moving average (default 2, i.e. 5 points).
    min_prominence : float
        Minimum distance between an extremum and the window mean, in
        normalized coordinates (default 0.01).
    min_peak_gap_ms : float
        Minimum spacing between two accepted peaks or troughs
        (default 300).
    min_cadence_rpm, max_cadence_rpm : float
        Accepted cadence band (default 40-120).
    steady_cycles : int
        Number of recent periods checked for steadiness (default 3).
    max_period_variation : float
        Largest relative deviation of a period from the recent mean
        still considered steady (default 0.25).
    stop_timeout_ms : float
        Time without a cycle after which pedaling counts as stopped
        (default 2000).

    Notes
    -----
    ``lookback`` and ``smooth_radius`` are counted in samples and were
    tuned for a camera running at roughly 30 fps.
    """

    def __init__(
        self,
        window_ms: float = 4000.0,
        min_samples: int = 10,
        lookback: int = 5,
        smooth_radius: int = 2,
        min_prominence: float = 0.01,
        min_peak_gap_ms: float = 300.0,
        min_cadence_rpm: float = 40.0,
        max_cadence_rpm: float = 120.0,
        steady_cycles: int = 3,
        max_period_variation: float = 0.25,
        stop_timeout_ms: float = 2000.0,
    ):
        if min_cadence_rpm >= max_cadence_rpm:
            raise ValueError("min_cadence_rpm must be lower than max_cadence_rpm")
        if lookback < 1 or smooth_radius < 0 or steady_cycles < 1:
            raise ValueError("lookback and steady_cycles must be >= 1, smooth_radius >= 0")
        self.window_ms = window_ms
        self.min_samples = min_samples
        self.lookback = lookback
        self.smooth_radius = smooth_radius
        self.min_prominence = min_prominence
        self.min_peak_gap_ms = min_peak_gap_ms
        self.min_cadence_rpm = min_cadence_rpm
        self.max_cadence_rpm = max_cadence_rpm
        self.steady_cycles = steady_cycles
        self.max_period_variation = max_period_variation
        self.stop_timeout_ms = stop_timeout_ms
        self._listener: Optional[CycleListener] = None
        self.reset()

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "CadenceDetector":
        """Build a detector from the ``cadence`` section of a config dict."""
        from .config import DEFAULT_CONFIG

        params = dict(DEFAULT_CONFIG["cadence"])
        if config:
            overrides = config.get("cadence", {})
            unknown = sorted(set(overrides) - set(params))
            if unknown:
                raise ValueError(f"Unknown cadence parameter(s) {unknown}")
            params.update(overrides)
        return cls(**params)

    def reset(self) -> None:
        """Drop all samples, extrema, counters and accumulated angles.

        The registered cycle listener is kept.
        """
        self._samples = deque()          # (t, y)
        self._peaks: List[float] = []    # BDC timestamps
        self._troughs: List[float] = []  # TDC timestamps
        self._cycle_angles: List[Dict[str, float]] = []
        self.is_steady = False
        self.cycle_count = 0
        self.last_cycle_time: Optional[float] = None
        self.cadence: Optional[float] = None

    def register_cycle_listener(self, listener) -> None:
        """Set the single receiver of cycle summaries.

        *listener* is a callable taking the summary dict, or an object
        with an ``on_cycle(summary)`` method. Passing None unregisters.
        """
        if listener is not None and not callable(listener):
            on_cycle = getattr(listener, "on_cycle", None)
            if not callable(on_cycle):
                raise TypeError("listener must be callable or define on_cycle()")
            listener = on_cycle
        self._listener = listener

    # ── Read-only views ──────────────────────────────────────────────

    @property
    def n_samples(self) -> int:
        return len(self._samples)

    @property
    def peaks(self) -> List[float]:
        return list(self._peaks)

    @property
    def troughs(self) -> List[float]:
        return list(self._troughs)

    @property
    def is_warming_up(self) -> bool:
        return len(self._samples) < max(self.min_samples, 2 * self.lookback + 1)

    # ── Input ────────────────────────────────────────────────────────

    def add_sample(self, timestamp: float, position: float,
                   angles: Optional[Dict[str, float]] = None) -> None:
        """Feed one frame.

        Parameters
        ----------
        timestamp : float
            Frame time in milliseconds, non-decreasing across calls.
        position : float
            Normalized vertical knee coordinate.
        angles : dict, optional
            Angle set of the frame (``knee``, ``hip``, ``torso``,
            ``elbow``). None while the side is not yet known, or when the
            frame's angles are unavailable.

        Raises
        ------
        ValueError
            If *timestamp* is earlier than the previous sample.
        """
        timestamp = float(timestamp)
        if self._samples and timestamp < self._samples[-1][0]:
            raise ValueError(
                f"timestamps must be non-decreasing: {timestamp} < {self._samples[-1][0]}"
            )

        self._samples.append((timestamp, float(position)))
        if angles is not None:
            self._cycle_angles.append({k: float(angles[k]) for k in ANGLE_CHANNELS})

        cutoff = timestamp - self.window_ms
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

        if len(self._samples) < self.min_samples:
            return

        self._detect_extrema(timestamp)

    def has_stopped(self, timestamp: float) -> bool:
        """True once more than ``stop_timeout_ms`` passed since the last cycle.

        Always False before the first cycle has been accepted.
        """
        if self.last_cycle_time is None:
            return False
        return timestamp - self.last_cycle_time > self.stop_timeout_ms

    # ── Detection ────────────────────────────────────────────────────

    def _smooth(self, values: np.ndarray, idx: int) -> float:
        lo = max(0, idx - self.smooth_radius)
        hi = min(len(values) - 1, idx + self.smooth_radius)
        return float(np.mean(values[lo:hi + 1]))

    def _detect_extrema(self, timestamp: float) -> None:
        n = len(self._samples)
        lb = self.lookback
        if n < lb * 2 + 1:
            return

        values = np.fromiter((s[1] for s in self._samples), dtype=float, count=n)
        idx = n - 1 - lb
        candidate_t = self._samples[idx][0]
        smooth_y = self._smooth(values, idx)

        is_peak = True
        is_trough = True
        for i in range(idx - lb, idx + lb + 1):
            if i == idx:
                continue
            sy = self._smooth(values, i)
            if sy >= smooth_y:
                is_peak = False
            if sy <= smooth_y:
                is_trough = False

        prominence = abs(smooth_y - float(np.mean(values)))
        if is_peak != is_trough and prominence > self.min_prominence:
            if is_peak:
                if not self._peaks or candidate_t - self._peaks[-1] > self.min_peak_gap_ms:
                    self._peaks.append(candidate_t)
                    self._check_cycle_complete(candidate_t)
            elif not self._troughs or candidate_t - self._troughs[-1] > self.min_peak_gap_ms:
                self._troughs.append(candidate_t)

        old_cutoff = timestamp - self.window_ms * 2
        while self._peaks and self._peaks[0] < old_cutoff:
            self._peaks.pop(0)
        while self._troughs and self._troughs[0] < old_cutoff:
            self._troughs.pop(0)

    def _check_cycle_complete(self, peak_time: float) -> None:
        if len(self._peaks) < 2:
            return

        period = peak_time - self._peaks[-2]
        rpm = 60000.0 / period
        if rpm < self.min_cadence_rpm or rpm > self.max_cadence_rpm:
            logger.debug(f"Period {period:.0f} ms rejected ({rpm:.1f} RPM)")
            return

        self.cycle_count += 1
        self.last_cycle_time = peak_time
        self.cadence = rpm

        cycle_angles = self._cycle_angles
        self._cycle_angles = []

        if cycle_angles:
            summary = _summarize_cycle(self.cycle_count, peak_time, rpm, cycle_angles)
            if self._listener is not None:
                self._listener(summary)

        self._check_steady()

    def _check_steady(self) -> None:
        n = self.steady_cycles
        if len(self._peaks) < n + 1:
            self.is_steady = False
            return

        periods = np.diff(np.array(self._peaks[-(n + 1):], dtype=float))
        avg_period = float(np.mean(periods))
        max_variation = float(np.max(np.abs(periods - avg_period) / avg_period))

        was_steady = self.is_steady
        self.is_steady = max_variation < self.max_period_variation
        if self.is_steady != was_steady:
            logger.debug(
                f"Steady={self.is_steady} (period {avg_period:.0f} ms, "
                f"variation {max_variation:.0%})"
            )

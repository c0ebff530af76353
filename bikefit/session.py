"""Recording session controller.

Drives one bike-fit session from the first frame to the final
recommendations, without any explicit calibration step from the rider:

    detecting
        The rider starts pedaling. Every frame votes for the side of the
        body more visible to the camera, and that side's knee height is
        fed to the cadence detector without angles. As soon as the
        detector reports steady pedaling, the side with the most votes
        is locked and recording starts.
    recording
        Angles are computed for the locked side every frame and fed with
        the knee height. Each completed pedal cycle is collected. When
        the detector reports that pedaling stopped, the session
        completes on its own.
    complete
        No more frames are consumed; :meth:`FitSession.summarize` trims
        the dismount tail and classifies the remaining cycles.

Classes
-------
FitSession
    Frame-by-frame state machine around :class:`CadenceDetector`.
"""

import logging
from typing import Any, List, Optional

from .analysis import InsufficientDataError, analyze_session, cadence_summary, trim_cycles
from .angles import compute_angles, detect_visible_side, get_knee_landmark
from .cadence import CadenceDetector
from .config import get_target_ranges, merge_config, validate_config

logger = logging.getLogger(__name__)

DETECTING = "detecting"
RECORDING = "recording"
COMPLETE = "complete"


class FitSession:
    """Frame-by-frame bike-fit session.

    Parameters
    ----------
    config : dict, optional
        Configuration (see :data:`bikefit.config.DEFAULT_CONFIG`).
        Partial dicts are merged over the defaults. Target ranges are
        read again on every :meth:`summarize`, so they can be edited
        through :attr:`config` while a session runs.
    aspect_ratio : float, optional
        Frame width / height. Defaults to ``config["angles"]["aspect_ratio"]``.
    """

    def __init__(self, config: Optional[dict] = None, aspect_ratio: Optional[float] = None):
        self.config = validate_config(merge_config(config))
        angles_cfg = self.config["angles"]
        self.aspect_ratio = float(aspect_ratio if aspect_ratio is not None
                                  else angles_cfg["aspect_ratio"])
        self.visibility_threshold = float(angles_cfg["visibility_threshold"])
        self.detector = CadenceDetector.from_config(self.config)
        self.detector.register_cycle_listener(self._on_cycle)
        self.reset()

    def reset(self) -> None:
        """Start over: back to detecting, with no side, votes or cycles."""
        self.state = DETECTING
        self.side: Optional[str] = None
        self.side_votes = {"left": 0, "right": 0}
        self.cycles: List[dict] = []
        self.latest_angles: Optional[dict] = None
        self.recording_start: Optional[float] = None
        self.stopped_at: Optional[float] = None
        self.n_frames = 0
        self.detector.reset()

    def _on_cycle(self, summary: dict) -> None:
        if self.state != RECORDING:
            return
        self.cycles.append(summary)
        logger.info(
            f"Cycle {summary['cycle_number']} recorded "
            f"({len(self.cycles)} captured, {summary['cadence']} RPM)"
        )

    # ── Frame input ──────────────────────────────────────────────────

    def process_frame(self, landmarks: Any, timestamp: float) -> str:
        """Consume one frame of landmarks.

        Parameters
        ----------
        landmarks : sequence or dict
            MediaPipe landmarks for the frame, or None when no person
            was detected.
        timestamp : float
            Frame time in milliseconds, non-decreasing.

        Returns
        -------
        str
            Session state after the frame.
        """
        if self.state == COMPLETE or landmarks is None:
            return self.state
        self.n_frames += 1

        if self.state == DETECTING:
            side = detect_visible_side(landmarks)
            self.side_votes[side] += 1
            knee = get_knee_landmark(landmarks, side, self.visibility_threshold)
            if knee is not None:
                self.detector.add_sample(timestamp, knee["y"], None)
                if self.detector.is_steady:
                    self._start_recording(timestamp)
            return self.state

        angles = compute_angles(landmarks, self.side, self.aspect_ratio,
                                self.visibility_threshold)
        if angles is not None:
            self.latest_angles = angles
        knee = get_knee_landmark(landmarks, self.side, self.visibility_threshold)
        if knee is not None:
            self.detector.add_sample(timestamp, knee["y"], angles)
            if self.detector.has_stopped(timestamp):
                logger.info(f"Pedaling stopped at {timestamp:.0f} ms")
                self.stop(timestamp)
        return self.state

    def _start_recording(self, timestamp: float) -> None:
        votes = self.side_votes
        self.side = "left" if votes["left"] >= votes["right"] else "right"
        self.state = RECORDING
        self.recording_start = timestamp
        logger.info(
            f"Steady pedaling detected, recording {self.side} side "
            f"(votes L={votes['left']} R={votes['right']})"
        )

    def stop(self, timestamp: Optional[float] = None) -> None:
        """End the session. No-op unless recording."""
        if self.state != RECORDING:
            return
        self.state = COMPLETE
        self.stopped_at = timestamp
        logger.info(f"Session complete: {len(self.cycles)} cycles captured")

    # ── Results ──────────────────────────────────────────────────────

    def summarize(self) -> dict:
        """Trim the dismount tail and classify the recorded cycles.

        Returns
        -------
        dict
            Keys: ``side``, ``n_cycles`` (after trimming), ``n_trimmed``,
            ``cadence`` (see :func:`cadence_summary`) and ``results``
            (see :func:`analyze_session`).

        Raises
        ------
        InsufficientDataError
            If no cycle was captured, or none remains after trimming.
        """
        if not self.cycles:
            raise InsufficientDataError("No pedal cycles captured")

        analysis_cfg = self.config["analysis"]
        kept = trim_cycles(self.cycles, analysis_cfg["trim_end_ms"])
        if not kept:
            raise InsufficientDataError("No valid pedal cycles after trimming")

        results = analyze_session(
            kept,
            target_ranges=get_target_ranges(self.config),
            red_margin=analysis_cfg["red_margin_deg"],
        )
        return {
            "side": self.side,
            "n_cycles": len(kept),
            "n_trimmed": len(self.cycles) - len(kept),
            "cadence": cadence_summary(kept),
            "results": results,
        }

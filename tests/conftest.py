"""Shared test fixtures for bikefit test suite.

Provides synthetic knee signals, landmark frames and cycle summaries
used across all test modules. Timestamps are synthetic milliseconds.
"""

import bisect

import numpy as np
import pytest


MP_N_LANDMARKS = 33

# Side-view rider, aspect ratio 1: torso 45 deg, hip 45 deg at this knee
# position, knee 90 deg, elbow 135 deg.
RIDER_POSE = {
    "shoulder": (0.5, 0.3),
    "elbow": (0.6, 0.4),
    "wrist": (0.7, 0.4),
    "hip": (0.3, 0.5),
    "knee": (0.5, 0.5),
    "ankle": (0.5, 0.7),
}

_LEFT = {"shoulder": 11, "elbow": 13, "wrist": 15, "hip": 23, "knee": 25, "ankle": 27}
_RIGHT = {"shoulder": 12, "elbow": 14, "wrist": 16, "hip": 24, "knee": 26, "ankle": 28}


def make_landmarks(pose=None, side="left", visibility=0.95, other_visibility=0.3):
    """Create a 33-entry MediaPipe-style landmark list.

    *side* joints get *pose* coordinates and *visibility*; the opposite
    side mirrors the coordinates with *other_visibility*; all other
    landmarks sit at the center with visibility 0.1.
    """
    pose = pose or RIDER_POSE
    lms = [{"x": 0.5, "y": 0.5, "visibility": 0.1} for _ in range(MP_N_LANDMARKS)]
    near, far = (_LEFT, _RIGHT) if side == "left" else (_RIGHT, _LEFT)
    for joint, (x, y) in pose.items():
        lms[near[joint]] = {"x": x, "y": y, "visibility": visibility}
        lms[far[joint]] = {"x": x, "y": y, "visibility": other_visibility}
    return lms


def make_knee_signal(peak_times, dt=10, t_end=None, base=0.6, amp=0.05):
    """Piecewise cosine with maxima exactly at *peak_times*.

    Between two consecutive peaks the signal is one full cosine period
    spanning the interval, so every interval can have its own period.
    Returns a list of ``(t, y)`` sampled every *dt* ms from 0 to *t_end*.
    """
    peaks = list(peak_times)
    if t_end is None:
        t_end = peaks[-1] + 200
    samples = []
    t = 0
    while t <= t_end:
        if t <= peaks[0]:
            k = 0
        elif t >= peaks[-1]:
            k = len(peaks) - 2
        else:
            k = bisect.bisect_right(peaks, t) - 1
        period = peaks[k + 1] - peaks[k]
        phase = (t - peaks[k]) / period
        samples.append((t, base + amp * np.cos(2 * np.pi * phase)))
        t += dt
    return samples


def uniform_peaks(period, first=400, t_end=10000):
    """Peak times every *period* ms from *first* up to *t_end*."""
    return list(range(first, int(t_end) + 1, period))


def make_angles(knee=145.0, hip=70.0, torso=40.0, elbow=155.0):
    return {"knee": knee, "hip": hip, "torso": torso, "elbow": elbow}


def make_cycles(knee_values, start=1000.0, step=1000.0, hip=70.0, torso=40.0,
                elbow=155.0, cadence=90):
    """Cycle summaries with the given knee maxima, one every *step* ms."""
    cycles = []
    for i, knee in enumerate(knee_values):
        cycles.append({
            "cycle_number": i + 1,
            "timestamp": start + i * step,
            "cadence": cadence,
            "angles": {
                "knee": {"max": float(knee)},
                "hip": {"min": float(hip)},
                "torso": {"avg": float(torso)},
                "elbow": {"avg": float(elbow)},
            },
        })
    return cycles


def make_pedaling_frames(pedal_until=15000, t_end=18000, period=600, dt=20,
                         side="left"):
    """Landmark frames of a rider pedaling until *pedal_until*, then still.

    The knee oscillates vertically with maxima at 400 + k * period; once
    pedaling ends the knee freezes at its last position.
    """
    peaks = uniform_peaks(period, t_end=pedal_until)
    signal = make_knee_signal(peaks, dt=dt, t_end=t_end, base=0.65, amp=0.05)
    frozen = None
    frames = []
    for t, y in signal:
        if t > pedal_until:
            if frozen is None:
                frozen = y
            y = frozen
        pose = dict(RIDER_POSE)
        pose["knee"] = (0.45, float(y))
        pose["ankle"] = (0.40, 0.85)
        frames.append({"timestamp": float(t), "landmarks": make_landmarks(pose, side=side)})
    return frames


def feed(detector, samples, angles=None):
    """Feed ``(t, y)`` samples; return the summaries emitted."""
    emitted = []
    detector.register_cycle_listener(emitted.append)
    for t, y in samples:
        detector.add_sample(t, y, angles)
    return emitted


@pytest.fixture
def rider_landmarks():
    return make_landmarks()


@pytest.fixture
def pedaling_frames():
    return make_pedaling_frames()

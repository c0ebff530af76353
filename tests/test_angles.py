"""Tests for bikefit.angles -- geometry and per-frame angle sets."""

from types import SimpleNamespace

import numpy as np
import pytest

from conftest import RIDER_POSE, make_landmarks

from bikefit.angles import (
    angle_at_vertex,
    angle_from_horizontal,
    compute_angles,
    detect_visible_side,
    get_knee_landmark,
    get_side_landmarks,
)
from bikefit.constants import MP_LANDMARK_NAMES


# ── Geometry ─────────────────────────────────────────────────────────


class TestAngleAtVertex:

    def test_right_angle(self):
        assert angle_at_vertex((1, 0), (0, 0), (0, 1)) == pytest.approx(90.0)

    def test_straight_line(self):
        assert angle_at_vertex((-1, 0), (0, 0), (1, 0)) == pytest.approx(180.0)

    def test_folded(self):
        assert angle_at_vertex((1, 0), (0, 0), (2, 0)) == pytest.approx(0.0)

    def test_near_straight_is_precise(self):
        """A 0.001 rad bend is resolved, not rounded to 180."""
        eps = 1e-3
        angle = angle_at_vertex((-1, 0), (0, 0), (np.cos(eps), np.sin(eps)))
        assert angle == pytest.approx(180.0 - np.degrees(eps), abs=1e-6)

    def test_symmetric_and_bounded(self):
        rng = np.random.RandomState(0)
        for _ in range(200):
            a, b, c = rng.uniform(-1, 1, size=(3, 2))
            forward = angle_at_vertex(a, b, c)
            backward = angle_at_vertex(c, b, a)
            assert forward == pytest.approx(backward, abs=1e-9)
            assert 0.0 <= forward <= 180.0


class TestAngleFromHorizontal:

    @pytest.mark.parametrize("b, expected", [
        ((1, 0), 0.0),
        ((1, 1), 45.0),
        ((-1, 1), 45.0),
        ((-1, -1), 45.0),
        ((0, 1), 90.0),
    ])
    def test_orientation_agnostic(self, b, expected):
        assert angle_from_horizontal((0, 0), b) == pytest.approx(expected)

    def test_bounded(self):
        rng = np.random.RandomState(1)
        for _ in range(100):
            a, b = rng.uniform(-1, 1, size=(2, 2))
            assert 0.0 <= angle_from_horizontal(a, b) <= 90.0


# ── Landmark extraction ──────────────────────────────────────────────


class TestGetSideLandmarks:

    def test_aspect_ratio_scales_x_only(self, rider_landmarks):
        lm = get_side_landmarks(rider_landmarks, "left", aspect_ratio=2.0)
        x, y = RIDER_POSE["hip"]
        np.testing.assert_allclose(lm["hip"], [x * 2.0, y])

    def test_returns_all_six_joints(self, rider_landmarks):
        lm = get_side_landmarks(rider_landmarks, "left", aspect_ratio=1.0)
        assert set(lm) == {"shoulder", "elbow", "wrist", "hip", "knee", "ankle"}

    def test_low_visibility_side_unavailable(self, rider_landmarks):
        """The far side carries visibility 0.3, below the 0.6 gate."""
        assert get_side_landmarks(rider_landmarks, "right") is None

    def test_single_hidden_joint_makes_frame_unavailable(self, rider_landmarks):
        rider_landmarks[15]["visibility"] = 0.59  # left wrist
        assert get_side_landmarks(rider_landmarks, "left") is None

    def test_missing_joint(self, rider_landmarks):
        rider_landmarks[27] = None  # left ankle
        assert get_side_landmarks(rider_landmarks, "left") is None

    def test_short_list(self):
        assert get_side_landmarks([{"x": 0.5, "y": 0.5}] * 20, "left") is None

    def test_nan_coordinate(self, rider_landmarks):
        rider_landmarks[25]["x"] = float("nan")
        assert get_side_landmarks(rider_landmarks, "left") is None

    def test_missing_visibility_counts_as_visible(self, rider_landmarks):
        for lm in rider_landmarks:
            lm.pop("visibility")
        assert get_side_landmarks(rider_landmarks, "right") is not None

    def test_invalid_side(self, rider_landmarks):
        with pytest.raises(ValueError, match="side"):
            get_side_landmarks(rider_landmarks, "front")


# ── Angle set ────────────────────────────────────────────────────────


class TestComputeAngles:

    def test_known_pose(self, rider_landmarks):
        angles = compute_angles(rider_landmarks, "left", aspect_ratio=1.0)
        assert angles["knee"] == pytest.approx(90.0)
        assert angles["hip"] == pytest.approx(45.0)
        assert angles["torso"] == pytest.approx(45.0)
        assert angles["elbow"] == pytest.approx(135.0)

    def test_aspect_ratio_changes_torso(self, rider_landmarks):
        angles = compute_angles(rider_landmarks, "left", aspect_ratio=2.0)
        # hip->shoulder becomes dx=0.4, dy=0.2
        assert angles["torso"] == pytest.approx(np.degrees(np.arctan(0.5)))

    def test_right_side(self):
        lms = make_landmarks(side="right")
        angles = compute_angles(lms, "right", aspect_ratio=1.0)
        assert angles["knee"] == pytest.approx(90.0)

    def test_all_or_nothing(self, rider_landmarks):
        rider_landmarks[13]["visibility"] = 0.1  # left elbow
        assert compute_angles(rider_landmarks, "left") is None

    def test_name_keyed_landmarks(self, rider_landmarks):
        named = {MP_LANDMARK_NAMES[i]: lm for i, lm in enumerate(rider_landmarks)}
        angles = compute_angles(named, "left", aspect_ratio=1.0)
        assert angles["elbow"] == pytest.approx(135.0)

    def test_attribute_landmarks(self, rider_landmarks):
        objs = [SimpleNamespace(**lm) for lm in rider_landmarks]
        angles = compute_angles(objs, "left", aspect_ratio=1.0)
        assert angles["hip"] == pytest.approx(45.0)

    def test_custom_visibility_threshold(self, rider_landmarks):
        assert compute_angles(rider_landmarks, "right", visibility_threshold=0.2) is not None

    def test_ranges(self, rider_landmarks):
        angles = compute_angles(rider_landmarks, "left")
        for key in ("knee", "hip", "elbow"):
            assert 0.0 <= angles[key] <= 180.0
        assert 0.0 <= angles["torso"] <= 90.0


class TestKneeAndSide:

    def test_knee_not_aspect_corrected(self, rider_landmarks):
        knee = get_knee_landmark(rider_landmarks, "left")
        assert knee == {"x": pytest.approx(0.5), "y": pytest.approx(0.5)}

    def test_knee_hidden(self, rider_landmarks):
        assert get_knee_landmark(rider_landmarks, "right") is None

    def test_detect_visible_side(self):
        assert detect_visible_side(make_landmarks(side="left")) == "left"
        assert detect_visible_side(make_landmarks(side="right")) == "right"

    def test_detect_visible_side_tie_goes_right(self):
        lms = make_landmarks(visibility=0.5, other_visibility=0.5)
        assert detect_visible_side(lms) == "right"

    def test_detect_visible_side_missing_visibility(self):
        lms = make_landmarks()
        for lm in lms:
            lm.pop("visibility")
        assert detect_visible_side(lms) == "right"

"""
Tests for the Liveness Module

These tests verify that:
1. Static bursts (replayed photos) are rejected
2. Bursts with small motion and small descriptor drift pass
3. Excessive motion is rejected
"""

import pytest

from core.descriptors import BoundingBox, Frame
from core.liveness import (
    LivenessEstimator,
    LivenessResult,
    compute_descriptor_shift,
    compute_rectangle_motion,
    get_liveness_estimator,
)

from conftest import make_descriptor, make_live_burst, make_static_burst


class TestLivenessResult:
    """Tests for the LivenessResult dataclass."""

    def test_dataclass_creation(self):
        result = LivenessResult(passed=True, rectangle_motion=1.0, descriptor_shift=0.08)
        assert result.passed is True
        assert result.rectangle_motion == 1.0
        assert result.descriptor_shift == 0.08
        assert result.details == {}


class TestStatistics:
    """Tests for the motion and drift statistics."""

    def test_static_burst_has_no_motion_or_shift(self, static_burst):
        assert compute_rectangle_motion(static_burst) == 0.0
        assert compute_descriptor_shift(static_burst) == 0.0

    def test_one_pixel_steps(self, live_burst):
        assert compute_rectangle_motion(live_burst) == pytest.approx(1.0)

    def test_diagonal_motion(self):
        frames = [
            Frame(descriptor=make_descriptor(), bbox=BoundingBox(3 * i, 4 * i, 100, 100))
            for i in range(5)
        ]
        assert compute_rectangle_motion(frames) == pytest.approx(5.0)

    def test_only_min_corner_counts(self):
        frames = [
            Frame(descriptor=make_descriptor(), bbox=BoundingBox(10, 10, 100 + 50 * i, 100 + 50 * i))
            for i in range(5)
        ]
        assert compute_rectangle_motion(frames) == 0.0

    def test_shift_is_mean_of_consecutive_pairs(self, live_burst):
        assert compute_descriptor_shift(live_burst) == pytest.approx(0.08, abs=1e-6)

    def test_needs_two_frames(self):
        single = make_static_burst(1)
        with pytest.raises(ValueError):
            compute_rectangle_motion(single)
        with pytest.raises(ValueError):
            compute_descriptor_shift(single)


class TestLivenessEstimator:
    """Tests for the LivenessEstimator class."""

    @pytest.fixture
    def estimator(self):
        return LivenessEstimator({"max_rectangle_motion": 10.0, "min_descriptor_shift": 0.07})

    def test_static_photo_fails(self, estimator, static_burst):
        result = estimator.check(static_burst)
        assert result.passed is False
        assert result.details["motion_ok"] is True
        assert result.details["shift_ok"] is False

    def test_live_burst_passes(self, estimator, live_burst):
        result = estimator.check(live_burst)
        assert result.passed is True
        assert result.rectangle_motion == pytest.approx(1.0)
        assert result.descriptor_shift > 0.07

    def test_excessive_motion_fails(self, estimator):
        result = estimator.check(make_live_burst(step_px=25))
        assert result.passed is False
        assert result.details["motion_ok"] is False
        assert result.details["shift_ok"] is True

    def test_motion_bound_is_exclusive(self, estimator):
        result = estimator.check(make_live_burst(step_px=10))
        assert result.rectangle_motion == pytest.approx(10.0)
        assert result.passed is False

    def test_thresholds_from_config(self, live_burst):
        strict = LivenessEstimator({"min_descriptor_shift": 0.2})
        assert strict.check(live_burst).passed is False

        loose = LivenessEstimator({"max_rectangle_motion": 50.0, "min_descriptor_shift": 0.01})
        assert loose.check(make_live_burst(step_px=25)).passed is True

    def test_defaults(self):
        estimator = LivenessEstimator()
        assert estimator.max_rectangle_motion == 10.0
        assert estimator.min_descriptor_shift == 0.07

    def test_factory_with_config(self):
        estimator = get_liveness_estimator({"max_rectangle_motion": 4.0})
        assert estimator.max_rectangle_motion == 4.0

    def test_details_report_thresholds(self, estimator, live_burst):
        details = estimator.check(live_burst).details
        assert details["thresholds"]["max_rectangle_motion"] == 10.0
        assert details["thresholds"]["min_descriptor_shift"] == 0.07
        assert details["n_frames"] == 5

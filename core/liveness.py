"""
Liveness Module

This module estimates whether a burst of frames comes from a live subject
in front of the camera rather than a replayed photo or a spliced video.

Two statistics are computed over consecutive frame pairs:
1. Rectangle motion: how far the face bounding box moves between frames.
   A live face drifts a little; a video glitch jumps a lot.
2. Descriptor shift: how much the face descriptor changes between frames.
   Micro-movements of a live head give a small but nonzero drift; a static
   photo gives almost none.

Liveness is affirmed only when both hold:
    rectangle_motion < max_rectangle_motion AND descriptor_shift > min_descriptor_shift

Usage:
    from core.liveness import LivenessEstimator

    estimator = LivenessEstimator(config)
    result = estimator.check(frames)
    if not result.passed:
        print("Not live")
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Any, Sequence

from core.descriptors import Frame, descriptor_distance


DEFAULT_MAX_RECTANGLE_MOTION = 10.0
DEFAULT_MIN_DESCRIPTOR_SHIFT = 0.07


@dataclass
class LivenessResult:
    """
    Result of a liveness check.

    Attributes:
        passed: True if the burst appears to come from a live subject.
        rectangle_motion: Mean bounding-box corner motion in pixels.
        descriptor_shift: Mean descriptor distance between consecutive frames.
        details: Dictionary with additional diagnostic information.
    """
    passed: bool
    rectangle_motion: float
    descriptor_shift: float
    details: Dict[str, Any] = field(default_factory=dict)


def _require_pairs(frames: Sequence[Frame]) -> None:
    if len(frames) < 2:
        raise ValueError(f"Liveness statistics need at least 2 frames, got {len(frames)}")


def compute_rectangle_motion(frames: Sequence[Frame]) -> float:
    """
    Mean Euclidean distance between the bounding-box minimum corners
    of consecutive frames.
    """
    _require_pairs(frames)

    total = 0.0
    for i in range(1, len(frames)):
        delta = frames[i].bbox.min_corner - frames[i - 1].bbox.min_corner
        total += float(np.hypot(delta[0], delta[1]))

    return total / (len(frames) - 1)


def compute_descriptor_shift(frames: Sequence[Frame]) -> float:
    """Mean descriptor distance between consecutive frames."""
    _require_pairs(frames)

    total = 0.0
    for i in range(1, len(frames)):
        total += descriptor_distance(frames[i - 1].descriptor, frames[i].descriptor)

    return total / (len(frames) - 1)


class LivenessEstimator:
    """
    Liveness checker for frame bursts.

    Thresholds are loaded from config and can be tuned independently.
    """

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize the liveness estimator.

        Args:
            config: Configuration dictionary containing:
                - max_rectangle_motion: Upper bound on mean box motion (default: 10.0)
                - min_descriptor_shift: Lower bound on mean descriptor shift (default: 0.07)
        """
        if config is None:
            config = {}
        self.max_rectangle_motion = float(config.get("max_rectangle_motion", DEFAULT_MAX_RECTANGLE_MOTION))
        self.min_descriptor_shift = float(config.get("min_descriptor_shift", DEFAULT_MIN_DESCRIPTOR_SHIFT))

    def check(self, frames: Sequence[Frame]) -> LivenessResult:
        """
        Check whether a burst looks live.

        Args:
            frames: Burst frames in capture order (at least 2).

        Returns:
            LivenessResult with pass/fail decision and metrics.
        """
        rectangle_motion = compute_rectangle_motion(frames)
        descriptor_shift = compute_descriptor_shift(frames)

        motion_ok = rectangle_motion < self.max_rectangle_motion
        shift_ok = descriptor_shift > self.min_descriptor_shift

        return LivenessResult(
            passed=motion_ok and shift_ok,
            rectangle_motion=rectangle_motion,
            descriptor_shift=descriptor_shift,
            details={
                "motion_ok": motion_ok,
                "shift_ok": shift_ok,
                "thresholds": {
                    "max_rectangle_motion": self.max_rectangle_motion,
                    "min_descriptor_shift": self.min_descriptor_shift,
                },
                "n_frames": len(frames),
            },
        )


def get_liveness_estimator(config: Dict[str, Any] = None) -> LivenessEstimator:
    """
    Factory function to get a LivenessEstimator instance with config.

    Args:
        config: Optional config dict. If None, loads from config.yaml.

    Returns:
        Configured LivenessEstimator instance.
    """
    if config is None:
        from core.config import get_config
        config = get_config().get("liveness", {})

    return LivenessEstimator(config)

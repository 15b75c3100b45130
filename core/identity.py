"""
Identity Consistency Check

Decides whether every frame of a burst shows the same person as the first
frame. Frame 0 is always the anchor: it becomes the single classifier
sample, and each later frame must classify as that sample.
"""

import logging
from typing import Optional, Sequence

from core.classifier import UNKNOWN, ThresholdClassifier, get_classifier
from core.descriptors import Frame

logger = logging.getLogger(__name__)


def is_same_person(
    frames: Sequence[Frame],
    threshold: float,
    classifier: Optional[ThresholdClassifier] = None,
) -> bool:
    """
    Check that all frames match the anchor frame.

    Args:
        frames: Burst frames in capture order (at least 2).
        threshold: Maximum anchor distance for a frame to match.
        classifier: Classifier to use (defaults to the shared instance).

    Returns:
        True iff every frame after the anchor is within the threshold.
        Stops at the first frame that does not match.
    """
    if len(frames) < 2:
        raise ValueError(f"Identity check needs at least 2 frames, got {len(frames)}")

    if classifier is None:
        classifier = get_classifier()

    anchor = frames[0]

    with classifier.session() as session:
        session.set_samples([anchor.descriptor], [0])

        for i in range(1, len(frames)):
            if session.classify_threshold(frames[i].descriptor, threshold) == UNKNOWN:
                logger.info(f"Frame {i} does not match the anchor frame")
                return False

    return True

"""
Threshold Classifier

A nearest-sample classifier with a distance threshold: load a set of
labelled sample descriptors, then classify a candidate as the label of the
closest sample within the threshold, or -1 ("unknown").

The sample set is mutable state, so it is only reachable through a
session. A session holds the classifier lock for the whole
set-samples-then-classify sequence and clears the samples on exit, so two
concurrent verifications can never see each other's samples.

Usage:
    classifier = get_classifier()
    with classifier.session() as session:
        session.set_samples([anchor], [0])
        label = session.classify_threshold(candidate, 0.12)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

import numpy as np

from core.descriptors import as_descriptor

logger = logging.getLogger(__name__)

UNKNOWN = -1


class ClassifierSession:
    """Exclusive view of a ThresholdClassifier's sample set."""

    def __init__(self):
        self._samples: Optional[np.ndarray] = None
        self._labels: List[int] = []
        self._closed = False

    def set_samples(self, descriptors: Sequence[np.ndarray], labels: Sequence[int]) -> None:
        """
        Replace the sample set for this session.

        Args:
            descriptors: Sample descriptors, all of the same length.
            labels: One integer label per descriptor.

        Raises:
            ValueError: On empty input or a length mismatch.
        """
        self._check_open()
        if len(descriptors) == 0:
            raise ValueError("At least one sample descriptor is required")
        if len(descriptors) != len(labels):
            raise ValueError(
                f"Got {len(descriptors)} descriptors but {len(labels)} labels"
            )

        self._samples = np.stack([as_descriptor(d) for d in descriptors]).astype(np.float64)
        self._labels = [int(label) for label in labels]

    def classify_threshold(self, descriptor: np.ndarray, threshold: float) -> int:
        """
        Classify a descriptor against the current samples.

        Args:
            descriptor: (D,) candidate descriptor.
            threshold: Maximum distance for a match (inclusive).

        Returns:
            Label of the nearest sample within the threshold, or UNKNOWN (-1).
        """
        self._check_open()
        if self._samples is None:
            raise RuntimeError("set_samples() must be called before classify_threshold()")

        candidate = np.asarray(descriptor, dtype=np.float64).ravel()
        if candidate.shape[0] != self._samples.shape[1]:
            raise ValueError(
                f"Descriptor dimension mismatch: samples={self._samples.shape[1]}, "
                f"candidate={candidate.shape[0]}"
            )

        distances = np.sqrt(((self._samples - candidate) ** 2).sum(axis=1))
        best = int(np.argmin(distances))

        if distances[best] <= threshold:
            return self._labels[best]
        return UNKNOWN

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Classifier session is closed")

    def _close(self) -> None:
        self._samples = None
        self._labels = []
        self._closed = True


class ThresholdClassifier:
    """Lock-guarded owner of classifier sessions."""

    def __init__(self):
        self._lock = threading.Lock()

    @contextmanager
    def session(self) -> Iterator[ClassifierSession]:
        """Acquire exclusive access for one set-samples-then-classify sequence."""
        with self._lock:
            session = ClassifierSession()
            try:
                yield session
            finally:
                session._close()


# Singleton instance shared by all requests
_classifier_instance: Optional[ThresholdClassifier] = None


def get_classifier() -> ThresholdClassifier:
    """Get or create the process-wide ThresholdClassifier."""
    global _classifier_instance

    if _classifier_instance is None:
        _classifier_instance = ThresholdClassifier()
        logger.debug("ThresholdClassifier created")

    return _classifier_instance

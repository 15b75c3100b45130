"""
Tests for the threshold classifier and the identity consistency check.
"""

import threading
import time

import pytest

from core.classifier import UNKNOWN
from core.descriptors import BoundingBox, Frame
from core.identity import is_same_person

from conftest import make_descriptor, make_live_burst


def _frame(descriptor):
    return Frame(descriptor=descriptor, bbox=BoundingBox(0, 0, 10, 10))


class TestThresholdClassifier:
    """Tests for ThresholdClassifier sessions."""

    def test_match_within_threshold(self, classifier):
        with classifier.session() as session:
            session.set_samples([make_descriptor()], [0])
            assert session.classify_threshold(make_descriptor(d1=0.05), 0.12) == 0

    def test_match_at_threshold_is_inclusive(self, classifier):
        with classifier.session() as session:
            session.set_samples([[0.0, 0.0]], [7])
            assert session.classify_threshold([0.0, 0.5], 0.5) == 7

    def test_unknown_beyond_threshold(self, classifier):
        with classifier.session() as session:
            session.set_samples([make_descriptor()], [0])
            assert session.classify_threshold(make_descriptor(d1=0.2), 0.12) == UNKNOWN

    def test_nearest_sample_wins(self, classifier):
        with classifier.session() as session:
            session.set_samples([[0.0, 0.0], [1.0, 0.0]], [3, 4])
            assert session.classify_threshold([0.9, 0.0], 0.5) == 4

    def test_classify_without_samples_raises(self, classifier):
        with classifier.session() as session:
            with pytest.raises(RuntimeError):
                session.classify_threshold(make_descriptor(), 0.12)

    def test_label_count_mismatch_raises(self, classifier):
        with classifier.session() as session:
            with pytest.raises(ValueError):
                session.set_samples([make_descriptor()], [0, 1])

    def test_session_is_closed_after_exit(self, classifier):
        with classifier.session() as session:
            session.set_samples([make_descriptor()], [0])

        with pytest.raises(RuntimeError):
            session.classify_threshold(make_descriptor(), 0.12)

    def test_new_session_starts_empty(self, classifier):
        with classifier.session() as session:
            session.set_samples([make_descriptor()], [0])

        with classifier.session() as session:
            with pytest.raises(RuntimeError):
                session.classify_threshold(make_descriptor(), 0.12)

    def test_sessions_are_exclusive(self, classifier):
        """A second thread cannot enter while a session is open."""
        entered = threading.Event()
        order = []

        def worker():
            entered.set()
            with classifier.session():
                order.append("worker")

        with classifier.session():
            thread = threading.Thread(target=worker)
            thread.start()
            entered.wait(timeout=1.0)
            time.sleep(0.05)
            order.append("main")

        thread.join(timeout=1.0)
        assert order == ["main", "worker"]


class TestIsSamePerson:
    """Tests for the burst identity consistency check."""

    def test_consistent_burst(self, classifier):
        assert is_same_person(make_live_burst(), 0.12, classifier) is True

    def test_one_frame_beyond_threshold(self, classifier):
        frames = make_live_burst()
        frames[3] = _frame(make_descriptor(d2=0.5))
        assert is_same_person(frames, 0.12, classifier) is False

    def test_last_frame_beyond_threshold(self, classifier):
        frames = make_live_burst()
        frames[4] = _frame(make_descriptor(d3=0.13))
        assert is_same_person(frames, 0.12, classifier) is False

    def test_anchor_is_frame_zero(self, classifier):
        """Frames are compared to frame 0, not to their predecessor."""
        frames = [_frame(make_descriptor(d1=0.1 * i)) for i in range(5)]
        # Each step is 0.1, but frame 2 is already 0.2 from the anchor
        assert is_same_person(frames, 0.12, classifier) is False

    def test_needs_two_frames(self, classifier):
        with pytest.raises(ValueError):
            is_same_person([_frame(make_descriptor())], 0.12, classifier)

    def test_uses_shared_classifier_by_default(self):
        assert is_same_person(make_live_burst(), 0.12) is True

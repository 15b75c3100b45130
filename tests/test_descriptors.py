"""
Tests for descriptor types and descriptor distance.
"""

import numpy as np
import pytest

from core.descriptors import (
    BURST_SIZE,
    BoundingBox,
    Frame,
    as_descriptor,
    descriptor_distance,
)


class TestDescriptorDistance:
    """Tests for descriptor_distance."""

    def test_identical_is_zero(self):
        a = np.random.RandomState(0).randn(128).astype(np.float32)
        assert descriptor_distance(a, a) == 0.0

    def test_symmetric(self):
        rng = np.random.RandomState(1)
        for _ in range(20):
            a = rng.randn(128).astype(np.float32)
            b = rng.randn(128).astype(np.float32)
            assert descriptor_distance(a, b) == pytest.approx(descriptor_distance(b, a))

    def test_known_value(self):
        """3-4-5 triangle."""
        assert descriptor_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)

    def test_non_negative(self):
        rng = np.random.RandomState(2)
        a = rng.randn(64)
        b = rng.randn(64)
        assert descriptor_distance(a, b) > 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            descriptor_distance(np.zeros(128), np.zeros(127))


class TestDescriptorTypes:
    """Tests for as_descriptor, BoundingBox and Frame."""

    def test_burst_size_is_five(self):
        assert BURST_SIZE == 5

    def test_as_descriptor_is_read_only_float32(self):
        descriptor = as_descriptor([0.1, 0.2, 0.3])
        assert descriptor.dtype == np.float32
        with pytest.raises(ValueError):
            descriptor[0] = 1.0

    def test_as_descriptor_rejects_empty(self):
        with pytest.raises(ValueError):
            as_descriptor([])

    def test_as_descriptor_rejects_2d(self):
        with pytest.raises(ValueError):
            as_descriptor(np.zeros((2, 3)))

    def test_frame_copies_descriptor(self):
        source = np.ones(8, dtype=np.float32)
        frame = Frame(descriptor=source, bbox=BoundingBox(0, 0, 10, 10))
        source[0] = 5.0
        assert frame.descriptor[0] == 1.0
        assert not frame.descriptor.flags.writeable

    def test_bbox_from_xyxy_rounds(self):
        bbox = BoundingBox.from_xyxy(np.array([10.4, 20.6, 110.5, 140.2, 0.99]))
        assert bbox.min_x == 10
        assert bbox.min_y == 21
        assert bbox.max_y == 140

    def test_bbox_is_frozen(self):
        bbox = BoundingBox(1, 2, 3, 4)
        with pytest.raises(AttributeError):
            bbox.min_x = 5

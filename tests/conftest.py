"""
Shared fixtures: synthetic descriptors, bursts and a fake extractor.

No model is loaded in the tests. Descriptors are built so that their
distances are known exactly:

    base      - unit vector along dimension 0
    offset    - 0.08 along dimension 1

A "live" burst alternates base / base + offset, so every consecutive pair
is 0.08 apart and every frame is within 0.08 of the anchor.
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.classifier import ThresholdClassifier
from core.descriptors import BoundingBox, Frame

DESCRIPTOR_DIM = 128
DRIFT = 0.08


def make_descriptor(**offsets) -> np.ndarray:
    """Unit vector along dim 0 plus optional offsets, e.g. make_descriptor(d1=0.08)."""
    descriptor = np.zeros(DESCRIPTOR_DIM, dtype=np.float32)
    descriptor[0] = 1.0
    for key, value in offsets.items():
        descriptor[int(key[1:])] += value
    return descriptor


def make_live_burst(n: int = 5, step_px: int = 1) -> list:
    """Burst with small box motion and ~0.08 descriptor drift per pair."""
    frames = []
    for i in range(n):
        descriptor = make_descriptor(d1=DRIFT) if i % 2 else make_descriptor()
        bbox = BoundingBox(100 + i * step_px, 80, 200 + i * step_px, 200)
        frames.append(Frame(descriptor=descriptor, bbox=bbox))
    return frames


def make_static_burst(n: int = 5) -> list:
    """Burst of identical frames (a replayed photo)."""
    return [
        Frame(descriptor=make_descriptor(), bbox=BoundingBox(100, 80, 200, 200))
        for _ in range(n)
    ]


class FakeExtractor:
    """Maps image bytes to prepared frames and records every call."""

    def __init__(self, frames_by_image: dict):
        self.frames_by_image = frames_by_image
        self.calls = []
        self.is_loaded = True

    def extract(self, data: bytes):
        self.calls.append(data)
        return self.frames_by_image.get(data)

    def extract_required(self, data: bytes):
        from core.errors import NoFaceFoundError

        frame = self.extract(data)
        if frame is None:
            raise NoFaceFoundError("Failed to find a face")
        return frame


def burst_images(n: int = 5) -> list:
    return [f"frame{i}".encode() for i in range(n)]


@pytest.fixture
def classifier():
    return ThresholdClassifier()


@pytest.fixture
def live_burst():
    return make_live_burst()


@pytest.fixture
def static_burst():
    return make_static_burst()


@pytest.fixture
def pipeline_config():
    return {
        "matching": {"identity_threshold": 0.12},
        "liveness": {"max_rectangle_motion": 10.0, "min_descriptor_shift": 0.07},
    }


@pytest.fixture
def jpeg_bytes():
    """A small valid JPEG image."""
    image = np.full((32, 32, 3), 127, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image)
    assert ok
    return encoded.tobytes()

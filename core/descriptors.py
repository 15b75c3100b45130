"""
Face Descriptors and Frames

Data types shared by the verification pipeline plus the descriptor
distance used everywhere a pair of faces is compared.

A descriptor is a fixed-length float32 vector produced by the recognition
model for one detected face. Descriptors are made read-only on creation so
they cannot drift after extraction.

Usage:
    from core.descriptors import Frame, BoundingBox, descriptor_distance

    frame = Frame(descriptor=as_descriptor(embedding), bbox=BoundingBox(10, 20, 110, 140))
    d = descriptor_distance(frame.descriptor, reference)
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np


# Number of frames in a verification burst. Fixed by the client protocol.
BURST_SIZE = 5


@dataclass(frozen=True)
class BoundingBox:
    """
    Face location in a frame, in integer pixels.

    (min_x, min_y) is the top-left corner, (max_x, max_y) the bottom-right.
    """

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @classmethod
    def from_xyxy(cls, xyxy: Sequence[float]) -> "BoundingBox":
        """Build from an (x1, y1, x2, y2) sequence, rounding to pixels."""
        x1, y1, x2, y2 = (int(round(float(v))) for v in xyxy[:4])
        return cls(min_x=x1, min_y=y1, max_x=x2, max_y=y2)

    @property
    def min_corner(self) -> np.ndarray:
        return np.array([self.min_x, self.min_y], dtype=np.float64)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    One face captured in a burst.

    Attributes:
        descriptor: Read-only (D,) float32 descriptor.
        bbox: Where the face was found in the image.
    """

    descriptor: np.ndarray
    bbox: BoundingBox

    def __post_init__(self):
        object.__setattr__(self, "descriptor", as_descriptor(self.descriptor))


def as_descriptor(values) -> np.ndarray:
    """
    Convert any 1-D numeric sequence into a read-only float32 descriptor.

    Raises:
        ValueError: If the input is empty or not one-dimensional.
    """
    descriptor = np.array(values, dtype=np.float32)
    if descriptor.ndim != 1 or descriptor.shape[0] == 0:
        raise ValueError(f"Descriptor must be a non-empty 1-D vector, got shape {descriptor.shape}")
    descriptor.setflags(write=False)
    return descriptor


def descriptor_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Euclidean distance between two descriptors.

    Args:
        a: (D,) descriptor.
        b: (D,) descriptor.

    Returns:
        Non-negative distance; 0.0 iff the descriptors are element-wise equal.

    Raises:
        ValueError: If the descriptors have different lengths.
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()

    if a.shape[0] != b.shape[0]:
        raise ValueError(
            f"Descriptor dimension mismatch: {a.shape[0]} vs {b.shape[0]}"
        )

    diff = a - b
    return float(np.sqrt(np.dot(diff, diff)))

"""
Face Descriptor Extractor using InsightFace

Turns raw image bytes into a Frame: one identity descriptor plus the
bounding box of the face it came from. Detection (SCRFD) and recognition
(ArcFace) both run inside insightface's FaceAnalysis bundle.

A frame must contain exactly one face. Zero faces, or more than one, is
reported as "no face" (None) so the caller can fail the request cleanly.

Usage:
    from core.extractor import get_extractor

    extractor = get_extractor()
    frame = extractor.extract(jpeg_bytes)
    if frame is None:
        print("No face found")
"""

import logging
import threading
from typing import Optional

import cv2
import numpy as np

from core.descriptors import BoundingBox, Frame
from core.errors import ExtractionError, InputFormatError, NoFaceFoundError

logger = logging.getLogger(__name__)

_INSIGHTFACE_AVAILABLE = False

try:
    from insightface.app import FaceAnalysis
    _INSIGHTFACE_AVAILABLE = True
except ImportError:
    pass

JPEG_MAGIC = b"\xff\xd8\xff"


def is_jpeg(data: bytes) -> bool:
    """Check the JPEG signature at the start of the data."""
    return data[:3] == JPEG_MAGIC


def validate_jpeg(data: bytes) -> None:
    """
    Reject anything that does not start with a JPEG signature.

    Only the header is checked; a corrupt body is caught by decode_image().

    Raises:
        InputFormatError: If the data is empty or not a JPEG.
    """
    if not data or not is_jpeg(data):
        raise InputFormatError("Unsupported image format")


def decode_image(data: bytes) -> np.ndarray:
    """
    Validate and decode JPEG bytes into a BGR image.

    Args:
        data: Raw image bytes.

    Returns:
        BGR numpy array (H, W, 3), uint8.

    Raises:
        InputFormatError: If the data is not a decodable JPEG.
    """
    validate_jpeg(data)

    np_arr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(np_arr, cv2.IMREAD_COLOR)
    if image is None:
        raise InputFormatError("Error decoding image")

    return image


class DescriptorExtractor:
    """
    Extract face descriptors and bounding boxes from images.

    The underlying model is loaded lazily and shared by all requests;
    calls into it are serialized with a lock.

    Args:
        config: Dictionary with keys:
            - model: Model bundle name ("buffalo_l", "buffalo_sc", ...)
            - device: "cuda" or "cpu"
            - det_size: Detector input size, [w, h]
    """

    def __init__(self, config: Optional[dict] = None):
        if config is None:
            config = {}

        self.model_name = config.get("model", "buffalo_l")
        self.device = config.get("device", "cpu")
        self.det_size = tuple(config.get("det_size", (640, 640)))

        self._model = None
        self._lock = threading.Lock()
        self.is_loaded = False

    def load_model(self) -> None:
        """Load the face analysis model. Called automatically on first use."""
        if self.is_loaded:
            return

        if not _INSIGHTFACE_AVAILABLE:
            raise ImportError("insightface not installed. Run: pip install insightface onnxruntime")

        if self.device == "cuda":
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        else:
            providers = ["CPUExecutionProvider"]

        self._model = FaceAnalysis(name=self.model_name, providers=providers)
        self._model.prepare(ctx_id=0 if self.device == "cuda" else -1, det_size=self.det_size)

        self.is_loaded = True
        logger.info(f"DescriptorExtractor loaded (model={self.model_name}, device={self.device})")

    def extract(self, data: bytes) -> Optional[Frame]:
        """
        Extract the single face in an image.

        Args:
            data: JPEG bytes.

        Returns:
            Frame with descriptor and bounding box, or None if the image
            does not contain exactly one face.

        Raises:
            InputFormatError: If the bytes are not a decodable JPEG.
            ExtractionError: If the recognition library fails.
        """
        image = decode_image(data)
        return self.extract_image(image)

    def extract_required(self, data: bytes) -> Frame:
        """
        Like extract(), but a missing face is an error.

        Raises:
            NoFaceFoundError: If the image does not contain exactly one face.
        """
        frame = self.extract(data)
        if frame is None:
            raise NoFaceFoundError("Failed to find a face")
        return frame

    def extract_image(self, image: np.ndarray) -> Optional[Frame]:
        """Same as extract(), for an already decoded BGR image."""
        with self._lock:
            if not self.is_loaded:
                self.load_model()
            try:
                faces = self._model.get(image)
            except Exception as e:
                raise ExtractionError(f"Face analysis failed: {e}") from e

        if not faces:
            logger.info("No face detected")
            return None

        if len(faces) > 1:
            logger.warning(f"Expected one face, found {len(faces)}")
            return None

        face = faces[0]
        embedding = getattr(face, "normed_embedding", None)
        if embedding is None:
            raise ExtractionError("Recognition model returned no embedding")

        return Frame(
            descriptor=np.asarray(embedding, dtype=np.float32),
            bbox=BoundingBox.from_xyxy(face.bbox),
        )


# Singleton instance for the extractor
_extractor_instance: Optional[DescriptorExtractor] = None


def get_extractor(config: Optional[dict] = None) -> DescriptorExtractor:
    """
    Get or create the singleton DescriptorExtractor.

    Args:
        config: Extractor config. If None, uses the "extractor" section
                of config.yaml.
    """
    global _extractor_instance

    if _extractor_instance is None:
        if config is None:
            from core.config import get_extractor_config
            config = get_extractor_config()
        _extractor_instance = DescriptorExtractor(config)

    return _extractor_instance

"""
Match Decision Engine

Runs the burst verification pipeline and returns a single verdict:

    1. Extract    - every frame must contain exactly one face
    2. Identity   - every frame must match frame 0
    3. Liveness   - motion and descriptor drift must look live
    4. Reference  - frame 0 must match the user's stored reference

Steps run strictly in this order and the first failing step ends the
request. The reference is checked last because fetching it may need a
storage or network round-trip; a lazy reference (a callable) is only
resolved once the burst has passed steps 1-3.

Errors while resolving the reference are raised to the caller, never
turned into a REJECTED_NO_MATCH verdict.

Usage:
    from core.verification import get_decision_engine, MatchVerdict

    engine = get_decision_engine()
    result = engine.verify_burst(reference_descriptor, frames)
    if result.verdict is MatchVerdict.ACCEPTED:
        ...
"""

import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from core.classifier import UNKNOWN, ThresholdClassifier, get_classifier
from core.descriptors import BURST_SIZE, Frame, as_descriptor, descriptor_distance
from core.errors import BurstSizeError, ReferenceFetchError
from core.identity import is_same_person
from core.liveness import LivenessEstimator, LivenessResult

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_THRESHOLD = 0.12

ReferenceSource = Union[np.ndarray, Sequence[float], Callable[[], np.ndarray]]


class MatchVerdict(str, Enum):
    """Outcome of one verification request."""
    ACCEPTED = "accepted"
    REJECTED_IDENTITY_MISMATCH = "rejected_identity_mismatch"
    REJECTED_NOT_LIVE = "rejected_not_live"
    REJECTED_NO_MATCH = "rejected_no_match"
    FAILED_NO_FACE = "failed_no_face"

    @property
    def is_rejection(self) -> bool:
        return self in (
            MatchVerdict.REJECTED_IDENTITY_MISMATCH,
            MatchVerdict.REJECTED_NOT_LIVE,
            MatchVerdict.REJECTED_NO_MATCH,
        )


@dataclass
class VerificationResult:
    """
    Verdict plus the numbers that led to it.

    Attributes:
        verdict: Final MatchVerdict.
        frames_processed: Frames extracted with a face before the
                          pipeline stopped.
        liveness: Liveness metrics, when step 3 was reached.
        reference_distance: Distance from frame 0 to the reference, when
                            step 4 was reached.
        processing_time_ms: Wall time spent in the pipeline.
        details: Extra diagnostic information.
    """
    verdict: MatchVerdict
    frames_processed: int = 0
    liveness: Optional[LivenessResult] = None
    reference_distance: Optional[float] = None
    processing_time_ms: int = 0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.verdict is MatchVerdict.ACCEPTED


class MatchDecisionEngine:
    """
    Combine identity consistency, liveness and the reference comparison
    into one accept/reject decision.

    Args:
        extractor: Object with extract(bytes) -> Optional[Frame].
        config: Dictionary with optional keys:
            - matching: {"identity_threshold": float}
            - liveness: passed to LivenessEstimator
        classifier: Classifier used for threshold classification
                    (defaults to the shared instance).
    """

    def __init__(self, extractor, config: Dict[str, Any] = None,
                 classifier: Optional[ThresholdClassifier] = None):
        if config is None:
            config = {}
        matching_config = config.get("matching", {}) or {}

        self.extractor = extractor
        self.identity_threshold = float(
            matching_config.get("identity_threshold", DEFAULT_IDENTITY_THRESHOLD)
        )
        self.liveness = LivenessEstimator(config.get("liveness", {}) or {})
        self.classifier = classifier if classifier is not None else get_classifier()

    def extract_burst(self, images: Sequence[bytes]) -> List[Frame]:
        """
        Extract the frames of a burst, in order.

        Returns:
            Extracted frames. Extraction stops at the first image without
            a face, so a short list means the burst failed.
        """
        frames = []
        for i, data in enumerate(images):
            frame = self.extractor.extract(data)
            if frame is None:
                logger.info(f"No face found on frame {i}")
                break
            frames.append(frame)
        return frames

    def verify_burst(self, reference: ReferenceSource, images: Sequence[bytes]) -> VerificationResult:
        """
        Verify a burst of BURST_SIZE images against a reference descriptor.

        Args:
            reference: Reference descriptor, or a zero-argument callable
                       returning one. A callable is only invoked if the
                       burst passes identity and liveness checks.
            images: Exactly BURST_SIZE JPEG images in capture order.

        Returns:
            VerificationResult with the verdict.

        Raises:
            BurstSizeError: If the burst does not hold BURST_SIZE images.
            InputFormatError, ExtractionError: From the extractor.
            Whatever the reference callable raises.
        """
        if len(images) != BURST_SIZE:
            raise BurstSizeError(f"Expected {BURST_SIZE} frames, got {len(images)}")

        start_time = time.time()

        # 1. Every frame must hold a face
        frames = self.extract_burst(images)
        if len(frames) < BURST_SIZE:
            return VerificationResult(
                verdict=MatchVerdict.FAILED_NO_FACE,
                frames_processed=len(frames),
                processing_time_ms=_elapsed_ms(start_time),
            )

        result = self.verify_frames(reference, frames)
        result.processing_time_ms = _elapsed_ms(start_time)
        return result

    def verify_frames(self, reference: ReferenceSource, frames: Sequence[Frame]) -> VerificationResult:
        """Run steps 2-4 on frames that were already extracted."""
        if len(frames) != BURST_SIZE:
            raise BurstSizeError(f"Expected {BURST_SIZE} frames, got {len(frames)}")

        # 2. Same identity across the burst
        same_person = is_same_person(frames, self.identity_threshold, self.classifier)
        logger.info(f"same person: {same_person}")
        if not same_person:
            return VerificationResult(
                verdict=MatchVerdict.REJECTED_IDENTITY_MISMATCH,
                frames_processed=len(frames),
            )

        # 3. Liveness
        liveness = self.liveness.check(frames)
        logger.info(
            f"rectangle motion: {liveness.rectangle_motion:.3f}, "
            f"descriptor shift: {liveness.descriptor_shift:.4f}, live: {liveness.passed}"
        )
        if not liveness.passed:
            return VerificationResult(
                verdict=MatchVerdict.REJECTED_NOT_LIVE,
                frames_processed=len(frames),
                liveness=liveness,
            )

        # 4. Stored reference
        reference_descriptor = resolve_reference(reference)
        matched, distance = self.match_reference(reference_descriptor, frames[0])

        return VerificationResult(
            verdict=MatchVerdict.ACCEPTED if matched else MatchVerdict.REJECTED_NO_MATCH,
            frames_processed=len(frames),
            liveness=liveness,
            reference_distance=distance,
        )

    def verify_single(self, reference: ReferenceSource, image: bytes) -> VerificationResult:
        """
        Compare a single image against the reference. No liveness check.

        Returns:
            ACCEPTED, REJECTED_NO_MATCH or FAILED_NO_FACE.
        """
        start_time = time.time()

        frame = self.extractor.extract(image)
        if frame is None:
            return VerificationResult(
                verdict=MatchVerdict.FAILED_NO_FACE,
                processing_time_ms=_elapsed_ms(start_time),
            )

        matched, distance = self.match_reference(resolve_reference(reference), frame)

        return VerificationResult(
            verdict=MatchVerdict.ACCEPTED if matched else MatchVerdict.REJECTED_NO_MATCH,
            frames_processed=1,
            reference_distance=distance,
            processing_time_ms=_elapsed_ms(start_time),
        )

    def match_reference(self, reference_descriptor: np.ndarray, frame: Frame):
        """
        Classify a frame against the reference with the identity threshold.

        Returns:
            Tuple of (matched, distance).

        Raises:
            ReferenceFetchError: If the reference was produced by a model
                                 with a different descriptor size.
        """
        if reference_descriptor.shape[0] != frame.descriptor.shape[0]:
            logger.error(
                f"Reference descriptor has {reference_descriptor.shape[0]} dimensions, "
                f"frames have {frame.descriptor.shape[0]}"
            )
            raise ReferenceFetchError(
                "Reference descriptor does not match the current descriptor model"
            )

        with self.classifier.session() as session:
            session.set_samples([reference_descriptor], [0])
            label = session.classify_threshold(frame.descriptor, self.identity_threshold)

        distance = descriptor_distance(reference_descriptor, frame.descriptor)
        logger.info(f"reference distance: {distance:.4f}, match: {label != UNKNOWN}")
        return label != UNKNOWN, distance


def resolve_reference(reference: ReferenceSource) -> np.ndarray:
    """Return the reference descriptor, calling it first if it is lazy."""
    if callable(reference):
        reference = reference()
    return as_descriptor(reference)


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def get_decision_engine(config: Dict[str, Any] = None) -> MatchDecisionEngine:
    """
    Build a MatchDecisionEngine backed by the shared extractor.

    Args:
        config: Optional full config dict. If None, loads from config.yaml.
    """
    from core.extractor import get_extractor

    if config is None:
        from core.config import get_config
        config = get_config()

    return MatchDecisionEngine(get_extractor(config.get("extractor")), config)

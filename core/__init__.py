"""
Core Module for the Face Widget Verification Service

This package contains descriptor extraction, the burst verification
pipeline and the persistence of registered users.

Main components:
    - config: Configuration loading and management
    - descriptors: Frame / BoundingBox types and descriptor distance
    - extractor: Face descriptor extraction using InsightFace
    - classifier: Threshold classifier with exclusive sessions
    - identity: Burst identity consistency check
    - liveness: Motion / descriptor-drift liveness heuristics
    - verification: Match decision engine
    - user_store: User records, reference descriptors, audit log
    - image_store: Stored reference images
    - reference: Reference descriptor resolution

Usage:
    from core.config import get_config
    from core.verification import get_decision_engine, MatchVerdict
"""

from core.config import (
    get_config,
    get_section,
    get_extractor_config,
    get_matching_config,
    get_liveness_config,
    get_storage_config,
    get_reference_config,
    get_api_config,
    get_server_config,
)

from core.errors import (
    FaceWidgetError,
    InputFormatError,
    NoFaceFoundError,
    ExtractionError,
    BurstSizeError,
    ReferenceFetchError,
    StorageError,
    UserNotFoundError,
    DuplicateUserError,
)

from core.descriptors import (
    BURST_SIZE,
    BoundingBox,
    Frame,
    as_descriptor,
    descriptor_distance,
)

from core.classifier import ThresholdClassifier, get_classifier
from core.identity import is_same_person

from core.liveness import (
    LivenessEstimator,
    LivenessResult,
    compute_rectangle_motion,
    compute_descriptor_shift,
)

from core.verification import (
    MatchVerdict,
    VerificationResult,
    MatchDecisionEngine,
    get_decision_engine,
)

__all__ = [
    # Configuration
    "get_config",
    "get_section",
    "get_extractor_config",
    "get_matching_config",
    "get_liveness_config",
    "get_storage_config",
    "get_reference_config",
    "get_api_config",
    "get_server_config",
    # Errors
    "FaceWidgetError",
    "InputFormatError",
    "NoFaceFoundError",
    "ExtractionError",
    "BurstSizeError",
    "ReferenceFetchError",
    "StorageError",
    "UserNotFoundError",
    "DuplicateUserError",
    # Descriptors
    "BURST_SIZE",
    "BoundingBox",
    "Frame",
    "as_descriptor",
    "descriptor_distance",
    # Classification
    "ThresholdClassifier",
    "get_classifier",
    "is_same_person",
    # Liveness
    "LivenessEstimator",
    "LivenessResult",
    "compute_rectangle_motion",
    "compute_descriptor_shift",
    # Decision
    "MatchVerdict",
    "VerificationResult",
    "MatchDecisionEngine",
    "get_decision_engine",
]

"""
Verification API Routes

This module provides the face verification endpoints:
- POST /verify: burst verification (identity + liveness + reference match)
- POST /verify/single: one-image comparison against the reference,
  disabled unless api.allow_single_frame_verification is set

Every biometric rejection is answered with the same 401 "Invalid
credentials" so callers cannot tell which check failed.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException

from api.images import decode_base64_image
from api.schemas import SingleVerifyRequest, VerifyRequest, VerifyResponse
from core.config import get_api_config
from core.descriptors import BURST_SIZE
from core.errors import (
    ExtractionError,
    InputFormatError,
    ReferenceFetchError,
    StorageError,
    UserNotFoundError,
)
from core.reference import get_reference_resolver
from core.user_store import UserRecord, get_user_store
from core.verification import MatchVerdict, VerificationResult, get_decision_engine

# Setup logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["verification"])

INVALID_CREDENTIALS = "Invalid credentials"


def _decode_frames(frames: List[str]) -> List[bytes]:
    decoded = []
    for i, frame in enumerate(frames):
        try:
            decoded.append(decode_base64_image(frame))
        except InputFormatError as e:
            raise HTTPException(status_code=400, detail=f"{e} for frame {i + 1}")
    return decoded


def _lookup_user(email: str) -> UserRecord:
    try:
        user = get_user_store().get_user_by_email(email)
    except StorageError as e:
        logger.error(f"Database error looking up {email}: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    if user is None:
        logger.info(f"Verification for unknown account {email}")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    return user


def _log_attempt(user: UserRecord, result: VerificationResult) -> None:
    liveness = result.liveness
    try:
        get_user_store().log_verification(
            user_id=user.user_id,
            verdict=result.verdict.value,
            rectangle_motion=liveness.rectangle_motion if liveness else None,
            descriptor_shift=liveness.descriptor_shift if liveness else None,
            reference_distance=result.reference_distance,
            processing_time_ms=result.processing_time_ms,
        )
    except StorageError as e:
        logger.warning(f"Failed to log verification attempt: {e}")


def _respond(user: UserRecord, result: VerificationResult) -> VerifyResponse:
    """Map a verdict to the HTTP response."""
    _log_attempt(user, result)

    if result.verdict is MatchVerdict.FAILED_NO_FACE:
        raise HTTPException(status_code=422, detail="Failed to find a face")

    if result.verdict is not MatchVerdict.ACCEPTED:
        logger.info(f"Verification rejected for {user.user_id}: {result.verdict.value}")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    logger.info(f"Verification accepted for {user.user_id}")
    return VerifyResponse(
        user_id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
    )


@router.post("/verify", response_model=VerifyResponse)
def verify_user(request: VerifyRequest):
    """
    Verify a user from a burst of live frames.

    This endpoint:
    1. Validates the email and exactly 5 base64 JPEG frames
    2. Looks up the account
    3. Runs the decision pipeline: extraction, identity consistency,
       liveness, then comparison against the stored reference

    Raises:
        400: Missing email, wrong frame count, invalid base64 or image format.
        401: Unknown account or any biometric rejection.
        422: A frame has no face.
        500: Reference fetch, extraction or storage failure.
    """
    if not request.email or len(request.frames) != BURST_SIZE:
        logger.info(f"Email missing or frame count {len(request.frames)} != {BURST_SIZE}")
        raise HTTPException(status_code=400, detail="Request fields invalid")

    images = _decode_frames(request.frames)
    user = _lookup_user(request.email)

    engine = get_decision_engine()
    resolver = get_reference_resolver()

    try:
        result = engine.verify_burst(resolver.lazy(user), images)
    except InputFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReferenceFetchError as e:
        logger.error(f"Reference fetch failed for {user.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching reference image")
    except UserNotFoundError:
        # Deleted while the request was in flight
        logger.info(f"User {user.user_id} no longer exists")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    except ExtractionError as e:
        logger.error(f"Extraction failed for {user.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify user")
    except StorageError as e:
        logger.error(f"Storage failure verifying {user.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify user")

    return _respond(user, result)


@router.post("/verify/single", response_model=VerifyResponse)
def verify_user_single(request: SingleVerifyRequest):
    """
    Verify a user from a single image, without liveness checks.

    Only available when api.allow_single_frame_verification is enabled.

    Raises:
        404: Endpoint disabled.
        400: Missing fields, invalid base64 or image format.
        401: Unknown account or no match.
        422: No face in the image.
        500: Reference fetch, extraction or storage failure.
    """
    if not get_api_config().get("allow_single_frame_verification", False):
        raise HTTPException(status_code=404, detail="Not Found")

    if not request.email or not request.encoded_image:
        raise HTTPException(status_code=400, detail="All fields are required")

    try:
        image = decode_base64_image(request.encoded_image)
    except InputFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user = _lookup_user(request.email)

    engine = get_decision_engine()
    resolver = get_reference_resolver()

    try:
        result = engine.verify_single(resolver.lazy(user), image)
    except InputFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReferenceFetchError as e:
        logger.error(f"Reference fetch failed for {user.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching reference image")
    except UserNotFoundError:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    except (ExtractionError, StorageError) as e:
        logger.error(f"Failed to verify {user.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify user")

    return _respond(user, result)

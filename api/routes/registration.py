"""
Registration API Routes

This module provides the POST /register endpoint. It validates the
uploaded reference image, checks that it contains exactly one face,
stores the image and the user record, and caches the reference
descriptor for later verifications.
"""

import logging

from fastapi import APIRouter, HTTPException

from api.images import decode_base64_image
from api.schemas import RegisterRequest, RegisterResponse
from core.errors import (
    DuplicateUserError,
    ExtractionError,
    InputFormatError,
    NoFaceFoundError,
    StorageError,
)
from core.extractor import get_extractor
from core.image_store import get_image_store
from core.user_store import get_user_store

# Setup logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["registration"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register_user(request: RegisterRequest):
    """
    Register a user with a reference face image.

    This endpoint:
    1. Validates required fields and the base64 JPEG payload
    2. Extracts the face descriptor (exactly one face required)
    3. Stores the reference image and the user record
    4. Caches the reference descriptor

    Raises:
        400: Missing fields, invalid base64 or unsupported image format.
        409: Email already registered.
        422: No face found in the image.
        500: Extraction or storage failure.
    """
    if not (request.email and request.first_name and request.last_name
            and request.encoded_facial_image):
        raise HTTPException(status_code=400, detail="All fields are required")

    try:
        image_bytes = decode_base64_image(request.encoded_facial_image)
    except InputFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        frame = get_extractor().extract_required(image_bytes)
    except InputFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoFaceFoundError:
        logger.info(f"Registration for {request.email}: no face found")
        raise HTTPException(status_code=422, detail="Failed to find a face")
    except ExtractionError as e:
        logger.error(f"Registration for {request.email}: extraction failed: {e}")
        raise HTTPException(status_code=500, detail="Server Error")

    user_store = get_user_store()
    image_store = get_image_store()

    try:
        location = image_store.save(image_bytes, f"{request.first_name}{request.last_name}BaseImage")
    except OSError as e:
        logger.error(f"Failed to save reference image: {e}")
        raise HTTPException(status_code=500, detail="Server Error")

    user = None
    try:
        user = user_store.create_user(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            facial_image=location,
        )
        user_store.save_reference_descriptor(user.user_id, frame.descriptor)
    except DuplicateUserError:
        image_store.delete(location)
        raise HTTPException(status_code=409, detail="Email already exists")
    except StorageError as e:
        logger.error(f"Failed to register user {request.email}: {e}")
        if user is not None:
            user_store.delete_user(user.user_id)
        image_store.delete(location)
        raise HTTPException(status_code=500, detail="Failed to register user")

    logger.info(f"Registered {user.email} as {user.user_id}")
    return RegisterResponse(user_id=user.user_id)

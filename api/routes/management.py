"""
User Management API Routes

This module provides REST endpoints for managing registered users:
- GET /users: List all registered users
- GET /users/{user_id}: Get user details
- DELETE /users/{user_id}: Delete a user and their reference data
"""

import logging

from fastapi import APIRouter, HTTPException

from api.schemas import (
    UserInfo,
    UserListResponse,
    UserDetailResponse,
    DeleteUserResponse,
)
from core.errors import StorageError
from core.image_store import get_image_store
from core.user_store import get_user_store

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["users"])


@router.get("/users", response_model=UserListResponse)
def list_users():
    """
    List all registered users.

    Returns summary information for each user. Reference images and
    descriptors are not included.
    """
    try:
        users = get_user_store().list_users()
    except StorageError as e:
        logger.error(f"Failed to list users: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return UserListResponse(
        users=[
            UserInfo(
                user_id=u.user_id,
                email=u.email,
                first_name=u.first_name,
                last_name=u.last_name,
                registered_at=u.registered_at,
            )
            for u in users
        ],
        total=len(users),
    )


@router.get("/users/{user_id}", response_model=UserDetailResponse)
def get_user(user_id: str):
    """
    Get detailed information about a specific user.

    Raises:
        404: If the user is not found.
        500: On a database failure.
    """
    user_store = get_user_store()
    try:
        user = user_store.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        logs = user_store.get_verification_logs(user_id=user_id, limit=1000)
    except StorageError as e:
        logger.error(f"Failed to load user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return UserDetailResponse(
        user_id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        registered_at=user.registered_at,
        facial_image=user.facial_image,
        has_reference_descriptor=user_store.load_reference_descriptor(user_id) is not None,
        verification_attempts=len(logs),
    )


@router.delete("/users/{user_id}", response_model=DeleteUserResponse)
def delete_user(user_id: str):
    """
    Delete a registered user, their reference image and descriptor.

    Raises:
        404: If the user is not found.
        500: On a database failure.
    """
    try:
        deleted = get_user_store().delete_user(user_id)
    except StorageError as e:
        logger.error(f"Failed to delete user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    if deleted is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    get_image_store().delete(deleted.facial_image)

    return DeleteUserResponse(
        success=True,
        user_id=user_id,
        message=f"User {user_id} deleted successfully",
    )

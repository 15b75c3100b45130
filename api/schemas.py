"""
Pydantic Schemas for API Request/Response Models

This module defines the data models used by the registration,
verification and user management endpoints.

Request fields default to empty values so the routes can answer missing
fields with a 400 "All fields are required", matching the behaviour of
the existing widget clients.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


# ============================================================
# Registration Schemas
# ============================================================

class RegisterRequest(BaseModel):
    """Request to register a user with a reference face image."""
    email: str = Field("", description="Login email, unique per user")
    first_name: str = Field("", description="User's first name")
    last_name: str = Field("", description="User's last name")
    encoded_facial_image: str = Field("", description="Base64-encoded JPEG reference image")


class RegisterResponse(BaseModel):
    """Response after a successful registration."""
    message: str = Field("Registration successful!", description="Status message")
    user_id: str = Field(..., description="Generated unique user ID")


# ============================================================
# Verification Schemas
# ============================================================

class VerifyRequest(BaseModel):
    """Request to verify a user with a burst of live frames."""
    email: str = Field("", description="Email of the account to verify")
    frames: List[str] = Field(
        default_factory=list,
        description="Exactly 5 base64-encoded JPEG frames in capture order",
    )


class SingleVerifyRequest(BaseModel):
    """Request to verify a user with one image (no liveness check)."""
    email: str = Field("", description="Email of the account to verify")
    encoded_image: str = Field("", description="Base64-encoded JPEG image")


class VerifyResponse(BaseModel):
    """Response after a successful verification."""
    message: str = Field("User verified successfully!", description="Status message")
    user_id: str = Field(..., description="Verified user's ID")
    email: str = Field(..., description="Verified user's email")
    first_name: str = Field(..., description="Verified user's first name")
    last_name: str = Field(..., description="Verified user's last name")


# ============================================================
# User Management Schemas
# ============================================================

class UserInfo(BaseModel):
    """User information summary."""
    user_id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Login email")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    registered_at: str = Field(..., description="ISO timestamp of registration")


class UserListResponse(BaseModel):
    """Response containing list of registered users."""
    users: List[UserInfo] = Field(default_factory=list)
    total: int = Field(0, description="Total number of registered users")


class UserDetailResponse(UserInfo):
    """Detailed user information."""
    facial_image: str = Field(..., description="Location of the reference image")
    has_reference_descriptor: bool = Field(
        False,
        description="Whether a reference descriptor is cached for this user"
    )
    verification_attempts: int = Field(0, description="Number of logged verification attempts")


class DeleteUserResponse(BaseModel):
    """Response from user deletion."""
    success: bool = Field(..., description="Whether deletion was successful")
    user_id: str = Field(..., description="ID of deleted user")
    message: str = Field(..., description="Status message")


# ============================================================
# Health Check Schemas
# ============================================================

class HealthResponse(BaseModel):
    """System health check response."""
    model_config = {"protected_namespaces": ()}  # Allow 'model_' prefix in field names

    status: str = Field(..., description="Overall status: 'healthy' or 'degraded'")
    model_loaded: bool = Field(..., description="Whether the face analysis model is loaded")
    gpu_available: bool = Field(..., description="Whether a CUDA execution provider is available")
    registered_users: int = Field(..., description="Number of registered users")
    verification_attempts: int = Field(0, description="Number of logged verification attempts")
    identity_threshold: Optional[float] = Field(None, description="Configured identity threshold")

"""
API Routes Package

This package contains route handlers organized by feature:
- registration.py: POST /register
- verification.py: POST /verify and POST /verify/single
- management.py: REST endpoints for user management
"""

from api.routes.registration import router as registration_router
from api.routes.verification import router as verification_router
from api.routes.management import router as management_router

__all__ = [
    "registration_router",
    "verification_router",
    "management_router",
]

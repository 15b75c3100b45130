"""
API Layer for the Face Widget Verification Service

This package provides the FastAPI-based API layer that exposes:
- POST /register for reference image registration
- POST /verify for burst face verification with liveness checks
- REST endpoints for user management and health checks
"""

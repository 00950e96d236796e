"""
This module defines the health check endpoint for the CanopyWatch API.
"""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health", summary="Health check endpoint")
async def health_check():
    """
    Returns a simple status to indicate that the service is healthy.

    The service holds no state of its own, so being able to answer is the
    whole check; feed availability is reported by the routes that use it.
    """
    return {"status": "healthy"}

"""
FastAPI dependency injection utilities.

This module provides dependency functions giving routes access to the
application configuration and components stored on ``app.state``.
"""

from fastapi import Depends, HTTPException, Request, status

from ...application.startup import ApplicationStartup
from ...infrastructure.config.models import ApplicationConfig
from ...infrastructure.services.upload.manager import UploadManager


def get_startup(request: Request) -> ApplicationStartup:
    """
    Get the application startup manager from the request.

    Raises:
        HTTPException: If the application has not been set up
    """
    if not hasattr(request.app.state, "startup"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application components not available"
        )

    return request.app.state.startup  # type: ignore[no-any-return]


def get_config(request: Request) -> ApplicationConfig:
    """
    Get the application configuration from the request.

    Raises:
        HTTPException: If configuration is not available
    """
    if not hasattr(request.app.state, "config"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application configuration not available"
        )

    return request.app.state.config  # type: ignore[no-any-return]


def get_upload_manager(startup: ApplicationStartup = Depends(get_startup)) -> UploadManager:
    """Resolve the upload manager component."""
    try:
        return startup.upload_manager
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Upload service not available: {e}"
        )

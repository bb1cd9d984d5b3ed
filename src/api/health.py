"""
Health check endpoints for the photo relay API.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.models import (
    ConfigSummary,
    DetailedHealthResponse,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
)
from src.api.photos import get_destination_defaults
from src.core.config import BaseConfig, DestinationDefaults, get_config

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

router = APIRouter(
    prefix="/health",
    tags=["health"],
    responses={
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


async def get_config_dependency() -> BaseConfig:
    """
    Get configuration dependency for health endpoints.

    Raises:
        HTTPException: If configuration cannot be loaded
    """
    try:
        return get_config()
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Configuration unavailable",
        )


@router.get(
    "/",
    summary="Basic Health Check",
    description="Simple health check endpoint that returns service status and timestamp",
)
async def health_check():
    """
    Basic health check endpoint.

    Fast and lightweight, suitable for load balancer health checks.
    """
    start_time = time.time()
    response = HealthResponse(health_status=HealthStatus.HEALTHY)

    response_time_ms = (time.time() - start_time) * 1000
    logger.debug(f"Health check completed in {response_time_ms:.2f}ms")

    return response.to_payload()


@router.get(
    "/detailed",
    summary="Detailed Health Check",
    description="Health check with a configuration summary (secrets hidden)",
)
async def detailed_health_check(
    config: Annotated[BaseConfig, Depends(get_config_dependency)],
    defaults: Annotated[DestinationDefaults, Depends(get_destination_defaults)],
):
    """
    Detailed health check endpoint.

    Reports whether default credentials are configured without exposing them.
    """
    summary = ConfigSummary.from_config(config, defaults)

    if not summary.default_bot_token_configured:
        logger.debug("No BOT_TOKEN configured; callers must pass botToken")

    response = DetailedHealthResponse(
        health_status=HealthStatus.HEALTHY,
        config=summary,
        version=APP_VERSION,
    )
    return response.to_payload()

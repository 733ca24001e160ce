"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

Readiness only looks at local state by default. `check_ai=true` adds a
round trip to the AI provider, which costs a request.

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import logging
import shutil
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ...core.errors import ConfigurationError
from ...infrastructure.vision import create_vision_client
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check. Fast, and never touches external dependencies."""
    return HealthResponse(
        status="ok",
        version=SERVICE_VERSION,
        details={
            "ai_provider": settings.ai_provider,
            "transcoder_mock_mode": settings.transcoder_mock_mode,
        }
    )


def _configuration_check(settings) -> ReadinessCheck:
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        return ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}",
        )
    return ReadinessCheck(name="configuration", status="ok")


def _transcoder_check(settings) -> ReadinessCheck:
    if settings.transcoder_mock_mode:
        return ReadinessCheck(name="transcoder", status="ok", error="mock mode")

    missing = [
        path for path in (settings.ffmpeg_path, settings.ffprobe_path)
        if shutil.which(path) is None
    ]
    if missing:
        return ReadinessCheck(
            name="transcoder",
            status="error",
            error=f"Not found: {', '.join(missing)}",
        )
    return ReadinessCheck(name="transcoder", status="ok")


async def _ai_service_check(settings) -> ReadinessCheck:
    try:
        client = create_vision_client(settings)
    except ConfigurationError as e:
        return ReadinessCheck(name="ai_service", status="error", error=e.message)

    if not await client.test_connection():
        return ReadinessCheck(
            name="ai_service",
            status="error",
            error=f"{settings.ai_provider} did not answer",
        )
    return ReadinessCheck(name="ai_service", status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks configuration, FFmpeg and, with check_ai, the AI provider.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    response: Response,
    check_ai: bool = False,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Checks that AI credentials for the selected provider are present and
    that FFmpeg is installed (unless the transcoder runs in mock mode).
    With check_ai, also calls the AI provider. Returns 503 if any check
    fails.
    """
    checks = [
        _configuration_check(settings),
        _transcoder_check(settings),
    ]
    if check_ai:
        checks.append(await _ai_service_check(settings))
    all_ok = all(check.status == "ok" for check in checks)

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=SERVICE_VERSION,
        checks=checks,
    )

"""Health-check and target inventory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fleetcmd import __version__
from fleetcmd.auth import require_api_key
from fleetcmd.models.responses import HealthResponse
from fleetcmd.models.target import TargetSummary
from fleetcmd.services.targets import target_directory

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health() -> HealthResponse:
    """Basic liveness probe (no auth required)."""
    return HealthResponse(status="ok", version=__version__)


@router.get(
    "/targets",
    response_model=list[TargetSummary],
    dependencies=[Depends(require_api_key)],
)
async def list_targets() -> list[TargetSummary]:
    """Known targets, without their credentials."""
    return [TargetSummary.from_target(t) for t in target_directory.list()]

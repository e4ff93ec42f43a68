"""Command job endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from fleetcmd.auth import require_api_key
from fleetcmd.exceptions import InvalidArgument
from fleetcmd.models.jobs import CommandJob, CommandStatus
from fleetcmd.models.responses import CommandCreateRequest, ScheduleResponse
from fleetcmd.models.target import Target
from fleetcmd.services.command_service import command_service
from fleetcmd.services.targets import target_directory

router = APIRouter(
    prefix="/commands",
    tags=["commands"],
    dependencies=[Depends(require_api_key)],
)


def _target_or_404(target_id: str) -> Target:
    target = target_directory.get(target_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Target not found")
    return target


def _job_or_404(job_id: str) -> CommandJob:
    job = command_service.find_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Command not found")
    return job


@router.post("", response_model=CommandJob)
async def create_command(req: CommandCreateRequest) -> CommandJob:
    target = _target_or_404(req.target_id)
    try:
        return command_service.create_command(
            target,
            req.name,
            req.command,
            working_directory=req.working_directory,
            use_sudo=req.use_sudo,
            timeout=req.timeout,
            tags=req.tags,
        )
    except InvalidArgument as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("", response_model=list[CommandJob])
async def list_commands(
    status: Optional[CommandStatus] = None,
    tag: Optional[str] = None,
) -> list[CommandJob]:
    if tag is not None:
        jobs = command_service.find_by_tags([tag])
    else:
        jobs = command_service.repository.list()
    if status is not None:
        jobs = [j for j in jobs if j.status == status]
    return jobs


@router.post("/execute-pending", response_model=list[CommandJob])
async def execute_pending() -> list[CommandJob]:
    """Run every enabled pending command, oldest first."""
    return await run_in_threadpool(command_service.execute_all_pending)


@router.get("/{job_id}", response_model=CommandJob)
async def get_command(job_id: str) -> CommandJob:
    return _job_or_404(job_id)


@router.post("/{job_id}/execute", response_model=CommandJob)
async def execute_command(job_id: str) -> CommandJob:
    job = _job_or_404(job_id)
    return await run_in_threadpool(command_service.execute_command, job)


@router.post("/{job_id}/schedule", response_model=ScheduleResponse)
async def schedule_command(job_id: str) -> ScheduleResponse:
    job = _job_or_404(job_id)
    command_service.schedule_command(job)
    return ScheduleResponse(command_id=job.id)


@router.post("/{job_id}/cancel", response_model=CommandJob)
async def cancel_command(job_id: str) -> CommandJob:
    return command_service.cancel_command(_job_or_404(job_id))

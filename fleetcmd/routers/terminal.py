"""Ad-hoc terminal: run one command now and keep it as a tagged job."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from fleetcmd.auth import require_api_key
from fleetcmd.config import settings
from fleetcmd.exceptions import InvalidArgument
from fleetcmd.models.jobs import CommandStatus
from fleetcmd.models.responses import (
    TerminalExecuteRequest,
    TerminalExecuteResponse,
    TerminalHistoryEntry,
)
from fleetcmd.services.command_service import command_service
from fleetcmd.services.output_inspector import has_error
from fleetcmd.services.targets import target_directory

TERMINAL_TAG = "terminal"
HISTORY_LIMIT = 20

router = APIRouter(
    prefix="/terminal",
    tags=["terminal"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/execute", response_model=TerminalExecuteResponse)
async def execute(req: TerminalExecuteRequest) -> TerminalExecuteResponse:
    target = target_directory.get(req.target_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Target not found")

    try:
        job = command_service.create_command(
            target,
            f"Terminal: {req.command[:50]}",
            req.command,
            working_directory=req.working_directory,
            use_sudo=False,
            timeout=settings.terminal_timeout_seconds,
            tags=[TERMINAL_TAG],
        )
    except InvalidArgument as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    job = await run_in_threadpool(command_service.execute_command, job)
    output = job.result or ""
    completed = job.status == CommandStatus.completed
    return TerminalExecuteResponse(
        success=completed,
        command_id=job.id,
        status=job.status.value,
        result=output,
        execution_time=job.execution_time,
        has_error=has_error(output),
        error=None if completed else output,
    )


@router.get("/history/{target_id}", response_model=list[TerminalHistoryEntry])
async def history(target_id: str) -> list[TerminalHistoryEntry]:
    if target_directory.get(target_id) is None:
        raise HTTPException(status_code=404, detail="Target not found")

    jobs = [
        j for j in command_service.find_by_tags([TERMINAL_TAG])
        if j.target.id == target_id
    ][:HISTORY_LIMIT]
    return [
        TerminalHistoryEntry(
            id=j.id,
            command=j.command,
            result=j.result or "",
            status=j.status.value,
            executed_at=j.executed_at,
            execution_time=j.execution_time,
            working_directory=j.working_directory,
        )
        for j in jobs
    ]

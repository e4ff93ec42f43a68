"""File transfer job endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from fleetcmd.auth import require_api_key
from fleetcmd.exceptions import FileNotExists, InvalidArgument
from fleetcmd.models.jobs import TransferJob, TransferStatus
from fleetcmd.models.responses import TransferCreateRequest
from fleetcmd.services.targets import target_directory
from fleetcmd.services.transfer_service import transfer_service

router = APIRouter(
    prefix="/transfers",
    tags=["transfers"],
    dependencies=[Depends(require_api_key)],
)


def _job_or_404(job_id: str) -> TransferJob:
    job = transfer_service.find_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Transfer not found")
    return job


@router.post("", response_model=TransferJob)
async def create_transfer(req: TransferCreateRequest) -> TransferJob:
    target = target_directory.get(req.target_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Target not found")
    try:
        return transfer_service.create_transfer(
            target,
            req.name,
            req.local_path,
            req.remote_path,
            use_sudo=req.use_sudo,
            timeout=req.timeout,
            tags=req.tags,
        )
    except (InvalidArgument, FileNotExists) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("", response_model=list[TransferJob])
async def list_transfers(
    status: Optional[TransferStatus] = None,
    tag: Optional[str] = None,
) -> list[TransferJob]:
    if tag is not None:
        jobs = transfer_service.find_by_tags([tag])
    else:
        jobs = transfer_service.repository.list()
    if status is not None:
        jobs = [j for j in jobs if j.status == status]
    return jobs


@router.get("/{job_id}", response_model=TransferJob)
async def get_transfer(job_id: str) -> TransferJob:
    return _job_or_404(job_id)


@router.post("/{job_id}/execute", response_model=TransferJob)
async def execute_transfer(job_id: str) -> TransferJob:
    job = _job_or_404(job_id)
    return await run_in_threadpool(transfer_service.execute_transfer, job)


@router.post("/{job_id}/cancel", response_model=TransferJob)
async def cancel_transfer(job_id: str) -> TransferJob:
    return transfer_service.cancel_transfer(_job_or_404(job_id))

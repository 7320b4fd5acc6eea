"""
Router for extraction job history.

Handles:
- Listing the caller's jobs
- Job detail with audit trail and stored result
"""

import logging
import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..models import (
    AuditEntryResponse,
    ErrorResponse,
    JobDetailResponse,
    JobListResponse,
    JobSummaryResponse,
)
from ..models_db import Job
from ..services.exceptions import JobNotFound
from ..services.job_ledger import JobLedger
from .deps import get_ledger, get_principal_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _summary_fields(job: Job) -> dict:
    return {
        "id": str(job.id),
        "file_name": job.file_name,
        "file_size": job.file_size,
        "status": job.status.value,
        "error_message": job.error_message,
        "created_at": _iso(job.created_at),
        "completed_at": _iso(job.completed_at),
    }


@router.get(
    "",
    response_model=JobListResponse,
    responses={401: {"model": ErrorResponse}},
)
async def list_jobs(
    principal_id: Annotated[uuid.UUID, Depends(get_principal_id)],
    ledger: Annotated[JobLedger, Depends(get_ledger)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> JobListResponse:
    """List the caller's extraction jobs, newest first."""
    jobs, total = ledger.list_jobs(principal_id, limit=limit, offset=offset)
    return JobListResponse(
        jobs=[JobSummaryResponse(**_summary_fields(job)) for job in jobs],
        total=total,
    )


@router.get(
    "/{job_id}",
    response_model=JobDetailResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_job(
    job_id: uuid.UUID,
    principal_id: Annotated[uuid.UUID, Depends(get_principal_id)],
    ledger: Annotated[JobLedger, Depends(get_ledger)],
) -> JobDetailResponse:
    """
    Get one job with its audit trail.

    The stored resume data is included once the job has completed.
    """
    job = ledger.get_job(principal_id, job_id)
    if job is None:
        raise JobNotFound(f"Job {job_id} not found for principal {principal_id}")

    trail = ledger.get_audit_trail(job.id)
    record = ledger.get_result(job.id)

    return JobDetailResponse(
        **_summary_fields(job),
        mode=record.mode if record else None,
        model=record.model if record else None,
        audit_trail=[
            AuditEntryResponse(
                action=entry.action.value,
                status=entry.status.value,
                message=entry.message,
                created_at=_iso(entry.created_at),
            )
            for entry in trail
        ],
        result=record.data if record else None,
    )

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.background import JobManager, JobRecord
from api.dependencies import get_job_manager, require_api_key
from api.models import JobInfo, JobStatus

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_api_key)])


def job_to_model(record: JobRecord) -> JobInfo:
    # Refresh jobs return a dict of counts; anything else is not exposed.
    summary = record.result if isinstance(record.result, dict) else None
    return JobInfo(
        jobId=record.job_id,
        jobType=record.job_type,
        status=JobStatus(record.status) if record.status in JobStatus.__members__ else JobStatus.pending,
        createdAt=record.created_at,
        startedAt=record.started_at,
        finishedAt=record.finished_at,
        result=summary,
        error=record.error,
        metadata=record.metadata,
    )


@router.get("", response_model=list[JobInfo], summary="Recent background jobs, newest first")
async def list_jobs(
    job_type: Optional[str] = Query(None, alias="type"),
    job_manager: JobManager = Depends(get_job_manager),
) -> list[JobInfo]:
    return [job_to_model(record) for record in job_manager.list_jobs(job_type)]


@router.get("/{job_id}", response_model=JobInfo, summary="Fetch background job status")
async def get_job(job_id: str, job_manager: JobManager = Depends(get_job_manager)) -> JobInfo:
    record = job_manager.get(job_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown job")
    return job_to_model(record)

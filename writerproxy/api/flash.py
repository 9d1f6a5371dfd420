# writerproxy/api/flash.py
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from writerproxy.core.auth import verify_web_auth
from writerproxy.core.job.job import FlashJob
from writerproxy.core.job.runner import FlashRunner
from writerproxy.core.job.tracker import job_tracker

logger = logging.getLogger(__name__)

router = APIRouter()


class FlashRequest(BaseModel):
    worker: str = Field(..., min_length=1)
    arguments: List[str] = Field(default_factory=list)


def _get_job_or_404(job_id: str) -> FlashJob:
    job = job_tracker.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _log_path(job: FlashJob) -> Optional[Path]:
    if job.log_path:
        return job.log_path
    runner = getattr(job, "runner", None)
    return runner.supervisor.log_path if runner else None


# ──────────────────────────────────────────────────────────────────────────────
# Flash job APIs
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/api/flash", dependencies=[Depends(verify_web_auth)])
def start_flash(request: FlashRequest):
    job = job_tracker.create_job(worker=request.worker, arguments=request.arguments)
    runner = FlashRunner(job)
    runner.run()
    logger.info(f"Started flash job {job.job_id}: {request.worker}")
    return {"status": "Job started", "job_id": job.job_id}


@router.get("/api/flash", dependencies=[Depends(verify_web_auth)])
def list_jobs():
    return [job.to_dict() for job in job_tracker.list_jobs()]


@router.get("/api/flash/{job_id}", dependencies=[Depends(verify_web_auth)])
def get_job(job_id: str):
    return _get_job_or_404(job_id).to_dict()


@router.post("/api/flash/{job_id}/cancel", dependencies=[Depends(verify_web_auth)])
def cancel_job(job_id: str):
    job = _get_job_or_404(job_id)
    if job.is_terminal:
        raise HTTPException(status_code=409, detail=f"Job already {job.status.lower()}")
    if getattr(job, "runner", None):
        job.runner.cancel()
    else:
        job.mark_cancelled()
    return {"status": "cancelled"}


@router.delete("/api/flash/{job_id}", dependencies=[Depends(verify_web_auth)])
def delete_job(job_id: str):
    """
    Hard delete: stop the job, forget it and remove its log file.
    Idempotent.
    """
    job = job_tracker.get_job(job_id)
    if not job:
        return {"status": "ok"}

    if getattr(job, "runner", None) and not job.is_terminal:
        job.runner.cancel()
        job.runner.join(timeout=5)

    job.log_path = _log_path(job)
    job_tracker.remove_job(job_id, delete_log=True)
    return {"status": "deleted"}


# ──────────────────────────────────────────────────────────────────────────────
# Raw writer output
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/api/flash/{job_id}/log", dependencies=[Depends(verify_web_auth)], response_class=PlainTextResponse)
def job_log(job_id: str):
    path = _log_path(_get_job_or_404(job_id))
    if not path or not path.exists():
        return ""
    return path.read_text(errors="ignore")

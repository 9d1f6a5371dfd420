# writerproxy/core/job/tracker.py
from __future__ import annotations

import logging
import threading
import uuid
from typing import Dict, List, Optional

from .job import FlashJob

logger = logging.getLogger(__name__)


class JobTracker:
    def __init__(self) -> None:
        self.jobs: Dict[str, FlashJob] = {}
        self.lock = threading.Lock()

    # ── create/remove/get/list ───────────────────────────────
    def create_job(self, worker: str, arguments: List[str]) -> FlashJob:
        with self.lock:
            job_id = str(uuid.uuid4())
            job = FlashJob(job_id=job_id, worker=worker, arguments=list(arguments))
            self.jobs[job_id] = job
            return job

    def get_job(self, job_id: str) -> Optional[FlashJob]:
        return self.jobs.get(job_id)

    def remove_job(self, job_id: str, delete_log: bool = False) -> bool:
        with self.lock:
            job = self.jobs.pop(job_id, None)
        if not job:
            return False
        if delete_log and job.log_path:
            try:
                job.log_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"⚠️ Could not delete log {job.log_path}: {e}")
        return True

    def list_jobs(self) -> List[FlashJob]:
        with self.lock:
            return list(self.jobs.values())


# Singleton
job_tracker = JobTracker()

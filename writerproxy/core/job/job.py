# writerproxy/core/job/job.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional
import time

from writerproxy.core.robot import DoneEvent, ErrorEvent, ProgressEvent, StatusEvent, event_to_dict

TERMINAL = {"Finished", "Failed", "Cancelled"}


@dataclass
class FlashJob:
    job_id: str
    worker: str
    arguments: List[str]

    # runtime status
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    status: str = "Queued"                         # Queued | Running | Finished | Failed | Cancelled
    progress: float = 0.0                          # 0..100 as last reported by the writer
    speed: float = 0.0
    eta: int = 0
    stage: Optional[str] = None                    # write | check, when the writer says so

    # outcome
    checksum: Optional[str] = None
    exit_code: Optional[int] = None
    error: Optional[Dict[str, str]] = None         # {"stage": ..., "message": ...}
    worker_errors: List[Dict[str, str]] = field(default_factory=list)

    # logs / runner
    log_path: Optional[Path] = None
    events: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=200))
    stdout_log: Deque[str] = field(default_factory=lambda: deque(maxlen=200))
    runner: Optional["FlashRunner"] = None  # forward reference

    # ── helpers ──────────────────────────────────────────────
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

    def apply_event(self, event: StatusEvent) -> None:
        self.events.append(event_to_dict(event))
        if isinstance(event, ProgressEvent):
            self.progress = max(0.0, min(100.0, event.percentage))
            self.speed = event.speed
            self.eta = event.eta
            if event.stage:
                self.stage = event.stage
        elif isinstance(event, DoneEvent):
            self.checksum = event.checksum
        elif isinstance(event, ErrorEvent):
            self.worker_errors.append({"code": event.code, "message": event.message})

    def append_stdout(self, line: str) -> None:
        self.stdout_log.append(line)

    def mark_running(self) -> None:
        self.status = "Running"

    def mark_finished(self, exit_code: int) -> None:
        self.exit_code = exit_code
        self.status = "Finished" if exit_code == 0 else "Failed"
        if exit_code == 0:
            self.progress = 100.0
        self.end_time = time.time()

    def mark_failed(self, stage: str, message: str) -> None:
        self.error = {"stage": stage, "message": message}
        self.status = "Failed"
        self.end_time = time.time()

    def mark_cancelled(self) -> None:
        self.status = "Cancelled"
        self.end_time = time.time()

    # ── API surface ──────────────────────────────────────────
    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "worker": self.worker,
            "arguments": list(self.arguments),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status,
            "progress": self.progress,
            "speed": self.speed,
            "eta": self.eta,
            "stage": self.stage,
            "checksum": self.checksum,
            "exit_code": self.exit_code,
            "error": self.error,
            "worker_errors": list(self.worker_errors),
            "log_path": str(self.log_path) if self.log_path else None,
            "events": list(self.events),
            "stdout_log": list(self.stdout_log),
        }

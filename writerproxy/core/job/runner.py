# writerproxy/core/job/runner.py
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from writerproxy.core.errors import SupervisorError
from writerproxy.core.robot import StatusEvent, event_to_dict
from writerproxy.core.supervisor import Supervisor
from .job import FlashJob

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class FlashRunner:
    """Run one Supervisor on a background thread and fan its events out."""

    def __init__(self, job: FlashJob, on_message: Optional[Callable[[Message], None]] = None) -> None:
        self.job = job
        self.job.runner = self

        # multi-listener fan-out (WS + callbacks)
        self._listeners: List[Callable[[Message], None]] = []
        if on_message:
            self._listeners.append(on_message)

        self.supervisor = Supervisor(job.worker, job.arguments, on_event=self._on_event)
        self.supervisor.add_line_listener(self.job.append_stdout)
        self._thread: Optional[threading.Thread] = None

    # --- pub/sub for WS listeners ---
    def add_listener(self, cb: Callable[[Message], None]) -> None:
        if cb not in self._listeners:
            self._listeners.append(cb)

    def remove_listener(self, cb: Callable[[Message], None]) -> None:
        try:
            self._listeners.remove(cb)
        except ValueError:
            pass

    def _broadcast(self, message: Message) -> None:
        for cb in list(self._listeners):
            try:
                cb(message)
            except Exception as e:
                logger.warning(f"⚠️ Listener failed for job {self.job.job_id}: {e}")

    # ---------------- public API ----------------
    def run(self) -> None:
        self._thread = threading.Thread(target=self._run, name=f"flash:{self.job.job_id}", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def cancel(self) -> None:
        # _run marks the job once the final exit message is out
        self.supervisor.cancel()

    # ---------------- internal ------------------
    def _on_event(self, event: StatusEvent) -> None:
        self.job.apply_event(event)
        self._broadcast(event_to_dict(event))

    def _run(self) -> None:
        self.job.mark_running()
        try:
            code = self.supervisor.run()
        except SupervisorError as e:
            self.job.log_path = self.supervisor.log_path
            # Listeners stop at the terminal status, so tell them first.
            self._broadcast(e.to_dict())
            self.job.mark_failed(e.stage, e.message)
            return
        except Exception as e:
            logger.exception(f"Supervisor crashed for job {self.job.job_id}")
            self._broadcast({"type": "failure", "stage": "supervisor", "message": str(e)})
            self.job.mark_failed("supervisor", str(e))
            return

        self.job.log_path = self.supervisor.log_path
        if self.supervisor.cancelled:
            self._broadcast({"type": "exit", "code": code, "status": "Cancelled"})
            self.job.mark_cancelled()
        else:
            self._broadcast({"type": "exit", "code": code, "status": "Finished" if code == 0 else "Failed"})
            self.job.mark_finished(code)

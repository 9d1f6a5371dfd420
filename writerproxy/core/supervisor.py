# writerproxy/core/supervisor.py
"""
Run the image writer with the privileges it needs and relay its status.

Elevation helpers only run an opaque shell command; they never hand back the
child's stdio. So the writer's stdout always goes to a temporary log file,
and this process tails that file while the spawned command runs:

    Init -> DeterminingPrivilege -> DirectSpawn | Elevating -> Completed | Failed
                                     (tailing runs alongside the spawn)

When we are already elevated the writer is spawned directly. Otherwise this
proxy is re-invoked through the platform's elevation prompt; the elevated
copy finds the log path in its environment and does the direct spawn itself.
"""
from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

import psutil

from . import privilege
from .constants import EXIT_CODES, PKEXEC_DENIED_CODES
from .context import ElevationContext, RelaunchContext
from .elevation import SpawnInstruction, build_command
from .errors import (
    ElevationError,
    HostEnvironmentError,
    LogFileError,
    PrivilegeQueryError,
    SpawnError,
    SupervisorError,
    TailError,
)
from .logpath import get_log_path
from .robot import StatusEvent, parse_robot_line
from .tail import LogTailer

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == "Windows"
SUPPORTED_PLATFORMS = {"linux", "darwin", "windows", "freebsd"}
MIN_PYTHON = (3, 9)

INIT = "Init"
DETERMINING_PRIVILEGE = "DeterminingPrivilege"
DIRECT_SPAWN = "DirectSpawn"
ELEVATING = "Elevating"
COMPLETED = "Completed"
FAILED = "Failed"
CANCELLED = "Cancelled"


def check_host(system: Optional[str] = None) -> None:
    system = (system or platform.system()).lower()
    if system not in SUPPORTED_PLATFORMS:
        raise HostEnvironmentError(f"Unsupported platform: {system}")
    if sys.version_info < MIN_PYTHON:
        wanted = ".".join(str(p) for p in MIN_PYTHON)
        raise HostEnvironmentError(f"Python {wanted} or newer is required")


def terminate_tree(proc: Optional[subprocess.Popen], timeout: float = 3.0) -> None:
    """Terminate a spawned process and everything it started."""
    if proc is None or proc.poll() is not None:
        return
    try:
        parent = psutil.Process(proc.pid)
        procs = parent.children(recursive=True) + [parent]
    except psutil.NoSuchProcess:
        return
    for p in procs:
        try:
            p.terminate()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied:
            # e.g. pkexec, which runs as root once authorised
            logger.warning(f"⚠️ Not allowed to terminate pid {p.pid}")
    _gone, alive = psutil.wait_procs(procs, timeout=timeout)
    for p in alive:
        try:
            p.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass


class Supervisor:
    def __init__(
        self,
        worker: str,
        arguments: List[str],
        relaunch: Optional[RelaunchContext] = None,
        on_event: Optional[Callable[[StatusEvent], None]] = None,
        tail: bool = True,
        log_dir: Optional[Path] = None,
    ) -> None:
        self.worker = str(worker)
        self.arguments = [str(a) for a in arguments]
        self.relaunch = relaunch or RelaunchContext()
        self.tail_enabled = tail
        self.log_dir = log_dir

        self._listeners: List[Callable[[StatusEvent], None]] = []
        self._line_listeners: List[Callable[[str], None]] = []
        if on_event:
            self._listeners.append(on_event)

        self.state = INIT
        self.tailing = False
        self.log_path: Optional[Path] = None
        self.context: Optional[ElevationContext] = None
        self.instruction: Optional[SpawnInstruction] = None
        self.process: Optional[subprocess.Popen] = None
        self.exit_code: Optional[int] = None
        self.error: Optional[SupervisorError] = None

        self._tailer: Optional[LogTailer] = None
        self._done = threading.Event()
        self._failure: Optional[SupervisorError] = None
        self._cancelled = False
        self._started = False

    # --- pub/sub ---
    def add_listener(self, cb: Callable[[StatusEvent], None]) -> None:
        if cb not in self._listeners:
            self._listeners.append(cb)

    def remove_listener(self, cb: Callable[[StatusEvent], None]) -> None:
        try:
            self._listeners.remove(cb)
        except ValueError:
            pass

    def add_line_listener(self, cb: Callable[[str], None]) -> None:
        if cb not in self._line_listeners:
            self._line_listeners.append(cb)

    def _emit(self, event: StatusEvent) -> None:
        for cb in list(self._listeners):
            try:
                cb(event)
            except Exception as e:
                logger.warning(f"⚠️ Event listener failed: {e}")

    # ---------------- public API ----------------
    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run(self) -> int:
        """Supervise one worker run; return its exit code or raise SupervisorError."""
        if self._started:
            raise RuntimeError("A Supervisor runs exactly once")
        self._started = True

        try:
            code = self._run()
        except SupervisorError as e:
            self.error = e
            self._set_state(FAILED)
            logger.error(f"❌ {e.stage} failed: {e.message}")
            raise

        self.exit_code = code
        self._set_state(CANCELLED if self._cancelled else COMPLETED)
        logger.info(f"Worker finished with exit code {code}")
        return code

    def cancel(self) -> None:
        self._cancelled = True
        self._done.set()
        terminate_tree(self.process)

    # ---------------- internal ------------------
    def _set_state(self, state: str) -> None:
        logger.debug(f"Supervisor state {self.state} -> {state}")
        self.state = state

    def _run(self) -> int:
        check_host()
        self.log_path = get_log_path(self.relaunch, self.log_dir)
        logger.info(f"Writer output goes to {self.log_path}")

        self._set_state(DETERMINING_PRIVILEGE)
        try:
            elevated = privilege.is_elevated()
        except SupervisorError:
            raise
        except Exception as e:
            raise PrivilegeQueryError(f"Could not determine privileges: {e}") from e

        if not elevated and self.relaunch.is_relaunch:
            # Prompting again from the elevated copy would loop forever.
            raise ElevationError("Relaunched for elevation but the process is still not elevated")

        self.context = ElevationContext.create(
            self.worker, self.arguments, str(self.log_path), elevated
        )
        self.instruction = build_command(self.context)

        if self._cancelled:
            return EXIT_CODES["CANCELLED"]

        if self.tail_enabled:
            self._start_tailing()
        try:
            if self.instruction.is_direct:
                self._set_state(DIRECT_SPAWN)
                code = self._direct_spawn(self.instruction)
            else:
                self._set_state(ELEVATING)
                code = self._elevate(self.instruction)
        finally:
            self._stop_tailing()

        if self._cancelled:
            return EXIT_CODES["CANCELLED"]
        if self._tailer is not None and self._tailer.error is not None:
            raise self._tailer.error
        return code

    # --- tailing ---
    def _start_tailing(self) -> None:
        self._tailer = LogTailer(self.log_path, self._handle_line, self._handle_tail_error)
        self._tailer.start()
        self.tailing = True

    def _stop_tailing(self) -> None:
        if self._tailer is not None:
            self._tailer.stop()
        self.tailing = False

    def _handle_line(self, line: str) -> None:
        for cb in list(self._line_listeners):
            try:
                cb(line)
            except Exception as e:
                logger.warning(f"⚠️ Line listener failed: {e}")
        event = parse_robot_line(line)
        if event is not None:
            self._emit(event)
        else:
            logger.debug(f"Ignoring writer output: {line}")

    def _handle_tail_error(self, error: TailError) -> None:
        self._fail(error)

    def _fail(self, error: SupervisorError) -> None:
        if self._failure is None:
            self._failure = error
        self._done.set()

    def _wait_for_outcome(self, waiter: threading.Thread) -> None:
        self._done.wait()
        if self._failure is not None or self._cancelled:
            terminate_tree(self.process)
            waiter.join(timeout=5)
        if self._failure is not None:
            raise self._failure

    # --- spawning ---
    def _popen_kwargs(self) -> Dict:
        kwargs: Dict = {"stdin": subprocess.DEVNULL}
        if IS_WINDOWS:
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        else:
            kwargs["start_new_session"] = True
        return kwargs

    def _direct_spawn(self, instruction: SpawnInstruction) -> int:
        env = dict(os.environ)
        env.update(instruction.environment)

        logger.info(f"Spawning writer directly: {instruction.argv[0]}")
        try:
            log_file = open(instruction.log_file, "ab")
        except OSError as e:
            raise LogFileError(f"Could not open log file {instruction.log_file}: {e}") from e
        with log_file:
            try:
                self.process = subprocess.Popen(
                    instruction.argv,
                    stdout=log_file,
                    stderr=subprocess.PIPE,
                    env=env,
                    **self._popen_kwargs(),
                )
            except OSError as e:
                raise SpawnError(f"Could not start {instruction.argv[0]}: {e}") from e
        proc = self.process

        reader = threading.Thread(target=self._read_stderr, args=(proc,), daemon=True)
        reader.start()

        def wait() -> None:
            proc.wait()
            reader.join()
            self._done.set()

        waiter = threading.Thread(target=wait, daemon=True)
        waiter.start()

        self._wait_for_outcome(waiter)
        return proc.returncode if proc.returncode is not None else EXIT_CODES["GENERAL_ERROR"]

    def _read_stderr(self, proc: subprocess.Popen) -> None:
        # Anything on the writer's stderr fails the whole run.
        for chunk in iter(lambda: proc.stderr.read1(65536), b""):
            text = chunk.decode("utf-8", errors="replace")
            if self._failure is None and text.strip():
                self._fail(SpawnError(text.strip()))
            else:
                logger.debug(f"writer stderr: {text.rstrip()}")
        proc.stderr.close()

    def _elevate(self, instruction: SpawnInstruction) -> int:
        logger.info(f"Requesting elevation via {instruction.tool or instruction.argv[0]}")
        try:
            self.process = subprocess.Popen(
                instruction.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **self._popen_kwargs(),
            )
        except OSError as e:
            raise HostEnvironmentError(f"Could not run {instruction.argv[0]}: {e}") from e
        proc = self.process
        output: Dict[str, bytes] = {}

        def wait() -> None:
            out, err = proc.communicate()
            output["stdout"], output["stderr"] = out or b"", err or b""
            self._done.set()

        waiter = threading.Thread(target=wait, daemon=True)
        waiter.start()

        self._wait_for_outcome(waiter)
        if self._cancelled:
            return EXIT_CODES["CANCELLED"]

        stdout = output.get("stdout", b"").decode("utf-8", errors="replace").strip()
        stderr = output.get("stderr", b"").decode("utf-8", errors="replace").strip()
        if stdout:
            logger.debug(f"elevation helper stdout: {stdout}")
        if stderr:
            raise ElevationError(stderr)

        code = proc.returncode
        if instruction.tool == "pkexec" and code in PKEXEC_DENIED_CODES:
            raise ElevationError("The user did not grant permission to write the drive")
        return code

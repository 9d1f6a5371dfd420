# writerproxy/core/errors.py
from __future__ import annotations


class SupervisorError(Exception):
    """Terminal failure of a supervised run, tagged with the stage that failed."""

    stage = "supervisor"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage:
            self.stage = stage

    def to_dict(self) -> dict:
        return {"type": "failure", "stage": self.stage, "message": self.message}


class HostEnvironmentError(SupervisorError):
    """Unsupported platform, missing prompt tool or too old a runtime."""

    stage = "environment"


class PrivilegeQueryError(SupervisorError):
    stage = "privilege"


class ElevationError(SupervisorError):
    """The elevation helper itself reported a failure."""

    stage = "elevation"


class SpawnError(SupervisorError):
    """The directly spawned worker wrote to its error stream."""

    stage = "spawn"


class TailError(SupervisorError):
    stage = "tail"


class LogFileError(SupervisorError):
    """The temporary log file could not be created or opened."""

    stage = "log"

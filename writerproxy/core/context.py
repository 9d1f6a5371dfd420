# writerproxy/core/context.py
"""
State that crosses the elevation boundary.

An elevation helper only runs a shell command, so anything the re-invoked
proxy needs to know travels as environment assignments. ``RelaunchContext``
is the typed form of those assignments: it is serialised in one place
(``to_environment``) and read back in one place (``from_environ``) at the
start of the re-invoked process.
"""
from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional

from .constants import (
    APPDIR_ENVIRONMENT_VARIABLE,
    APPIMAGE_ENVIRONMENT_VARIABLE,
    RUN_AS_WORKER_ENVIRONMENT_VARIABLE,
    TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE,
)


def current_platform() -> str:
    """'linux', 'darwin', 'windows', ... (platform.system(), lower-cased)."""
    return platform.system().lower()


@dataclass(frozen=True)
class RelaunchContext:
    log_file_path: Optional[str] = None
    run_as_worker: bool = False

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "RelaunchContext":
        env = os.environ if environ is None else environ
        return cls(
            log_file_path=env.get(TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE) or None,
            run_as_worker=bool(env.get(RUN_AS_WORKER_ENVIRONMENT_VARIABLE)),
        )

    @property
    def is_relaunch(self) -> bool:
        # A set log path means a previous copy of the proxy already did the
        # logging setup and elevated us.
        return bool(self.log_file_path)

    def with_log_path(self, path: str) -> "RelaunchContext":
        return replace(self, log_file_path=str(path))

    def to_environment(self) -> Dict[str, str]:
        """Ordered environment assignments for the re-invoked process."""
        env = {RUN_AS_WORKER_ENVIRONMENT_VARIABLE: "1"}
        if self.log_file_path:
            env[TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE] = self.log_file_path
        return env


def proxy_argv(worker: str, arguments: List[str]) -> List[str]:
    """
    Argument vector that re-runs this proxy for the same worker request.

    Frozen builds are a single binary whose entry point honours the
    run-as-worker flag; otherwise we go through ``-m writerproxy``.
    """
    if getattr(sys, "frozen", False):
        return [sys.executable, "--", worker, *arguments]
    return [sys.executable, "-m", "writerproxy", "--", worker, *arguments]


@dataclass(frozen=True)
class ElevationContext:
    executable_path: str
    argument_vector: List[str]
    relaunch_argv: List[str]
    log_file_path: str
    is_elevated: bool
    platform: str = field(default_factory=current_platform)
    appimage: Optional[str] = None
    appdir: Optional[str] = None

    @classmethod
    def create(
        cls,
        executable_path: str,
        argument_vector: List[str],
        log_file_path: str,
        is_elevated: bool,
        relaunch_argv: Optional[List[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        system: Optional[str] = None,
    ) -> "ElevationContext":
        env = os.environ if environ is None else environ
        args = list(argument_vector)
        return cls(
            executable_path=str(executable_path),
            argument_vector=args,
            relaunch_argv=list(relaunch_argv) if relaunch_argv is not None
            else proxy_argv(str(executable_path), args),
            log_file_path=str(log_file_path),
            is_elevated=bool(is_elevated),
            platform=(system or current_platform()).lower(),
            appimage=env.get(APPIMAGE_ENVIRONMENT_VARIABLE) or None,
            appdir=env.get(APPDIR_ENVIRONMENT_VARIABLE) or None,
        )

    @property
    def is_appimage(self) -> bool:
        return bool(self.appimage and self.appdir)

    @property
    def is_windows(self) -> bool:
        return self.platform in ("windows", "win32")

    @property
    def relaunch(self) -> RelaunchContext:
        return RelaunchContext(log_file_path=self.log_file_path, run_as_worker=True)

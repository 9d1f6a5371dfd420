# writerproxy/core/elevation/common.py
from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

DIRECT = "direct"
ELEVATE = "elevate"


@dataclass(frozen=True)
class Invocation:
    """Executable, arguments and extra environment, before any quoting."""

    executable: str
    arguments: Sequence[str] = ()
    environment: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_argv(cls, argv: Sequence[str], environment: Optional[Dict[str, str]] = None) -> "Invocation":
        if not argv:
            raise ValueError("Cannot build an invocation from an empty argument vector")
        return cls(executable=str(argv[0]), arguments=tuple(str(a) for a in argv[1:]),
                   environment=dict(environment or {}))

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.arguments]

    def with_environment(self, environment: Dict[str, str]) -> "Invocation":
        merged = dict(self.environment)
        merged.update(environment)
        return replace(self, environment=merged)

    def shell_command(self) -> str:
        """
        POSIX shell form: ``env VAR=value ... <argv>``.

        Graphical prompt tools such as pkexec do not forward the caller's
        environment, so the variables are spelled out on the command line.
        """
        prefix = ["env"] + [f"{k}={shlex.quote(v)}" for k, v in self.environment.items()]
        body = shlex.join(self.argv)
        return " ".join(prefix + [body]) if self.environment else body

    def cmd_command(self) -> str:
        """cmd.exe form: ``set "VAR=value" && ... && <argv>``."""
        sets = [f'set "{k}={v}"' for k, v in self.environment.items()]
        return " && ".join(sets + [subprocess.list2cmdline(self.argv)])


@dataclass(frozen=True)
class SpawnInstruction:
    """
    What the supervisor should run.

    ``mode`` is DIRECT (run the worker with stdout going to ``log_file``) or
    ELEVATE (run ``argv`` and capture its output; the elevated copy of the
    proxy writes the log itself).
    """

    mode: str
    argv: List[str]
    environment: Dict[str, str] = field(default_factory=dict)
    log_file: Optional[str] = None
    tool: Optional[str] = None

    @property
    def is_direct(self) -> bool:
        return self.mode == DIRECT


def ps_quote(s: str) -> str:
    """
    PowerShell single-quoted string literal.
    Backslashes are fine; single quotes are doubled.
    """
    s = str(s)
    return "'" + s.replace("'", "''") + "'"


def applescript_quote(s: str) -> str:
    """AppleScript string literal for ``do shell script``."""
    return '"' + str(s).replace("\\", "\\\\").replace('"', '\\"') + '"'

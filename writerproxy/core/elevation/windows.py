# writerproxy/core/elevation/windows.py
from __future__ import annotations

from ..context import ElevationContext
from .common import ELEVATE, Invocation, SpawnInstruction, ps_quote


def build_windows_command(context: ElevationContext) -> SpawnInstruction:
    """
    Re-run the proxy through the UAC consent prompt.

    ``Start-Process -Verb RunAs`` does not hand our environment to the
    elevated process, so the variables are set by ``cmd.exe`` in front of the
    relaunch command. The elevated process' exit code is passed through.
    """
    relaunch = Invocation.from_argv(context.relaunch_argv, context.relaunch.to_environment())
    inner = f'/d /s /c "{relaunch.cmd_command()}"'
    script = (
        "$ErrorActionPreference = 'Stop'; "
        "$p = Start-Process -FilePath 'cmd.exe' "
        f"-ArgumentList {ps_quote(inner)} "
        "-Verb RunAs -WindowStyle Hidden -Wait -PassThru; "
        "exit $p.ExitCode"
    )
    return SpawnInstruction(
        mode=ELEVATE,
        argv=["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
        tool="powershell",
    )

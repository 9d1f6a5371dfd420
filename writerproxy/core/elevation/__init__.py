# writerproxy/core/elevation/__init__.py
"""
Pick how the supervised worker gets started.

  already elevated        -> spawn the worker directly, stdout into the log
  windows                 -> UAC prompt via PowerShell, relaunching the proxy
  unix                    -> pkexec/kdesudo/osascript, relaunching the proxy
  unix inside an AppImage -> same, wrapped in a remount script
"""
from ..context import ElevationContext
from .common import DIRECT, ELEVATE, Invocation, SpawnInstruction
from .unix import build_unix_command
from .windows import build_windows_command


def build_command(context: ElevationContext) -> SpawnInstruction:
    if context.is_elevated:
        return SpawnInstruction(
            mode=DIRECT,
            argv=[context.executable_path, *context.argument_vector],
            environment=context.relaunch.to_environment(),
            log_file=context.log_file_path,
        )
    if context.is_windows:
        return build_windows_command(context)
    return build_unix_command(context)


__all__ = [
    "DIRECT",
    "ELEVATE",
    "Invocation",
    "SpawnInstruction",
    "build_command",
]

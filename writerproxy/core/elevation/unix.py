# writerproxy/core/elevation/unix.py
from __future__ import annotations

import shutil
from typing import List

from ..configmanager import config
from ..context import ElevationContext
from ..errors import HostEnvironmentError
from .appimage import build_remount_command
from .common import ELEVATE, Invocation, SpawnInstruction, applescript_quote


def _prompt_message() -> str:
    name = config.get("General", "displayname", "Writer Proxy")
    return f"{name} needs administrator access to write the drive."


def find_prompt_tool(system: str) -> str:
    """Return the graphical elevation tool to use on this platform."""
    if system == "darwin":
        candidates: List[str] = ["osascript"]
    else:
        candidates = [str(t) for t in config.get("Elevation", "prompttools", ["pkexec", "kdesudo"])]
    for tool in candidates:
        if shutil.which(tool):
            return tool
    raise HostEnvironmentError(
        f"No graphical elevation tool found (tried: {', '.join(candidates)})"
    )


def wrap_with_prompt(tool: str, shell_command: str) -> List[str]:
    """Run ``shell_command`` through ``/bin/sh -c`` behind the prompt tool."""
    if tool == "osascript":
        script = (
            f"do shell script {applescript_quote(shell_command)} "
            f"with prompt {applescript_quote(_prompt_message())} with administrator privileges"
        )
        return ["osascript", "-e", script]
    if tool == "kdesudo":
        return ["kdesudo", "-d", "--comment", _prompt_message(), "--", "/bin/sh", "-c", shell_command]
    if tool == "pkexec":
        return ["pkexec", "--disable-internal-agent", "/bin/sh", "-c", shell_command]
    # sudo-like tools configured by the user
    return [tool, "/bin/sh", "-c", shell_command]


def unix_shell_command(context: ElevationContext) -> str:
    """The shell command the prompt tool runs as root."""
    if context.is_appimage:
        return build_remount_command(context)
    relaunch = Invocation.from_argv(context.relaunch_argv, context.relaunch.to_environment())
    return relaunch.shell_command()


def build_unix_command(context: ElevationContext) -> SpawnInstruction:
    tool = find_prompt_tool(context.platform)
    command = unix_shell_command(context)
    return SpawnInstruction(mode=ELEVATE, argv=wrap_with_prompt(tool, command), tool=tool)

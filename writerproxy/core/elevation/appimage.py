# writerproxy/core/elevation/appimage.py
"""
Elevation from inside an AppImage.

An AppImage mounts itself through FUSE, and FUSE refuses access to any other
user (root included) reading files inside that mount. To run our own
interpreter as root we mount the same image a second time, read-only and
without FUSE, at a neutral location, point every argument at the new mount,
run the elevated command there and unmount afterwards.
"""
from __future__ import annotations

import shlex

from ..configmanager import config
from ..context import ElevationContext
from .common import Invocation


def mount_point_for(appdir: str) -> str:
    suffix = str(config.get("Elevation", "mountsuffix", "-elevated")) or "-elevated"
    return appdir.rstrip("/") + suffix


def _rewrite(value: str, appdir: str, mount_point: str) -> str:
    root = appdir.rstrip("/")
    if value == root:
        return mount_point
    # Only whole path components: "/tmp/.mount_x" must not match "/tmp/.mount_xy".
    return value.replace(root + "/", mount_point + "/")


def remount_invocation(invocation: Invocation, appdir: str, mount_point: str) -> Invocation:
    """Point the executable and every argument that lives under ``appdir`` at ``mount_point``."""
    return Invocation(
        executable=_rewrite(invocation.executable, appdir, mount_point),
        arguments=tuple(_rewrite(a, appdir, mount_point) for a in invocation.arguments),
        environment={k: _rewrite(v, appdir, mount_point) for k, v in invocation.environment.items()},
    )


def build_remount_command(context: ElevationContext) -> str:
    """
    One shell script: mount, run the env-prefixed relaunch, unmount.

    The worker's exit status is kept and returned after cleanup. Unmounting
    right after the worker exits can fail with EBUSY, so it is retried a
    bounded number of times with a short wait in between; a final failure is
    reported on stderr.
    """
    if not context.is_appimage:
        raise ValueError("Not running inside an AppImage (APPIMAGE/APPDIR unset)")

    mount_point = mount_point_for(context.appdir)
    retries = max(1, int(config.get("Elevation", "unmountretries", 5)))
    delay = float(config.get("Elevation", "unmountdelay", 1.0))

    relaunch = Invocation.from_argv(context.relaunch_argv, context.relaunch.to_environment())
    command = remount_invocation(relaunch, context.appdir, mount_point).shell_command()

    mp = shlex.quote(mount_point)
    image = shlex.quote(context.appimage)
    return " ".join([
        f"mkdir -p {mp}",
        "&&",
        # Read-only: mount refuses the same image in two places otherwise.
        f"mount -o loop -o ro {image} {mp}",
        "&&",
        command,
        ";",
        "rc=$?",
        ";",
        "n=0",
        ";",
        f"while :; do sleep {delay:g};",
        f"if umount {mp} 2>/dev/null; then rmdir {mp} 2>/dev/null; break; fi;",
        "n=$((n+1));",
        f'if [ "$n" -ge {retries} ]; then echo {shlex.quote("Failed to unmount " + mount_point)} >&2; break; fi;',
        "done",
        ";",
        'exit "$rc"',
    ])

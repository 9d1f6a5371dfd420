# writerproxy/cli.py
"""
Writer proxy entry point.

    python -m writerproxy [--] <writer> [writer arguments...]

Prints one JSON object per writer status event on stdout and exits with the
writer's exit code, or with GENERAL_ERROR after printing a single
``{"type": "failure", ...}`` object.

A copy of this command re-invoked through an elevation prompt (it finds the
log path in its environment) only spawns the writer; the original process
is the one tailing the log and reporting events.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from writerproxy.core.api_helpers import post_api
from writerproxy.core.configmanager import config
from writerproxy.core.constants import EXIT_CODES
from writerproxy.core.context import RelaunchContext
from writerproxy.core.errors import SupervisorError
from writerproxy.core.robot import StatusEvent, event_to_dict
from writerproxy.core.supervisor import Supervisor

logger = logging.getLogger("writerproxy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="writerproxy",
        description="Run an image writer with elevated privileges and relay its progress.",
    )
    parser.add_argument("writer", help="writer executable to supervise")
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help="arguments passed to the writer")
    return parser


def _configure_logging(relaunched: bool) -> None:
    # The parent treats anything on an elevated copy's stderr as fatal, so
    # that copy only ever reports real errors.
    level = logging.ERROR if relaunched else logging.INFO
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def _write(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    # Writer arguments are passed through untouched, so argparse only
    # handles help and usage.
    if args and args[0] == "--":
        args = args[1:]
    elif args and args[0] in ("-h", "--help"):
        build_parser().print_help()
        return EXIT_CODES["SUCCESS"]
    if not args:
        build_parser().print_usage(sys.stderr)
        return EXIT_CODES["VALIDATION_ERROR"]
    writer, arguments = args[0], args[1:]

    relaunch = RelaunchContext.from_environ()
    _configure_logging(relaunch.is_relaunch)
    callback_url = config.get("Api", "callbackurl")

    def on_event(event: StatusEvent) -> None:
        payload = event_to_dict(event)
        _write(payload)
        if callback_url:
            post_api(str(callback_url), payload)

    supervisor = Supervisor(
        writer,
        arguments,
        relaunch=relaunch,
        on_event=on_event,
        tail=not relaunch.is_relaunch,
    )
    try:
        return supervisor.run()
    except SupervisorError as e:
        if not relaunch.is_relaunch:
            _write(e.to_dict())
            if callback_url:
                post_api(str(callback_url), e.to_dict())
        return EXIT_CODES["GENERAL_ERROR"]
    except KeyboardInterrupt:
        supervisor.cancel()
        return EXIT_CODES["CANCELLED"]

# writerproxy/core/robot.py
"""
Parser for the writer's "robot" status lines.

The writer prints one event per line:

    PROGRESS <percentage> <speed> <eta> [<stage>]
    DONE <checksum>
    ERROR <code> <message...>

It can also print the JSON robot form
``{"command": "progress", "data": {"percentage": 10, ...}}``.
Anything else is diagnostic noise and is dropped without an error.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

_PROGRESS_RE = re.compile(
    r"^PROGRESS\s+(?P<percentage>\S+)\s+(?P<speed>\S+)\s+(?P<eta>\S+)(?:\s+(?P<stage>\S+))?$"
)
_DONE_RE = re.compile(r"^DONE\s+(?P<checksum>\S+)$")
_ERROR_RE = re.compile(r"^ERROR\s+(?P<code>\S+)(?:\s+(?P<message>.*))?$")


@dataclass(frozen=True)
class ProgressEvent:
    percentage: float
    speed: float
    eta: int
    stage: Optional[str] = None
    kind: str = "progress"


@dataclass(frozen=True)
class DoneEvent:
    checksum: str
    kind: str = "done"


@dataclass(frozen=True)
class ErrorEvent:
    code: str
    message: str = ""
    kind: str = "error"


StatusEvent = Union[ProgressEvent, DoneEvent, ErrorEvent]


def event_to_dict(event: StatusEvent) -> Dict[str, Any]:
    data = asdict(event)
    data["type"] = data.pop("kind")
    return data


def _number(raw: Any) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _progress(percentage: Any, speed: Any, eta: Any, stage: Any = None) -> Optional[ProgressEvent]:
    pct = _number(percentage)
    spd = _number(speed)
    remaining = _number(eta)
    if pct is None or spd is None or remaining is None:
        return None
    if not 0.0 <= pct <= 100.0 or spd < 0 or remaining < 0:
        return None
    return ProgressEvent(
        percentage=pct,
        speed=spd,
        eta=int(round(remaining)),
        stage=str(stage) if stage else None,
    )


def _parse_json(line: str) -> Optional[StatusEvent]:
    try:
        payload = json.loads(line)
    except (ValueError, RecursionError):
        return None
    if not isinstance(payload, dict):
        return None
    command = payload.get("command")
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    if command == "progress":
        return _progress(
            data.get("percentage"), data.get("speed", 0), data.get("eta", 0), data.get("type")
        )
    if command == "done":
        checksum = data.get("checksum") or data.get("sourceChecksum")
        return DoneEvent(checksum=str(checksum)) if checksum else None
    if command == "error":
        code = data.get("code") or "UNKNOWN"
        return ErrorEvent(code=str(code), message=str(data.get("message") or ""))
    return None


def parse_robot_line(line: Any) -> Optional[StatusEvent]:
    """Decode one output line into a status event, or None for anything else."""
    if not isinstance(line, str):
        return None
    text = line.strip()
    if not text:
        return None

    if text.startswith("{"):
        return _parse_json(text)

    m = _PROGRESS_RE.match(text)
    if m:
        return _progress(m.group("percentage"), m.group("speed"), m.group("eta"), m.group("stage"))

    m = _DONE_RE.match(text)
    if m:
        return DoneEvent(checksum=m.group("checksum"))

    m = _ERROR_RE.match(text)
    if m:
        return ErrorEvent(code=m.group("code"), message=(m.group("message") or "").strip())

    return None

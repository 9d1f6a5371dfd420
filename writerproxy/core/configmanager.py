# writerproxy/core/configmanager.py
from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import CONFIG_ENVIRONMENT_VARIABLE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/WriterProxy/config/config.json"

# section -> key -> {"value": ..., "type": ...}
DEFAULTS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "General": {
        "tempdirectory": {"value": "", "type": "path"},
        "displayname": {"value": "Writer Proxy", "type": "string"},
    },
    "Elevation": {
        "prompttools": {"value": ["pkexec", "kdesudo"], "type": "list"},
        "mountsuffix": {"value": "-elevated", "type": "string"},
        "unmountretries": {"value": 5, "type": "integer"},
        "unmountdelay": {"value": 1.0, "type": "float"},
    },
    "Tail": {
        "pollinterval": {"value": 0.2, "type": "float"},
        "missinggrace": {"value": 5.0, "type": "float"},
    },
    "Api": {
        "callbackurl": {"value": "", "type": "string"},
        "host": {"value": "127.0.0.1", "type": "string"},
        "port": {"value": 8000, "type": "integer"},
    },
    "auth": {
        "username": {"value": "admin", "type": "string"},
        "password": {"value": "changeme", "type": "string"},
    },
}


def _coerce(value: Any, typ: str) -> Any:
    if typ == "boolean" and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if typ == "integer":
        return int(value)
    if typ == "float":
        return float(value)
    if typ == "list" and isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return value


class ConfigManager:
    """Read-only view over the JSON config file merged onto the defaults."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        raw = path or os.environ.get(CONFIG_ENVIRONMENT_VARIABLE) or DEFAULT_CONFIG_PATH
        self.path = Path(str(raw)).expanduser()
        self._config_raw: Dict[str, Dict[str, Dict[str, Any]]] = copy.deepcopy(DEFAULTS)
        self.load()

    def load(self) -> None:
        if not self.path.exists():
            logger.debug(f"No config file at {self.path}, using defaults")
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Could not read config {self.path}: {e}")
            return

        for section, entries in (data or {}).items():
            if not isinstance(entries, dict):
                continue
            target = self._config_raw.setdefault(section, {})
            for key, entry in entries.items():
                meta = target.setdefault(key, {"type": "string"})
                # Accept both {"value": x, "type": t} and bare values.
                if isinstance(entry, dict) and "value" in entry:
                    meta.update(entry)
                else:
                    meta["value"] = entry
                try:
                    meta["value"] = _coerce(meta["value"], meta.get("type", "string"))
                except (TypeError, ValueError):
                    logger.warning(f"⚠️ Invalid value for {section}.{key}, keeping default")
                    meta["value"] = DEFAULTS.get(section, {}).get(key, {}).get("value")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        meta = self._config_raw.get(section, {}).get(key)
        if meta is None:
            return default
        value = meta.get("value")
        return default if value is None else value

    def section(self, name: str) -> Dict[str, Any]:
        return {k: v.get("value") for k, v in self._config_raw.get(name, {}).items()}

    def set(self, section: str, key: str, value: Any) -> None:
        meta = self._config_raw.setdefault(section, {}).setdefault(key, {"type": "string"})
        meta["value"] = _coerce(value, meta.get("type", "string"))


config = ConfigManager()

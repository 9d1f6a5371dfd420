# writerproxy/core/logpath.py
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .configmanager import config
from .constants import LOG_FILE_PREFIX, LOG_FILE_SUFFIX
from .context import RelaunchContext
from .errors import LogFileError

logger = logging.getLogger(__name__)


def _temp_directory() -> Optional[Path]:
    raw = config.get("General", "tempdirectory")
    if not raw:
        return None
    path = Path(str(raw)).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_temporary_log_file_path(directory: Optional[Path] = None) -> Path:
    """
    Allocate a fresh, unique log file and return its path.

    The file is created (empty) right away so a tailer can open it before the
    writer produces its first byte.
    """
    try:
        target = directory if directory is not None else _temp_directory()
        fd, name = tempfile.mkstemp(
            prefix=LOG_FILE_PREFIX,
            suffix=LOG_FILE_SUFFIX,
            dir=str(target) if target else None,
        )
    except OSError as e:
        raise LogFileError(f"Could not create a temporary log file: {e}") from e
    os.close(fd)
    logger.debug(f"Allocated temporary log file {name}")
    return Path(name)


def get_log_path(context: RelaunchContext, directory: Optional[Path] = None) -> Path:
    """
    Return the log path for this run.

    A relaunched copy reuses the path its parent allocated; anything else gets
    a new one. Call once per process.
    """
    if context.log_file_path:
        path = Path(context.log_file_path)
        if not path.exists():
            try:
                path.touch()
            except OSError as e:
                raise LogFileError(f"Could not create log file {path}: {e}") from e
        return path
    return get_temporary_log_file_path(directory)

# writerproxy/core/tail.py
"""
Follow a growing log file.

A plain ``open(...).read()`` stops at the current end of the file, which is
useless while the writer is still running. ``follow`` keeps the file open,
polls for new data and yields each completed line, reattaching when the file
is truncated or replaced. ``LogTailer`` runs it on a background thread.
"""
from __future__ import annotations

import codecs
import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

from .configmanager import config
from .errors import TailError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def _split_lines(buffer: str) -> Tuple[list, str]:
    *lines, rest = buffer.split("\n")
    return [line.rstrip("\r") for line in lines], rest


def follow(
    path: Path | str,
    stop_event: threading.Event,
    interval: Optional[float] = None,
    missing_grace: Optional[float] = None,
) -> Iterator[str]:
    """
    Yield complete lines appended to ``path`` until ``stop_event`` is set.

    Reading starts at byte 0. Once the stop event is set, everything already
    on disk is drained (including a trailing unterminated line) before the
    generator returns. Raises TailError if the file stays unavailable for
    longer than ``missing_grace`` seconds.
    """
    path = Path(path)
    interval = float(interval if interval is not None else config.get("Tail", "pollinterval", 0.2))
    missing_grace = float(
        missing_grace if missing_grace is not None else config.get("Tail", "missinggrace", 5.0)
    )

    handle = None
    ident = None
    position = 0
    buffer = ""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    missing_since: Optional[float] = None
    last_error: Optional[OSError] = None

    try:
        while True:
            stopping = stop_event.is_set()

            try:
                st = os.stat(path)
            except OSError as e:
                st = None
                last_error = e

            if st is None:
                if missing_since is None:
                    missing_since = time.monotonic()
            else:
                current = (st.st_dev, st.st_ino)
                if handle is not None and current != ident:
                    # Replaced: finish the old file before switching over.
                    rest = handle.read()
                    buffer += decoder.decode(rest, final=True)
                    lines, buffer = _split_lines(buffer)
                    yield from lines
                    if buffer:
                        yield buffer.rstrip("\r")
                    handle.close()
                    handle = None
                    buffer = ""
                    decoder.reset()
                    logger.debug(f"{path} was replaced, reattaching")

                if handle is None:
                    try:
                        handle = open(path, "rb")
                    except OSError as e:
                        last_error = e
                        if missing_since is None:
                            missing_since = time.monotonic()
                    else:
                        ident = current
                        position = 0
                        missing_since = None
                else:
                    missing_since = None
                    if st.st_size < position:
                        logger.debug(f"{path} was truncated, rewinding")
                        handle.seek(0)
                        position = 0
                        buffer = ""
                        decoder.reset()

            data = handle.read(CHUNK_SIZE) if handle is not None else b""
            if data:
                position += len(data)
                buffer += decoder.decode(data)
                lines, buffer = _split_lines(buffer)
                yield from lines
                continue

            if stopping:
                buffer += decoder.decode(b"", final=True)
                if buffer:
                    yield buffer.rstrip("\r")
                return

            if missing_since is not None and time.monotonic() - missing_since > missing_grace:
                raise TailError(f"Log file {path} is no longer accessible: {last_error}")

            stop_event.wait(interval)
    finally:
        if handle is not None:
            handle.close()


class LogTailer:
    """Run ``follow`` on a daemon thread and hand each line to ``on_line``."""

    def __init__(
        self,
        path: Path | str,
        on_line: Callable[[str], None],
        on_error: Optional[Callable[[TailError], None]] = None,
        interval: Optional[float] = None,
        missing_grace: Optional[float] = None,
    ) -> None:
        self.path = Path(path)
        self._on_line = on_line
        self._on_error = on_error
        self._interval = interval
        self._missing_grace = missing_grace
        self._stop_evt = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[TailError] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "LogTailer":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._run, name=f"tail:{self.path.name}", daemon=True
        )
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop after draining what is on disk. Safe to call repeatedly."""
        self._stop_evt.set()
        th = self._thread
        if th is not None and th is not threading.current_thread():
            th.join(timeout)

    def _run(self) -> None:
        try:
            for line in follow(self.path, self._stop_evt, self._interval, self._missing_grace):
                try:
                    self._on_line(line)
                except Exception as e:
                    logger.warning(f"⚠️ Line handler failed for {self.path}: {e}")
        except TailError as e:
            self._fail(e)
        except OSError as e:
            self._fail(TailError(f"Reading {self.path} failed: {e}"))

    def _fail(self, error: TailError) -> None:
        logger.error(f"❌ {error}")
        self.error = error
        if self._on_error:
            self._on_error(error)

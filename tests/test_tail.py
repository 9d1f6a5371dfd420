import os
import threading
import time

import pytest

from writerproxy.core.errors import TailError
from writerproxy.core.tail import LogTailer, follow


def _append(path, text):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)
        f.flush()


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "writer.log"
    path.write_text("")
    return path


def test_lines_appended_after_eof_are_picked_up(log_file, wait_until):
    lines = []
    tailer = LogTailer(log_file, lines.append, interval=0.01).start()
    try:
        _append(log_file, "first\n")
        assert wait_until(lambda: lines == ["first"])
        time.sleep(0.1)  # tailer now sits at EOF
        _append(log_file, "second\n")
        assert wait_until(lambda: lines == ["first", "second"])
    finally:
        tailer.stop()


def test_partial_lines_wait_for_terminator(log_file, wait_until):
    lines = []
    tailer = LogTailer(log_file, lines.append, interval=0.01).start()
    try:
        _append(log_file, "PROGRESS 10 ")
        time.sleep(0.1)
        assert lines == []
        _append(log_file, "5.0 30\r\n")
        assert wait_until(lambda: lines == ["PROGRESS 10 5.0 30"])
    finally:
        tailer.stop()


def test_order_is_preserved_while_appending(log_file, wait_until):
    lines = []
    expected = [f"line {i}" for i in range(300)]
    tailer = LogTailer(log_file, lines.append, interval=0.005).start()

    def writer():
        for line in expected:
            _append(log_file, line + "\n")
            if line.endswith("0"):
                time.sleep(0.001)

    t = threading.Thread(target=writer)
    t.start()
    t.join()
    tailer.stop()

    assert lines == expected


def test_stop_drains_and_flushes_trailing_fragment(log_file):
    lines = []
    tailer = LogTailer(log_file, lines.append, interval=5.0).start()
    _append(log_file, "a\nb\nno newline")
    tailer.stop(timeout=5)

    assert lines == ["a", "b", "no newline"]
    assert not tailer.running


def test_stop_is_idempotent(log_file):
    tailer = LogTailer(log_file, lambda line: None, interval=0.01)
    tailer.stop()  # never started
    tailer.start()
    tailer.stop()
    tailer.stop()
    assert not tailer.running
    assert tailer.error is None


def test_truncation_rewinds(log_file, wait_until):
    lines = []
    tailer = LogTailer(log_file, lines.append, interval=0.01).start()
    try:
        _append(log_file, "one\ntwo\n")
        assert wait_until(lambda: lines == ["one", "two"])
        with open(log_file, "w", encoding="utf-8") as f:
            f.write("x\n")
        assert wait_until(lambda: lines == ["one", "two", "x"])
    finally:
        tailer.stop()


def test_replaced_file_is_reattached(log_file, tmp_path, wait_until):
    lines = []
    tailer = LogTailer(log_file, lines.append, interval=0.01).start()
    try:
        _append(log_file, "old\n")
        assert wait_until(lambda: lines == ["old"])
        replacement = tmp_path / "replacement.log"
        replacement.write_text("new\n")
        os.replace(replacement, log_file)
        assert wait_until(lambda: lines == ["old", "new"])
    finally:
        tailer.stop()


def test_handler_errors_do_not_stop_tailing(log_file, wait_until):
    seen = []

    def handler(line):
        seen.append(line)
        if line == "bad":
            raise ValueError("handler blew up")

    tailer = LogTailer(log_file, handler, interval=0.01).start()
    try:
        _append(log_file, "bad\ngood\n")
        assert wait_until(lambda: seen == ["bad", "good"])
        assert tailer.running
    finally:
        tailer.stop()


def test_missing_file_reports_tail_error(tmp_path, wait_until):
    errors = []
    tailer = LogTailer(
        tmp_path / "missing.log", lambda line: None, errors.append,
        interval=0.01, missing_grace=0.1,
    ).start()

    assert wait_until(lambda: errors)
    assert isinstance(errors[0], TailError)
    assert isinstance(tailer.error, TailError)
    assert errors[0].stage == "tail"
    tailer.stop()


def test_follow_decodes_split_utf8(log_file):
    stop = threading.Event()
    data = "größe ✓\n".encode("utf-8")
    with open(log_file, "wb") as f:
        f.write(data[:3])
    gen = follow(log_file, stop, interval=0.01)

    with open(log_file, "ab") as f:
        f.write(data[3:])
    stop.set()
    assert list(gen) == ["größe ✓"]

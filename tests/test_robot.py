import json

import pytest

from writerproxy.core.robot import (
    DoneEvent,
    ErrorEvent,
    ProgressEvent,
    event_to_dict,
    parse_robot_line,
)


def test_progress_line():
    event = parse_robot_line("PROGRESS 42.5 12.0 30")
    assert event == ProgressEvent(percentage=42.5, speed=12.0, eta=30)


def test_progress_line_with_stage_and_surrounding_whitespace():
    event = parse_robot_line("  PROGRESS 10 5.0 30 check\r\n")
    assert isinstance(event, ProgressEvent)
    assert event.stage == "check"
    assert event.eta == 30


def test_done_line():
    assert parse_robot_line("DONE abc123") == DoneEvent(checksum="abc123")


def test_error_line_keeps_whole_message():
    event = parse_robot_line("ERROR EIO Input/output error on /dev/sdb")
    assert event == ErrorEvent(code="EIO", message="Input/output error on /dev/sdb")


def test_error_line_without_message():
    assert parse_robot_line("ERROR EUNPLUGGED") == ErrorEvent(code="EUNPLUGGED", message="")


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "Validating partition table",
        "progress 10 5 30",
        "PROGRESS",
        "PROGRESS 10 5",
        "PROGRESS abc 5 30",
        "PROGRESS 101 5 30",
        "PROGRESS -1 5 30",
        "PROGRESS 10 -5 30",
        "PROGRESS 10 5 -30",
        "PROGRESS nan 5 30",
        "DONE",
        "DONE a b",
        "{not json",
        "[1, 2, 3]",
        '{"command": "unknown", "data": {}}',
        "\x00\x01garbage\xff",
    ],
)
def test_noise_is_dropped(line):
    assert parse_robot_line(line) is None


@pytest.mark.parametrize("value", [None, 42, b"DONE abc", ["DONE abc"]])
def test_non_string_input_never_raises(value):
    assert parse_robot_line(value) is None


def test_deeply_nested_json_never_raises():
    assert parse_robot_line('{"a":' + "[" * 100000) is None


def test_huge_json_numbers_never_raise():
    huge = "9" * 400
    line = '{"command": "progress", "data": {"percentage": %s, "speed": 1, "eta": 1}}' % huge
    assert parse_robot_line(line) is None
    line = '{"command": "progress", "data": {"percentage": 10, "speed": 1, "eta": %s}}' % huge
    assert parse_robot_line(line) is None


def test_progress_stage_token_is_kept_verbatim():
    assert parse_robot_line("PROGRESS 10 5 30 Write").stage == "Write"
    assert parse_robot_line("PROGRESS 10 5 30 post-check").stage == "post-check"


def test_json_progress_form():
    line = json.dumps({
        "command": "progress",
        "data": {"percentage": 60, "speed": 8.5, "eta": 4.6, "type": "write"},
    })
    event = parse_robot_line(line)
    assert event == ProgressEvent(percentage=60.0, speed=8.5, eta=5, stage="write")


def test_json_done_accepts_source_checksum():
    line = json.dumps({"command": "done", "data": {"sourceChecksum": "deadbeef"}})
    assert parse_robot_line(line) == DoneEvent(checksum="deadbeef")


def test_json_error_defaults_code():
    line = json.dumps({"command": "error", "data": {"message": "boom"}})
    assert parse_robot_line(line) == ErrorEvent(code="UNKNOWN", message="boom")


def test_event_to_dict_uses_type_key():
    data = event_to_dict(ProgressEvent(percentage=1.0, speed=2.0, eta=3, stage="write"))
    assert data == {"percentage": 1.0, "speed": 2.0, "eta": 3, "stage": "write", "type": "progress"}
    assert event_to_dict(DoneEvent(checksum="x")) == {"checksum": "x", "type": "done"}

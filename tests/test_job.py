from writerproxy.core.job.job import FlashJob
from writerproxy.core.job.runner import FlashRunner
from writerproxy.core.job.tracker import JobTracker
from writerproxy.core.robot import DoneEvent, ErrorEvent, ProgressEvent
from writerproxy.core import supervisor as supervisor_module


def _job():
    return FlashJob(job_id="j1", worker="/usr/bin/writer", arguments=["--drive", "/dev/sdb"])


def test_apply_event_updates_status():
    job = _job()
    job.apply_event(ProgressEvent(percentage=40.0, speed=9.5, eta=20, stage="write"))
    job.apply_event(ProgressEvent(percentage=80.0, speed=9.0, eta=5))
    job.apply_event(ErrorEvent(code="EVALIDATION", message="checksum mismatch"))
    job.apply_event(DoneEvent(checksum="cafe"))

    assert job.progress == 80.0
    assert job.stage == "write"
    assert job.checksum == "cafe"
    assert job.worker_errors == [{"code": "EVALIDATION", "message": "checksum mismatch"}]
    assert [e["type"] for e in job.events] == ["progress", "progress", "error", "done"]


def test_terminal_states():
    job = _job()
    job.mark_running()
    assert not job.is_terminal
    job.mark_finished(0)
    assert job.status == "Finished" and job.progress == 100.0 and job.is_terminal

    failed = _job()
    failed.mark_finished(4)
    assert failed.status == "Failed"
    assert failed.to_dict()["exit_code"] == 4


def test_tracker_remove_deletes_log(tmp_path):
    tracker = JobTracker()
    job = tracker.create_job("/usr/bin/writer", ["a"])
    job.log_path = tmp_path / "job.log"
    job.log_path.write_text("x")

    assert tracker.get_job(job.job_id) is job
    assert tracker.remove_job(job.job_id, delete_log=True)
    assert not job.log_path.exists()
    assert tracker.remove_job(job.job_id) is False
    assert tracker.list_jobs() == []


def test_runner_broadcasts_events_then_exit(monkeypatch, scenario_worker):
    monkeypatch.setattr(supervisor_module.privilege, "is_elevated", lambda: True)
    job = FlashJob(job_id="j2", worker=scenario_worker[0], arguments=scenario_worker[1:])
    messages = []
    runner = FlashRunner(job, on_message=messages.append)

    runner.run()
    runner.join(timeout=10)

    assert job.status == "Finished"
    assert job.checksum == "abc123"
    assert "Validating partition table" in job.stdout_log
    assert [m["type"] for m in messages] == ["progress", "progress", "done", "exit"]
    assert messages[-1] == {"type": "exit", "code": 0, "status": "Finished"}


def test_cancelled_runner_sends_exit_before_turning_terminal(monkeypatch, make_worker, wait_until):
    monkeypatch.setattr(supervisor_module.privilege, "is_elevated", lambda: True)
    worker = make_worker('emit("PROGRESS 5 1 300")\ntime.sleep(30)\n')
    job = FlashJob(job_id="j4", worker=worker[0], arguments=worker[1:])
    seen = []
    runner = FlashRunner(job, on_message=lambda m: seen.append((m, job.status)))

    runner.run()
    assert wait_until(lambda: job.progress == 5.0)
    runner.cancel()
    runner.join(timeout=10)

    assert job.status == "Cancelled"
    last, status_at_send = seen[-1]
    assert last == {"type": "exit", "code": 3, "status": "Cancelled"}
    assert status_at_send == "Running"


def test_runner_reports_failures(monkeypatch, make_worker):
    monkeypatch.setattr(supervisor_module.privilege, "is_elevated", lambda: True)
    worker = make_worker('sys.stderr.write("no space"); sys.stderr.flush(); time.sleep(30)\n')
    job = FlashJob(job_id="j3", worker=worker[0], arguments=worker[1:])
    messages = []
    runner = FlashRunner(job, on_message=messages.append)

    runner.run()
    runner.join(timeout=10)

    assert job.status == "Failed"
    assert job.error == {"stage": "spawn", "message": "no space"}
    assert messages[-1]["type"] == "failure"

# writerproxy/api/ws_events.py
import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from writerproxy.core.auth import ws_basic_auth_ok
from writerproxy.core.job.job import TERMINAL
from writerproxy.core.job.tracker import job_tracker

router = APIRouter()


def snapshot(job):
    return {
        "type": "tick",
        "status": job.status,
        "progress": job.progress,
        "speed": job.speed,
        "eta": job.eta,
        "stage": job.stage,
        "checksum": job.checksum,
        "exit_code": job.exit_code,
        "error": job.error,
    }


@router.websocket("/ws/flash/{job_id}")
async def flash_ws(ws: WebSocket, job_id: str):
    if not ws_basic_auth_ok(ws):
        # 1008: Policy Violation
        await ws.close(code=1008)
        return

    await ws.accept()
    job = job_tracker.get_job(job_id)
    if not job:
        await ws.send_json({"type": "tick", "status": "Unknown"})
        await ws.close()
        return

    loop = asyncio.get_running_loop()
    q: asyncio.Queue = asyncio.Queue()

    # Events arrive on the tailer thread; hop onto the loop in arrival order.
    def handle_message(message: dict):
        try:
            loop.call_soon_threadsafe(q.put_nowait, dict(message))
        except RuntimeError:
            pass

    runner = getattr(job, "runner", None)
    if runner:
        runner.add_listener(handle_message)

    await q.put(snapshot(job))

    async def heartbeat():
        try:
            while True:
                await asyncio.sleep(0.5)
                await q.put(snapshot(job))
                if job.status in TERMINAL:
                    break
        except asyncio.CancelledError:
            pass

    hb_task = asyncio.create_task(heartbeat())

    try:
        while True:
            msg = await q.get()
            try:
                await ws.send_json(msg)
            except (WebSocketDisconnect, RuntimeError):
                break
            if msg.get("type") == "tick" and msg.get("status") in TERMINAL:
                await ws.close()
                break
    finally:
        hb_task.cancel()
        if runner:
            runner.remove_listener(handle_message)

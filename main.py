# main.py
import logging
import sys

from fastapi import FastAPI
import uvicorn

from writerproxy.api import flash
from writerproxy.api import ws_events
from writerproxy.core.configmanager import config
from writerproxy.core.context import RelaunchContext

app = FastAPI(title="Writer Proxy")

# Register API routes
app.include_router(flash.router)
app.include_router(ws_events.router)


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    # A frozen build relaunched through an elevation prompt runs the proxy,
    # not the service.
    if RelaunchContext.from_environ().run_as_worker:
        from writerproxy.cli import main as proxy_main

        sys.exit(proxy_main())

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "main:app",
        host=str(config.get("Api", "host", "127.0.0.1")),
        port=int(config.get("Api", "port", 8000)),
        reload=False,
    )

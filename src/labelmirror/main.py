#!/usr/bin/env python3
"""
main.py
- Long-running container entrypoint for label-mirror.
- Sets up loguru and (optionally) Sentry, serves /healthz, /sync and /metrics
  from a background uvicorn thread, then runs the mirror on the main thread
  until SIGINT/SIGTERM.
"""

import os
import sys
from threading import Thread

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from labelmirror.core.cancellation import CancellationToken, install_signal_handlers
from labelmirror.core.config import configure_logging, load_settings
from labelmirror.core.errors import ConfigFault, ConnectionFault
from labelmirror.core.models import LoopState
from labelmirror.lib.sync import reconciler
from labelmirror.runner import label_mirror

SENTRY_DSN = os.getenv("SENTRY_DSN")

HEALTHY_STATES = {LoopState.BOOTSTRAPPING, LoopState.SYNCING}


def create_app(get_loop=lambda: label_mirror.active_loop):
    api = FastAPI(title="label-mirror")

    @api.get("/healthz")
    async def health():
        loop = get_loop()
        state = loop.state.value if loop else "starting"
        healthy = loop is None or loop.state in HEALTHY_STATES
        return JSONResponse({"status": "ok" if healthy else "stopping", "state": state}, status_code=200 if healthy else 503)

    @api.post("/sync")
    async def sync_now():
        loop = get_loop()
        if loop is None or loop.state is not LoopState.SYNCING:
            return JSONResponse({"status": "not_syncing"}, status_code=409)
        loop.request_resync()
        return {"status": "triggered"}

    @api.get("/metrics")
    async def metrics():
        loop = get_loop()
        keys = len(loop.data) if loop else 0
        nodes = len(loop.index) if loop else 0
        syncing = 1 if loop and loop.state is LoopState.SYNCING else 0
        return PlainTextResponse(
            f"""# HELP mirror_events_applied_total Node watch events folded into the mirror
# TYPE mirror_events_applied_total counter
mirror_events_applied_total {reconciler.events_applied_total}
# HELP mirror_stream_errors_total Watch stream faults
# TYPE mirror_stream_errors_total counter
mirror_stream_errors_total {reconciler.stream_errors_total}
# HELP mirror_resubscribes_total Watch resubscriptions after a fault
# TYPE mirror_resubscribes_total counter
mirror_resubscribes_total {reconciler.resubscribes_total}
# HELP mirror_resyncs_total Full node re-lists merged into the mirror
# TYPE mirror_resyncs_total counter
mirror_resyncs_total {reconciler.resyncs_total}
# HELP mirror_persist_total Successful document writes
# TYPE mirror_persist_total counter
mirror_persist_total {reconciler.persist_total}
# HELP mirror_persist_failures_total Failed document writes
# TYPE mirror_persist_failures_total counter
mirror_persist_failures_total {reconciler.persist_failures_total}
# HELP mirror_last_persist_duration_seconds Duration of the last document write
# TYPE mirror_last_persist_duration_seconds gauge
mirror_last_persist_duration_seconds {reconciler.last_persist_duration_seconds}
# HELP mirror_keys Keys currently in the mirror document
# TYPE mirror_keys gauge
mirror_keys {keys}
# HELP mirror_nodes Nodes currently contributing labels
# TYPE mirror_nodes gauge
mirror_nodes {nodes}
# HELP mirror_syncing 1 while the watch loop is running
# TYPE mirror_syncing gauge
mirror_syncing {syncing}
""",
            media_type="text/plain",
        )

    return api


def start_api(port):
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_level="warning")


def main():
    try:
        settings = load_settings()
    except ConfigFault as e:
        configure_logging()
        logger.error(f"[label-mirror] ❌ {e}")
        return 1

    configure_logging(debug=settings.debug)

    if SENTRY_DSN:
        sentry_sdk.init(dsn=SENTRY_DSN, traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0")))
        logger.info("[label-mirror] Sentry error reporting enabled")

    if settings.health_port:
        Thread(target=start_api, args=(settings.health_port,), name="health-api", daemon=True).start()
        logger.info(f"[label-mirror] Health and metrics API on :{settings.health_port}")

    token = CancellationToken()
    install_signal_handlers(token, on_resync=lambda: label_mirror.active_loop and label_mirror.active_loop.request_resync())

    try:
        label_mirror.run(settings, cancel_token=token)
    except ConfigFault as e:
        logger.error(f"[label-mirror] ❌ {e}")
        return 1
    except ConnectionFault as e:
        logger.error(f"[label-mirror] ❌ Unrecoverable connection fault: {e}")
        sentry_sdk.capture_exception(e)
        return 2

    logger.info("[label-mirror] 🛑 Drained and stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

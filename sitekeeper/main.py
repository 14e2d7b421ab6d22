"""
main.py - Composition Root
--------------------------
Wires the pieces together and runs the service. No business logic lives
here; it only:
  1. Resolves configuration from flags and the environment
  2. Builds the child-task runner, the sync coordinator and the timer
  3. Runs the startup sync, then arms the timer
  4. Serves the site until SIGINT/SIGTERM, then shuts down cleanly

Dependency graph:
                     main.py  (wires everything)
                        |
          +-------------+--------------+
          v             v              v
   SyncCoordinator  PeriodicTrigger  SiteServer (uvicorn)
          |                            |
   SubprocessRunner                 create_app (FastAPI)
          |
   python -m sitekeeper.fetch_snapshot
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from sitekeeper.application.scheduler import PeriodicTrigger
from sitekeeper.application.sync_coordinator import SyncCoordinator
from sitekeeper.config import ServiceConfig, resolve_config
from sitekeeper.infrastructure.static_server import build_server, create_app
from sitekeeper.infrastructure.subprocess_runner import SubprocessRunner

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

LOG_FORMAT  = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATEFMT = "%H:%M:%S"

log = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


# ---------------------------------------------------------------------------
# Dependency wiring
# ---------------------------------------------------------------------------

async def build_and_run(config: ServiceConfig) -> int:
    """
    Build the object graph and run until a shutdown signal.

    Returns the process exit status. A listener that cannot bind makes
    uvicorn raise SystemExit(1), which is left to propagate.
    """
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    received: list[int] = []

    coordinator = SyncCoordinator(
        runner   = SubprocessRunner(timeout=config.sync_timeout_seconds),
        username = config.sync_username,
        output   = config.snapshot_path,
        enabled  = config.sync_enabled,
    )
    trigger = PeriodicTrigger(
        interval = config.sync_interval_seconds,
        callback = lambda: coordinator.request_sync("scheduled"),
        name     = "sync",
    )

    def on_signal(signum: int, frame=None) -> None:
        if received:
            return
        received.append(signum)
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        trigger.stop()
        server.should_exit = True
        loop.call_soon_threadsafe(stop_requested.set)

    server = build_server(create_app(config.root), config.host, config.port, on_exit=on_signal)

    previous = {sig: signal.getsignal(sig) for sig in HANDLED_SIGNALS}
    for sig in HANDLED_SIGNALS:
        signal.signal(sig, on_signal)
    try:
        return await _supervise(config, coordinator, trigger, server, stop_requested, received)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


async def _supervise(config, coordinator, trigger, server, stop_requested, received) -> int:
    """Startup sync, then the timer and the listener. Returns the exit status."""
    # --- Startup sync (before listening) ---
    startup = asyncio.create_task(coordinator.request_sync("startup"))
    stop_wait = asyncio.create_task(stop_requested.wait())
    await asyncio.wait({startup, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    stop_wait.cancel()
    if received:
        log.info("Shutdown requested before the listener started")
        return 0

    # --- Serve ---
    if coordinator.enabled:
        trigger.start()

    log.info("Serving directory: %s", config.root)
    try:
        await server.serve()
    finally:
        trigger.stop()

    if not server.started:
        log.error("Listener failed to start")
        return 1

    log.info("Listener closed")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    config = resolve_config(argv, os.environ)
    logging.getLogger().setLevel(config.log_level)

    if not config.root.is_dir():
        log.error("Serving root %s is not a directory", config.root)
        return 1

    log.info(
        "Config | %s:%d | sync=%s user=%s every %gmin -> %s",
        config.host,
        config.port,
        "on" if config.sync_enabled else "off",
        config.sync_username,
        config.sync_interval_minutes,
        config.snapshot_path,
    )
    return asyncio.run(build_and_run(config))


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

import uvicorn

from git_converge import __version__
from git_converge.api import create_app
from git_converge.config import load_options
from git_converge.errors import ConfigurationError
from git_converge.service import ReconcileService


def _configure_logging(level: str) -> None:
    log_level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    logging.basicConfig(
        level=log_level_map.get(level.lower(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


async def main() -> None:
    options = load_options()
    _configure_logging(options.log_level)

    service = ReconcileService(options)
    logging.getLogger(__name__).info(
        "git-converge starting | version=%s | build=%s | resources=%d | poll=%ss",
        __version__,
        os.getenv("GIT_CONVERGE_BUILD_VERSION", "dev"),
        len(options.resources),
        options.poll_interval,
    )
    app = create_app(service)
    http_port = service.options.http_api_port
    server: uvicorn.Server | None = None
    if http_port > 0:
        config = uvicorn.Config(app, host="0.0.0.0", port=http_port, log_level="info")
        server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _shutdown_signal() -> None:
        if server:
            server.should_exit = True
        loop.create_task(service.shutdown())
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _shutdown_signal)

    async with asyncio.TaskGroup() as tg:
        tg.create_task(service.run())
        if server:
            tg.create_task(server.serve())
        tg.create_task(stop_event.wait())


def run_once() -> int:
    options = load_options()
    _configure_logging(options.log_level)
    statuses = ReconcileService(options).reconcile_all()
    failed = [status for status in statuses if not status.healthy]
    for status in failed:
        logging.getLogger(__name__).error("%s: %s", status.path, status.error)
    return 1 if failed else 0


def cli() -> None:
    try:
        if load_options().oneshot:
            sys.exit(run_once())
        asyncio.run(main())
    except ConfigurationError as exc:
        print(f"git-converge: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    cli()

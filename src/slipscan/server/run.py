"""Serve the receipt API with uvicorn using the configured settings."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import uvicorn

from slipscan.config import Settings, get_settings

logger = logging.getLogger(__name__)

APP_FACTORY = "slipscan.server.app:create_app"


def build_server_config(settings: Settings) -> uvicorn.Config:
    """Translate settings into a uvicorn config for the app factory.

    ``log_config`` is left unset so the app's own logging setup (redaction
    filter, JSON formatter) also covers uvicorn's loggers.
    """

    if settings.server_reload and settings.server_duration is not None:
        raise SystemExit("SLIPSCAN_SERVER_RELOAD cannot be combined with SLIPSCAN_SERVER_DURATION.")
    return uvicorn.Config(
        APP_FACTORY,
        factory=True,
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.server_reload,
        log_config=None,
    )


async def _serve_for(server: uvicorn.Server, duration: float) -> None:
    async def _stop() -> None:
        await asyncio.sleep(duration)
        logger.info("Serving window of %ss elapsed, shutting down", duration)
        server.should_exit = True

    stopper = asyncio.create_task(_stop())
    try:
        await server.serve()
    finally:
        stopper.cancel()


def main(settings: Optional[Settings] = None) -> None:
    """Entry point for the `slipscan-server` script."""

    settings = settings or get_settings()
    config = build_server_config(settings)

    if config.reload:
        uvicorn.run(
            APP_FACTORY,
            factory=True,
            host=config.host,
            port=config.port,
            reload=True,
            log_config=None,
        )
        return

    server = uvicorn.Server(config)
    if settings.server_duration is not None:
        asyncio.run(_serve_for(server, settings.server_duration))
        return
    server.run()


if __name__ == "__main__":
    main()

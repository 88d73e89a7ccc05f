"""
Webhook server process.

Serves the FastAPI app with uvicorn until SIGINT/SIGTERM, then shuts down
gracefully.
"""

import asyncio
import logging
import signal
from typing import Optional

import uvicorn
from fastapi import FastAPI

from container_updater.api.app import create_app
from container_updater.config.settings import UpdaterConfig

logger = logging.getLogger(__name__)

# Mirrors the idle and shutdown timeouts of the HTTP server
KEEP_ALIVE_SECONDS = 15
GRACEFUL_SHUTDOWN_SECONDS = 5


class UpdaterServer:
    """Runs the webhook app until a shutdown signal arrives."""

    def __init__(self, config: UpdaterConfig, app: Optional[FastAPI] = None):
        self.config = config
        self.app = app or create_app(config)
        self._shutdown_event = asyncio.Event()
        self.server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=config.host,
                port=config.port,
                log_level="warning",
                timeout_keep_alive=KEEP_ALIVE_SECONDS,
                timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
            )
        )

    def request_shutdown(self) -> None:
        logger.info("Server is shutting down...")
        self._shutdown_event.set()
        self.server.should_exit = True

    async def run(self) -> None:
        """Serve until shutdown is requested or the server stops on its own."""
        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown)

        logger.info(f"Server is ready to handle requests at {self.config.host}:{self.config.port}")
        serve_task = asyncio.create_task(self.server.serve())
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        try:
            await asyncio.wait({serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
            self.server.should_exit = True
            await serve_task
        finally:
            shutdown_task.cancel()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)

        logger.info("Server stopped")

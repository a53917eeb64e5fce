"""Uvicorn server running on a background thread."""

import logging
import threading
import time

import uvicorn
from fastapi import FastAPI

from warden.util.errors import StartupError
from warden.util.logging import log_event

logger = logging.getLogger(__name__)


class HttpServer:
    """Serve a FastAPI app until ``stop`` is called.

    Args:
        app: ASGI application.
        host: Bind address.
        port: Bind port (0 picks a free port).
        log_level: Uvicorn log level.
    """

    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "info") -> None:
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            log_config=None,
        )
        self._server = uvicorn.Server(config)
        self._thread: threading.Thread | None = None
        self._host = host
        self._port = port

    @property
    def started(self) -> bool:
        return self._server.started

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was 0."""
        for server in getattr(self._server, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return self._port

    def start(self, timeout_s: float) -> None:
        """Start serving and wait until the socket is bound.

        Raises:
            StartupError: If the server exits or does not come up in time.
        """
        self._thread = threading.Thread(target=self._server.run, name="warden-http", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout_s
        while not self._server.started:
            if not self._thread.is_alive():
                raise StartupError(f"HTTP server failed to bind {self._host}:{self._port}")
            if time.monotonic() > deadline:
                self._server.should_exit = True
                raise StartupError(f"HTTP server did not start within {timeout_s}s")
            time.sleep(0.05)

        log_event(
            logger,
            logging.INFO,
            f"Listening on http://{self._host}:{self.port}",
            event="http_started",
            host=self._host,
            port=self.port,
        )

    def stop(self, timeout_s: float) -> None:
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout_s)
        if self._thread.is_alive():
            log_event(logger, logging.WARNING, "HTTP server did not stop in time", event="http_stop_timeout")
        else:
            log_event(logger, logging.INFO, "HTTP server stopped", event="http_stopped")
        self._thread = None

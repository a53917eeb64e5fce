"""The server application and the single place that starts it.

``WardenApplication.run`` is invoked by the lifecycle once the server is ready
and decides how long the process stays up: test launches and non-server
commands exit straight away, a real server blocks until it is told to shut
down. ``start`` wires the application into the lifecycle and turns runtime
failures into reported errors and, for a distribution, a forced exit.
"""

import logging
from collections.abc import Callable

from warden import __version__
from warden.api.app import create_app
from warden.foundation.config import AppConfig
from warden.foundation.context import LaunchContext
from warden.foundation.properties import VERSION_PROPERTY
from warden.runtime.lifecycle import Application
from warden.runtime.server import HttpServer
from warden.util.error_handler import ExecutionErrorHandler
from warden.util.errors import EXIT_ERROR
from warden.util.health import HealthSnapshot, collect_health_snapshot
from warden.util.logging import log_event

logger = logging.getLogger(__name__)


class WardenApplication:
    """Server application driven by ``ApplicationLifecycle``.

    Args:
        ctx: Launch context.
        config: Resolved configuration.
        on_health: Called with the startup health snapshot before the
            application is reported ready. May set the exit code.
    """

    def __init__(
        self,
        ctx: LaunchContext,
        config: AppConfig,
        on_health: Callable[[HealthSnapshot], None] | None = None,
    ) -> None:
        self._ctx = ctx
        self._config = config
        self._on_health = on_health
        self._server: HttpServer | None = None
        self.health: HealthSnapshot | None = None

    @property
    def http_server(self) -> HttpServer | None:
        return self._server

    @property
    def version(self) -> str:
        return self._ctx.properties.get(VERSION_PROPERTY, __version__)

    def start(self) -> None:
        environment = self._ctx.environment
        config = self._config
        log_event(
            logger,
            logging.INFO,
            f"Starting Warden {self.version} in {environment.mode()} mode",
            event="server_starting",
            version=self.version,
            profile=environment.profile,
        )

        # Runs on the common pool so the correlation ID follows the work
        future = self._ctx.pool.submit(
            collect_health_snapshot,
            data_dir=config.data_dir,
            min_free_disk_mb=config.min_free_disk_mb,
            min_python_major=config.min_python_major,
            min_python_minor=config.min_python_minor,
        )
        self.health = future.result(timeout=config.startup_timeout_s)
        log_event(
            logger,
            logging.INFO,
            f"Health check: {'OK' if self.health.ok else 'DEGRADED'}",
            event="health_snapshot",
            ok=self.health.ok,
            checks=self.health.checks,
        )
        if self._on_health is not None:
            self._on_health(self.health)

        if environment.is_non_server_mode() or not config.http_enabled:
            return

        app = create_app(config, mode=environment.mode(), version=self.version)
        self._server = HttpServer(app, config.http_host, config.http_port, config.log_level)
        self._server.start(config.startup_timeout_s)

    def run(self) -> int:
        """Decide whether to exit now or wait for shutdown; return the exit code."""
        lifecycle = self._ctx.lifecycle
        environment = self._ctx.environment
        exit_code = lifecycle.exit_code

        if environment.is_test_launch_mode() or environment.is_non_server_mode():
            # Nothing keeps a test or non-server launch alive
            lifecycle.async_exit(exit_code)
            return exit_code

        log_event(logger, logging.INFO, "Server ready", event="server_ready")
        lifecycle.wait_for_exit()
        return lifecycle.exit_code

    def stop(self) -> None:
        if self._server is not None:
            self._server.stop(self._config.shutdown_timeout_s)
            self._server = None


def start(
    ctx: LaunchContext,
    config: AppConfig,
    error_handler: ExecutionErrorHandler,
    application: Application | None = None,
) -> int:
    """Run the server under the managed lifecycle.

    Args:
        ctx: Launch context.
        config: Resolved configuration.
        error_handler: Reporter for runtime failures.
        application: Application to run, the server by default.

    Returns:
        Exit code of the lifecycle when the process was not terminated.
    """
    environment = ctx.environment
    if application is None:
        application = WardenApplication(ctx, config)

    def on_complete(exit_code: int, cause: BaseException | None) -> None:
        if cause is not None:
            error_handler.error(ctx.err, f"Failed to start server in ({environment.mode()}) mode", cause)
            if environment.is_distribution():
                log_event(
                    logger, logging.ERROR, "Terminating process", event="terminate", exit_code=exit_code
                )
                ctx.terminate(exit_code)

    try:
        outcome = ctx.lifecycle.run(application, on_complete)
    except Exception as cause:
        error_handler.error(
            ctx.err,
            f"Unexpected error when starting the server in ({environment.mode()}) mode",
            cause,
        )
        ctx.terminate(EXIT_ERROR)
        return EXIT_ERROR

    return outcome.exit_code

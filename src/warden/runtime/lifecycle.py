"""Managed application lifecycle.

``ApplicationLifecycle`` boots an application, hands control to its ``run``
method once it is ready, and reports exactly one ``ExitOutcome`` when it is
done:

    NOT_STARTED -> STARTING -> RUNNING -> EXITING -> EXITED

SIGINT and SIGTERM release ``wait_for_exit`` (main thread only). Exit codes:
- 0: Clean shutdown (SIGTERM or async_exit(0))
- 1: Startup or run failure
- 130: Interrupted by SIGINT/Ctrl+C (128 + 2)
"""

import logging
import signal
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from warden.util.errors import EXIT_ERROR, EXIT_OK, EXIT_SIGINT
from warden.util.logging import log_event

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[int, BaseException | None], None]


class LifecycleState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    EXITING = "exiting"
    EXITED = "exited"


@dataclass(frozen=True)
class ExitOutcome:
    """Final result of a lifecycle run.

    Attributes:
        exit_code: Process exit code.
        cause: Failure that ended the run, if any.
    """

    exit_code: int
    cause: BaseException | None = None


class Application(Protocol):
    """What the lifecycle drives."""

    def start(self) -> None: ...

    def run(self) -> int: ...

    def stop(self) -> None: ...


class ApplicationLifecycle:
    """Single-use runtime that owns readiness, the exit code and shutdown."""

    def __init__(self, poll_interval_s: float = 0.5) -> None:
        self._state = LifecycleState.NOT_STARTED
        self._exit_code = EXIT_OK
        self._exit_requested = threading.Event()
        self._outcome: Future[ExitOutcome] = Future()
        self._lock = threading.Lock()
        self._poll_interval_s = poll_interval_s

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def exit_code(self) -> int:
        return self._exit_code

    @property
    def outcome(self) -> "Future[ExitOutcome]":
        return self._outcome

    def set_exit_code(self, code: int) -> None:
        self._exit_code = code

    def async_exit(self, code: int) -> None:
        """Request shutdown with ``code`` without waiting for it."""
        # Also called from signal handlers on the main thread; must not take _lock
        self._exit_code = code
        self._exit_requested.set()
        log_event(logger, logging.DEBUG, "Exit requested", event="exit_requested", exit_code=code)

    def wait_for_exit(self) -> None:
        """Block until ``async_exit`` is called or a shutdown signal arrives."""
        # Short waits keep the main thread responsive to signal handlers
        while not self._exit_requested.wait(self._poll_interval_s):
            pass

    def _handle_signal(self, signum: int, _frame: Any) -> None:
        code = EXIT_SIGINT if signum == signal.SIGINT else EXIT_OK
        log_event(
            logger,
            logging.INFO,
            f"Received signal {signal.Signals(signum).name}",
            event="signal_received",
            signum=signum,
        )
        self.async_exit(code)

    def _install_signal_handlers(self) -> dict[int, Any]:
        previous: dict[int, Any] = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                previous[sig] = signal.signal(sig, self._handle_signal)
            except ValueError:
                # Not on the main thread
                break
        return previous

    def _transition(self, state: LifecycleState) -> None:
        self._state = state
        log_event(
            logger,
            logging.DEBUG,
            f"Lifecycle {state.value}",
            event="lifecycle_transition",
            state=state.value,
        )

    def run(self, application: Application, on_complete: CompletionCallback | None = None) -> ExitOutcome:
        """Start ``application``, run it and deliver the outcome.

        Args:
            application: Application to drive.
            on_complete: Called once with ``(exit_code, cause)`` after the
                application has stopped.

        Returns:
            The outcome also stored in ``outcome``.

        Raises:
            RuntimeError: If this lifecycle has already been used.
        """
        with self._lock:
            if self._state is not LifecycleState.NOT_STARTED:
                raise RuntimeError("Application lifecycle can only run once")
            self._state = LifecycleState.STARTING

        log_event(logger, logging.DEBUG, "Lifecycle starting", event="lifecycle_transition", state="starting")
        previous = self._install_signal_handlers()
        code = EXIT_ERROR
        cause: BaseException | None = None

        try:
            try:
                application.start()
            except Exception as e:
                cause = e
                log_event(logger, logging.ERROR, f"Application failed to start: {e}", event="startup_failed")
            else:
                self._transition(LifecycleState.RUNNING)
                try:
                    code = application.run()
                except Exception as e:
                    cause = e
                    log_event(logger, logging.ERROR, f"Application run failed: {e}", event="run_failed")
        finally:
            self._transition(LifecycleState.EXITING)
            try:
                application.stop()
            except Exception as e:
                log_event(logger, logging.ERROR, f"Application failed to stop: {e}", event="stop_failed")
                if cause is None:
                    cause = e
            for sig, handler in previous.items():
                signal.signal(sig, handler)
            self._transition(LifecycleState.EXITED)

        if cause is not None:
            code = EXIT_ERROR
        outcome = ExitOutcome(exit_code=code, cause=cause)
        log_event(logger, logging.INFO, "Application exited", event="application_exited", exit_code=code)

        if on_complete is not None:
            self._outcome.add_done_callback(
                lambda future: on_complete(future.result().exit_code, future.result().cause)
            )
        self._outcome.set_result(outcome)
        return outcome

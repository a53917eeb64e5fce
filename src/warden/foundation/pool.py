"""Process-wide worker pool and its thread factory guard.

The common pool is created lazily, the first time anything asks for it, with
the thread factory named by the ``warden.pool.common.threadFactory`` property.
If some code touches the pool before the launcher has published that property
(a plugin imported early, a debugger hook), the pool ends up with a different
factory and context variables such as the logging correlation ID no longer
follow work onto pool threads. ``ensure_pool_factory_correct`` detects that at
startup.
"""

import contextvars
import importlib
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from warden.foundation.properties import SystemProperties
from warden.util.errors import PoolFactoryError
from warden.util.logging import log_event

logger = logging.getLogger(__name__)

POOL_FACTORY_PROPERTY = "warden.pool.common.threadFactory"


def qualified_name(obj: object) -> str:
    """Fully-qualified type name of ``obj``."""
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


class ThreadFactory:
    """Shapes the pool's worker threads and the tasks they run."""

    thread_name_prefix = "warden-worker"

    def initializer(self) -> None:
        pass

    def wrap(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        raise NotImplementedError


class DefaultThreadFactory(ThreadFactory):
    """Plain worker threads; tasks run in the worker's own context."""

    def wrap(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        return fn


class ContextThreadFactory(ThreadFactory):
    """Runs every task inside a copy of the submitting thread's context."""

    def wrap(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        ctx = contextvars.copy_context()

        def run(*args: Any, **kwargs: Any) -> Any:
            return ctx.run(fn, *args, **kwargs)

        return run


DEFAULT_FACTORY = f"{ContextThreadFactory.__module__}.{ContextThreadFactory.__qualname__}"


class WorkerPool:
    """Thread pool whose threads and tasks are shaped by a thread factory.

    Args:
        factory: Thread factory instance.
        max_workers: Maximum worker threads (executor default when None).
    """

    def __init__(self, factory: ThreadFactory, max_workers: int | None = None) -> None:
        self._factory = factory
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=factory.thread_name_prefix,
            initializer=factory.initializer,
        )

    @property
    def factory(self) -> ThreadFactory:
        return self._factory

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        return self._executor.submit(self._factory.wrap(fn), *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def load_factory(name: str) -> ThreadFactory:
    """Instantiate a thread factory from its dotted class path."""
    module_name, _, class_name = name.rpartition(".")
    if not module_name:
        raise ValueError(f"Thread factory must be a dotted class path: {name!r}")
    module = importlib.import_module(module_name)
    return getattr(module, class_name)()


_common_pool: WorkerPool | None = None
_common_lock = threading.Lock()


def common_pool(properties: SystemProperties) -> WorkerPool:
    """Return the process-wide pool, creating it on first use.

    The factory property is read only at creation time. A factory that cannot
    be loaded is replaced by ``DefaultThreadFactory``, which the guard then
    reports as a mismatch.
    """
    global _common_pool
    with _common_lock:
        if _common_pool is None:
            name = properties.get(POOL_FACTORY_PROPERTY) or DEFAULT_FACTORY
            try:
                factory = load_factory(name)
            except (ValueError, ImportError, AttributeError, TypeError) as e:
                log_event(
                    logger,
                    logging.WARNING,
                    f"Cannot load thread factory '{name}', using the default: {e}",
                    event="pool_factory_unavailable",
                    property=POOL_FACTORY_PROPERTY,
                    factory=name,
                )
                factory = DefaultThreadFactory()
            _common_pool = WorkerPool(factory)
        return _common_pool


def reset_common_pool() -> None:
    """Shut down and forget the common pool."""
    global _common_pool
    with _common_lock:
        pool, _common_pool = _common_pool, None
    if pool is not None:
        pool.shutdown(wait=True)


def ensure_pool_factory_correct(properties: SystemProperties, pool: WorkerPool) -> None:
    """Verify the pool was built with the factory the launcher configured.

    Raises:
        PoolFactoryError: On mismatch. Callers must not catch it.
    """
    expected = properties.get(POOL_FACTORY_PROPERTY)
    actual = qualified_name(pool.factory)
    if actual == expected:
        return

    log_event(
        logger,
        logging.ERROR,
        f"The worker pool has been initialized with the wrong thread factory. The property "
        f"'{POOL_FACTORY_PROPERTY}' should be set by the launch script to ensure the pool "
        f"is always initialized with '{expected}' even if other code touches it before "
        f"the launcher runs.",
        event="pool_factory_mismatch",
        property=POOL_FACTORY_PROPERTY,
        expected=expected,
        actual=actual,
    )
    raise PoolFactoryError("The worker pool has been initialized with the wrong thread factory")

"""Explicit handles for process-wide state.

The launcher threads a single ``LaunchContext`` through every step instead of
reaching for globals, so the bootstrap order is visible in ``cli.main`` and
every seam (streams, termination) can be replaced in tests.
"""

import logging
import os
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import NoReturn, TextIO

from warden.foundation.environment import Environment
from warden.foundation.persisted import PersistedConfigSource
from warden.foundation.pool import DEFAULT_FACTORY, POOL_FACTORY_PROPERTY, WorkerPool, common_pool
from warden.foundation.properties import SystemProperties
from warden.runtime.lifecycle import ApplicationLifecycle


def terminate_process(code: int) -> NoReturn:
    """Flush output and end the process immediately with ``code``."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    logging.shutdown()
    os._exit(code)


def data_dir_for(environment: Environment) -> Path:
    """Data directory: under the home dir for a distribution, else ./data."""
    home = environment.home_dir()
    return home / "data" if home is not None else Path("data")


@dataclass
class LaunchContext:
    """Everything the launcher and commands share for one process start."""

    environ: Mapping[str, str]
    properties: SystemProperties
    config_source: PersistedConfigSource
    lifecycle: ApplicationLifecycle = field(default_factory=ApplicationLifecycle)
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err: TextIO = field(default_factory=lambda: sys.stderr)
    terminate: Callable[[int], NoReturn] = terminate_process

    @property
    def environment(self) -> Environment:
        return Environment(self.properties, self.environ)

    @property
    def pool(self) -> WorkerPool:
        return common_pool(self.properties)

    @property
    def data_dir(self) -> Path:
        return data_dir_for(self.environment)

    @property
    def conf_file(self) -> Path | None:
        """Default configuration file of a distribution, if present."""
        home = self.environment.home_dir()
        if home is None:
            return None
        path = home / "conf" / "warden.yaml"
        return path if path.exists() else None

    @classmethod
    def create(
        cls,
        environ: Mapping[str, str],
        properties: SystemProperties | None = None,
        **kwargs,
    ) -> "LaunchContext":
        """Build a context whose persisted source lives under the home dir."""
        if properties is None:
            properties = SystemProperties.from_environ(environ)
        data_dir = data_dir_for(Environment(properties, environ))
        return cls(
            environ=environ,
            properties=properties,
            config_source=PersistedConfigSource(data_dir),
            **kwargs,
        )

    @classmethod
    def from_process(cls) -> "LaunchContext":
        """Context for the real process: ``os.environ`` and ``WARDEN_OPTS``."""
        environ = dict(os.environ)
        properties = SystemProperties.from_environ(environ)
        properties.setdefault(POOL_FACTORY_PROPERTY, DEFAULT_FACTORY)
        return cls.create(environ, properties)

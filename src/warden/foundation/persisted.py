"""Persisted build properties.

``build`` writes the build-time options to ``<data>/persisted.yaml``. A dry-run
build writes to ``<data>/persisted.dry-run.yaml`` instead so that validating a
configuration never replaces the one the server actually runs with. The launcher
switches to the dry-run set when a dry run is requested.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from warden.util.errors import ConfigError
from warden.util.logging import log_event

logger = logging.getLogger(__name__)

PERSISTED_FILE = "persisted.yaml"
DRY_RUN_FILE = "persisted.dry-run.yaml"


class PersistedConfigSource:
    """Configuration source backed by the persisted build properties.

    Args:
        data_dir: Directory holding the persisted property files.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._dry_run = False
        self._cache: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        """Active property file."""
        return self._data_dir / (DRY_RUN_FILE if self._dry_run else PERSISTED_FILE)

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def use_dry_run_properties(self) -> None:
        """Switch to the dry-run property set for the rest of the process."""
        if self._dry_run:
            return
        self._dry_run = True
        self._cache = None
        log_event(
            logger,
            logging.INFO,
            "Using dry-run persisted properties",
            event="dry_run_properties",
            path=str(self.path),
        )

    def exists(self) -> bool:
        return self.path.exists()

    def properties(self) -> dict[str, Any]:
        """Return the active property set, empty when nothing was persisted."""
        if self._cache is None:
            self._cache = self._read()
        return dict(self._cache)

    def _read(self) -> dict[str, Any]:
        path = self.path
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Cannot read persisted properties {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Persisted properties must be a mapping: {path}")
        return data

    def save(self, properties: Mapping[str, Any], *, dry_run: bool | None = None) -> Path:
        """Write ``properties`` to the active set, or to the set chosen by ``dry_run``.

        Returns:
            The file written.
        """
        if dry_run is None or dry_run == self._dry_run:
            path = self.path
        else:
            path = self._data_dir / (DRY_RUN_FILE if dry_run else PERSISTED_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(dict(properties), f, sort_keys=True)
        except OSError as e:
            raise ConfigError(f"Cannot write persisted properties {path}: {e}") from e
        if path == self.path:
            self._cache = dict(properties)
        log_event(
            logger,
            logging.INFO,
            "Persisted build properties",
            event="persisted_properties_saved",
            path=str(path),
        )
        return path

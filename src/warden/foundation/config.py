"""Server configuration contract with Pydantic v2 validation.

Values are layered, lowest precedence first: persisted build properties,
the YAML configuration file, ``WARDEN_*`` environment variables and finally
command-line options. Keys outside the models use kebab-case option names
(``http-port``); models use snake_case fields.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, PositiveInt, ValidationError, field_validator

from warden.util.errors import ConfigError

ENV_PREFIX = "WARDEN_"

# Options baked in by `build` and persisted between runs
BUILD_OPTIONS = frozenset({"db", "features", "health-enabled"})


class AppConfig(BaseModel, extra="forbid"):
    """Server configuration.

    All fields have sensible defaults for development.
    """

    # Build-time options
    db: Literal["dev-file", "dev-mem", "postgres", "mysql"] = "dev-file"
    features: list[str] = []
    health_enabled: bool = True

    # Runtime options
    http_enabled: bool = True
    http_host: str = "0.0.0.0"
    http_port: int = Field(default=8080, ge=0, le=65535)
    hostname: str | None = None
    db_password: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    shutdown_timeout_s: PositiveInt = 5
    startup_timeout_s: PositiveInt = 30

    # Health check settings
    data_dir: Path = Path("data")
    min_free_disk_mb: PositiveInt = 256
    min_python_major: PositiveInt = 3
    min_python_minor: PositiveInt = 11

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v: str | list[str]) -> list[str]:
        """Accept comma-separated feature lists from env vars and CLI."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator("data_dir", mode="before")
    @classmethod
    def coerce_paths(cls, v: str | Path) -> Path:
        """Coerce string values from YAML to Path objects."""
        return Path(v) if isinstance(v, str) else v

    def build_options(self) -> dict[str, Any]:
        """Return the build-time options as kebab-case persisted properties."""
        return {
            "db": self.db,
            "features": ",".join(self.features),
            "health-enabled": self.health_enabled,
        }


def option_to_field(name: str) -> str:
    """Map a kebab-case option name to its model field name."""
    return name.replace("-", "_")


def load_config(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file into a raw option mapping.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Mapping of option names to values (empty for an empty file).

    Raises:
        ConfigError: If file is missing, unreadable, or not a mapping.
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file: {e}") from e

    # Handle empty YAML files
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(raw_data).__name__}")

    return raw_data


def _from_environ(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect ``WARDEN_HTTP_PORT``-style variables for known fields."""
    values: dict[str, str] = {}
    for field in AppConfig.model_fields:
        env_name = ENV_PREFIX + field.upper()
        if env_name in environ:
            values[field] = environ[env_name]
    return values


def resolve_config(
    cli_options: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
    persisted: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Merge all configuration layers and validate the result.

    Args:
        cli_options: Options given on the command line (None values are skipped).
        environ: Environment variables.
        config_file: Optional YAML configuration file.
        persisted: Properties persisted by a previous build.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigError: If any layer is unreadable or the merged values are invalid.
    """
    merged: dict[str, Any] = {}
    layers: list[Mapping[str, Any]] = [persisted or {}]
    if config_file is not None:
        layers.append(load_config(config_file))
    layers.append(_from_environ(environ or {}))
    layers.append({k: v for k, v in (cli_options or {}).items() if v is not None})

    for layer in layers:
        for key, value in layer.items():
            merged[option_to_field(key)] = value

    try:
        return AppConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e

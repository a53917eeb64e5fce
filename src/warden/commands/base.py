"""Shared plumbing for launcher commands.

Options are declared once as ``{kebab-name: argparse kwargs}`` tables so that
the argparse definitions, the fast start path and config resolution agree on
the same names.
"""

import argparse
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from warden.commands.dry_run import DRY_RUN_OPTION_LONG
from warden.foundation.config import AppConfig, resolve_config
from warden.foundation.environment import parse_bool

if TYPE_CHECKING:
    from warden.commands.engine import CommandLine


def bool_option(value: str) -> bool:
    """argparse type for ``--flag=true|false``."""
    if value.lower() not in ("true", "false"):
        raise argparse.ArgumentTypeError(f"expected 'true' or 'false', got '{value}'")
    return parse_bool(value)


BUILD_OPTIONS: dict[str, dict[str, Any]] = {
    "db": {"choices": ["dev-file", "dev-mem", "postgres", "mysql"], "help": "Database vendor."},
    "features": {"metavar": "FEATURE[,FEATURE]", "help": "Comma-separated features to enable."},
    "health-enabled": {"type": bool_option, "metavar": "BOOL", "help": "Expose the /health endpoint."},
}

RUNTIME_OPTIONS: dict[str, dict[str, Any]] = {
    "http-enabled": {"type": bool_option, "metavar": "BOOL", "help": "Enable the HTTP listener."},
    "http-host": {"help": "HTTP bind address."},
    "http-port": {"type": int, "help": "HTTP port."},
    "hostname": {"help": "Public hostname of the server."},
    "db-password": {"help": "Database password."},
    "log-level": {
        "type": str.upper,
        "choices": ["DEBUG", "INFO", "WARNING", "ERROR"],
        "help": "Root log level.",
    },
}


def dest(name: str) -> str:
    return name.replace("-", "_")


def add_options(parser: argparse.ArgumentParser, title: str, specs: Mapping[str, dict[str, Any]]) -> None:
    group = parser.add_argument_group(title)
    for name, kwargs in specs.items():
        group.add_argument(f"--{name}", dest=dest(name), default=None, **kwargs)


def add_config_file_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config-file", type=Path, default=None, help="Path to a YAML configuration file.")


def add_dry_run_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        DRY_RUN_OPTION_LONG,
        dest="dry_run",
        action="store_true",
        help="Validate the configuration without applying it.",
    )


def collect_options(options: argparse.Namespace, specs: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the given options out of a namespace as kebab-case keys."""
    return {name: getattr(options, dest(name), None) for name in specs}


def empty_options(*specs: Mapping[str, Any], **values: Any) -> argparse.Namespace:
    """Namespace with every option unset, for running a command without parsing."""
    fields: dict[str, Any] = {"config_file": None, "verbose": False}
    for spec in specs:
        fields.update({dest(name): None for name in spec})
    fields.update(values)
    return argparse.Namespace(**fields)


class Command:
    """Base class for commands.

    Subclasses set ``NAME``/``HELP``, declare options in ``configure`` and do
    their work in ``run``, returning an exit code.
    """

    NAME: str = ""
    HELP: str = ""

    def __init__(self, engine: "CommandLine") -> None:
        self.engine = engine
        self.ctx = engine.ctx

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        pass

    def run(self, options: argparse.Namespace) -> int:
        raise NotImplementedError

    def persisted_defaults(self) -> dict[str, Any]:
        return {"data-dir": str(self.ctx.data_dir), **self.ctx.config_source.properties()}

    def resolve(
        self,
        options: argparse.Namespace,
        *specs: Mapping[str, Any],
        persisted: Mapping[str, Any] | None = None,
    ) -> AppConfig:
        """Resolve the configuration from every layer plus the given CLI options."""
        cli: dict[str, Any] = {}
        for spec in specs:
            cli.update(collect_options(options, spec))
        config_file = getattr(options, "config_file", None) or self.ctx.conf_file
        return resolve_config(
            cli_options=cli,
            environ=self.ctx.environ,
            config_file=config_file,
            persisted=self.persisted_defaults() if persisted is None else persisted,
        )

    def write(self, text: str) -> None:
        self.ctx.out.write(text + "\n")

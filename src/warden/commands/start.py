"""``start`` and ``start-dev`` commands."""

import argparse
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from warden.commands.base import (
    BUILD_OPTIONS,
    RUNTIME_OPTIONS,
    Command,
    add_config_file_option,
    add_dry_run_option,
    add_options,
    collect_options,
    empty_options,
)
from warden.commands.dry_run import is_dry_run_env
from warden.foundation.config import AppConfig
from warden.foundation.environment import DEV_PROFILE, PROD_PROFILE
from warden.util.errors import EXIT_OK, ConfigError, PropertyError
from warden.util.logging import log_event

if TYPE_CHECKING:
    from warden.commands.engine import CommandLine

logger = logging.getLogger(__name__)

OPTIMIZED_BUILD_OPTION_LONG = "--optimized"


class AbstractStartCommand(Command):
    """Resolve the configuration, rebuilding it first unless optimized, then start."""

    PROFILE = PROD_PROFILE

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        add_dry_run_option(parser)
        add_config_file_option(parser)
        add_options(parser, "runtime options", RUNTIME_OPTIONS)
        add_options(parser, "build options", BUILD_OPTIONS)

    def run(self, options: argparse.Namespace) -> int:
        self.ctx.environment.set_profile(self.PROFILE)
        dry_run = options.dry_run or is_dry_run_env(self.ctx.environ)
        optimized = getattr(options, "optimized", False)
        persisted = self.persisted_defaults()

        if optimized:
            build_cli = collect_options(options, BUILD_OPTIONS)
            given = [name for name, value in build_cli.items() if value is not None]
            if given:
                raise PropertyError(
                    f"Build option '--{given[0]}' cannot be used with '{OPTIMIZED_BUILD_OPTION_LONG}'. "
                    f"Run 'build' with the option first."
                )
            if not self.ctx.config_source.exists():
                log_event(
                    logger,
                    logging.WARNING,
                    "No persisted build found; starting with default build options",
                    event="no_persisted_build",
                    path=str(self.ctx.config_source.path),
                )
        else:
            persisted = self.auto_build(options, persisted, dry_run)

        config = self.resolve(options, RUNTIME_OPTIONS, persisted=persisted)
        self.validate(config)

        if dry_run:
            self.write("Dry run: the configuration is valid. The server was not started.")
            return EXIT_OK
        return self.engine.start(config)

    def auto_build(
        self, options: argparse.Namespace, persisted: Mapping[str, Any], dry_run: bool
    ) -> dict[str, Any]:
        """Persist the build options when they differ from the last build."""
        desired = self.resolve(options, BUILD_OPTIONS, persisted=persisted).build_options()
        current = {name: persisted.get(name) for name in desired}
        if desired != current:
            log_event(
                logger,
                logging.INFO,
                "Build options changed, updating the persisted configuration",
                event="auto_build",
                options=desired,
            )
            self.ctx.config_source.save(desired, dry_run=dry_run)
        return {**persisted, **desired}

    def validate(self, config: AppConfig) -> None:
        if self.PROFILE == PROD_PROFILE and not config.hostname:
            raise ConfigError(
                "hostname is not configured; it must be set in production mode. "
                "Use '--hostname' or run 'start-dev' for development."
            )


class Start(AbstractStartCommand):
    NAME = "start"
    HELP = "Start the server in production mode."

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            OPTIMIZED_BUILD_OPTION_LONG,
            dest="optimized",
            action="store_true",
            help="Use the persisted build and skip the build check.",
        )
        super().configure(parser)

    @classmethod
    def fast_start(cls, engine: "CommandLine", dry_run: bool) -> int:
        """Run ``start --optimized`` without building a parser."""
        options = empty_options(RUNTIME_OPTIONS, BUILD_OPTIONS, optimized=True, dry_run=dry_run)
        return engine.execute(cls(engine), options)


class StartDev(AbstractStartCommand):
    NAME = "start-dev"
    HELP = "Start the server in development mode."
    PROFILE = DEV_PROFILE

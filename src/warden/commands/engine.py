"""Command-line engine: option syntax checks, parsing and command execution."""

import argparse
import functools
import logging
import re
import sys
from collections.abc import Sequence
from typing import TextIO

from warden import __version__
from warden.commands.base import Command
from warden.commands.build import Build
from warden.commands.check import Check
from warden.commands.show_config import ShowConfig
from warden.commands.start import Start, StartDev
from warden.foundation.config import AppConfig
from warden.foundation.context import LaunchContext
from warden.runtime import main as runtime_main
from warden.runtime.lifecycle import Application
from warden.util.error_handler import ExecutionErrorHandler
from warden.util.errors import EXIT_ERROR, EXIT_OK, EXIT_USAGE, PropertyError, WardenError
from warden.util.logging import configure_logging, log_event

logger = logging.getLogger(__name__)

PROG = "warden"
HELP_OPTION = "-h"

COMMANDS: tuple[type[Command], ...] = (Start, StartDev, Build, ShowConfig, Check)

_LONG_OPTION = re.compile(r"--[a-z][a-z0-9-]*(=.*)?", re.DOTALL)


class CommandExit(Exception):
    """Raised instead of ``sys.exit`` when argparse wants to stop (e.g. after ``-h``)."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


class VersionAction(argparse.Action):
    """Prints the version to the parser's ``out`` stream and stops parsing."""

    def __init__(
        self,
        option_strings,
        version: str,
        dest=argparse.SUPPRESS,
        default=argparse.SUPPRESS,
        help="Print the version and exit.",
    ) -> None:
        super().__init__(option_strings, dest=dest, default=default, nargs=0, help=help)
        self.version = version

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        (parser.out or sys.stdout).write(f"{self.version}\n")
        parser.exit()


class WardenArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports errors as exceptions and writes to ``out``/``err``."""

    def __init__(
        self, *args, out: TextIO | None = None, err: TextIO | None = None, **kwargs
    ) -> None:
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)
        self.out = out
        self.err = err

    def print_help(self, file: TextIO | None = None) -> None:
        super().print_help(file or self.out)

    def error(self, message: str):
        raise PropertyError(message)

    def exit(self, status: int = 0, message: str | None = None):
        if message:
            (self.err or sys.stderr).write(message)
        raise CommandExit(status)


class CommandLine:
    """Parses the command line and runs the selected command.

    Args:
        ctx: Launch context.
        error_handler: Reporter for command failures.
    """

    def __init__(self, ctx: LaunchContext, error_handler: ExecutionErrorHandler | None = None) -> None:
        self.ctx = ctx
        self.error_handler = error_handler or ExecutionErrorHandler()

    @staticmethod
    def parse_args(args: Sequence[str]) -> list[str]:
        """Check option syntax and return a copy of the arguments.

        Raises:
            PropertyError: If a long option is malformed.
        """
        result = list(args)
        for token in result:
            if token == "--":
                # Everything after is positional
                break
            if token.startswith("--") and not _LONG_OPTION.fullmatch(token):
                raise PropertyError(f"Invalid option: '{token}'")
        return result

    def create_parser(self) -> WardenArgumentParser:
        parser = WardenArgumentParser(
            prog=PROG,
            description="Warden server launcher.",
            out=self.ctx.out,
            err=self.ctx.err,
        )
        parser.add_argument("-V", "--version", action=VersionAction, version=f"{PROG} {__version__}")
        parser.add_argument("-v", "--verbose", action="store_true", help="Print stack traces on errors.")
        subparsers = parser.add_subparsers(
            title="commands",
            dest="command",
            parser_class=functools.partial(WardenArgumentParser, out=self.ctx.out, err=self.ctx.err),
        )
        for command_class in COMMANDS:
            sub = subparsers.add_parser(
                command_class.NAME, help=command_class.HELP, description=command_class.HELP
            )
            command_class.configure(sub)
            sub.set_defaults(command_class=command_class)
        return parser

    def parse_and_run(self, args: Sequence[str]) -> int:
        """Parse ``args``, run the selected command and return its exit code."""
        parser = self.create_parser()
        try:
            options, unknown = parser.parse_known_args(list(args))
            if unknown:
                raise PropertyError(f"Unknown option: '{unknown[0]}'")
        except CommandExit as e:
            return e.code
        except PropertyError as e:
            self.usage_exception(str(e), e.__cause__)
            return EXIT_USAGE

        self.error_handler.verbose = options.verbose
        if options.command is None:
            parser.print_help()
            return EXIT_OK
        return self.execute(options.command_class(self), options)

    def execute(self, command: Command, options: argparse.Namespace) -> int:
        """Run a command, turning its failures into reports and exit codes."""
        log_event(
            logger, logging.DEBUG, f"Running '{command.NAME}'", event="command_start", command=command.NAME
        )
        try:
            return command.run(options)
        except PropertyError as e:
            self.usage_exception(str(e), e.__cause__)
            return EXIT_USAGE
        except WardenError as e:
            self.error_handler.error(self.ctx.err, f"Failed to run '{command.NAME}' command.", e)
            return EXIT_ERROR

    def usage_exception(self, message: str, cause: BaseException | None = None) -> None:
        """Report malformed input without touching any server state."""
        err = self.ctx.err
        err.write(f"{message}\n")
        if cause is not None:
            err.write(f"Cause: {cause}\n")
        err.write(f"Try '{PROG} --help' for more information on the available options.\n")
        err.flush()
        log_event(logger, logging.DEBUG, message, event="usage_error")

    def start(self, config: AppConfig, application: Application | None = None) -> int:
        """Start the managed runtime with ``config``."""
        configure_logging(config.log_level)
        return runtime_main.start(self.ctx, config, self.error_handler, application)

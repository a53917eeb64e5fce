"""Process entry point for the Warden launcher.

Startup order:
1. Verify the shared worker pool has the configured thread factory.
2. Check option syntax (usage errors stop here, nothing else is touched).
3. Switch to the dry-run persisted properties when requested.
4. Classify the invocation: help, fast start or full dispatch.
5. Dispatch. ``start --optimized`` skips the argparse engine entirely.

Exit codes:
- 0: Clean shutdown
- 1: Error (startup failure, command failure)
- 2: Usage error
- 130: Interrupted by SIGINT/Ctrl+C (128 + 2)
"""

import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from warden import __version__
from warden.commands.dry_run import DRY_RUN_OPTION_LONG, is_dry_run_build, is_dry_run_env
from warden.commands.engine import HELP_OPTION, CommandLine
from warden.commands.start import OPTIMIZED_BUILD_OPTION_LONG, Start
from warden.foundation.context import LaunchContext
from warden.foundation.pool import common_pool, ensure_pool_factory_correct
from warden.foundation.properties import VERSION_PROPERTY
from warden.util.errors import EXIT_USAGE, PropertyError
from warden.util.logging import configure_logging, log_event

logger = logging.getLogger(__name__)


class LaunchMode(Enum):
    HELP = "help"
    FAST_START = "fast_start"
    FULL_DISPATCH = "full_dispatch"


@dataclass(frozen=True)
class Invocation:
    """Classified command line.

    Attributes:
        mode: How to launch.
        args: Arguments for the next step; ``("-h",)`` for HELP.
    """

    mode: LaunchMode
    args: tuple[str, ...]


def is_fast_start(args: Sequence[str]) -> bool:
    """``start --optimized`` and nothing else starts the server without the engine."""
    return len(args) == 2 and args[0] == Start.NAME and args[1] == OPTIMIZED_BUILD_OPTION_LONG


def classify(args: Sequence[str]) -> Invocation:
    """Decide how to launch. Never modifies ``args``."""
    if not args:
        # Default to the help message
        return Invocation(LaunchMode.HELP, (HELP_OPTION,))
    if is_fast_start(args):
        return Invocation(LaunchMode.FAST_START, tuple(args))
    return Invocation(LaunchMode.FULL_DISPATCH, tuple(args))


def maybe_activate_dry_run(args: Sequence[str], ctx: LaunchContext) -> None:
    """Switch to the dry-run persisted properties when the distribution allows it."""
    if not is_dry_run_build(ctx.environ):
        return
    if DRY_RUN_OPTION_LONG in args or is_dry_run_env(ctx.environ):
        ctx.config_source.use_dry_run_properties()


def dispatch(invocation: Invocation, ctx: LaunchContext, engine: CommandLine) -> int:
    """Run the classified invocation and return its exit code."""
    log_event(
        logger,
        logging.DEBUG,
        f"Launch mode {invocation.mode.value}",
        event="launch_mode",
        mode=invocation.mode.value,
    )
    if invocation.mode is LaunchMode.FAST_START:
        return Start.fast_start(engine, is_dry_run_env(ctx.environ))
    return engine.parse_and_run(list(invocation.args))


def launch(args: Sequence[str], ctx: LaunchContext, engine: CommandLine) -> int:
    """Run the launcher for ``args`` and return the process exit code."""
    try:
        cli_args = CommandLine.parse_args(args)
    except PropertyError as e:
        engine.usage_exception(str(e), e.__cause__)
        return EXIT_USAGE

    maybe_activate_dry_run(cli_args, ctx)
    return dispatch(classify(cli_args), ctx, engine)


def main() -> None:
    """Entry point for the ``warden`` console script.

    Uses sys.exit() directly to ensure correct exit code.
    """
    ctx = LaunchContext.from_process()
    configure_logging("INFO")
    ensure_pool_factory_correct(ctx.properties, common_pool(ctx.properties))

    ctx.properties[VERSION_PROPERTY] = __version__

    sys.exit(launch(sys.argv[1:], ctx, CommandLine(ctx)))

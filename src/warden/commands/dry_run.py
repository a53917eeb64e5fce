"""Dry-run option and the environment switches that control it."""

from collections.abc import Mapping

from warden.foundation.environment import parse_bool

DRY_RUN_OPTION_LONG = "--dry-run"
DRY_RUN_ENV = "WARDEN_DRY_RUN"
# Exported by the launch script when the distribution supports dry-run builds
DRY_RUN_BUILD_ENV = "WARDEN_DRY_RUN_BUILD"


def is_dry_run_build(environ: Mapping[str, str]) -> bool:
    """Whether dry-run builds are enabled for this distribution."""
    return parse_bool(environ.get(DRY_RUN_BUILD_ENV))


def is_dry_run_env(environ: Mapping[str, str]) -> bool:
    return parse_bool(environ.get(DRY_RUN_ENV))

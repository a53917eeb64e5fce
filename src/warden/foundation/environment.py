"""Runtime environment: profile, launch mode and distribution detection."""

from collections.abc import Mapping
from pathlib import Path

from warden.foundation.properties import (
    HOME_DIR_PROPERTY,
    LAUNCH_MODE_PROPERTY,
    PROFILE_PROPERTY,
    SystemProperties,
)

DEV_PROFILE = "dev"
PROD_PROFILE = "prod"
NON_SERVER_PROFILE = "nonserver"

PROFILE_ENV = "WARDEN_PROFILE"
LAUNCH_MODE_ENV = "WARDEN_LAUNCH_MODE"
HOME_ENV = "WARDEN_HOME"

TEST_LAUNCH_MODE = "test"


def parse_bool(value: str | None) -> bool:
    """Parse a boolean flag: only a case-insensitive ``"true"`` is true."""
    return value is not None and value.lower() == "true"


class Environment:
    """Read-mostly view over system properties and environment variables.

    Properties win over environment variables. The only mutation is
    ``set_profile``, which commands use to select the profile they run under.
    """

    def __init__(self, properties: SystemProperties, environ: Mapping[str, str]) -> None:
        self._properties = properties
        self._environ = environ

    def _lookup(self, prop: str, env: str) -> str | None:
        value = self._properties.get(prop)
        if value is None:
            value = self._environ.get(env)
        return value or None

    @property
    def profile(self) -> str | None:
        return self._lookup(PROFILE_PROPERTY, PROFILE_ENV)

    def set_profile(self, profile: str) -> None:
        self._properties[PROFILE_PROPERTY] = profile

    def is_dev_mode(self) -> bool:
        return self.profile == DEV_PROFILE

    def is_non_server_mode(self) -> bool:
        return self.profile == NON_SERVER_PROFILE

    def is_test_launch_mode(self) -> bool:
        return self._lookup(LAUNCH_MODE_PROPERTY, LAUNCH_MODE_ENV) == TEST_LAUNCH_MODE

    def mode(self) -> str:
        """Human-readable operating mode derived from the profile."""
        profile = self.profile
        if profile == DEV_PROFILE:
            return "development"
        if profile is None or profile == PROD_PROFILE:
            return "production"
        return profile

    def home_dir(self) -> Path | None:
        value = self._lookup(HOME_DIR_PROPERTY, HOME_ENV)
        return Path(value) if value else None

    def is_distribution(self) -> bool:
        """True when running from an installed distribution (home dir set by the launch script)."""
        return self.home_dir() is not None

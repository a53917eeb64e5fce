"""Launcher-supplied system properties.

The launch script passes JVM-style ``-Dkey=value`` definitions through the
``WARDEN_OPTS`` environment variable. They are parsed once at startup into a
``SystemProperties`` mapping that is then handed around explicitly.
"""

import shlex
from collections.abc import Mapping

OPTS_ENV = "WARDEN_OPTS"

VERSION_PROPERTY = "warden.version"
HOME_DIR_PROPERTY = "warden.home.dir"
PROFILE_PROPERTY = "warden.profile"
LAUNCH_MODE_PROPERTY = "warden.launch-mode"


class SystemProperties(dict[str, str]):
    """Mutable string-to-string property map."""

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "SystemProperties":
        """Parse ``-Dkey=value`` tokens from ``WARDEN_OPTS``.

        Tokens that are not property definitions are ignored; a definition
        without ``=`` sets the property to an empty string.
        """
        props = cls()
        for token in shlex.split(environ.get(OPTS_ENV, "")):
            if not token.startswith("-D") or len(token) == 2:
                continue
            key, _, value = token[2:].partition("=")
            props[key] = value
        return props

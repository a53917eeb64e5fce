"""Custom exception types and exit codes for Warden."""

# Exit code constants
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_SIGINT = 130  # 128 + SIGINT(2)


class WardenError(Exception):
    """Base class for launcher errors."""

    pass


class ConfigError(WardenError):
    """Raised when configuration loading or validation fails."""

    pass


class PropertyError(WardenError):
    """Raised for malformed command-line input (usage errors)."""

    pass


class StartupError(WardenError):
    """Raised when the managed application fails to come up."""

    pass


class PoolFactoryError(RuntimeError):
    """Raised when the shared worker pool was built with the wrong thread factory.

    Nothing in the launcher catches it; the process aborts.
    """

    pass

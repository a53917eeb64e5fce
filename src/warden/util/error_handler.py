"""Uniform reporting of command and startup failures."""

import logging
import traceback
from typing import TextIO

from warden.util.logging import log_event, redact

logger = logging.getLogger(__name__)

VERBOSE_HINT = "For more details run the same command passing the '--verbose' option."


def root_cause(error: BaseException) -> BaseException:
    """Follow ``__cause__``/``__context__`` to the innermost exception."""
    seen = {id(error)}
    current = error
    while True:
        nxt = current.__cause__ or current.__context__
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


class ExecutionErrorHandler:
    """Writes failures to a stream in a fixed format.

    Args:
        verbose: Print full tracebacks instead of the ``--verbose`` hint.
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def error(self, stream: TextIO, message: str, cause: BaseException | None = None) -> None:
        """Report ``message`` and the root of ``cause``.

        Args:
            stream: Destination, usually stderr.
            message: What failed.
            cause: Exception behind the failure, if any.
        """
        lines = [f"ERROR: {message}"]
        if cause is not None:
            root = root_cause(cause)
            detail = str(root) or type(root).__name__
            lines.append(f"ERROR: {redact(detail)}")
            if self.verbose:
                lines.append(
                    "".join(traceback.format_exception(type(cause), cause, cause.__traceback__)).rstrip()
                )
            else:
                lines.append(VERBOSE_HINT)

        stream.write("\n".join(lines) + "\n")
        stream.flush()

        log_event(
            logger,
            logging.ERROR,
            message,
            event="execution_error",
            cause=type(cause).__name__ if cause is not None else None,
        )

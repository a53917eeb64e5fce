"""
Tests for failure reporting
"""
import io
import unittest

from warden.util.error_handler import VERBOSE_HINT, ExecutionErrorHandler, root_cause


def chained_error():
    try:
        try:
            raise OSError("disk full")
        except OSError as e:
            raise ValueError("cannot write") from e
    except ValueError as e:
        return e


class TestExecutionErrorHandler(unittest.TestCase):
    """Test cases for ExecutionErrorHandler"""

    def test_message_only(self):
        stream = io.StringIO()
        ExecutionErrorHandler().error(stream, "Failed to run 'build' command.")
        self.assertEqual(stream.getvalue(), "ERROR: Failed to run 'build' command.\n")

    def test_root_cause_and_hint(self):
        error = chained_error()
        stream = io.StringIO()
        ExecutionErrorHandler().error(stream, "Failed to start server in (production) mode", error)

        lines = stream.getvalue().splitlines()
        self.assertEqual(
            lines,
            ["ERROR: Failed to start server in (production) mode", "ERROR: disk full", VERBOSE_HINT],
        )

    def test_verbose_prints_traceback(self):
        error = chained_error()
        stream = io.StringIO()
        ExecutionErrorHandler(verbose=True).error(stream, "boom", error)
        self.assertIn("Traceback", stream.getvalue())
        self.assertNotIn(VERBOSE_HINT, stream.getvalue())

    def test_secrets_are_redacted(self):
        stream = io.StringIO()
        ExecutionErrorHandler().error(stream, "db", ValueError("password=hunter2"))
        self.assertNotIn("hunter2", stream.getvalue())

    def test_root_cause_without_chain(self):
        error = ValueError("x")
        self.assertIs(root_cause(error), error)


if __name__ == "__main__":
    unittest.main()

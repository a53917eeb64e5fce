"""
Tests for the command engine and the launcher commands
"""
import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml

from warden import __version__
from warden.commands.engine import CommandExit, CommandLine
from warden.commands.start import Start
from warden.foundation.context import LaunchContext
from warden.foundation.pool import reset_common_pool
from warden.foundation.properties import HOME_DIR_PROPERTY, LAUNCH_MODE_PROPERTY, SystemProperties
from warden.runtime.lifecycle import LifecycleState
from warden.util.errors import EXIT_USAGE
from warden.util.health import HealthSnapshot


class EngineTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.home = Path(self.tmp.name)
        self.terminated = []
        patcher = mock.patch("warden.commands.engine.configure_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        reset_common_pool()
        self.tmp.cleanup()

    def terminate(self, code):
        self.terminated.append(code)
        raise SystemExit(code)

    def make_engine(self, environ=None, **properties):
        properties.setdefault(HOME_DIR_PROPERTY, str(self.home))
        properties.setdefault(LAUNCH_MODE_PROPERTY, "test")
        ctx = LaunchContext.create(
            environ or {},
            SystemProperties(properties),
            out=io.StringIO(),
            err=io.StringIO(),
            terminate=self.terminate,
        )
        return CommandLine(ctx)

    def persisted(self, name="persisted.yaml"):
        with open(self.home / "data" / name, encoding="utf-8") as f:
            return yaml.safe_load(f)


class TestParsing(EngineTestCase):
    """Test cases for parse_and_run error handling"""

    def test_help(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["-h"]), 0)
        out = engine.ctx.out.getvalue()
        self.assertIn("usage: warden", out)
        for name in ["start", "start-dev", "build", "show-config", "check"]:
            self.assertIn(name, out)

    def test_version_goes_to_context_stream(self):
        engine = self.make_engine()
        with mock.patch("sys.stdout", new_callable=io.StringIO) as stdout:
            self.assertEqual(engine.parse_and_run(["--version"]), 0)
        self.assertEqual(engine.ctx.out.getvalue(), f"warden {__version__}\n")
        self.assertEqual(stdout.getvalue(), "")

    def test_parser_exit_message_goes_to_context_stream(self):
        engine = self.make_engine()
        parser = engine.create_parser()
        with mock.patch("sys.stderr", new_callable=io.StringIO) as stderr:
            with self.assertRaises(CommandExit) as exit_info:
                parser.exit(3, "stopped\n")
        self.assertEqual(exit_info.exception.code, 3)
        self.assertEqual(engine.ctx.err.getvalue(), "stopped\n")
        self.assertEqual(stderr.getvalue(), "")

    def test_command_help(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["start", "-h"]), 0)
        self.assertIn("--optimized", engine.ctx.out.getvalue())

    def test_unknown_option(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["start", "--foo"]), EXIT_USAGE)
        err = engine.ctx.err.getvalue()
        self.assertTrue(err.startswith("Unknown option: '--foo'"))
        self.assertIn("Try 'warden --help'", err)
        self.assertEqual(engine.ctx.lifecycle.state, LifecycleState.NOT_STARTED)

    def test_invalid_value(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["start", "--http-port", "abc"]), EXIT_USAGE)
        self.assertIn("invalid int value", engine.ctx.err.getvalue())

    def test_unknown_command(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["deploy"]), EXIT_USAGE)
        self.assertIn("invalid choice", engine.ctx.err.getvalue())

    def test_no_command_prints_help(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["--verbose"]), 0)
        self.assertIn("usage: warden", engine.ctx.out.getvalue())


class TestBuild(EngineTestCase):
    """Test cases for the build command"""

    def test_persists_build_options(self):
        engine = self.make_engine()
        code = engine.parse_and_run(["build", "--db", "postgres", "--features", "audit,tokens"])

        self.assertEqual(code, 0)
        self.assertEqual(
            self.persisted(),
            {"db": "postgres", "features": "audit,tokens", "health-enabled": True},
        )
        self.assertIn("warden show-config", engine.ctx.out.getvalue())

    def test_dry_run_leaves_persisted_build_alone(self):
        engine = self.make_engine()
        engine.parse_and_run(["build", "--db", "mysql"])
        engine = self.make_engine()
        code = engine.parse_and_run(["build", "--dry-run", "--db", "postgres"])

        self.assertEqual(code, 0)
        self.assertEqual(self.persisted()["db"], "mysql")
        self.assertEqual(self.persisted("persisted.dry-run.yaml")["db"], "postgres")


class TestShowConfig(EngineTestCase):
    """Test cases for show-config"""

    def test_redacts_secrets(self):
        engine = self.make_engine({"WARDEN_DB_PASSWORD": "s3cret", "WARDEN_HTTP_PORT": "9090"})
        self.assertEqual(engine.parse_and_run(["show-config"]), 0)

        out = engine.ctx.out.getvalue()
        self.assertIn("http_port: 9090", out)
        self.assertNotIn("s3cret", out)
        self.assertIn("[REDACTED]", out)


class TestStart(EngineTestCase):
    """Test cases for start, start-dev and the fast start path"""

    def test_requires_hostname_in_production(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["start", "--http-enabled", "false"]), 1)
        self.assertIn("hostname is not configured", engine.ctx.err.getvalue())
        self.assertEqual(engine.ctx.lifecycle.state, LifecycleState.NOT_STARTED)

    def test_dry_run_does_not_start(self):
        engine = self.make_engine()
        code = engine.parse_and_run(["start", "--dry-run", "--hostname", "auth.example.org"])

        self.assertEqual(code, 0)
        self.assertIn("Dry run", engine.ctx.out.getvalue())
        self.assertEqual(engine.ctx.lifecycle.state, LifecycleState.NOT_STARTED)
        self.assertFalse((self.home / "data" / "persisted.yaml").exists())

    def test_start_auto_builds_and_runs_in_test_mode(self):
        engine = self.make_engine({"WARDEN_HTTP_ENABLED": "false", "WARDEN_MIN_FREE_DISK_MB": "1"})
        code = engine.parse_and_run(["start", "--hostname", "auth.example.org", "--db", "postgres"])

        self.assertEqual(code, 0)
        self.assertEqual(engine.ctx.lifecycle.state, LifecycleState.EXITED)
        self.assertEqual(self.persisted()["db"], "postgres")
        self.assertEqual(engine.ctx.environment.mode(), "production")

    def test_optimized_rejects_build_options(self):
        engine = self.make_engine()
        code = engine.parse_and_run(["start", "--optimized", "--db", "postgres"])
        self.assertEqual(code, EXIT_USAGE)
        self.assertIn("cannot be used with '--optimized'", engine.ctx.err.getvalue())

    def test_start_dev_has_no_optimized_option(self):
        engine = self.make_engine()
        self.assertEqual(engine.parse_and_run(["start-dev", "--optimized"]), EXIT_USAGE)

    def test_start_dev_needs_no_hostname(self):
        engine = self.make_engine({"WARDEN_HTTP_ENABLED": "false", "WARDEN_MIN_FREE_DISK_MB": "1"})
        self.assertEqual(engine.parse_and_run(["start-dev"]), 0)
        self.assertEqual(engine.ctx.environment.mode(), "development")

    def test_fast_start_never_builds_a_parser(self):
        engine = self.make_engine({"WARDEN_HOSTNAME": "auth.example.org"})
        with mock.patch.object(CommandLine, "create_parser") as create_parser:
            code = Start.fast_start(engine, True)

        self.assertEqual(code, 0)
        create_parser.assert_not_called()
        self.assertIn("Dry run", engine.ctx.out.getvalue())

    def test_fast_start_uses_persisted_build(self):
        self.make_engine().parse_and_run(["build", "--db", "mysql"])
        engine = self.make_engine(
            {"WARDEN_HOSTNAME": "auth.example.org", "WARDEN_HTTP_ENABLED": "false", "WARDEN_MIN_FREE_DISK_MB": "1"}
        )

        self.assertEqual(Start.fast_start(engine, False), 0)
        self.assertEqual(engine.ctx.lifecycle.state, LifecycleState.EXITED)
        self.assertEqual(self.persisted()["db"], "mysql")


class TestCheck(EngineTestCase):
    """Test cases for the non-server check command"""

    def snapshot(self, ok):
        return HealthSnapshot(ok=ok, ts_utc="2026-01-01T00:00:00+00:00", checks={"disk_free": {"ok": ok}})

    def test_unhealthy_exits_with_one(self):
        engine = self.make_engine(**{LAUNCH_MODE_PROPERTY: ""})
        with mock.patch("warden.runtime.main.collect_health_snapshot", return_value=self.snapshot(False)):
            code = engine.parse_and_run(["check"])

        self.assertEqual(code, 1)
        self.assertIn('"disk_free"', engine.ctx.out.getvalue())
        self.assertTrue(engine.ctx.environment.is_non_server_mode())

    def test_healthy_exits_with_zero(self):
        engine = self.make_engine(**{LAUNCH_MODE_PROPERTY: ""})
        with mock.patch("warden.runtime.main.collect_health_snapshot", return_value=self.snapshot(True)):
            self.assertEqual(engine.parse_and_run(["check"]), 0)
        self.assertEqual(self.terminated, [])


if __name__ == "__main__":
    unittest.main()

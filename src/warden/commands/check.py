"""``check`` command: boot without HTTP, report health and exit."""

import argparse
import json

from warden.commands.base import RUNTIME_OPTIONS, Command, add_config_file_option, add_options
from warden.foundation.environment import NON_SERVER_PROFILE
from warden.runtime.main import WardenApplication
from warden.util.errors import EXIT_ERROR, EXIT_OK
from warden.util.health import HealthSnapshot


class Check(Command):
    NAME = "check"
    HELP = "Start the runtime in non-server mode, print the health snapshot and exit."

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        add_config_file_option(parser)
        add_options(parser, "runtime options", RUNTIME_OPTIONS)

    def run(self, options: argparse.Namespace) -> int:
        self.ctx.environment.set_profile(NON_SERVER_PROFILE)
        config = self.resolve(options, RUNTIME_OPTIONS)

        def on_health(snapshot: HealthSnapshot) -> None:
            self.write(json.dumps(snapshot.model_dump(), indent=2))
            self.ctx.lifecycle.set_exit_code(EXIT_OK if snapshot.ok else EXIT_ERROR)

        return self.engine.start(config, WardenApplication(self.ctx, config, on_health=on_health))

"""``show-config`` command."""

import argparse

import yaml

from warden.commands.base import Command, add_config_file_option
from warden.util.errors import EXIT_OK
from warden.util.logging import redact


class ShowConfig(Command):
    NAME = "show-config"
    HELP = "Print the resolved configuration."

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        add_config_file_option(parser)

    def run(self, options: argparse.Namespace) -> int:
        source = self.ctx.config_source
        config = self.resolve(options)

        self.write(f"Current Mode: {self.ctx.environment.mode()}")
        self.write(f"Persisted Configuration ({source.path}):")
        self.write(redact(yaml.safe_dump(source.properties(), sort_keys=True)).rstrip() or "{}")
        self.write("Resolved Configuration:")
        self.write(redact(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=True)).rstrip())
        return EXIT_OK

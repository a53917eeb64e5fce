"""``build`` command: persist the build-time options."""

import argparse

from warden.commands.base import (
    BUILD_OPTIONS,
    Command,
    add_config_file_option,
    add_dry_run_option,
    add_options,
)
from warden.commands.dry_run import is_dry_run_env
from warden.foundation.environment import NON_SERVER_PROFILE
from warden.util.errors import EXIT_OK


class Build(Command):
    NAME = "build"
    HELP = "Persist build options so that later starts can use '--optimized'."

    @classmethod
    def configure(cls, parser: argparse.ArgumentParser) -> None:
        add_dry_run_option(parser)
        add_config_file_option(parser)
        add_options(parser, "build options", BUILD_OPTIONS)

    def run(self, options: argparse.Namespace) -> int:
        self.ctx.environment.set_profile(NON_SERVER_PROFILE)
        dry_run = options.dry_run or is_dry_run_env(self.ctx.environ)

        self.write("Updating the configuration. Please wait.")
        config = self.resolve(options, BUILD_OPTIONS)
        path = self.ctx.config_source.save(config.build_options(), dry_run=dry_run)

        if dry_run:
            self.write(f"Dry run: build options are valid and were written to {path}.")
        else:
            self.write("Server configuration updated and persisted.")
            self.write("Run the following command to review the configuration:\n")
            self.write("\twarden show-config\n")
        return EXIT_OK

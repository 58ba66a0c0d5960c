#!/usr/bin/env python3
"""fipscheck CLI - verify a FIPS-140 container image."""

import contextlib
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from fipscheck.command.crypto import CryptoCommand
from fipscheck.command.image import ImageCommand
from fipscheck.core.config import State


class CliState(State):
    """Verify that a FIPS-140 container image behaves as expected.

    Two independent batteries:
      crypto  exercise primitives in-process (run inside the image)
      image   probe a built image through the container engine CLI

    Configuration sources (in priority order):
    1. Command-line arguments (--config.image.name value)
    2. fipscheck.yaml in the current directory, then the user
       config directory, then the packaged defaults
    3. .env file
    4. Environment variables
       (FIPSCHECK_CONFIG__IMAGE__NAME=value, PFX_PASSWORD)
    """

    crypto: CliSubCommand[CryptoCommand]
    image: CliSubCommand[ImageCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            # argparse exits 0 after printing help
            with contextlib.suppress(SystemExit):
                CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        with self:
            exit_code = subcommand.run_workflow(self)
        raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()

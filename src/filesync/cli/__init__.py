"""Command-line interface for filesync.

Commands:
- run: Mirror the monitored paths onto their remote hosts
- check-config: Validate a configuration file
"""

from __future__ import annotations

import click

from filesync.cli.config import check_config, get_default_config_file, load_or_exit
from filesync.cli.run import run


@click.group()
@click.version_option(package_name="filesync")
def cli() -> None:
    """filesync - One-way local-to-remote file mirroring over SSH."""


cli.add_command(run)
cli.add_command(check_config)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_default_config_file",
    "load_or_exit",
]

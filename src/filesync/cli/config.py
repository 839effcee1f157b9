"""Configuration commands for the filesync CLI.

Commands:
- check-config: Validate a configuration file and print a summary
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from filesync.core.config import DEFAULT_CONFIG_NAME, AppConfig, load_config
from filesync.core.errors import ConfigError


def get_default_config_file() -> Path:
    """Get the configuration file used when --config is not given."""
    return Path.cwd() / DEFAULT_CONFIG_NAME


def config_option(func):  # type: ignore[no-untyped-def]
    """Add the shared --config option to a command."""
    return click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(path_type=Path, dir_okay=False),
        default=None,
        envvar="FILESYNC_CONFIG",
        help=f"Configuration file (default: ./{DEFAULT_CONFIG_NAME}).",
    )(func)


def load_or_exit(config_path: Path | None) -> AppConfig:
    """Load the configuration, exiting with status 1 if it is invalid."""
    path = config_path or get_default_config_file()
    try:
        return load_config(path)
    except ConfigError as e:
        click.echo(f"Error: invalid configuration {path}: {e}", err=True)
        sys.exit(1)


@click.command("check-config")
@config_option
def check_config(config_path: Path | None) -> None:
    """Validate the configuration file and print what it describes."""
    config = load_or_exit(config_path)

    click.echo(f"Log: {config.log.filename} ({config.log.level}, every {config.log.cycle})")
    click.echo(f"Sessions ({len(config.sessions)}):")
    for i, session in enumerate(config.sessions):
        click.echo(f"  [{i}] {session.address} ({len(session.commands)} startup command(s))")
    click.echo(f"Monitors ({len(config.monitors)}):")
    for monitor in config.monitors:
        click.echo(
            f"  [{monitor.id}] {monitor.local_root} -> "
            f"[{monitor.session_index}] {monitor.remote_root}"
        )
        if monitor.whitelist:
            click.echo(f"      whitelist: {', '.join(monitor.whitelist)}")
        if monitor.blacklist:
            click.echo(f"      blacklist: {', '.join(monitor.blacklist)}")
    click.echo(f"Event pool capacity: {config.pipeline.pool_capacity}")

"""Run command for the filesync CLI.

Commands:
- run: Start mirroring the configured paths until interrupted
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from filesync.cli.config import config_option, load_or_exit

logger = logging.getLogger(__name__)


@click.command()
@config_option
@click.option("--tray/--no-tray", default=False, help="Show a system tray icon.")
def run(config_path: Path | None, tray: bool) -> None:
    """Mirror the monitored paths onto their remote hosts.

    Runs until Ctrl+C, or until "Quit filesync" is chosen in the tray menu.
    """
    from filesync.app import AppContext
    from filesync.core.errors import ConfigError, SessionError
    from filesync.core.logs import setup_logging

    config = load_or_exit(config_path)

    if tray:
        from filesync.tray import PYSTRAY_AVAILABLE

        if not PYSTRAY_AVAILABLE:
            click.echo(
                "Error: pystray not available.\n" "Install with: pip install filesync[tray]",
                err=True,
            )
            sys.exit(1)

    log_path = setup_logging(config.log, config.base_dir)
    logger.info("Logging to %s", log_path)

    ctx = AppContext(config)

    try:
        ctx.connect()
        ctx.start()
    except (SessionError, ConfigError) as e:
        logger.error("Startup failed: %s", e)
        click.echo(f"Error: {e}", err=True)
        ctx.stop()
        sys.exit(1)

    tray_icon = None
    if tray:
        from filesync.tray import FileSyncTray

        tray_icon = FileSyncTray([m.local_dir for m in ctx.monitors], on_quit=ctx.stop)
        ctx.dispatcher.set_on_failure(tray_icon.set_error)
        tray_icon.start(blocking=False)

    click.echo("filesync running. Press Ctrl+C to stop.")

    try:
        while not ctx.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        click.echo("\nStopping filesync...")
        ctx.stop()
    finally:
        if tray_icon is not None:
            tray_icon.stop()

    stats = ctx.dispatcher.stats
    click.echo(
        f"Processed {stats.events_processed} event(s): "
        f"{stats.commands_succeeded} succeeded, {stats.commands_failed} failed, "
        f"{stats.events_dropped} dropped."
    )
    broken = ctx.broken_sessions()
    if broken:
        click.echo(f"Broken session(s): {', '.join(broken)}", err=True)

"""Main CLI entry point for gpuwatch.

This module defines the ``gpuwatch`` command: discover hosts from the SSH
config, select the ones to watch and run the refresh loop.
"""

from __future__ import annotations

import os
import sys

import click
from rich.console import Console

from gpuwatch import __version__
from gpuwatch.core.config import SettingsManager, get_default_settings_path
from gpuwatch.core.exceptions import GpuWatchError
from gpuwatch.core.hosts import parse_host_filter, select_hosts
from gpuwatch.core.loop import RefreshLoop
from gpuwatch.core.poller import PollExecutor
from gpuwatch.core.ssh import SSHManager
from gpuwatch.core.ssh_config import DEFAULT_SSH_CONFIG, discover_hosts
from gpuwatch.utils.logging import configure_logging, get_logger
from gpuwatch.utils.output import (
    OutputFormat,
    OutputFormatter,
    error_console,
    print_error,
    print_warning,
)

logger = get_logger("cli")


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"gpuwatch version [cyan]{__version__}[/cyan]")
    ctx.exit()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(),
    default=None,
    help=f"SSH config to discover hosts from (default: {DEFAULT_SSH_CONFIG}).",
)
@click.option(
    "-i",
    "--interval",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds between refreshes (default: 5).",
)
@click.option(
    "-t",
    "--timeout",
    "connect_timeout",
    type=click.IntRange(min=1),
    default=None,
    help="SSH connect timeout in seconds (default: 10).",
)
@click.option(
    "--command-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds the remote command may run before the host is marked failed "
    "(default: 30).",
)
@click.option(
    "-p",
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of simultaneous SSH sessions (default: 8).",
)
@click.option(
    "-H",
    "--hosts",
    "host_filter",
    multiple=True,
    help="Only watch these hosts (comma-separated, repeatable).",
)
@click.option(
    "-r",
    "--remote-command",
    default=None,
    help="Remote command printing one CSV line per GPU.",
)
@click.option(
    "-I",
    "--identity-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Private key to use, like ssh -i.",
)
@click.option(
    "-o",
    "--ssh-option",
    "ssh_options",
    multiple=True,
    help="Extra ssh option such as StrictHostKeyChecking=no (repeatable).",
)
@click.option(
    "-n",
    "--once",
    is_flag=True,
    default=False,
    help="Render a single refresh and exit.",
)
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat]),
    default=None,
    help="Output format (default: table).",
)
@click.option(
    "--list-hosts",
    is_flag=True,
    default=False,
    help="Print the hosts that would be watched and exit.",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False),
    envvar="GPUWATCH_CONFIG",
    help=f"Path to settings file (default: {get_default_settings_path()}).",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v, -vv, -vvv for more).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Show full error tracebacks.",
)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
def cli(
    config_path: str | None,
    interval: float | None,
    connect_timeout: int | None,
    command_timeout: float | None,
    concurrency: int | None,
    host_filter: tuple[str, ...],
    remote_command: str | None,
    identity_file: str | None,
    ssh_options: tuple[str, ...],
    once: bool,
    output_format: str | None,
    list_hosts: bool,
    settings_path: str | None,
    verbose: int,
    debug: bool,
) -> None:
    """gpuwatch - GPU dashboard for the hosts in your SSH config.

    Reads Host entries from ~/.ssh/config (following Include directives),
    runs nvidia-smi on every host over SSH and shows one table row per GPU,
    refreshed every few seconds.

    Examples:

        # Watch every host in ~/.ssh/config

        $ gpuwatch

        # Watch two hosts once and exit

        $ gpuwatch --hosts gpu-1,gpu-2 --once

        # Use another config, 16 parallel sessions, refresh every 10s

        $ gpuwatch -c ~/work/ssh_config -p 16 -i 10
    """
    try:
        manager = SettingsManager(settings_path)
        configure_logging(
            verbosity=verbose,
            log_file=manager.logging.file,
            log_level=manager.logging.level,
        )

        watch = manager.resolve(
            ssh_config=config_path,
            interval=interval,
            connect_timeout=connect_timeout,
            command_timeout=command_timeout,
            concurrency=concurrency,
            hosts=parse_host_filter(host_filter) or None,
            remote_command=remote_command,
            identity_file=identity_file,
            ssh_options=list(ssh_options) or None,
            once=True if once else None,
            output_format=output_format,
        )

        discovery = discover_hosts(watch.ssh_config)
        selection = select_hosts(discovery.hosts, watch.hosts or None)
        if selection.missing:
            print_warning(f"Hosts not found in SSH config: {' '.join(selection.missing)}")

        formatter = OutputFormatter(watch.output_format)

        if list_hosts:
            formatter.print_hosts(selection.active)
            return

        logger.info(
            f"Watching {len(selection)} host(s) from {len(discovery.files)} config file(s)"
        )

        with SSHManager.from_discovery(
            discovery,
            default_timeout=watch.connect_timeout,
            command_timeout=watch.command_timeout,
        ) as ssh:
            loop = RefreshLoop(
                selection.active,
                PollExecutor(ssh, concurrency=watch.concurrency),
                formatter,
                command=watch.remote_command,
                connect_timeout=watch.connect_timeout,
                extra_options=watch.transport_options(),
                interval=watch.interval,
                once=watch.once,
            )
            loop.run()

    except GpuWatchError as e:
        if debug:
            logger.exception("Fatal error")
        print_error(str(e))
        raise SystemExit(1) from e


def main() -> None:
    """Main entry point with error handling."""
    try:
        cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Abort:
        error_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except KeyboardInterrupt:
        error_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("GPUWATCH_DEBUG") or "--debug" in sys.argv:
            import traceback

            traceback.print_exc()
        else:
            print_error(f"Unexpected error: {e}")
            error_console.print("[dim]Use --debug for full traceback[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    main()

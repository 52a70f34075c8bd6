# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/cli/utils.py

"""
CLI utility functions shared by every lvm-restic command.

This module provides standardized functions for:
- Configuration loading (application and repository)
- Pre-flight checks of the restic binary and repository
- Wiring the adapters into a JobCoordinator
- Error handling with typer exits

All functions handle console output and typer exits consistently.
"""

import sys
from typing import Callable, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from lvmrestic.config.manager import AppConfig, RepositoryConfig, list_repository_names
from lvmrestic.core.context import RunContext
from lvmrestic.core.jobs import JobCoordinator
from lvmrestic.core.telemetry import ZabbixReporter
from lvmrestic.storage.protocols import VolumeManager
from lvmrestic.storage.restic import ResticClient
from lvmrestic.storage.snapshots import SnapshotManager
from lvmrestic.storage.transfer import TransferPipeline
from lvmrestic.storage.volumes import LVMVolumeManager
from lvmrestic.system.display import print_failed
from lvmrestic.system.exceptions import ConfigurationError, Interrupted, LvmResticError
from lvmrestic.system.locking import ProcessGate


def load_app_config(console: Console, verbose: bool = False) -> AppConfig:
    """
    Load the application configuration with proper error handling.

    Raises:
        typer.Exit: If a config file exists but cannot be loaded
    """
    if verbose:
        console.print("[dim]Loading configuration...[/dim]")
    try:
        return AppConfig.load()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {escape(str(e))}")
        raise typer.Exit(1)


def load_repository_config(console: Console, name: str, config: AppConfig) -> RepositoryConfig:
    """
    Load the named repository, listing the known ones when it is missing.

    Raises:
        typer.Exit: If the repository config is missing or invalid
    """
    try:
        return RepositoryConfig.load(name, config.repositories_dir)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        known = list_repository_names(config.repositories_dir)
        if known:
            console.print(f"Known repositories: {', '.join(known)}")
        raise typer.Exit(1)


def validate_repository_access(console: Console, client: ResticClient, verbose: bool = False) -> None:
    """
    Check that restic is installed and the repository opens.

    Raises:
        typer.Exit: If either check fails
    """
    if verbose:
        console.print("[dim]Testing repository access...[/dim]")
    try:
        client.check_available()
        client.check_repository()
    except LvmResticError as e:
        handle_operation_error(console, "opening repository", e)
    if verbose:
        console.print(f"[green]✓[/green] Repository {client.repository.name} accessible")


def build_coordinator(ctx: RunContext, client: ResticClient,
                      volumes: Optional[VolumeManager] = None) -> JobCoordinator:
    """Wire the LVM, restic, gate and telemetry adapters for one run."""
    config = ctx.config
    volumes = volumes or LVMVolumeManager()
    snapshots = SnapshotManager(volumes, buffer_size=config.snapshot_buffer,
                                grace_seconds=config.stale_grace_seconds)
    transfer = TransferPipeline(config, client, echo=ctx.echo)
    gate = ProcessGate(config.gate.process_name,
                       poll_interval=config.gate.poll_interval_seconds,
                       max_wait=config.gate.max_wait_seconds,
                       backoff=config.gate.backoff_factor,
                       max_poll_interval=config.gate.max_poll_interval_seconds)
    reporter = ZabbixReporter(config.telemetry, ctx.repository.name)
    return JobCoordinator(ctx, volumes, snapshots, transfer, gate, client, reporter)


def is_interactive() -> bool:
    return sys.stdin.isatty()


def choose_volume_group(console: Console, volumes: VolumeManager,
                        requested: Optional[str], interactive: bool) -> str:
    """
    Volume group for restored volumes: the option, else an interactive choice.

    Raises:
        ConfigurationError: When no group was given and nobody can be asked
    """
    if requested:
        return requested
    if not interactive:
        raise ConfigurationError("Restore needs --volume-group when not run interactively")

    groups = volumes.list_volume_groups()
    if not groups:
        raise ConfigurationError("No volume groups found")
    console.print("Available volume groups:")
    for index, name in enumerate(groups, start=1):
        console.print(f"  {index}) {name}")
    while True:
        answer = typer.prompt("Select the VG the LV(s) should be restored in").strip()
        if answer in groups:
            return answer
        if answer.isdigit() and 1 <= int(answer) <= len(groups):
            return groups[int(answer) - 1]
        console.print(f"[red]✗[/red] Not a listed volume group: {escape(answer)}")


def confirm_prompt(interactive: bool) -> Callable[[str], bool]:
    """Confirmation callback; declines everything when nobody can answer."""
    if not interactive:
        return lambda question: False
    return lambda question: typer.confirm(question, default=False)


def handle_operation_error(console: Console, operation: str, error: Exception) -> NoReturn:
    """Handle operation errors with the FAILED banner and the right exit code."""
    print_failed(console, f"Error {operation}: {error}")
    code = error.exit_code if isinstance(error, Interrupted) else 1
    raise typer.Exit(code)

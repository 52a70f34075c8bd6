# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/cli/main.py

"""
lvm-restic command line.

    lvm-restic <repo> <command> <lv_name|path-to-list> [options]

The positional form is kept from the shell tool this replaces, so existing
cron entries keep working. The command word is dispatched here rather than
through typer subcommands because it comes after the repository name.
"""

# Standard library imports
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

# Third-party imports
import typer
from rich.console import Console

# Local imports
from lvmrestic.cli.utils import (
    build_coordinator, choose_volume_group, confirm_prompt, handle_operation_error,
    is_interactive, load_app_config, load_repository_config, validate_repository_access
)
from lvmrestic.core.context import RunContext
from lvmrestic.core.jobs import BatchResult
from lvmrestic.core.worklist import resolve_work_list
from lvmrestic.storage.restic import VOLUME_TAG, ResticClient
from lvmrestic.storage.transfer import TransferMode
from lvmrestic.system.display import (
    entries_to_table, print_all_done, print_batch_summary, print_failed, print_usage
)
from lvmrestic.system.exceptions import LvmResticError
from lvmrestic.system.logging_setup import setup_logging

RESTORE = "restore"
LIST = "list"
CLEANUP = "cleanup"
HELP = "help"

app = typer.Typer(
    help="""lvm-restic - LVM snapshot backups into restic repositories

[bold blue]Backup:[/bold blue] block-raw-backup, block-compressed-backup, file-level-backup
[bold green]Restore:[/bold green] restore
[bold magenta]Maintenance:[/bold magenta] list, cleanup
""",
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        try:
            pkg_version = version("lvmrestic")
        except PackageNotFoundError as e:
            handle_operation_error(console, "retrieving version", e)
        console.print(f"lvm-restic version {pkg_version}")
        raise typer.Exit()


@app.command()
def run(
    repo: Optional[str] = typer.Argument(None, help="Repository name (config in repositories_dir)"),
    command: Optional[str] = typer.Argument(None, help="What to do, see `lvm-restic help`"),
    target: Optional[str] = typer.Argument(None, help="LV name without VG, or path to a list of LV names"),
    volume_group: Optional[str] = typer.Option(None, "--volume-group", "-g",
                                               help="Volume group for restored LVs"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Reuse existing LVs on restore without asking"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop a batch at the first failed LV"),
    no_telemetry: bool = typer.Option(False, "--no-telemetry", help="Do not report metrics to Zabbix"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress transfer output"),
    show_version: Optional[bool] = typer.Option(None, "--version", callback=version_callback,
                                                is_eager=True, help="Show version and exit"),
) -> None:
    """Back up or restore logical volumes through LVM snapshots and restic."""
    if repo is None or repo == HELP or command == HELP:
        print_usage(console)
        raise typer.Exit()
    if command is None:
        print_usage(console)
        raise typer.Exit(1)

    mode = TransferMode.parse(command)
    if mode is None and command not in (RESTORE, LIST, CLEANUP):
        print_failed(console, f"Unknown command: {command}")
        print_usage(console)
        raise typer.Exit(1)
    if target is None and command not in (LIST, CLEANUP):
        print_failed(console, f"{command} needs an LV name or a list file")
        raise typer.Exit(1)

    setup_logging(verbose=verbose)
    config = load_app_config(console, verbose=verbose)
    setup_logging(local_log=config.local_log, verbose=verbose, repo_name=repo)
    repository = load_repository_config(console, repo, config)

    ctx = RunContext(config=config, repository=repository, console=console, verbose=verbose,
                     quiet=quiet, assume_yes=yes, fail_fast=fail_fast, skip_telemetry=no_telemetry)
    client = ResticClient(repository, binary=config.restic_binary)
    if command != CLEANUP:
        validate_repository_access(console, client, verbose=verbose)

    try:
        if mode is not None:
            result = _backup(ctx, client, mode, target)
        elif command == RESTORE:
            result = _restore(ctx, client, target, volume_group)
        elif command == LIST:
            _list(ctx, client, target)
            return
        else:
            _cleanup(ctx, client)
            return
    except (LvmResticError, OSError) as e:
        target_name = ctx.current_target or target or repo
        handle_operation_error(console, f"processing {target_name}", e)

    _finish(result)


def _backup(ctx: RunContext, client: ResticClient, mode: TransferMode, target: str) -> BatchResult:
    work_list = resolve_work_list(target)
    coordinator = build_coordinator(ctx, client)
    return coordinator.run_backup(work_list, mode)


def _restore(ctx: RunContext, client: ResticClient, target: str,
             volume_group: Optional[str]) -> BatchResult:
    work_list = resolve_work_list(target)
    coordinator = build_coordinator(ctx, client)
    interactive = is_interactive()
    vg_name = choose_volume_group(console, coordinator.volumes, volume_group, interactive)
    return coordinator.run_restore(work_list, vg_name, confirm_prompt(interactive))


def _list(ctx: RunContext, client: ResticClient, target: Optional[str]) -> None:
    entries = client.find_entries(tags=[VOLUME_TAG])
    if target:
        entries = [e for e in entries if target in e.tags]
    if not entries:
        console.print(f"No volume backups in {ctx.repository.name}")
        return
    console.print(entries_to_table(entries))


def _cleanup(ctx: RunContext, client: ResticClient) -> None:
    coordinator = build_coordinator(ctx, client)
    removed = coordinator.snapshots.sweep()
    if removed:
        console.print(f"Removed {len(removed)} snapshot(s): " + ", ".join(s.path for s in removed))
    else:
        console.print("No leftover snapshots")


def _finish(result: BatchResult) -> None:
    print_batch_summary(
        console,
        [o.target for o in result.succeeded],
        [(o.target, str(o.error)) for o in result.failed],
    )
    if result.sweep_failed:
        print_failed(console, "Leftover snapshots could not be removed, check `lvs`")
        raise typer.Exit(1)
    if result.failed:
        print_failed(console, f"{len(result.failed)} of "
                              f"{len(result.failed) + len(result.succeeded)} LV(s) failed")
        raise typer.Exit(1)
    print_all_done(console)


# =============================================================================
# ENTRY POINT
# =============================================================================

def main() -> None:  # pragma: no cover - entry point
    """Entry point for the lvm-restic CLI application."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()

# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/display.py

# Third-party imports
import humanize
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Local imports
from lvmrestic.storage.restic import RepositoryEntry

USAGE = """[bold]Usage:[/bold]
  lvm-restic [repo_name] [command] [lv_name|path-to-list]

[bold]Commands:[/bold]
  block-raw-backup          Snapshot the LV and stream the device to restic
  block-compressed-backup   Snapshot the LV and stream the device through pigz to restic
  file-level-backup         Snapshot the LV, mount it read-only and back up its files
  restore                   Restore logical volume(s) from their latest block backup
  list                      List volume backups in the repository
  cleanup                   Remove leftover *_snapshot volumes

[bold]Logical Volume:[/bold]
  Provide the LV name without VG, or the path to a list of LV names.
  Lines starting with # in a list are skipped.

[bold]Options:[/bold]
  --volume-group, -g VG     Volume group for restored LVs
  --yes, -y                 Reuse existing LVs on restore without asking
  --fail-fast               Stop a batch at the first failed volume
  --no-telemetry            Do not report metrics to Zabbix
  --verbose, -v / --quiet, -q
"""


def print_usage(console: Console) -> None:
    console.print(Panel(USAGE, title="[bold blue]LVM & RESTIC BACKUP[/bold blue]",
                        border_style="blue", expand=False))


def print_target_banner(console: Console, action: str, name: str) -> None:
    console.rule(f"[bold blue]{action} {name}[/bold blue]")


def print_failed(console: Console, message: str = "") -> None:
    body = "[bold red]FAILED[/bold red]"
    if message:
        body += f"\n{escape(message)}"
    console.print(Panel(body, border_style="red", expand=False))


def print_all_done(console: Console) -> None:
    console.print(Panel("[bold green]ALL DONE[/bold green]", border_style="green", expand=False))


def print_batch_summary(console: Console, succeeded: list[str], failed: list[tuple[str, str]]) -> None:
    for name in succeeded:
        console.print(f"[green]✓[/green] {escape(name)}")
    for name, reason in failed:
        console.print(f"[red]✗[/red] {escape(name)}: {escape(reason)}")


def entries_to_table(entries: list[RepositoryEntry]) -> Table:
    """Convert repository entries to a rich Table for display."""
    table = Table()
    table.add_column("ID")
    table.add_column("Time")
    table.add_column("Host")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Tags")

    for entry in entries:
        size = entry.size_bytes
        table.add_row(
            entry.short_id,
            entry.time[:19].replace("T", " "),
            entry.hostname,
            entry.filename,
            humanize.naturalsize(size, binary=True) if size is not None else "?",
            ", ".join(entry.tags),
        )
    return table

# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/progress.py

"""
Progress reporting for long-running transfers.

Restores can take hours; the byte count written to the target volume is the
only progress signal available, so that is what the bar tracks.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    Progress, SpinnerColumn, TextColumn, BarColumn, DownloadColumn,
    TransferSpeedColumn, TimeRemainingColumn
)


class TransferProgressReporter:
    """Byte-count progress bar for a single transfer, usable as a context manager."""

    def __init__(self, console: Console, description: str, total_bytes: Optional[int] = None,
                 enabled: bool = True) -> None:
        self.console = console
        self.description = description
        self.total_bytes = total_bytes
        self.enabled = enabled
        self.completed = 0
        self.progress = None
        self.task = None

    def __enter__(self) -> "TransferProgressReporter":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self.enabled:
            return
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console
        )
        self.progress.start()
        self.task = self.progress.add_task(f"[green]{self.description}", total=self.total_bytes)

    def advance(self, nbytes: int) -> None:
        self.completed += nbytes
        if self.progress is not None and self.task is not None:
            self.progress.update(self.task, advance=nbytes)

    def stop(self) -> None:
        if self.progress:
            self.progress.stop()
            self.progress = None

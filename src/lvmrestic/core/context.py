# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/context.py

"""Per-invocation state, passed explicitly to every stage of a run."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from lvmrestic.config.manager import AppConfig, RepositoryConfig


@dataclass
class RunContext:
    config: AppConfig
    repository: RepositoryConfig
    console: Console = field(default_factory=Console)
    verbose: bool = False
    quiet: bool = False
    assume_yes: bool = False
    fail_fast: bool = False
    skip_telemetry: bool = False
    current_target: Optional[str] = None

    @property
    def run_log_path(self) -> Path:
        return self.config.run_log_path

    def echo(self, line: str) -> None:
        """Print one line of transfer output unless running quietly."""
        if not self.quiet:
            self.console.print(line, markup=False, highlight=False)

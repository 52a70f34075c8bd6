# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/telemetry.py

"""
Backup metrics for Zabbix.

Metrics are scraped from the current-run transfer log after each volume and
pushed with ``zabbix_sender``. Nothing in here may fail a backup: missing
tooling disables reporting, and every error is logged and swallowed at the
reporter boundary.
"""

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from lvmrestic.config.manager import TelemetrySettings
from lvmrestic.core.retry import RetryableOperation, RetryConfig
from lvmrestic.storage.sizes import parse_size, parse_duration
from lvmrestic.system.exceptions import AdapterError, TelemetryError
from lvmrestic.system.execution import CommandExecutor as ce

_ADDED_RE = re.compile(r"^Added to the repo(?:sitory)?:\s+(\d+(?:[.,]\d+)?\s*[KMGTPE]?i?B)", re.MULTILINE)
_SNAPSHOT_RE = re.compile(r"^snapshot (\S+) saved\s*$", re.MULTILINE)
_PROCESSED_RE = re.compile(
    r"^processed \d+ files?, (\d+(?:[.,]\d+)?\s*[KMGTPE]?i?B) in (\d+(?::\d+){0,2})\s*$",
    re.MULTILINE,
)


@dataclass
class BackupMetrics:
    timestamp: int
    added_bytes: Optional[int] = None
    snapshot_id: Optional[str] = None
    processed_seconds: Optional[int] = None
    processed_bytes: Optional[int] = None


def parse_run_log(text: str, timestamp: int) -> BackupMetrics:
    """Extract metrics from restic's backup output.

    Raises:
        TelemetryError: If none of the expected summary lines is present
    """
    # Keep only the final redraw of carriage-return progress lines
    text = "\n".join(line.rsplit("\r", 1)[-1] for line in text.splitlines())
    metrics = BackupMetrics(timestamp=timestamp)
    try:
        match = _ADDED_RE.search(text)
        if match:
            metrics.added_bytes = parse_size(match.group(1))
        match = _SNAPSHOT_RE.search(text)
        if match:
            metrics.snapshot_id = match.group(1)
        match = _PROCESSED_RE.search(text)
        if match:
            metrics.processed_bytes = parse_size(match.group(1))
            metrics.processed_seconds = parse_duration(match.group(2))
    except ValueError as e:
        raise TelemetryError(f"Could not parse backup log: {e}") from e

    if metrics.snapshot_id is None and metrics.added_bytes is None and metrics.processed_bytes is None:
        raise TelemetryError("No backup summary found in run log")
    return metrics


class ZabbixReporter:
    """Forward backup metrics to Zabbix, degrading to a no-op."""

    def __init__(self, settings: TelemetrySettings, repo_name: str,
                 sleep: Optional[Callable[[float], None]] = None) -> None:
        self.settings = settings
        self.repo_name = repo_name
        self._sleep = sleep
        self.enabled = settings.enabled

    def check_requirements(self) -> bool:
        """Disable reporting unless the agent, sender and discovery script are all present."""
        if not self.enabled:
            return False
        problems = []
        if not self._agent_active():
            problems.append(f"{self.settings.agent_service} is not running")
        if shutil.which(self.settings.sender) is None:
            problems.append(f"{self.settings.sender} is not installed")
        if not self.settings.discovery_script.is_file():
            problems.append(f"discovery script {self.settings.discovery_script} is missing")

        if problems:
            logger.warning(f"Skipping Zabbix reporting: {'; '.join(problems)}")
            self.enabled = False
        return self.enabled

    def _agent_active(self) -> bool:
        if shutil.which("systemctl") is None:
            return False
        cmd = ["systemctl", "is-active", "--quiet", self.settings.agent_service]
        return ce.run_local(cmd, check=False).success

    def discover(self, target: str) -> None:
        """Announce the volumes of this run so Zabbix creates their items."""
        if not self.enabled:
            return
        try:
            env = dict(os.environ, REPO=self.repo_name, LV_TO_BACKUP=target)
            result = ce.run_local([str(self.settings.discovery_script)], env=env)
            self._send(["--key", self.settings.discovery_key, "--value", result.stdout.strip()])
        except (AdapterError, TelemetryError, OSError) as e:
            logger.error(f"Zabbix discovery failed: {e}")

    def report(self, volume_name: str, run_log: Path) -> Optional[BackupMetrics]:
        """Parse run_log and send its metrics. Never raises."""
        if not self.enabled:
            return None
        try:
            metrics = parse_run_log(run_log.read_text(encoding="utf-8", errors="replace"),
                                    timestamp=int(run_log.stat().st_mtime))
        except (OSError, TelemetryError) as e:
            logger.error(f"Could not extract metrics for {volume_name}: {e}")
            return None

        logger.info(f"Bytes added: {metrics.added_bytes}, snapshot: {metrics.snapshot_id}, "
                    f"processed {metrics.processed_bytes} bytes in {metrics.processed_seconds}s")
        payload = self.format_samples(volume_name, metrics)
        config = RetryConfig.fixed(attempts=2, delay=self.settings.retry_delay_seconds)
        kwargs = {"sleep": self._sleep} if self._sleep else {}
        try:
            with RetryableOperation("Sending metrics to Zabbix", config,
                                    (TelemetryError,), **kwargs) as op:
                op.execute(self._send, ["--with-timestamps", "--input-file", "-"], payload)
        except TelemetryError as e:
            logger.error(f"Metrics for {volume_name} were not delivered: {e}")
        return metrics

    def format_samples(self, volume_name: str, metrics: BackupMetrics) -> str:
        key = f"[{volume_name}.{self.repo_name}]"
        values = {
            "added": metrics.added_bytes,
            "snapshotid": metrics.snapshot_id,
            "processedtime": metrics.processed_seconds,
            "processedbytes": metrics.processed_bytes,
        }
        lines = [
            f"- restic.backup.{name}.{key} {metrics.timestamp} {value}"
            for name, value in values.items() if value is not None
        ]
        return "\n".join(lines) + "\n"

    def _send(self, args: list[str], stdin: Optional[str] = None) -> None:
        cmd = [self.settings.sender, "--config", str(self.settings.agent_config), *args]
        try:
            result = ce.run_local(cmd, check=False, input=stdin)
        except OSError as e:
            raise TelemetryError(f"{self.settings.sender} could not be run: {e}") from e
        if not result.success:
            raise TelemetryError(
                f"{self.settings.sender} exited with {result.returncode}: "
                f"{(result.stdout + result.stderr).strip()}"
            )

# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/jobs.py

"""
Batch coordination of backups and restores.

Every name in the work list is validated before the first snapshot or volume
is created; a single missing name aborts the whole batch untouched. After
that, targets run strictly one after another:

    gate -> snapshot create -> transfer -> snapshot destroy -> telemetry

A failed target is recorded and the batch moves on (best-effort) unless the
context asks for fail-fast. Interrupts, gate timeouts and missing tools end
the batch. The whole loop runs inside an InterruptGuard whose exit sweeps
every remaining ``*_snapshot`` volume.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

import humanize
from loguru import logger

from lvmrestic.core.context import RunContext
from lvmrestic.core.telemetry import BackupMetrics, ZabbixReporter
from lvmrestic.core.worklist import WorkList, validate_volumes
from lvmrestic.storage.protocols import VolumeManager
from lvmrestic.storage.restic import RepositoryEntry, ResticClient
from lvmrestic.storage.snapshots import SnapshotManager
from lvmrestic.storage.transfer import TransferJob, TransferMode, TransferPipeline
from lvmrestic.storage.volumes import Volume
from lvmrestic.system.display import print_target_banner
from lvmrestic.system.exceptions import (
    AdapterError, EntryNotFoundError, GateTimeoutError, Interrupted, LvmResticError,
    MissingDependency, RestoreAbortedError, VolumeNotFoundError
)
from lvmrestic.system.locking import InterruptGuard, ProcessGate
from lvmrestic.system.progress import TransferProgressReporter

# These end the batch instead of failing just one target
_BATCH_FATAL = (Interrupted, GateTimeoutError, MissingDependency)


@dataclass
class JobOutcome:
    target: str
    ok: bool
    error: Optional[Exception] = None
    metrics: Optional[BackupMetrics] = None


@dataclass
class BatchResult:
    succeeded: list[JobOutcome] = field(default_factory=list)
    failed: list[JobOutcome] = field(default_factory=list)
    sweep_failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.sweep_failed

    def add(self, outcome: JobOutcome) -> None:
        (self.succeeded if outcome.ok else self.failed).append(outcome)


class JobCoordinator:
    """Drive each target of a work list through the snapshot lifecycle."""

    def __init__(self, ctx: RunContext, volumes: VolumeManager, snapshots: SnapshotManager,
                 transfer: TransferPipeline, gate: ProcessGate, client: ResticClient,
                 reporter: Optional[ZabbixReporter] = None) -> None:
        self.ctx = ctx
        self.volumes = volumes
        self.snapshots = snapshots
        self.transfer = transfer
        self.gate = gate
        self.client = client
        self.reporter = reporter
        self._result: Optional[BatchResult] = None
        self._guard: Optional[InterruptGuard] = None

    # ---- Backup ----

    def run_backup(self, work_list: WorkList, mode: TransferMode) -> BatchResult:
        logger.info(f"Verifying that all {len(work_list)} listed LVs exist")
        targets = validate_volumes(work_list, self.volumes)
        self.transfer.preflight(mode)
        self._prepare_telemetry(work_list)

        self._result = result = BatchResult()
        with InterruptGuard(cleanup=self._final_sweep) as self._guard:
            for volume in targets:
                outcome = self._backup_one(volume, mode)
                result.add(outcome)
                if not outcome.ok and self.ctx.fail_fast:
                    logger.error(f"Stopping batch after failure of {volume.name}")
                    break

        if result.ok:
            self.ctx.run_log_path.unlink(missing_ok=True)
        return result

    def _backup_one(self, volume: Volume, mode: TransferMode) -> JobOutcome:
        self.ctx.current_target = volume.name
        print_target_banner(self.ctx.console, "Starting backup of LV", volume.name)
        try:
            self.gate.wait_until_clear()
            with self.snapshots.acquire(volume) as snapshot:
                self.transfer.backup(TransferJob(volume, mode, snapshot))
        except _BATCH_FATAL:
            raise
        except (LvmResticError, OSError) as e:
            self._raise_if_interrupted(e)
            logger.error(f"Backup of {volume.name} failed: {e}")
            return JobOutcome(volume.name, ok=False, error=e)
        finally:
            self.ctx.current_target = None

        return JobOutcome(volume.name, ok=True, metrics=self._report(volume.name))

    def _raise_if_interrupted(self, error: Exception) -> None:
        """A signal already arrived: no per-target error may hide it."""
        if self._guard is not None and self._guard.received is not None:
            raise Interrupted(self._guard.received) from error

    def _prepare_telemetry(self, work_list: WorkList) -> None:
        if self.reporter is None:
            return
        if self.ctx.skip_telemetry:
            self.reporter.enabled = False
            return
        if self.reporter.check_requirements():
            self.reporter.discover(work_list.target)

    def _report(self, volume_name: str) -> Optional[BackupMetrics]:
        if self.reporter is None or self.ctx.skip_telemetry:
            return None
        return self.reporter.report(volume_name, self.ctx.run_log_path)

    def _final_sweep(self) -> None:
        try:
            self.snapshots.sweep()
        except AdapterError as e:
            logger.error(f"Final snapshot cleanup failed, check `lvs` by hand: {e}")
            if self._result is not None:
                self._result.sweep_failed = True

    # ---- Restore ----

    def find_restore_entries(self, work_list: WorkList) -> dict[str, RepositoryEntry]:
        """Latest block-level entry per name, or fail for all names without one."""
        entries = {}
        missing = []
        for name in work_list:
            candidates = [e for e in (self.client.find_latest(f"{name}.img.gz"),
                                      self.client.find_latest(f"{name}.img")) if e is not None]
            if not candidates:
                missing.append(name)
                continue
            entries[name] = max(candidates, key=lambda e: e.time)
        if missing:
            raise EntryNotFoundError(
                f"No block-level backup found for: {', '.join(missing)}", names=missing
            )
        return entries

    def run_restore(self, work_list: WorkList, vg_name: str,
                    confirm: Callable[[str], bool]) -> BatchResult:
        if not self.volumes.volume_group_exists(vg_name):
            raise VolumeNotFoundError(f"Volume group {vg_name} does not exist", names=[vg_name])
        entries = self.find_restore_entries(work_list)

        self._result = result = BatchResult()
        with InterruptGuard(cleanup=self._final_sweep) as self._guard:
            for name in work_list:
                outcome = self._restore_one(name, entries[name], vg_name, confirm)
                result.add(outcome)
                if not outcome.ok and self.ctx.fail_fast:
                    break
        return result

    def _restore_one(self, name: str, entry: RepositoryEntry, vg_name: str,
                     confirm: Callable[[str], bool]) -> JobOutcome:
        self.ctx.current_target = name
        print_target_banner(self.ctx.console, "Restoring LV", name)
        try:
            target = self._restore_target(name, entry, vg_name, confirm)
            self.gate.wait_until_clear()
            with TransferProgressReporter(self.ctx.console, f"Restoring {name}",
                                          total_bytes=entry.size_bytes,
                                          enabled=not self.ctx.quiet) as progress:
                self.transfer.restore(entry, target, progress=progress.advance)
        except _BATCH_FATAL:
            raise
        except (LvmResticError, OSError) as e:
            self._raise_if_interrupted(e)
            logger.error(f"Restore of {name} failed: {e}")
            return JobOutcome(name, ok=False, error=e)
        finally:
            self.ctx.current_target = None
        return JobOutcome(name, ok=True)

    def _restore_target(self, name: str, entry: RepositoryEntry, vg_name: str,
                        confirm: Callable[[str], bool]) -> Volume:
        size = entry.size_bytes
        if size is None:
            raise AdapterError(f"Entry {entry.short_id} for {name} carries no size tag")
        wanted = humanize.naturalsize(size, binary=True)
        logger.info(f"LV {name}: {wanted} from entry {entry.short_id} ({entry.time})")

        existing = self.volumes.find_volume(name)
        if existing is None:
            logger.info(f"Creating LV {name}, {wanted} on {vg_name}")
            return self.volumes.create_volume(name, size, vg_name)

        have = humanize.naturalsize(existing.size_bytes, binary=True)
        question = (f"There is already an LV with the same name in {existing.path}. "
                    f"Its size is {have}, the size of the LV to restore is {wanted}. "
                    f"Do you want to use the existing LV?")
        if not (self.ctx.assume_yes or confirm(question)):
            raise RestoreAbortedError(f"Please rename/remove the LV {name} manually!")
        if existing.size_bytes < size:
            logger.warning(f"Existing LV {existing.path} ({have}) is smaller than the backup ({wanted})")
        return existing

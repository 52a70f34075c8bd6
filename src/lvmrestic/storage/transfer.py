# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/transfer.py

"""
Transfer modes between snapshots and the restic repository.

Backup modes:
- block-raw-backup: stream the snapshot device into ``restic backup --stdin``
- block-compressed-backup: same, through ``pigz --fast --rsyncable``
- file-level-backup: mount the snapshot read-only and back up its tree

Restore streams an entry back through ``restic dump`` (and ``unpigz`` when
it was compressed) into a target volume.
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

import humanize
import psutil
from loguru import logger

from lvmrestic.config.manager import AppConfig
from lvmrestic.storage.pipeline import Pipeline, PipelineResult
from lvmrestic.storage.restic import COMPRESSED_TAG, VOLUME_TAG, RepositoryEntry, ResticClient
from lvmrestic.storage.sizes import size_tags
from lvmrestic.storage.volumes import Snapshot, Volume
from lvmrestic.system.exceptions import AdapterError
from lvmrestic.system.execution import CommandExecutor as ce

DISK_USAGE_WARN_PERCENT = 80


class TransferMode(str, Enum):
    BLOCK_RAW = "block-raw-backup"
    BLOCK_COMPRESSED = "block-compressed-backup"
    FILE_LEVEL = "file-level-backup"

    @property
    def is_block(self) -> bool:
        return self is not TransferMode.FILE_LEVEL

    @classmethod
    def parse(cls, value: str) -> Optional["TransferMode"]:
        value = _MODE_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


# Command names used by earlier releases
_MODE_ALIASES = {
    "block-level-backup": TransferMode.BLOCK_RAW.value,
    "block-level-gz-backup": TransferMode.BLOCK_COMPRESSED.value,
}


@dataclass
class TransferJob:
    """One volume to back up in one mode."""
    volume: Volume
    mode: TransferMode
    snapshot: Optional[Snapshot] = None

    @property
    def tags(self) -> list[str]:
        tags = [VOLUME_TAG, self.mode.value]
        if self.mode is TransferMode.BLOCK_COMPRESSED:
            tags.append(COMPRESSED_TAG)
        tags.append(self.volume.name)
        tags.extend(size_tags(self.volume.size_bytes))
        return tags

    @property
    def stream_name(self) -> str:
        if self.mode is TransferMode.BLOCK_COMPRESSED:
            return f"{self.volume.name}.img.gz"
        return f"{self.volume.name}.img"


class TransferLog:
    """Tee transfer output into the per-mode log, the current-run log and an echo callback."""

    def __init__(self, mode_log: Path, run_log: Path,
                 echo: Optional[Callable[[str], None]] = None) -> None:
        self.mode_log = mode_log
        self.run_log = run_log
        self.echo = echo
        self._files = []
        self._pending = b""

    def __enter__(self) -> "TransferLog":
        self.run_log.parent.mkdir(parents=True, exist_ok=True)
        self.mode_log.parent.mkdir(parents=True, exist_ok=True)
        self._files = [self.mode_log.open("ab"), self.run_log.open("wb")]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._pending and self.echo:
            self.echo(self._pending.decode("utf-8", errors="replace"))
        self._pending = b""
        for f in self._files:
            f.close()
        self._files = []

    def write(self, chunk: bytes) -> None:
        for f in self._files:
            f.write(chunk)
            f.flush()
        if self.echo is None:
            return
        data = self._pending + chunk
        *lines, self._pending = data.split(b"\n")
        for line in lines:
            # restic redraws its progress line with carriage returns
            self.echo(line.rsplit(b"\r", 1)[-1].decode("utf-8", errors="replace"))


class TransferPipeline:
    """Move data between a snapshot (or target volume) and the repository."""

    def __init__(self, config: AppConfig, client: ResticClient,
                 echo: Optional[Callable[[str], None]] = None,
                 pipeline_factory: Callable[..., Pipeline] = Pipeline) -> None:
        self.config = config
        self.client = client
        self.echo = echo
        self.pipeline_factory = pipeline_factory

    def preflight(self, mode: TransferMode) -> None:
        """Check the tools a mode needs before any snapshot exists."""
        if mode is TransferMode.BLOCK_COMPRESSED:
            ce.require(self.config.compressor[0])
        if mode is TransferMode.FILE_LEVEL and not self.config.exclude_file.is_file():
            logger.warning(f"Exclude file {self.config.exclude_file} not found, backing up everything")

    def backup(self, job: TransferJob) -> PipelineResult:
        if job.snapshot is None:
            raise ValueError(f"No snapshot attached to the job for {job.volume.name}")
        logger.info(f"Starting {job.mode.value} of {job.volume.name}")
        with TransferLog(self.config.mode_log_path(job.mode.value),
                         self.config.run_log_path, self.echo) as log:
            if job.mode is TransferMode.FILE_LEVEL:
                return self._file_level(job, log)
            return self._block(job, log)

    def _block(self, job: TransferJob, log: TransferLog) -> PipelineResult:
        stages = []
        if job.mode is TransferMode.BLOCK_COMPRESSED:
            stages.append(list(self.config.compressor))
        stages.append(self.client.backup_stdin_command(job.stream_name, job.tags))
        pipeline = self.pipeline_factory(
            stages,
            source=Path(job.snapshot.path),
            chunk_size=self.config.chunk_size,
            env=self.client.env,
            cwd=self.config.workdir,
        )
        return pipeline.run(sink=log.write)

    def _file_level(self, job: TransferJob, log: TransferLog) -> PipelineResult:
        exclude = self.config.exclude_file if self.config.exclude_file.is_file() else None
        with self.mounted(job.snapshot) as mountpoint:
            self.check_free_space(mountpoint, job.snapshot)
            pipeline = self.pipeline_factory(
                [self.client.backup_path_command(mountpoint, job.tags, exclude)],
                env=self.client.env,
                cwd=self.config.workdir,
            )
            return pipeline.run(sink=log.write)

    @contextmanager
    def mounted(self, snapshot: Snapshot) -> Iterator[Path]:
        """Mount snapshot read-only on a private mount point for the block.

        The filesystem is unmounted and the mount point removed whatever
        happens inside the block.
        """
        mountpoint = self.config.mount_base / snapshot.name
        mountpoint.mkdir(parents=True, exist_ok=True)
        os.chmod(mountpoint, 0o700)
        try:
            ce.run_sudo(["mount", "-o", "ro", snapshot.path, str(mountpoint)])
        except AdapterError:
            mountpoint.rmdir()
            raise
        try:
            yield mountpoint
        finally:
            self._unmount(mountpoint)

    def _unmount(self, mountpoint: Path) -> None:
        result = ce.run_sudo(["umount", str(mountpoint)], check=False)
        if not result.success:
            logger.error(f"umount {mountpoint} failed ({result.stderr.strip()}), detaching lazily")
            ce.run_sudo(["umount", "-l", str(mountpoint)])
        mountpoint.rmdir()

    def check_free_space(self, mountpoint: Path, snapshot: Snapshot) -> None:
        usage = psutil.disk_usage(str(mountpoint))
        if usage.percent > DISK_USAGE_WARN_PERCENT:
            logger.warning(
                f"Volume {snapshot.path} has only "
                f"{humanize.naturalsize(usage.free, binary=True)} free space left."
            )

    def restore(self, entry: RepositoryEntry, target: Volume,
                progress: Optional[Callable[[int], None]] = None) -> PipelineResult:
        stages = [self.client.dump_command(entry)]
        if entry.compressed:
            ce.require(self.config.decompressor[0])
            stages.append(list(self.config.decompressor))
        pipeline = self.pipeline_factory(
            stages,
            chunk_size=self.config.chunk_size,
            env=self.client.env,
            cwd=self.config.workdir,
            merge_stderr=False,
        )
        logger.info(f"Restoring {entry.filename} ({entry.short_id}) into {target.path}")
        with open(target.path, "wb") as device:
            def sink(chunk: bytes) -> None:
                device.write(chunk)
                if progress is not None:
                    progress(len(chunk))
            return pipeline.run(sink=sink)

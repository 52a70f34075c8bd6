# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/snapshots.py

"""Copy-on-write snapshot lifecycle for logical volumes."""

import time
from contextlib import contextmanager
from typing import Callable, Iterator

from loguru import logger

from lvmrestic.storage.protocols import VolumeManager
from lvmrestic.storage.volumes import Snapshot, Volume
from lvmrestic.system.exceptions import AdapterError


class SnapshotManager:
    """Create and destroy the ``<volume>_snapshot`` snapshot of a volume.

    At most one snapshot per derived name may exist. One found before
    creation is a leftover of a crashed run: it is removed after a warning
    and a grace period, so an operator watching the console can still cancel.
    """

    def __init__(self, volumes: VolumeManager, buffer_size: str = "10G",
                 grace_seconds: float = 5.0, sleep: Callable[[float], None] = time.sleep) -> None:
        self.volumes = volumes
        self.buffer_size = buffer_size
        self.grace_seconds = grace_seconds
        self._sleep = sleep

    def ensure_clean(self, snapshot_name: str, snapshot_path: str) -> bool:
        """Remove a stale snapshot at this path. Returns True if one was removed."""
        stale = [s for s in self.volumes.list_active_snapshots() if s.path == snapshot_path]
        if not stale:
            return False

        logger.warning(f"{snapshot_name} already exists. Removing it in {self.grace_seconds:g} seconds!")
        if self.grace_seconds > 0:
            self._sleep(self.grace_seconds)
        for snapshot in stale:
            self.volumes.remove_volume(snapshot.path)
        return True

    def create(self, volume: Volume) -> Snapshot:
        snapshot = Snapshot.for_volume(volume, self.buffer_size)
        path = self.volumes.create_snapshot(volume, snapshot.name, self.buffer_size)
        if path != snapshot.path:
            snapshot = Snapshot(snapshot.name, path, volume, self.buffer_size)
        logger.info(f"Created snapshot {snapshot.path} ({self.buffer_size} change buffer)")
        return snapshot

    def destroy(self, snapshot: Snapshot) -> None:
        """Force-remove the snapshot. Removing an absent snapshot is not an error."""
        if self.volumes.remove_volume(snapshot.path):
            logger.info(f"Removed snapshot {snapshot.path}")
        else:
            logger.debug(f"Snapshot {snapshot.path} was already removed")

    @contextmanager
    def acquire(self, volume: Volume) -> Iterator[Snapshot]:
        """Snapshot volume for the duration of the block.

        The snapshot is destroyed on every exit path: normal return, a
        transfer error, or an Interrupted raised from the signal handler.
        When the block is already failing, a failed removal is logged and
        the original exception keeps propagating.
        """
        expected = Snapshot.for_volume(volume, self.buffer_size)
        self.ensure_clean(expected.name, expected.path)
        snapshot = self.create(volume)
        try:
            yield snapshot
        except BaseException:
            try:
                self.destroy(snapshot)
            except AdapterError as e:
                logger.error(f"Could not remove snapshot {snapshot.path}: {e}")
            raise
        self.destroy(snapshot)

    def sweep(self) -> list[Snapshot]:
        """Remove every active snapshot following the naming convention."""
        active = self.volumes.list_active_snapshots()
        if not active:
            return []
        logger.warning("Removing the following active snapshots: "
                       + ", ".join(s.path for s in active))
        removed = []
        for snapshot in active:
            if self.volumes.remove_volume(snapshot.path):
                removed.append(snapshot)
        return removed

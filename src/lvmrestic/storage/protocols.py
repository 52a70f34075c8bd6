# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/protocols.py

"""
Interfaces of the two external collaborators.

The orchestration layer only talks to LVM and restic through these, which is
what lets the tests swap in in-memory fakes.
"""

from typing import Optional, Protocol

from lvmrestic.storage.volumes import Snapshot, Volume


class VolumeManager(Protocol):

    def list_volumes(self) -> list[Volume]:
        ...

    def find_volume(self, name: str) -> Optional[Volume]:
        ...

    def resolve_volume(self, name: str) -> Volume:
        """Return the volume whose path ends in /name.

        Raises:
            VolumeNotFoundError: If no volume matches exactly
        """
        ...

    def list_active_snapshots(self) -> list[Snapshot]:
        ...

    def list_volume_groups(self) -> list[str]:
        ...

    def volume_group_exists(self, name: str) -> bool:
        ...

    def create_snapshot(self, volume: Volume, snapshot_name: str, buffer_size: str) -> str:
        """Create a copy-on-write snapshot and return its device path."""
        ...

    def create_volume(self, name: str, size_bytes: int, vg_name: str) -> Volume:
        ...

    def remove_volume(self, path: str) -> bool:
        """Force-remove; False when the volume did not exist."""
        ...

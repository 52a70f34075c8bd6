# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/volumes.py

"""
LVM inventory adapter.

The only source of truth for whether a logical volume exists, where its
device node lives and how big it is. Queries go through ``lvs``/``vgs`` JSON
reports; mutations (snapshot and volume creation, removal) through
``lvcreate``/``lvremove``.
"""

import re
from dataclasses import dataclass
from typing import Optional

import orjson
from loguru import logger

from lvmrestic.config.manager import SNAPSHOT_SUFFIX
from lvmrestic.system.exceptions import (
    AdapterError, LVMError, InsufficientSpaceError, VolumeNotFoundError
)
from lvmrestic.system.execution import CommandExecutor as ce
from lvmrestic.storage.sizes import GIB

LVS_FIELDS = "lv_name,vg_name,lv_path,lv_size,lv_attr"

_INSUFFICIENT_SPACE_MARKERS = ("insufficient free space", "insufficient suitable", "not enough free space")
_NOT_FOUND_MARKERS = ("failed to find logical volume", "not found", "doesn't exist", "does not exist")


@dataclass(frozen=True)
class Volume:
    name: str
    vg_name: str
    path: str
    size_bytes: int
    attr: str = ""

    @property
    def size_gib(self) -> float:
        return self.size_bytes / GIB

    @property
    def is_snapshot(self) -> bool:
        # lv_attr type bit: s = snapshot, S = invalid snapshot
        return self.attr[:1] in ("s", "S")


@dataclass(frozen=True)
class Snapshot:
    name: str
    path: str
    origin: Optional[Volume] = None
    buffer_size: Optional[str] = None

    @classmethod
    def for_volume(cls, volume: Volume, buffer_size: Optional[str] = None) -> "Snapshot":
        return cls(
            name=f"{volume.name}{SNAPSHOT_SUFFIX}",
            path=f"{volume.path}{SNAPSHOT_SUFFIX}",
            origin=volume,
            buffer_size=buffer_size,
        )


def name_pattern(name: str) -> re.Pattern:
    """Anchored match on the trailing path segment: lv1 never matches lv10."""
    return re.compile(rf"/{re.escape(name)}$")


def _stderr_has(error: AdapterError, markers: tuple[str, ...]) -> bool:
    stderr = (error.stderr or str(error)).lower()
    return any(marker in stderr for marker in markers)


def _parse_report(stdout: str, section: str, command: list[str]) -> list[dict]:
    try:
        report = orjson.loads(stdout)
        rows = []
        for block in report["report"]:
            rows.extend(block.get(section, []))
        return rows
    except (orjson.JSONDecodeError, KeyError, TypeError) as e:
        raise AdapterError(f"Unexpected output from {command[0]}: {e}", command=command) from e


class LVMVolumeManager:
    """Volume inventory backed by the LVM command line tools."""

    def list_volumes(self) -> list[Volume]:
        cmd = ["lvs", "--reportformat", "json", "--units", "b", "--nosuffix", "-o", LVS_FIELDS]
        result = ce.run_sudo(cmd)
        volumes = []
        for row in _parse_report(result.stdout, "lv", cmd):
            try:
                size = int(float(row.get("lv_size", "0").replace(",", ".")))
            except ValueError:
                raise AdapterError(f"Unexpected lv_size {row.get('lv_size')!r} for {row.get('lv_name')}",
                                   command=cmd)
            volumes.append(Volume(
                name=row["lv_name"],
                vg_name=row["vg_name"],
                path=row.get("lv_path", "").strip(),
                size_bytes=size,
                attr=row.get("lv_attr", ""),
            ))
        return volumes

    def find_volume(self, name: str) -> Optional[Volume]:
        pattern = name_pattern(name)
        for volume in self.list_volumes():
            if volume.path and pattern.search(volume.path):
                return volume
        return None

    def resolve_volume(self, name: str) -> Volume:
        volume = self.find_volume(name)
        if volume is None:
            raise VolumeNotFoundError(f"Cannot find path for {name}", names=[name])
        return volume

    def list_active_snapshots(self) -> list[Snapshot]:
        return [
            Snapshot(name=v.name, path=v.path)
            for v in self.list_volumes()
            if v.is_snapshot and v.path.endswith(SNAPSHOT_SUFFIX)
        ]

    def list_volume_groups(self) -> list[str]:
        cmd = ["vgs", "--reportformat", "json", "-o", "vg_name"]
        result = ce.run_sudo(cmd)
        return [row["vg_name"] for row in _parse_report(result.stdout, "vg", cmd)]

    def volume_group_exists(self, name: str) -> bool:
        return name in self.list_volume_groups()

    def create_snapshot(self, volume: Volume, snapshot_name: str, buffer_size: str) -> str:
        cmd = ["lvcreate", "--quiet", f"-L{buffer_size}", "-s", "-n", snapshot_name, volume.path]
        self._create(cmd, f"snapshot {snapshot_name}")
        return f"{volume.path.rsplit('/', 1)[0]}/{snapshot_name}"

    def create_volume(self, name: str, size_bytes: int, vg_name: str) -> Volume:
        cmd = ["lvcreate", "-y", "-n", name, "-L", f"{int(size_bytes)}b", vg_name]
        self._create(cmd, f"volume {name} on {vg_name}")
        return self.resolve_volume(name)

    def remove_volume(self, path: str) -> bool:
        """Force-remove a volume. Returns False if LVM reports it missing."""
        try:
            ce.run_sudo(["lvremove", "-f", path])
        except AdapterError as e:
            if _stderr_has(e, _NOT_FOUND_MARKERS):
                logger.debug(f"{path} already gone: {e}")
                return False
            raise
        return True

    def _create(self, cmd: list[str], what: str) -> None:
        try:
            ce.run_sudo(cmd)
        except AdapterError as e:
            if _stderr_has(e, _INSUFFICIENT_SPACE_MARKERS):
                raise InsufficientSpaceError(
                    f"Not enough space to create {what}: {e.stderr or e}",
                    command=e.command, returncode=e.returncode, stderr=e.stderr,
                ) from e
            raise LVMError(
                f"LVM refused to create {what}: {e.stderr or e}",
                command=e.command, returncode=e.returncode, stderr=e.stderr,
            ) from e

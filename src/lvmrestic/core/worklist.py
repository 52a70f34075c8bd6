# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/worklist.py

"""Resolve the command-line target into an ordered list of volume names."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

from lvmrestic.storage.protocols import VolumeManager
from lvmrestic.storage.volumes import Volume, name_pattern
from lvmrestic.system.exceptions import ConfigurationError, VolumeNotFoundError

COMMENT_MARKER = "#"


@dataclass
class WorkList:
    target: str
    names: list[str] = field(default_factory=list)
    source: Optional[Path] = None

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


def parse_work_list(lines: Iterable[str]) -> list[str]:
    """Names from a list file: blank lines and lines starting with # are skipped."""
    names = []
    for line in lines:
        name = line.strip()
        if not name or name.startswith(COMMENT_MARKER):
            continue
        names.append(name)
    return names


def resolve_work_list(target: str) -> WorkList:
    """A path to an existing file is a list of names; anything else is one name."""
    path = Path(target)
    if path.is_file():
        try:
            with path.open("r", encoding="utf-8") as f:
                names = parse_work_list(f)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read list {path}: {e}") from e
        if not names:
            raise ConfigurationError(f"List {path} contains no volume names")
        return WorkList(target=target, names=names, source=path)
    if "/" in target:
        raise ConfigurationError(f"Provide the LV name without VG, or an existing list file: {target}")
    return WorkList(target=target, names=[target])


def validate_volumes(work_list: WorkList, volumes: VolumeManager) -> list[Volume]:
    """Resolve every name, or fail for all missing names before anything is touched.

    Raises:
        VolumeNotFoundError: Listing every name that did not resolve
    """
    inventory = volumes.list_volumes()
    resolved = []
    missing = []
    for name in work_list:
        pattern = name_pattern(name)
        match = next((v for v in inventory if v.path and pattern.search(v.path)), None)
        if match is None:
            missing.append(name)
        else:
            resolved.append(match)
    if missing:
        raise VolumeNotFoundError(f"Not all listed LVs exist: {', '.join(missing)}", names=missing)
    return resolved

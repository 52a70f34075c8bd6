# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/restic.py

"""restic command construction and repository queries."""

import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import orjson
from loguru import logger

from lvmrestic.config.manager import RepositoryConfig
from lvmrestic.storage.sizes import parse_size_tags
from lvmrestic.system.exceptions import AdapterError, ConfigurationError
from lvmrestic.system.execution import CommandExecutor as ce

COMPRESSED_TAG = "pigz"
VOLUME_TAG = "LV"


@dataclass
class RepositoryEntry:
    """One restic snapshot holding a volume image or a file tree."""
    snapshot_id: str
    paths: list[str]
    tags: list[str] = field(default_factory=list)
    time: str = ""
    hostname: str = ""
    short_id: str = ""

    @property
    def filename(self) -> str:
        return posixpath.basename(self.paths[0]) if self.paths else ""

    @property
    def size_bytes(self) -> Optional[int]:
        return parse_size_tags(self.tags)

    @property
    def compressed(self) -> bool:
        return self.filename.endswith(".gz") or COMPRESSED_TAG in self.tags

    @classmethod
    def from_json(cls, data: dict) -> "RepositoryEntry":
        return cls(
            snapshot_id=data["id"],
            short_id=data.get("short_id", data["id"][:8]),
            paths=list(data.get("paths") or []),
            tags=list(data.get("tags") or []),
            time=data.get("time", ""),
            hostname=data.get("hostname", ""),
        )


class ResticClient:
    """The backup-repository client, configured for one repository."""

    def __init__(self, repository: RepositoryConfig, binary: str = "restic") -> None:
        self.repository = repository
        self.binary = binary

    @property
    def env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.repository.to_env())
        return env

    def check_available(self) -> str:
        return ce.require(self.binary)

    def check_repository(self) -> None:
        """Fail fast when the repository cannot be opened with the configured credentials."""
        logger.info(f"Looking for restic repository {self.repository.name}")
        result = ce.run_local([self.binary, "cat", "config"], env=self.env, check=False)
        if not result.success:
            raise ConfigurationError(
                f"Cannot open repository {self.repository.name}: {result.stderr.strip() or result.stdout.strip()}"
            )

    # ---- Command builders, run through Pipeline ----

    def _tag_args(self, tags: Iterable[str]) -> list[str]:
        args = []
        for tag in tags:
            args.extend(["--tag", tag])
        return args

    def backup_stdin_command(self, stream_name: str, tags: Iterable[str]) -> list[str]:
        return [self.binary, "backup", "--verbose", *self._tag_args(tags),
                "--stdin", "--stdin-filename", stream_name]

    def backup_path_command(self, path: Path, tags: Iterable[str],
                            exclude_file: Optional[Path] = None) -> list[str]:
        cmd = [self.binary, "backup", "--verbose", *self._tag_args(tags), str(path)]
        if exclude_file is not None:
            cmd.append(f"--exclude-file={exclude_file}")
        return cmd

    def dump_command(self, entry: RepositoryEntry) -> list[str]:
        return [self.binary, "dump", entry.snapshot_id, f"/{entry.filename}"]

    # ---- Queries ----

    def find_entries(self, path: Optional[str] = None, tags: Iterable[str] = (),
                     latest: Optional[int] = None) -> list[RepositoryEntry]:
        cmd = [self.binary, "snapshots", "--json"]
        if path:
            cmd.extend(["--path", path])
        for tag in tags:
            cmd.extend(["--tag", tag])
        if latest:
            cmd.extend(["--latest", str(latest)])
        result = ce.run_local(cmd, env=self.env)
        try:
            data = orjson.loads(result.stdout or "[]")
            entries = [RepositoryEntry.from_json(item) for item in data or []]
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            raise AdapterError(f"Unexpected output from restic snapshots: {e}", command=cmd) from e
        return sorted(entries, key=lambda e: e.time)

    def find_latest(self, filename: str) -> Optional[RepositoryEntry]:
        entries = self.find_entries(path=f"/{filename}", latest=1)
        return entries[-1] if entries else None

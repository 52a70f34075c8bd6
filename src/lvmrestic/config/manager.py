# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/config/manager.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Final

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lvmrestic.system.exceptions import ConfigurationError


# ---- Constants ----

APP_CFG: Final = "lvmrestic.yml"
REPO_CFG_SUFFIX: Final = ".yml"
SNAPSHOT_SUFFIX: Final = "_snapshot"
DEFAULT_CHUNK_SIZE: Final = 4 * 1024 * 1024


def _get_config_search_paths() -> tuple[Path, ...]:
    """Get config file search paths (ordered by priority: lowest to highest).

    Evaluated at call time so environment overrides set by tests apply.
    """
    return (
        Path("/etc/lvmrestic") / APP_CFG,  # System defaults
        Path.home() / ".config" / "lvmrestic" / APP_CFG,  # User config
        Path(os.getenv("XDG_CONFIG_HOME", "")) / "lvmrestic" / APP_CFG,  # XDG override
        Path(os.getenv("LVMRESTIC_CONFIG_HOME", "")) / APP_CFG,  # Explicit override (highest priority)
    )


def _load_merged_config_data(candidates: tuple[Path, ...]) -> dict:
    """Load and merge config data from candidate paths.

    Later files override earlier ones. Unlike repository configs, the
    application config is optional: every field has a default.
    """
    merged_data = {}
    found_configs = []
    empty_candidates = {Path("") / APP_CFG, Path("lvmrestic") / APP_CFG}

    for candidate in candidates:
        if candidate in empty_candidates:  # Skip unset env vars
            continue
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config from {candidate}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {candidate} must contain a mapping")
        merged_data.update(data)
        found_configs.append(str(candidate))
        logger.debug(f"Loaded config from {candidate}")

    if found_configs:
        logger.debug(f"Merged config from: {', '.join(found_configs)}")
    else:
        logger.debug(f"No {APP_CFG} found, using defaults")
    return merged_data


# ---- Application Settings ----

class GateSettings(BaseModel):
    """How long to wait for other backup client processes."""
    process_name: str = "restic"
    poll_interval_seconds: float = 60.0
    # Each further poll waits backoff_factor times longer, up to the cap
    backoff_factor: float = 2.0
    max_poll_interval_seconds: float = 600.0
    # None waits forever, matching the historic behaviour
    max_wait_seconds: Optional[float] = 6 * 60 * 60


class TelemetrySettings(BaseModel):
    """Zabbix monitoring sink settings."""
    enabled: bool = True
    sender: str = "zabbix_sender"
    agent_config: Path = Path("/etc/zabbix/zabbix_agentd.conf")
    agent_service: str = "zabbix-agent"
    discovery_script: Path = Path("/etc/zabbix/scripts/rescript-lvm-discovery.pl")
    discovery_key: str = "rescript.lv.discovery"
    retry_delay_seconds: float = 60.0


class AppConfig(BaseModel):
    """Host-wide settings merged from every lvmrestic.yml found."""
    model_config = ConfigDict(extra="forbid")

    snapshot_buffer: str = "10G"
    log_dir: Path = Path("/var/log/lvm-restic")
    local_log: Optional[Path] = None
    exclude_file: Path = Path("/etc/restic/exclude.txt")
    workdir: Path = Path("/")
    mount_base: Path = Path("/mnt")
    chunk_size: int = DEFAULT_CHUNK_SIZE
    stale_grace_seconds: float = 5.0
    restic_binary: str = "restic"
    compressor: list[str] = Field(default_factory=lambda: ["pigz", "--fast", "--rsyncable"])
    decompressor: list[str] = Field(default_factory=lambda: ["unpigz"])
    repositories_dir: Path = Field(default_factory=lambda: Path.home() / ".config" / "lvmrestic" / "repos")
    gate: GateSettings = Field(default_factory=GateSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    @field_validator("chunk_size")
    @classmethod
    def positive_chunk_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chunk_size must be positive")
        return value

    @property
    def run_log_path(self) -> Path:
        return self.log_dir / "lvm-restic-running.log"

    def mode_log_path(self, mode: str) -> Path:
        return self.log_dir / f"lvm-restic-{mode}.log"

    @classmethod
    def load(cls) -> "AppConfig":
        data = _load_merged_config_data(_get_config_search_paths())
        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


# ---- Repository Config ----

# restic reads its credentials from these environment variables
_ENV_FIELDS: Final[dict[str, str]] = {
    "repository": "RESTIC_REPOSITORY",
    "password": "RESTIC_PASSWORD",
    "password_file": "RESTIC_PASSWORD_FILE",
    "b2_account_id": "B2_ACCOUNT_ID",
    "b2_account_key": "B2_ACCOUNT_KEY",
    "aws_access_key_id": "AWS_ACCESS_KEY_ID",
    "aws_secret_access_key": "AWS_SECRET_ACCESS_KEY",
    "azure_account_name": "AZURE_ACCOUNT_NAME",
    "azure_account_key": "AZURE_ACCOUNT_KEY",
    "google_project_id": "GOOGLE_PROJECT_ID",
    "google_application_credentials": "GOOGLE_APPLICATION_CREDENTIALS",
}


class RepositoryConfig(BaseModel):
    """Credentials and endpoint of one restic repository, loaded by identifier."""
    model_config = ConfigDict(extra="forbid")

    name: str
    repository: str
    password: Optional[str] = None
    password_file: Optional[Path] = None
    b2_account_id: Optional[str] = None
    b2_account_key: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    azure_account_name: Optional[str] = None
    azure_account_key: Optional[str] = None
    google_project_id: Optional[str] = None
    google_application_credentials: Optional[Path] = None
    env: dict[str, str] = Field(default_factory=dict)

    def to_env(self) -> dict[str, str]:
        """Environment variables restic needs for this repository."""
        env = {}
        for field_name, var in _ENV_FIELDS.items():
            value = getattr(self, field_name)
            if value is not None:
                env[var] = str(value)
        env.update(self.env)
        return env

    @classmethod
    def load(cls, name: str, repositories_dir: Path) -> "RepositoryConfig":
        config_path = repositories_dir / f"{name}{REPO_CFG_SUFFIX}"
        if not config_path.is_file():
            raise ConfigurationError(
                f"There is no repository config for [{name}] (looked for {config_path})"
            )
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Repository config {config_path} must contain a mapping")
        data.setdefault("name", name)
        try:
            config = cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid repository config {config_path}: {e}") from e
        if config.password is None and config.password_file is None:
            logger.warning(f"Repository {name} has no password configured, relying on the environment")
        return config


def list_repository_names(repositories_dir: Path) -> list[str]:
    if not repositories_dir.is_dir():
        return []
    return sorted(p.stem for p in repositories_dir.glob(f"*{REPO_CFG_SUFFIX}"))

# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/conftest.py

"""
Shared test fixtures for the lvmrestic test suite.

LVM and restic are replaced by the in-memory fakes in tests/fakes.py;
nothing here needs root, a volume group, or a repository.
"""

import io
import sys

import pytest
from loguru import logger
from rich.console import Console

from lvmrestic.config.manager import AppConfig, RepositoryConfig, TelemetrySettings
from lvmrestic.core.context import RunContext

from tests.fakes import RESTIC_SUMMARY, FakeResticClient, FakeVolumeManager, RecordingPipeline


@pytest.fixture(autouse=True)
def reset_logging():
    """Keep loguru pointed at the real stderr between tests."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def recording_pipeline():
    RecordingPipeline.created = []
    RecordingPipeline.output = RESTIC_SUMMARY
    RecordingPipeline.on_run = None
    yield RecordingPipeline
    RecordingPipeline.created = []
    RecordingPipeline.on_run = None


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        log_dir=tmp_path / "log",
        mount_base=tmp_path / "mnt",
        repositories_dir=tmp_path / "repos",
        exclude_file=tmp_path / "exclude.txt",
        workdir=tmp_path,
        stale_grace_seconds=0,
        telemetry=TelemetrySettings(enabled=False),
    )


@pytest.fixture
def repo_config() -> RepositoryConfig:
    return RepositoryConfig(name="offsite", repository="b2:bucket:/hosts/backup01", password="s3cret")


@pytest.fixture
def fake_volumes(tmp_path) -> FakeVolumeManager:
    return FakeVolumeManager(dev_root=str(tmp_path / "dev"))


@pytest.fixture
def fake_client(repo_config) -> FakeResticClient:
    return FakeResticClient(repo_config)


@pytest.fixture
def run_context(app_config, repo_config) -> RunContext:
    return RunContext(config=app_config, repository=repo_config,
                      console=Console(file=io.StringIO(), width=100), quiet=True)

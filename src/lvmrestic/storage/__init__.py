# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/__init__.py

"""
Storage layer for lvmrestic - everything that touches volumes or the repository.

This module provides abstractions for:
- LVM inventory and snapshot lifecycle
- restic queries and command construction
- Multi-stage transfer pipelines between them
"""

from .volumes import LVMVolumeManager, Snapshot, Volume
from .snapshots import SnapshotManager
from .restic import RepositoryEntry, ResticClient
from .pipeline import Pipeline, PipelineResult
from .transfer import TransferJob, TransferMode, TransferPipeline

__all__ = [
    'LVMVolumeManager',
    'Snapshot',
    'Volume',
    'SnapshotManager',
    'RepositoryEntry',
    'ResticClient',
    'Pipeline',
    'PipelineResult',
    'TransferJob',
    'TransferMode',
    'TransferPipeline',
]

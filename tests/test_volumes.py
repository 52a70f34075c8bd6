# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_volumes.py

"""Tests for the LVM inventory adapter, with lvs/vgs/lvcreate mocked."""

from unittest.mock import patch

import orjson
import pytest
from hypothesis import given, settings, strategies as st

from lvmrestic.core.worklist import WorkList, validate_volumes
from lvmrestic.storage.sizes import GIB
from lvmrestic.storage.volumes import LVMVolumeManager, Snapshot, Volume
from lvmrestic.system.exceptions import (
    AdapterError, InsufficientSpaceError, LVMError, VolumeNotFoundError
)
from lvmrestic.system.execution import CommandExecutor, CommandResult


def lvs_report(*rows) -> str:
    return orjson.dumps({"report": [{"lv": [
        {"lv_name": name, "vg_name": vg, "lv_path": f"/dev/{vg}/{name}",
         "lv_size": str(size), "lv_attr": attr}
        for name, vg, size, attr in rows
    ]}]}).decode()


INVENTORY = lvs_report(
    ("lv1", "vg0", 5 * GIB, "-wi-ao----"),
    ("lv10", "vg0", 10 * GIB, "-wi-ao----"),
    ("data01_snapshot", "vg0", GIB, "swi-a-s---"),
    ("home", "vg1", 20 * GIB, "owi-aos---"),
)


@pytest.fixture
def mock_sudo():
    with patch.object(CommandExecutor, "run_sudo") as mock:
        mock.return_value = CommandResult(0, INVENTORY, "")
        yield mock


class TestInventory:

    def test_list_volumes(self, mock_sudo):
        volumes = LVMVolumeManager().list_volumes()

        assert [v.name for v in volumes] == ["lv1", "lv10", "data01_snapshot", "home"]
        assert volumes[0] == Volume("lv1", "vg0", "/dev/vg0/lv1", 5 * GIB, "-wi-ao----")
        cmd = mock_sudo.call_args.args[0]
        assert cmd[:3] == ["lvs", "--reportformat", "json"]
        assert "--nosuffix" in cmd

    def test_find_volume_matches_exact_name_only(self, mock_sudo):
        manager = LVMVolumeManager()

        assert manager.find_volume("lv1").path == "/dev/vg0/lv1"
        assert manager.find_volume("lv10").path == "/dev/vg0/lv10"
        assert manager.find_volume("v1") is None
        assert manager.find_volume("lv") is None

    @given(
        base=st.text(alphabet="lv01_-.", min_size=1, max_size=5),
        extensions=st.lists(st.text(alphabet="lv01_-.", min_size=1, max_size=3),
                            min_size=1, max_size=5, unique=True),
    )
    @settings(deadline=None, max_examples=100)
    def test_shared_prefixes_resolve_to_exact_segment(self, base, extensions):
        names = sorted({base} | {base + ext for ext in extensions} | {ext + base for ext in extensions},
                       key=len, reverse=True)
        report = lvs_report(*((name, "vg0", GIB, "-wi-ao----") for name in names))

        with patch.object(CommandExecutor, "run_sudo", return_value=CommandResult(0, report, "")):
            manager = LVMVolumeManager()
            for name in names:
                assert manager.find_volume(name).name == name
            resolved = validate_volumes(WorkList("list", names), manager)
            if base[:-1] and base[:-1] not in names:
                assert manager.find_volume(base[:-1]) is None

        assert [v.name for v in resolved] == names

    def test_resolve_volume_not_found(self, mock_sudo):
        with pytest.raises(VolumeNotFoundError) as exc_info:
            LVMVolumeManager().resolve_volume("missing")
        assert exc_info.value.names == ["missing"]

    def test_active_snapshots_follow_naming_convention(self, mock_sudo):
        snapshots = LVMVolumeManager().list_active_snapshots()
        assert snapshots == [Snapshot("data01_snapshot", "/dev/vg0/data01_snapshot")]

    def test_unparseable_report(self, mock_sudo):
        mock_sudo.return_value = CommandResult(0, "not json", "")
        with pytest.raises(AdapterError, match="Unexpected output from lvs"):
            LVMVolumeManager().list_volumes()

    def test_volume_groups(self, mock_sudo):
        mock_sudo.return_value = CommandResult(
            0, orjson.dumps({"report": [{"vg": [{"vg_name": "vg0"}, {"vg_name": "vg1"}]}]}).decode(), ""
        )
        manager = LVMVolumeManager()

        assert manager.list_volume_groups() == ["vg0", "vg1"]
        assert manager.volume_group_exists("vg1") is True
        assert manager.volume_group_exists("vg9") is False

    def test_size_properties(self):
        volume = Volume("lv1", "vg0", "/dev/vg0/lv1", 5 * GIB, "swi-a-s---")
        assert volume.size_gib == 5.0
        assert volume.is_snapshot is True


class TestMutations:

    def test_create_snapshot(self, mock_sudo):
        volume = Volume("data01", "vg0", "/dev/vg0/data01", 5 * GIB)

        path = LVMVolumeManager().create_snapshot(volume, "data01_snapshot", "10G")

        assert path == "/dev/vg0/data01_snapshot"
        mock_sudo.assert_called_once_with(
            ["lvcreate", "--quiet", "-L10G", "-s", "-n", "data01_snapshot", "/dev/vg0/data01"]
        )

    def test_create_snapshot_insufficient_space(self, mock_sudo):
        mock_sudo.side_effect = AdapterError(
            "Sudo command failed", returncode=5,
            stderr='  Volume group "vg0" has insufficient free space (10 extents): 2560 required.',
        )
        volume = Volume("data01", "vg0", "/dev/vg0/data01", 5 * GIB)

        with pytest.raises(InsufficientSpaceError):
            LVMVolumeManager().create_snapshot(volume, "data01_snapshot", "10G")

    def test_create_snapshot_other_lvm_error(self, mock_sudo):
        mock_sudo.side_effect = AdapterError("Sudo command failed", returncode=5,
                                             stderr="Logical volume data01_snapshot already exists")
        volume = Volume("data01", "vg0", "/dev/vg0/data01", 5 * GIB)

        with pytest.raises(LVMError) as exc_info:
            LVMVolumeManager().create_snapshot(volume, "data01_snapshot", "10G")
        assert not isinstance(exc_info.value, InsufficientSpaceError)

    def test_create_volume_uses_exact_bytes(self, mock_sudo):
        mock_sudo.side_effect = [
            CommandResult(0, "", ""),
            CommandResult(0, lvs_report(("restored", "vg0", 5 * GIB, "-wi-a-----")), ""),
        ]

        volume = LVMVolumeManager().create_volume("restored", 5 * GIB, "vg0")

        assert mock_sudo.call_args_list[0].args[0] == [
            "lvcreate", "-y", "-n", "restored", "-L", f"{5 * GIB}b", "vg0"
        ]
        assert volume.path == "/dev/vg0/restored"

    def test_remove_volume(self, mock_sudo):
        assert LVMVolumeManager().remove_volume("/dev/vg0/data01_snapshot") is True
        mock_sudo.assert_called_once_with(["lvremove", "-f", "/dev/vg0/data01_snapshot"])

    def test_remove_missing_volume_is_not_an_error(self, mock_sudo):
        mock_sudo.side_effect = AdapterError(
            "Sudo command failed", returncode=5,
            stderr='  Failed to find logical volume "vg0/data01_snapshot"',
        )
        assert LVMVolumeManager().remove_volume("/dev/vg0/data01_snapshot") is False

    def test_remove_volume_other_failure_propagates(self, mock_sudo):
        mock_sudo.side_effect = AdapterError("Sudo command failed", returncode=5,
                                             stderr="Logical volume vg0/x in use.")
        with pytest.raises(AdapterError):
            LVMVolumeManager().remove_volume("/dev/vg0/x")

# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_worklist.py

import pytest

from lvmrestic.core.worklist import parse_work_list, resolve_work_list, validate_volumes, WorkList
from lvmrestic.system.exceptions import ConfigurationError, VolumeNotFoundError

from tests.fakes import FakeVolumeManager


def test_parse_skips_comments_and_blank_lines():
    lines = ["data01\n", "# retired\n", "\n", "  home  \n", "#data02\n", "srv\n"]
    assert parse_work_list(lines) == ["data01", "home", "srv"]


class TestResolve:

    def test_single_name(self):
        work_list = resolve_work_list("data01")

        assert list(work_list) == ["data01"]
        assert work_list.source is None

    def test_list_file_keeps_order(self, tmp_path):
        path = tmp_path / "nightly.txt"
        path.write_text("srv\n# comment\ndata01\nhome\n")

        work_list = resolve_work_list(str(path))

        assert list(work_list) == ["srv", "data01", "home"]
        assert len(work_list) == 3
        assert work_list.source == path
        assert work_list.target == str(path)

    def test_list_of_only_comments(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("# nothing yet\n\n")

        with pytest.raises(ConfigurationError, match="contains no volume names"):
            resolve_work_list(str(path))

    def test_undecodable_list_file(self, tmp_path):
        path = tmp_path / "nightly.txt"
        path.write_bytes(b"data01\n\xff\xfe\n")

        with pytest.raises(ConfigurationError, match="Cannot read list"):
            resolve_work_list(str(path))

    def test_name_with_volume_group(self):
        with pytest.raises(ConfigurationError, match="without VG"):
            resolve_work_list("vg0/data01")


class TestValidate:

    @pytest.fixture
    def volumes(self):
        fake = FakeVolumeManager()
        for name in ("lv1", "lv10", "data01"):
            fake.add(name)
        return fake

    def test_all_present(self, volumes):
        resolved = validate_volumes(WorkList("x", ["lv10", "lv1"]), volumes)
        assert [v.name for v in resolved] == ["lv10", "lv1"]

    def test_reports_every_missing_name(self, volumes):
        with pytest.raises(VolumeNotFoundError) as exc_info:
            validate_volumes(WorkList("x", ["lv1", "nope", "data01", "lv"]), volumes)

        assert exc_info.value.names == ["nope", "lv"]
        assert volumes.created_snapshots == []

    def test_inventory_is_read_once(self, volumes):
        validate_volumes(WorkList("x", ["lv1", "lv10", "data01"]), volumes)
        assert volumes.list_calls == 1

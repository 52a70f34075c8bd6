# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_restic.py

from pathlib import Path
from unittest.mock import patch

import orjson
import pytest

from lvmrestic.storage.restic import RepositoryEntry, ResticClient
from lvmrestic.storage.sizes import GIB
from lvmrestic.system.display import entries_to_table
from lvmrestic.system.exceptions import AdapterError, ConfigurationError
from lvmrestic.system.execution import CommandExecutor, CommandResult

SNAPSHOTS_JSON = orjson.dumps([
    {"id": "bbbb" * 16, "short_id": "bbbbbbbb", "time": "2026-10-02T02:00:00Z",
     "paths": ["/data01.img.gz"], "hostname": "backup01",
     "tags": ["LV", "block-compressed-backup", "pigz", "data01", f"lvsize-v1:{5 * GIB}", "5g_size"]},
    {"id": "aaaa" * 16, "short_id": "aaaaaaaa", "time": "2026-10-01T02:00:00Z",
     "paths": ["/data01.img"], "hostname": "backup01",
     "tags": ["LV", "block-raw-backup", "data01", "5g_size"]},
]).decode()


@pytest.fixture
def client(repo_config):
    return ResticClient(repo_config)


@pytest.fixture
def mock_local():
    with patch.object(CommandExecutor, "run_local") as mock:
        mock.return_value = CommandResult(0, SNAPSHOTS_JSON, "")
        yield mock


class TestRepositoryEntry:

    def test_from_json_and_properties(self):
        entry = RepositoryEntry.from_json(orjson.loads(SNAPSHOTS_JSON)[0])

        assert entry.filename == "data01.img.gz"
        assert entry.compressed is True
        assert entry.size_bytes == 5 * GIB
        assert entry.short_id == "bbbbbbbb"

    def test_uncompressed_with_legacy_size(self):
        entry = RepositoryEntry.from_json(orjson.loads(SNAPSHOTS_JSON)[1])

        assert entry.compressed is False
        assert entry.size_bytes == 5 * GIB

    def test_short_id_defaults_to_prefix(self):
        entry = RepositoryEntry.from_json({"id": "0123456789abcdef", "paths": ["/x.img"]})
        assert entry.short_id == "01234567"
        assert entry.tags == []


class TestQueries:

    def test_find_entries_sorted_by_time(self, client, mock_local):
        entries = client.find_entries(tags=["LV"])

        assert [e.short_id for e in entries] == ["aaaaaaaa", "bbbbbbbb"]
        cmd = mock_local.call_args.args[0]
        assert cmd == ["restic", "snapshots", "--json", "--tag", "LV"]

    def test_find_latest(self, client, mock_local):
        mock_local.return_value = CommandResult(0, orjson.dumps([orjson.loads(SNAPSHOTS_JSON)[0]]).decode(), "")

        entry = client.find_latest("data01.img.gz")

        assert entry.filename == "data01.img.gz"
        assert mock_local.call_args.args[0] == [
            "restic", "snapshots", "--json", "--path", "/data01.img.gz", "--latest", "1"
        ]

    def test_find_latest_none(self, client, mock_local):
        mock_local.return_value = CommandResult(0, "[]", "")
        assert client.find_latest("nothing.img") is None

    def test_null_output_means_no_entries(self, client, mock_local):
        mock_local.return_value = CommandResult(0, "null", "")
        assert client.find_entries() == []

    def test_bad_json(self, client, mock_local):
        mock_local.return_value = CommandResult(0, "{not json", "")
        with pytest.raises(AdapterError, match="Unexpected output from restic snapshots"):
            client.find_entries()

    def test_repository_env_is_passed(self, client, mock_local):
        client.find_entries()

        env = mock_local.call_args.kwargs["env"]
        assert env["RESTIC_REPOSITORY"] == "b2:bucket:/hosts/backup01"
        assert env["RESTIC_PASSWORD"] == "s3cret"

    def test_check_repository_failure(self, client, mock_local):
        mock_local.return_value = CommandResult(1, "", "Fatal: unable to open config file\n")

        with pytest.raises(ConfigurationError, match="unable to open config file"):
            client.check_repository()

    def test_check_repository_ok(self, client, mock_local):
        mock_local.return_value = CommandResult(0, "{}", "")
        client.check_repository()
        assert mock_local.call_args.args[0] == ["restic", "cat", "config"]


class TestCommandBuilders:

    def test_backup_stdin(self, client):
        cmd = client.backup_stdin_command("data01.img", ["LV", "data01"])
        assert cmd == ["restic", "backup", "--verbose", "--tag", "LV", "--tag", "data01",
                       "--stdin", "--stdin-filename", "data01.img"]

    def test_backup_path_with_exclude(self, client):
        cmd = client.backup_path_command(Path("/mnt/data01_snapshot"), ["LV"], Path("/etc/restic/exclude.txt"))
        assert cmd[-2:] == ["/mnt/data01_snapshot", "--exclude-file=/etc/restic/exclude.txt"]

    def test_backup_path_without_exclude(self, client):
        cmd = client.backup_path_command(Path("/mnt/data01_snapshot"), ["LV"])
        assert cmd[-1] == "/mnt/data01_snapshot"

    def test_dump(self, client):
        entry = RepositoryEntry.from_json(orjson.loads(SNAPSHOTS_JSON)[0])
        assert client.dump_command(entry) == ["restic", "dump", "bbbb" * 16, "/data01.img.gz"]


def test_entries_table_has_one_row_per_entry():
    entries = [RepositoryEntry.from_json(item) for item in orjson.loads(SNAPSHOTS_JSON)]
    table = entries_to_table(entries)
    assert table.row_count == 2
    assert len(table.columns) == 6

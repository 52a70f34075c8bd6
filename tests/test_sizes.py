# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_sizes.py

import pytest

from lvmrestic.storage.sizes import (
    GIB, format_legacy_size_tag, format_size_tag, parse_duration, parse_size,
    parse_size_tags, size_tags
)


class TestSizeTags:

    def test_whole_gib_volume(self):
        assert size_tags(5 * GIB) == [f"lvsize-v1:{5 * GIB}", "5g_size"]

    def test_fractional_gib_volume(self):
        assert format_legacy_size_tag(int(10.5 * GIB)) == "10.5g_size"

    def test_large_volume_is_not_in_exponent_notation(self):
        assert format_legacy_size_tag(100 * GIB) == "100g_size"

    def test_versioned_tag_is_exact(self):
        assert format_size_tag(5 * GIB + 4096) == f"lvsize-v1:{5 * GIB + 4096}"

    def test_parse_prefers_versioned_tag(self):
        tags = ["LV", "5g_size", f"lvsize-v1:{5 * GIB + 4096}"]
        assert parse_size_tags(tags) == 5 * GIB + 4096

    @pytest.mark.parametrize("tag,expected", [
        ("5g_size", 5 * GIB),
        ("10.5g_size", int(10.5 * GIB)),
        ("10,50g_size", int(10.5 * GIB)),
        ("20g", 20 * GIB),
    ])
    def test_parse_legacy_tags(self, tag, expected):
        assert parse_size_tags(["LV", "block-raw-backup", tag]) == expected

    def test_parse_without_size_tag(self):
        assert parse_size_tags(["LV", "data01"]) is None

    def test_malformed_versioned_tag_falls_back(self):
        assert parse_size_tags(["lvsize-v1:lots", "2g_size"]) == 2 * GIB


class TestParseSize:

    @pytest.mark.parametrize("text,expected", [
        ("512 B", 512),
        ("2 KiB", 2048),
        ("1.5 MiB", 1572864),
        ("5,00g", 5 * GIB),
        ("1 GiB", GIB),
    ])
    def test_binary_units(self, text, expected):
        assert parse_size(text) == expected

    def test_decimal_units_when_requested(self):
        assert parse_size("1 KB", binary=False) == 1000
        assert parse_size("1 KiB", binary=False) == 1024

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_size("a lot")


class TestParseDuration:

    @pytest.mark.parametrize("text,expected", [
        ("45", 45),
        ("2:05", 125),
        ("1:02:03", 3723),
    ])
    def test_durations(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "1:2:3:4", "1:xx"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)

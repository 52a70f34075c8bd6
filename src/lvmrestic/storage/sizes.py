# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/sizes.py

"""
Size tags and human-readable size parsing.

Every backup entry carries two size tags:

- ``lvsize-v1:<bytes>``: exact byte count, versioned so the format can change
  without breaking restores of older entries.
- ``<gib>g_size``: the historic, human-oriented tag (``5g_size``,
  ``10.5g_size``). Older entries written as ``10,50g_size`` are still parsed.

Restore prefers the versioned tag and falls back to the historic one.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

GIB = 1024 ** 3

SIZE_TAG_PREFIX = "lvsize-v1:"

_LEGACY_TAG_RE = re.compile(r"^(\d+)(?:[.,](\d+))?g(?:_size)?$")
_SIZE_RE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*([kmgtpe]?)(i?)(b?)\s*$", re.IGNORECASE)
_EXPONENTS = {"": 0, "k": 1, "m": 2, "g": 3, "t": 4, "p": 5, "e": 6}


def format_size_tag(size_bytes: int) -> str:
    return f"{SIZE_TAG_PREFIX}{int(size_bytes)}"


def format_legacy_size_tag(size_bytes: int) -> str:
    gib = Decimal(str(round(size_bytes / GIB, 2))).normalize()
    return f"{gib:f}g_size"


def size_tags(size_bytes: int) -> list[str]:
    return [format_size_tag(size_bytes), format_legacy_size_tag(size_bytes)]


def parse_size_tags(tags: Iterable[str]) -> Optional[int]:
    """Recover the volume size in bytes from an entry's tags, or None."""
    tags = list(tags)
    for tag in tags:
        if tag.startswith(SIZE_TAG_PREFIX):
            value = tag[len(SIZE_TAG_PREFIX):]
            if value.isdigit():
                return int(value)
    for tag in tags:
        match = _LEGACY_TAG_RE.match(tag)
        if match:
            whole, frac = match.groups()
            gib = Decimal(f"{whole}.{frac or '0'}")
            return int(gib * GIB)
    return None


def parse_size(text: str, binary: bool = True) -> int:
    """Parse '1.234 GiB', '512 B' or '5,00g' into a byte count.

    With binary=True, decimal-looking units (KB, MB, ...) are treated as
    powers of 1024, which is how restic means them.
    """
    match = _SIZE_RE.match(text)
    if not match:
        raise ValueError(f"Unparseable size: {text!r}")
    number, prefix, iec, _ = match.groups()
    try:
        value = Decimal(number.replace(",", "."))
    except InvalidOperation as e:
        raise ValueError(f"Unparseable size: {text!r}") from e
    base = 1024 if (binary or iec) else 1000
    return int(value * (base ** _EXPONENTS[prefix.lower()]))


def parse_duration(text: str) -> int:
    """Convert '[[h:]m:]s' into seconds."""
    parts = text.strip().split(":")
    if not parts or len(parts) > 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Unparseable duration: {text!r}")
    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds

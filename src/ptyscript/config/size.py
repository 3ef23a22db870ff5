"""Byte-size strings for ``--output-limit``."""

from __future__ import annotations

import re

# Longest suffixes first so "KiB" is not read as "K" + garbage.
_SUFFIXES: dict[str, int] = {
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
    "KB": 1000,
    "MB": 1000**2,
    "GB": 1000**3,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
}

_SIZE_RE = re.compile(r"(?P<number>[0-9]+)(?P<suffix>[A-Za-z]*)")


def parse_size(text: str) -> int:
    """Parse ``"10"``, ``"4K"``, ``"2MiB"`` or ``"1GB"`` into a byte count.

    ``K``/``KiB``, ``M``/``MiB`` and ``G``/``GiB`` are powers of 1024;
    ``KB``, ``MB`` and ``GB`` are powers of 1000. A bare number is bytes.

    Raises:
        ValueError: If the number or suffix is not recognised.
    """
    match = _SIZE_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"Invalid number: {text}")

    number = int(match.group("number"))
    suffix = match.group("suffix")
    if not suffix:
        return number

    multiplier = _SUFFIXES.get(suffix)
    if multiplier is None:
        raise ValueError(f"Invalid number: {text}")
    return number * multiplier

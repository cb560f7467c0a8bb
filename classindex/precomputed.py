"""Read indices that dependency archives already carry.

A published archive never changes, so an embedded index that covers every
requested base can stand in for scanning the archive's classes.
"""

from __future__ import annotations

from typing import Iterable

from classindex.header import to_internal
from classindex.properties import parse_properties


def split_implementations(value: str) -> list[str]:
    """Split a comma-separated value into trimmed, non-empty internal names."""
    names = []
    for token in value.split(","):
        token = token.strip()
        if token:
            names.append(to_internal(token))
    return names


def read_precomputed(
    text: str,
    requested: Iterable[str],
    precomputed: dict[str, set[str]],
) -> bool:
    """Merge a key/value index into ``precomputed``.

    Args:
        text: Content of the embedded index (dotted names).
        requested: Requested bases as internal names.
        precomputed: Accumulator of base -> implementations, updated in place.

    Returns:
        True if every requested base appeared as a key.
    """
    requested = set(requested)
    matched: set[str] = set()

    for key, value in parse_properties(text).items():
        base = to_internal(key.strip())
        if base not in requested:
            continue
        matched.add(base)
        precomputed.setdefault(base, set()).update(split_implementations(value))

    return matched >= requested


def read_precomputed_flat(
    text: str,
    base: str,
    precomputed: dict[str, set[str]],
) -> bool:
    """Merge a flat index (one name per line) for a single base.

    The base is implied by where the index lives, so a flat index is always
    complete for it.
    """
    implementations = precomputed.setdefault(base, set())
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            implementations.add(to_internal(line))
    return True

"""Read back a generated index."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from classindex.header import to_dotted, to_internal
from classindex.precomputed import split_implementations
from classindex.properties import parse_properties
from classindex.writer import OutputShape


def load_index(
    index_path: Path | str,
    shape: OutputShape = OutputShape.PROPERTIES,
    flat_base: Optional[str] = None,
) -> Optional[dict[str, list[str]]]:
    """Load a generated index as dotted base -> dotted implementations.

    Args:
        index_path: Path to the generated file.
        shape: Layout the file was written in.
        flat_base: Base the flat file belongs to (dotted).

    Returns:
        Ordered mapping, or None if the file doesn't exist.
    """
    index_path = Path(index_path)
    if not index_path.is_file():
        return None

    text = index_path.read_text(encoding="utf-8")
    if shape is OutputShape.FLAT:
        names = [line.strip() for line in text.splitlines() if line.strip()]
        return {flat_base or "": names}

    return {
        key: [to_dotted(n) for n in split_implementations(value)]
        for key, value in parse_properties(text).items()
    }


def query_base(index: dict[str, list[str]], base: str) -> Optional[list[str]]:
    """Implementations of ``base`` (dotted or internal name), or None if absent."""
    return index.get(to_dotted(to_internal(base)))


def get_summary(index: dict[str, list[str]]) -> dict[str, Any]:
    """Per-base implementation counts."""
    counts = {base: len(names) for base, names in index.items()}
    return {
        "base_count": len(counts),
        "implementation_count": sum(counts.values()),
        "by_base": counts,
    }

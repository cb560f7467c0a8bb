"""Header store and per-run index context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from classindex.header import ClassHeader


class HeaderStore:
    """Mapping of internal class name to parsed header.

    Sources are added in priority order. The first source to supply a name
    owns it; later sources never overwrite an existing entry.
    """

    def __init__(self):
        self._headers: dict[str, ClassHeader] = {}
        self._origins: dict[str, str] = {}

    def add(self, name: str, header: ClassHeader, origin: str = "") -> bool:
        """Insert a header unless the name is already present.

        Returns:
            True if the header was stored, False if it was shadowed.
        """
        if name in self._headers:
            return False
        self._headers[name] = header
        self._origins[name] = origin
        return True

    def add_all(self, entries: Iterable[tuple[str, ClassHeader]], origin: str = "") -> int:
        """Insert every (name, header) pair; returns how many were stored."""
        added = 0
        for name, header in entries:
            if self.add(name, header, origin):
                added += 1
        return added

    def get(self, name: str) -> Optional[ClassHeader]:
        return self._headers.get(name)

    def origin_of(self, name: str) -> Optional[str]:
        return self._origins.get(name)

    def items(self) -> Iterator[tuple[str, ClassHeader]]:
        return iter(self._headers.items())

    def __contains__(self, name: object) -> bool:
        return name in self._headers

    def __len__(self) -> int:
        return len(self._headers)


@dataclass
class IndexContext:
    """State for one indexing run, threaded through every stage.

    Discarded once the index has been written.
    """

    requested: list[str]  # internal names, in requested order
    headers: HeaderStore = field(default_factory=HeaderStore)
    precomputed: dict[str, set[str]] = field(default_factory=dict)
    skipped_archives: list[str] = field(default_factory=list)
    precomputed_archives: list[str] = field(default_factory=list)

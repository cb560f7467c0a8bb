"""Readers for the places compiled classes come from.

A build's own output is a directory tree of .class files. Dependencies are
zip archives (jars) that may also carry a previously generated index.
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from pathlib import Path
from typing import Iterator, Optional

from classindex.header import CLASS_SUFFIX, ClassHeader, class_key, parse_header, read_header

logger = logging.getLogger(__name__)

# What zipfile raises for entry data it cannot extract
_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)


class ClassDirectory:
    """Compiled output of the module being built."""

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.label = str(self.root)

    def exists(self) -> bool:
        return self.root.is_dir()

    def iter_headers(self) -> Iterator[tuple[str, ClassHeader]]:
        """Yield (internal name, header) for every .class file under root.

        Files are visited in sorted order so runs are reproducible.
        """
        for path in sorted(self.root.rglob(f"*{CLASS_SUFFIX}")):
            if not path.is_file():
                continue
            relative = path.relative_to(self.root).as_posix()
            with open(path, "rb") as f:
                header = read_header(f)
            yield class_key(relative), header


class DependencyArchive:
    """A dependency jar, opened for the duration of a ``with`` block.

    Raises:
        OSError: On enter, if the file is missing or not a zip archive.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.label = self.path.name
        self._zip: Optional[zipfile.ZipFile] = None

    def __enter__(self) -> "DependencyArchive":
        if not self.path.is_file():
            raise FileNotFoundError(f"Archive not found: {self.path}")
        try:
            self._zip = zipfile.ZipFile(self.path)
        except zipfile.BadZipFile as e:
            raise OSError(f"Not a readable archive: {self.path}: {e}") from e
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    @property
    def archive(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise RuntimeError(f"Archive is not open: {self.path}")
        return self._zip

    def has_entry(self, entry: str) -> bool:
        try:
            self.archive.getinfo(entry)
        except KeyError:
            return False
        return True

    def read_bytes(self, entry: str | zipfile.ZipInfo) -> bytes:
        """Return an entry's raw content.

        Raises:
            OSError: If zipfile cannot extract the entry's data.
        """
        archive = self.archive
        name = entry.filename if isinstance(entry, zipfile.ZipInfo) else entry
        try:
            with archive.open(entry) as f:
                return f.read()
        except _ENTRY_ERRORS as e:
            raise OSError(f"Unreadable entry {name} in {self.path}: {e}") from e

    def read_text(self, entry: str) -> Optional[str]:
        """Return an entry's text, or None if the entry is absent.

        Bytes that are not valid UTF-8 are replaced rather than rejected.
        """
        if not self.has_entry(entry):
            return None
        return self.read_bytes(entry).decode("utf-8", errors="replace")

    def iter_headers(self) -> Iterator[tuple[str, ClassHeader]]:
        """Yield (internal name, header) for every .class entry."""
        logger.info(f"Scanning classes in {self.label}")
        for info in self.archive.infolist():
            if info.is_dir() or not info.filename.endswith(CLASS_SUFFIX):
                continue
            yield class_key(info.filename), parse_header(self.read_bytes(info))

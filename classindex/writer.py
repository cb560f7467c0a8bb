"""Render the result index and persist it only when it changed."""

from __future__ import annotations

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from classindex.header import to_dotted

logger = logging.getLogger(__name__)


class OutputShape(Enum):
    """Layout of the generated index file."""

    PROPERTIES = "properties"  # base=impl1,impl2 per line
    FLAT = "flat"  # one implementation per line, single base

    @classmethod
    def parse(cls, value: str) -> "OutputShape":
        try:
            return cls(value.lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown output shape '{value}' (expected one of: {choices})") from None


def render_index(result: Mapping[str, Iterable[str]], shape: OutputShape = OutputShape.PROPERTIES) -> str:
    """Serialize base -> implementations (internal names) to text.

    Bases keep mapping order; implementations are sorted.
    """
    if shape is OutputShape.FLAT:
        names: set[str] = set()
        for implementations in result.values():
            names.update(implementations)
        return "\n".join(sorted(to_dotted(n) for n in names))

    lines = []
    for base, implementations in result.items():
        value = ",".join(sorted(to_dotted(n) for n in implementations))
        lines.append(f"{to_dotted(base)}={value}\n")
    return "".join(lines)


def write_if_changed(path: Path | str, content: str) -> bool:
    """Atomically replace ``path`` with ``content`` unless it already matches.

    Writes to a temp file in the destination directory, then renames it over
    the destination. The temp file is removed on every exit path.

    Returns:
        True if the file was written, False if it was already up to date.
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    new_bytes = content.encode("utf-8")
    if path.is_file() and path.read_bytes() == new_bytes:
        logger.info(f"{path} unchanged - skipping")
        return False

    fd, tmp_path = tempfile.mkstemp(dir=str(parent), prefix="services", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(new_bytes)
        logger.info("Copying tmp file to actual destination")
        os.replace(tmp_path, str(path))
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)

    logger.info(f"Wrote {path}")
    return True

"""Index build orchestration.

Fills the header store from the module's own classes and then from each
dependency archive, merges precomputed indices, runs the resolver for each
requested base and hands the result to the writer.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from classindex.config import IndexConfig
from classindex.header import to_dotted
from classindex.precomputed import read_precomputed, read_precomputed_flat
from classindex.resolver import find_descendants
from classindex.sources import ClassDirectory, DependencyArchive
from classindex.store import IndexContext
from classindex.writer import OutputShape, render_index, write_if_changed

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    """Implementations found per base, in requested order."""

    implementations: dict[str, list[str]] = field(default_factory=dict)  # internal names, sorted
    header_count: int = 0
    skipped_archives: list[str] = field(default_factory=list)
    precomputed_archives: list[str] = field(default_factory=list)

    def dotted(self) -> dict[str, list[str]]:
        return {
            to_dotted(base): [to_dotted(n) for n in names]
            for base, names in self.implementations.items()
        }


@dataclass
class RunReport:
    """Outcome of a build-and-write run."""

    result: Optional[IndexResult]
    output_path: Optional[Path] = None
    written: bool = False


class IndexBuilder:
    """Build the implementation index for one module."""

    def __init__(self, config: IndexConfig):
        self.config = config

    def _load_precomputed(self, archive: DependencyArchive, context: IndexContext) -> bool:
        """Merge the archive's embedded index; True if scanning can be skipped."""
        if not self.config.use_precomputed or not context.requested:
            return False

        text = archive.read_text(self.config.output_path)
        if text is None:
            logger.info(f"No precomputed index in {archive.label}")
            return False

        if self.config.output_shape is OutputShape.FLAT:
            complete = read_precomputed_flat(text, context.requested[0], context.precomputed)
        else:
            complete = read_precomputed(text, context.requested, context.precomputed)

        if complete:
            logger.info(f"Using precomputed index from {archive.label}")
        else:
            logger.info(f"Precomputed index in {archive.label} incomplete for configured bases")
        return complete

    def scan_archive(self, path: Path | str, context: IndexContext) -> None:
        """Add one dependency archive to the context.

        An archive that cannot be opened or read is logged and skipped.
        A malformed class inside it raises FormatError.
        """
        archive = DependencyArchive(path)
        try:
            with archive:
                if self._load_precomputed(archive, context):
                    context.precomputed_archives.append(str(path))
                    return
                context.headers.add_all(archive.iter_headers(), origin=archive.label)
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"Archive scan failed for {path}: {e}")
            context.skipped_archives.append(str(path))

    def collect(self, classes: ClassDirectory, context: IndexContext) -> None:
        """Fill the header store in priority order: own classes, then archives."""
        context.headers.add_all(classes.iter_headers(), origin=classes.label)
        for path in self.config.archives:
            self.scan_archive(path, context)
        logger.info(f"headers size = {len(context.headers)}")

    def resolve(self, context: IndexContext) -> dict[str, list[str]]:
        """Union precomputed and resolved implementations for every base."""
        result: dict[str, list[str]] = {}
        for base in context.requested:
            found = set(context.precomputed.get(base, ()))
            found |= find_descendants(base, context.headers, memo={})
            result[base] = sorted(found)
            logger.info(f"services found for {to_dotted(base)} = {len(found)}")
        return result

    def build(self) -> Optional[IndexResult]:
        """Scan all sources and compute the index.

        Returns:
            IndexResult, or None when the classes directory does not exist.
        """
        classes = ClassDirectory(self.config.classes_dir)
        if not classes.exists():
            logger.info(f"No classes dir (skipping): {classes.root}")
            return None

        context = IndexContext(requested=self.config.requested_bases)
        if not context.requested:
            logger.info("No base classes configured (skipping)")
            return IndexResult()

        self.collect(classes, context)
        return IndexResult(
            implementations=self.resolve(context),
            header_count=len(context.headers),
            skipped_archives=list(context.skipped_archives),
            precomputed_archives=list(context.precomputed_archives),
        )


def run(config: IndexConfig) -> RunReport:
    """Build the index and write it if its content changed."""
    result = IndexBuilder(config).build()
    if result is None or not result.implementations:
        return RunReport(result=result)

    output_path = config.output_file
    content = render_index(result.implementations, config.output_shape)
    written = write_if_changed(output_path, content)
    return RunReport(result=result, output_path=output_path, written=written)

"""Tests for index build orchestration."""

import logging
import struct
import zipfile

import pytest

from classindex import writer
from classindex.builder import IndexBuilder, run
from classindex.config import IndexConfig
from classindex.header import FormatError
from classindex.writer import OutputShape

ABSTRACT = 0x0421


@pytest.fixture
def module(tmp_path, make_class, write_classes):
    """Own module with abstract a/B and concrete a/C extends a/B."""
    classes_dir = write_classes(
        tmp_path / "classes",
        {
            "a/B": make_class("a/B", flags=ABSTRACT),
            "a/C": make_class("a/C", "a/B"),
        },
    )
    return classes_dir


def config_for(classes_dir, archives=(), bases=("a.B",), **kwargs):
    return IndexConfig(
        base_classes=list(bases),
        classes_dir=str(classes_dir),
        archives=[str(a) for a in archives],
        **kwargs,
    )


def single_entry_jar(path, name, data, compress_type):
    """Write a jar holding one entry and return its bytes for patching."""
    with zipfile.ZipFile(path, "w", compression=compress_type) as zf:
        zf.writestr(name, data)
    return bytearray(path.read_bytes())


class TestEndToEnd:
    """Whole-run scenarios."""

    def test_own_precomputed_and_scanned_sources_union(self, tmp_path, module, make_class, make_jar):
        """Own class, precomputed entry and scanned archive class all land in the index."""
        jar1 = make_jar(tmp_path / "dep1.jar", index_text="a.B=a.D\n")
        jar2 = make_jar(tmp_path / "dep2.jar", {"a/E": make_class("a/E", "a/B")})

        report = run(config_for(module, [jar1, jar2]))

        assert report.written is True
        assert report.result.dotted() == {"a.B": ["a.C", "a.D", "a.E"]}
        assert report.output_path.read_text() == "a.B=a.C,a.D,a.E\n"
        assert report.result.precomputed_archives == [str(jar1)]

    def test_base_not_found_anywhere_gets_empty_row(self, module):
        """A base with no implementations still gets a row."""
        report = run(config_for(module, bases=("a.B", "nowhere.Base")))
        assert report.output_path.read_text() == "a.B=a.C\nnowhere.Base=\n"

    def test_missing_classes_dir_is_noop(self, tmp_path):
        """No classes directory means nothing is built or written."""
        config = config_for(tmp_path / "does-not-exist")
        report = run(config)
        assert report.result is None
        assert report.written is False
        assert not (tmp_path / "does-not-exist").exists()

    def test_empty_base_list_writes_nothing(self, module):
        """No configured bases means no output file."""
        config = config_for(module, bases=())
        report = run(config)
        assert report.written is False
        assert report.result.implementations == {}
        assert not config.output_file.exists()

    def test_flat_output(self, module):
        """Flat shape writes bare implementation names."""
        config = config_for(module, output_shape=OutputShape.FLAT, output_path="META-INF/plugin/services.index")
        report = run(config)
        assert report.output_path.read_text() == "a.C"


class TestIdempotence:
    """Re-running against unchanged inputs."""

    def test_second_run_writes_nothing(self, tmp_path, module, make_class, make_jar, monkeypatch):
        """Unchanged inputs never touch the output file again."""
        jar = make_jar(tmp_path / "dep.jar", {"a/E": make_class("a/E", "a/B")})
        config = config_for(module, [jar])

        first = run(config)
        content = first.output_path.read_bytes()

        def fail(*args, **kwargs):
            raise AssertionError("no write expected")

        monkeypatch.setattr(writer.tempfile, "mkstemp", fail)
        second = run(config)

        assert second.written is False
        assert second.output_path.read_bytes() == content


class TestDeterminism:
    """Output independent of scan order."""

    def test_archive_order_does_not_change_output(self, tmp_path, module, make_class, make_jar):
        """Swapping archive order yields identical output."""
        jar1 = make_jar(tmp_path / "one.jar", {"z/Z": make_class("z/Z", "a/B")})
        jar2 = make_jar(tmp_path / "two.jar", {"m/M": make_class("m/M", "a/B")})

        forward = run(config_for(module, [jar1, jar2], output_path="fwd.properties"))
        backward = run(config_for(module, [jar2, jar1], output_path="bwd.properties"))

        assert forward.output_path.read_text() == backward.output_path.read_text()
        assert forward.output_path.read_text() == "a.B=a.C,m.M,z.Z\n"


class TestPrecomputed:
    """Use of indices embedded in dependency archives."""

    def test_complete_index_skips_scanning_corrupt_classes(self, tmp_path, module, make_jar):
        """A complete embedded index means the archive's classes are never parsed."""
        jar = make_jar(
            tmp_path / "dep.jar",
            {"bad/Broken": b"not a class file"},
            index_text="a.B=d.Impl\n",
        )
        report = run(config_for(module, [jar]))
        assert report.result.dotted() == {"a.B": ["a.C", "d.Impl"]}

    def test_incomplete_index_falls_back_to_scanning(self, tmp_path, module, make_class, make_jar):
        """Missing bases in the embedded index force a class scan."""
        jar = make_jar(
            tmp_path / "dep.jar",
            {"x/Impl": make_class("x/Impl", "x/Y")},
            index_text="a.B=d.Impl\n",
        )
        report = run(config_for(module, [jar], bases=("a.B", "x.Y")))
        assert report.result.dotted() == {"a.B": ["a.C", "d.Impl"], "x.Y": ["x.Impl"]}
        assert report.result.precomputed_archives == []

    def test_incomplete_index_with_corrupt_classes_is_fatal(self, tmp_path, module, make_jar):
        """Scanning after an incomplete index surfaces malformed classes."""
        jar = make_jar(
            tmp_path / "dep.jar",
            {"bad/Broken": b"not a class file"},
            index_text="a.B=d.Impl\n",
        )
        with pytest.raises(FormatError):
            run(config_for(module, [jar], bases=("a.B", "x.Y")))

    def test_precomputed_disabled_scans_archive(self, tmp_path, module, make_class, make_jar):
        """Embedded indices are ignored when precomputed use is off."""
        jar = make_jar(
            tmp_path / "dep.jar",
            {"a/E": make_class("a/E", "a/B")},
            index_text="a.B=stale.Entry\n",
        )
        report = run(config_for(module, [jar], use_precomputed=False))
        assert report.result.dotted() == {"a.B": ["a.C", "a.E"]}

    def test_class_in_both_sources_appears_once(self, tmp_path, module, make_class, make_jar):
        """Precomputed and scanned results are deduplicated."""
        jar1 = make_jar(tmp_path / "dep1.jar", index_text="a.B=a.E\n")
        jar2 = make_jar(tmp_path / "dep2.jar", {"a/E": make_class("a/E", "a/B")})
        report = run(config_for(module, [jar1, jar2]))
        assert report.result.dotted() == {"a.B": ["a.C", "a.E"]}

    def test_flat_embedded_index(self, tmp_path, module, make_jar):
        """A flat embedded index lists the single base's implementations."""
        index_path = "META-INF/plugin/services.index"
        jar = make_jar(tmp_path / "dep.jar", {"bad/Broken": b"junk"}, index_text="d.One\nd.Two", index_path=index_path)
        config = config_for(module, [jar], output_shape=OutputShape.FLAT, output_path=index_path)
        report = run(config)
        assert report.output_path.read_text() == "a.C\nd.One\nd.Two"


class TestSources:
    """Header store population and failure handling."""

    def test_own_module_shadows_archive(self, tmp_path, module, make_class, make_jar):
        """An archive copy of a/C that is abstract does not override the module's own."""
        jar = make_jar(tmp_path / "dep.jar", {"a/C": make_class("a/C", "a/B", flags=ABSTRACT)})
        builder = IndexBuilder(config_for(module, [jar]))
        result = builder.build()
        assert result.implementations == {"a/B": ["a/C"]}

    def test_base_supplied_by_archive_chain(self, tmp_path, make_class, write_classes, make_jar):
        """Concrete parent living in a dependency links a module class to the base."""
        classes_dir = write_classes(tmp_path / "classes", {"app/Leaf": make_class("app/Leaf", "lib/Mid")})
        jar = make_jar(tmp_path / "lib.jar", {"lib/Mid": make_class("lib/Mid", "a/B")})
        report = run(config_for(classes_dir, [jar]))
        assert report.result.dotted() == {"a.B": ["app.Leaf", "lib.Mid"]}

    def test_unreadable_archive_is_skipped(self, tmp_path, module, make_class, make_jar, caplog):
        """Missing and non-zip archives are logged and skipped."""
        broken = tmp_path / "broken.jar"
        broken.write_bytes(b"this is not a zip")
        missing = tmp_path / "missing.jar"
        good = make_jar(tmp_path / "good.jar", {"a/E": make_class("a/E", "a/B")})

        with caplog.at_level(logging.ERROR, logger="classindex"):
            report = run(config_for(module, [broken, missing, good]))

        assert report.result.dotted() == {"a.B": ["a.C", "a.E"]}
        assert report.result.skipped_archives == [str(broken), str(missing)]
        assert "Archive scan failed" in caplog.text

    def test_malformed_own_class_is_fatal(self, module):
        """A broken class in the module output aborts the run."""
        (module / "a" / "Bad.class").write_bytes(b"\x00\x01\x02\x03junk")
        with pytest.raises(FormatError):
            run(config_for(module))

    def test_malformed_archive_class_is_fatal(self, tmp_path, module, make_jar):
        """A broken class in a scanned archive aborts the run."""
        jar = make_jar(tmp_path / "dep.jar", {"bad/Broken": b"junk"})
        with pytest.raises(FormatError):
            run(config_for(module, [jar]))

    def test_non_class_entries_ignored(self, tmp_path, module, make_jar):
        """Manifest and other entries add no headers."""
        jar = make_jar(tmp_path / "dep.jar", index_text=None)
        result = IndexBuilder(config_for(module, [jar])).build()
        assert result.header_count == 2

    def test_corrupt_deflated_entry_skips_archive(self, tmp_path, module, make_class):
        """Compressed class data that fails to inflate marks the archive skipped."""
        jar = tmp_path / "corrupt.jar"
        raw = single_entry_jar(jar, "a/E.class", make_class("a/E", "a/B"), zipfile.ZIP_DEFLATED)
        name_len, extra_len = struct.unpack_from("<HH", raw, 26)
        compressed_size = struct.unpack_from("<I", raw, 18)[0]
        start = 30 + name_len + extra_len
        for i in range(start, start + compressed_size):
            raw[i] ^= 0xFF
        jar.write_bytes(bytes(raw))

        report = run(config_for(module, [jar]))

        assert report.result.dotted() == {"a.B": ["a.C"]}
        assert report.result.skipped_archives == [str(jar)]

    def test_unsupported_compression_skips_archive(self, tmp_path, module, make_class):
        """An entry stored with an unknown compression method marks the archive skipped."""
        jar = tmp_path / "method99.jar"
        raw = single_entry_jar(jar, "a/E.class", make_class("a/E", "a/B"), zipfile.ZIP_STORED)
        struct.pack_into("<H", raw, 8, 99)  # local header
        central = raw.find(b"PK\x01\x02")
        struct.pack_into("<H", raw, central + 10, 99)
        jar.write_bytes(bytes(raw))

        report = run(config_for(module, [jar]))

        assert report.result.dotted() == {"a.B": ["a.C"]}
        assert report.result.skipped_archives == [str(jar)]

    def test_non_utf8_embedded_index_is_still_used(self, tmp_path, module, make_jar):
        """Latin-1 bytes in an embedded index are replaced, not fatal to the archive."""
        jar = make_jar(
            tmp_path / "dep.jar",
            {"bad/Broken": b"junk"},
            index_text="# caf\xe9\na.B=d.Impl\n".encode("latin-1"),
        )

        report = run(config_for(module, [jar]))

        assert report.result.dotted() == {"a.B": ["a.C", "d.Impl"]}
        assert report.result.skipped_archives == []
        assert report.result.precomputed_archives == [str(jar)]

"""Shared fixtures for class index tests: class-file and jar builders."""

import struct
import zipfile

import pytest

from classindex.config import DEFAULT_OUTPUT_PATH

OBJECT = "java/lang/Object"
ACC_PUBLIC_SUPER = 0x0021
ACC_ABSTRACT_CLASS = 0x0421
ACC_INTERFACE_TYPE = 0x0601


class ConstantPool:
    """Builds constant-pool bytes and tracks slot indices."""

    def __init__(self):
        self.entries = []
        self.next_index = 1

    def raw(self, data, slots=1):
        index = self.next_index
        self.entries.append(data)
        self.next_index += slots
        return index

    def utf8(self, text):
        encoded = text.encode("utf-8")
        return self.raw(bytes([1]) + struct.pack(">H", len(encoded)) + encoded)

    def class_ref(self, name):
        name_index = self.utf8(name)
        return self.raw(bytes([7]) + struct.pack(">H", name_index))

    def to_bytes(self):
        return struct.pack(">H", self.next_index) + b"".join(self.entries)


def build_class_bytes(name, super_name=OBJECT, flags=ACC_PUBLIC_SUPER, extra_entries=()):
    """Assemble a minimal class file.

    extra_entries: (bytes, slots) pairs placed before the class references.
    """
    pool = ConstantPool()
    for data, slots in extra_entries:
        pool.raw(data, slots)
    this_index = pool.class_ref(name)
    super_index = pool.class_ref(super_name) if super_name else 0

    return (
        struct.pack(">IHH", 0xCAFEBABE, 0, 52)
        + pool.to_bytes()
        + struct.pack(">HHH", flags, this_index, super_index)
        + struct.pack(">HHHH", 0, 0, 0, 0)  # interfaces, fields, methods, attributes
    )


@pytest.fixture
def make_class():
    """Return a builder: make_class(name, super_name=..., flags=..., extra_entries=...)."""
    return build_class_bytes


@pytest.fixture
def write_classes():
    """Write {internal name: bytes} as .class files under a root directory."""

    def _write(root, classes):
        root.mkdir(parents=True, exist_ok=True)
        for name, data in classes.items():
            path = root / f"{name}.class"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return root

    return _write


@pytest.fixture
def make_jar():
    """Write a jar with {internal name: bytes} classes and an optional embedded index."""

    def _make(path, classes=None, index_text=None, index_path=DEFAULT_OUTPUT_PATH):
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
            for name, data in (classes or {}).items():
                zf.writestr(f"{name}.class", data)
            if index_text is not None:
                zf.writestr(index_path, index_text)
        return path

    return _make

"""Minimal class-file header parser.

Reads just enough of a compiled class to learn its access flags and the
name of its superclass. The constant pool is walked once; only Utf8 and
Class entries are kept, everything else is skipped by width.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional

MAGIC = 0xCAFEBABE
OBJECT_TYPE = "java/lang/Object"
CLASS_SUFFIX = ".class"

ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400

# Constant-pool tags
TAG_UTF8 = 1
TAG_CLASS = 7
# tag -> bytes to skip
_FIXED_WIDTH = {
    3: 4,  # Integer
    4: 4,  # Float
    8: 2,  # String
    9: 4,  # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}
# Long / Double take two pool slots
_WIDE = {5: 8, 6: 8}

_U2 = struct.Struct(">H")
_U4 = struct.Struct(">I")


class FormatError(Exception):
    """Compiled unit is not a readable class file."""


class TypeKind(Enum):
    """Classification of a type derived from its access flags."""

    INTERFACE = "interface"
    ABSTRACT = "abstract"
    CONCRETE = "concrete"

    @classmethod
    def from_flags(cls, access_flags: int) -> "TypeKind":
        if access_flags & ACC_INTERFACE:
            return cls.INTERFACE
        if access_flags & ACC_ABSTRACT:
            return cls.ABSTRACT
        return cls.CONCRETE


@dataclass(frozen=True)
class ClassHeader:
    """Access flags and superclass (internal name) of one class."""

    access_flags: int
    super_name: Optional[str]
    kind: TypeKind

    @classmethod
    def from_flags(cls, access_flags: int, super_name: Optional[str]) -> "ClassHeader":
        return cls(access_flags, super_name, TypeKind.from_flags(access_flags))

    @property
    def is_interface(self) -> bool:
        return self.kind is TypeKind.INTERFACE

    @property
    def is_abstract(self) -> bool:
        return self.kind is TypeKind.ABSTRACT

    @property
    def is_concrete(self) -> bool:
        return self.kind is TypeKind.CONCRETE


def is_concrete(header: Optional[ClassHeader]) -> bool:
    """True when a header exists and is neither interface nor abstract."""
    return header is not None and header.is_concrete


def to_dotted(internal_name: str) -> str:
    return internal_name.replace("/", ".")


def to_internal(dotted_name: str) -> str:
    return dotted_name.replace(".", "/")


def class_key(entry_path: str) -> str:
    """Strip the .class suffix from a slash-separated entry path."""
    if entry_path.endswith(CLASS_SUFFIX):
        return entry_path[: -len(CLASS_SUFFIX)]
    return entry_path


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the JVM's modified UTF-8.

    NUL is stored as C0 80 and supplementary characters as two separately
    encoded surrogates.
    """
    text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    try:
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    except UnicodeDecodeError:
        # Unpaired surrogate; keep it as-is
        return text


class _Reader:
    """Cursor over a bytes buffer that raises FormatError on truncation."""

    __slots__ = ("data", "pos")

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise FormatError(f"Truncated class file at offset {self.pos}")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def u1(self) -> int:
        return self.take(1)[0]

    def u2(self) -> int:
        return _U2.unpack(self.take(2))[0]

    def u4(self) -> int:
        return _U4.unpack(self.take(4))[0]

    def skip(self, size: int) -> None:
        self.take(size)


def parse_header(data: bytes) -> ClassHeader:
    """Parse the header of one compiled class.

    Args:
        data: Raw bytes of the .class file.

    Returns:
        ClassHeader with access flags and superclass internal name.

    Raises:
        FormatError: Bad magic, unknown constant-pool tag, or truncated input.
    """
    reader = _Reader(data)

    if reader.u4() != MAGIC:
        raise FormatError("Corrupt stream - magic number missing")

    reader.skip(4)  # minor, major

    cp_count = reader.u2()
    if cp_count == 0:
        raise FormatError("Constant pool count must be at least 1")

    utf8: dict[int, str] = {}
    class_name_index: dict[int, int] = {}

    i = 1
    while i < cp_count:
        tag = reader.u1()
        if tag == TAG_UTF8:
            length = reader.u2()
            utf8[i] = decode_modified_utf8(reader.take(length))
        elif tag == TAG_CLASS:
            class_name_index[i] = reader.u2()
        elif tag in _FIXED_WIDTH:
            reader.skip(_FIXED_WIDTH[tag])
        elif tag in _WIDE:
            reader.skip(_WIDE[tag])
            i += 1
        else:
            raise FormatError(f"Unknown cp tag: {tag}")
        i += 1

    access_flags = reader.u2()
    reader.u2()  # this_class
    super_index = reader.u2()

    super_name = None
    if super_index != 0:
        if super_index >= cp_count:
            raise FormatError(f"super_class index {super_index} outside constant pool")
        name_index = class_name_index.get(super_index, 0)
        if name_index:
            super_name = utf8.get(name_index)

    return ClassHeader.from_flags(access_flags, super_name)


def read_header(stream: BinaryIO) -> ClassHeader:
    """Read and parse a class header from a binary stream."""
    return parse_header(stream.read())

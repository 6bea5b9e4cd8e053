"""Minimal reader for the header of a compiled Java class file.

Only what the class graph needs is decoded: access flags, this class,
super class and directly implemented interfaces. Fields, methods and
attributes are never touched.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from .errors import ClassFormatError

MAGIC = 0xCAFEBABE

ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_SYNTHETIC = 0x1000
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000
ACC_MODULE = 0x8000

# constant pool tag -> payload size in bytes (Utf8 is variable)
_CONSTANT_SIZES: Dict[int, int] = {
    3: 4,   # Integer
    4: 4,   # Float
    5: 8,   # Long
    6: 8,   # Double
    7: 2,   # Class
    8: 2,   # String
    9: 4,   # Fieldref
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
_TAG_UTF8 = 1
_TAG_CLASS = 7


@dataclass(frozen=True)
class ClassInfo:
    name: str
    access_flags: int
    superclass: Optional[str]
    interfaces: Tuple[str, ...]

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1].rsplit("$", 1)[-1]

    @property
    def is_interface(self) -> bool:
        return bool(self.access_flags & ACC_INTERFACE)

    @property
    def is_abstract(self) -> bool:
        return bool(self.access_flags & ACC_ABSTRACT) and not self.is_interface

    @property
    def is_synthetic(self) -> bool:
        return bool(self.access_flags & ACC_SYNTHETIC)

    @property
    def is_anonymous(self) -> bool:
        return "$" in self.name and self.simple_name.isdigit()

    @property
    def is_standard_class(self) -> bool:
        """A regular class: not an interface, annotation, module or package descriptor."""
        if self.access_flags & (ACC_INTERFACE | ACC_ANNOTATION | ACC_MODULE):
            return False
        return self.simple_name not in ("module-info", "package-info")


def _binary_to_dotted(name: str) -> str:
    return name.replace("/", ".")


def parse_class(data: bytes, origin: str = "<bytes>") -> ClassInfo:
    """Decode the header of a class file.

    Raises:
        ClassFormatError: if *data* is not a well-formed class file.
    """
    try:
        magic, _minor, _major, count = struct.unpack_from(">IHHH", data, 0)
        if magic != MAGIC:
            raise ClassFormatError(f"{origin}: bad magic {magic:#x}")

        utf8: Dict[int, str] = {}
        class_refs: Dict[int, int] = {}
        offset = 10
        index = 1
        while index < count:
            tag = data[offset]
            offset += 1
            if tag == _TAG_UTF8:
                (length,) = struct.unpack_from(">H", data, offset)
                offset += 2
                utf8[index] = data[offset:offset + length].decode("utf-8", errors="replace")
                offset += length
            elif tag in _CONSTANT_SIZES:
                if tag == _TAG_CLASS:
                    (class_refs[index],) = struct.unpack_from(">H", data, offset)
                offset += _CONSTANT_SIZES[tag]
            else:
                raise ClassFormatError(f"{origin}: unknown constant tag {tag} at entry {index}")
            # Long and Double occupy two entries
            index += 2 if tag in (5, 6) else 1

        access, this_idx, super_idx, itf_count = struct.unpack_from(">HHHH", data, offset)
        offset += 8
        interface_idx = struct.unpack_from(f">{itf_count}H", data, offset)
    except (struct.error, IndexError) as exc:
        raise ClassFormatError(f"{origin}: truncated class file ({exc})") from exc

    def class_name(idx: int) -> str:
        try:
            return _binary_to_dotted(utf8[class_refs[idx]])
        except KeyError as exc:
            raise ClassFormatError(f"{origin}: dangling class reference #{idx}") from exc

    return ClassInfo(
        name=class_name(this_idx),
        access_flags=access,
        superclass=class_name(super_idx) if super_idx else None,
        interfaces=tuple(class_name(i) for i in interface_idx),
    )


def read_class(path: Path) -> ClassInfo:
    return parse_class(path.read_bytes(), origin=str(path))

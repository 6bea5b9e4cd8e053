"""Tests for the class-file header reader."""

import struct

import pytest

from legacylens.classfile import ACC_ABSTRACT, ACC_INTERFACE, parse_class
from legacylens.errors import ClassFormatError, ClasspathScanFailed


def test_parse_plain_class(class_bytes):
    info = parse_class(class_bytes(
        "com/example/UserServiceImpl",
        interfaces=["com/example/UserService", "java/io/Serializable"],
    ))

    assert info.name == "com.example.UserServiceImpl"
    assert info.simple_name == "UserServiceImpl"
    assert info.superclass == "java.lang.Object"
    assert info.interfaces == ("com.example.UserService", "java.io.Serializable")
    assert info.is_standard_class


def test_parse_interface_and_abstract(class_bytes):
    interface = parse_class(class_bytes("a/Repo", access=ACC_INTERFACE | ACC_ABSTRACT))
    abstract = parse_class(class_bytes("a/Base", access=0x0021 | ACC_ABSTRACT))

    assert not interface.is_standard_class
    assert not interface.is_abstract
    assert abstract.is_abstract
    assert abstract.is_standard_class


def test_inner_and_anonymous_classes(class_bytes):
    inner = parse_class(class_bytes("a/Outer$Inner"))
    anonymous = parse_class(class_bytes("a/Outer$1"))

    assert inner.simple_name == "Inner"
    assert not inner.is_anonymous
    assert anonymous.is_anonymous


def test_long_constants_take_two_slots():
    # pool: #1 Long (occupies #1 and #2), #3 Utf8 "A", #4 Class #3, #5 Utf8 "B", #6 Class #5
    pool = (
        b"\x05" + struct.pack(">q", 42)
        + b"\x01" + struct.pack(">H", 1) + b"A"
        + b"\x07" + struct.pack(">H", 3)
        + b"\x01" + struct.pack(">H", 1) + b"B"
        + b"\x07" + struct.pack(">H", 5)
    )
    data = struct.pack(">IHHH", 0xCAFEBABE, 0, 52, 7) + pool
    data += struct.pack(">HHHH", 0x0021, 4, 6, 0) + struct.pack(">HHH", 0, 0, 0)

    info = parse_class(data)
    assert info.name == "A"
    assert info.superclass == "B"


def test_bad_magic():
    with pytest.raises(ClassFormatError):
        parse_class(b"\x00\x00\x00\x00" + b"\x00" * 20)


def test_truncated_file_is_a_classpath_scan_failure(class_bytes):
    data = class_bytes("a/B")[:15]
    with pytest.raises(ClasspathScanFailed):
        parse_class(data)


def test_unknown_constant_tag():
    data = struct.pack(">IHHH", 0xCAFEBABE, 0, 52, 2) + b"\x63"
    with pytest.raises(ClassFormatError):
        parse_class(data)

"""Tests for source reading and normalization."""

from pathlib import Path

import pytest

from legacylens.errors import SourceReadFailed
from legacylens.source_reader import (
    declared_type_name,
    decode_source,
    find_block_end,
    find_file,
    find_source_root,
    iter_java_files,
    read_source,
    strip_comments,
)


def test_decode_utf8():
    assert decode_source("café".encode("utf-8")) == "café"


def test_decode_falls_back_to_latin1():
    data = "Größe".encode("iso-8859-1")
    assert decode_source(data) == "Größe"


def test_strip_comments_keeps_literals_and_lines():
    code = 'a(); // call b()\n/* block\n c() */ d("http://x // y");\n'
    stripped = strip_comments(code)

    assert "b()" not in stripped
    assert "c()" not in stripped
    assert '"http://x // y"' in stripped
    assert stripped.count("\n") == code.count("\n")


def test_read_source_missing_file(temp_dir: Path):
    with pytest.raises(SourceReadFailed):
        read_source(temp_dir / "Missing.java")


def test_declared_type_name_variants():
    assert declared_type_name("public class Foo extends Bar {}") == "Foo"
    assert declared_type_name("public interface FooRepository {}") == "FooRepository"
    assert declared_type_name("public record Point(int x, int y) {}") == "Point"
    assert declared_type_name("package a.b;") is None


def test_find_block_end_ignores_braces_in_literals():
    text = 'void m() { String s = "}"; char c = \'{\'; if (x) { y(); } } tail'
    open_index = text.index("{")
    end = find_block_end(text, open_index)

    assert text[end:] == " tail"


def test_find_block_end_unbalanced():
    assert find_block_end("void m() { if (x) {", 9) is None


def test_find_source_root_prefers_candidates(temp_dir: Path):
    (temp_dir / "src" / "main" / "java").mkdir(parents=True)
    assert find_source_root(temp_dir, ["src/main/java", "src"]) == temp_dir / "src" / "main" / "java"


def test_find_source_root_falls_back_to_java_dir(temp_dir: Path):
    java_dir = temp_dir / "module" / "sources" / "java"
    java_dir.mkdir(parents=True)
    (temp_dir / "target" / "java").mkdir(parents=True)

    assert find_source_root(temp_dir, ["src/main/java"]) == java_dir


def test_find_source_root_none(temp_dir: Path):
    assert find_source_root(temp_dir, ["src"]) is None


def test_iter_java_files_skips_build_output(temp_dir: Path, write_tree):
    write_tree(temp_dir, {
        "a/A.java": "class A {}",
        "target/generated/G.java": "class G {}",
        ".git/X.java": "class X {}",
        "b/notes.txt": "",
    })
    assert [p.name for p in iter_java_files(temp_dir, source_root=False)] == ["A.java"]


def test_iter_java_files_keeps_build_named_packages(temp_dir: Path, write_tree):
    write_tree(temp_dir, {
        "com/acme/build/controller/BuildController.java": "class BuildController {}",
        "com/acme/out/Report.java": "class Report {}",
        "com/acme/.git/Hidden.java": "class Hidden {}",
    })
    assert [p.name for p in iter_java_files(temp_dir)] == ["BuildController.java", "Report.java"]


def test_iter_java_files_project_walk_enters_source_trees(temp_dir: Path, write_tree):
    write_tree(temp_dir, {
        "api/src/main/java/com/acme/build/Tool.java": "class Tool {}",
        "api/build/generated/Gen.java": "class Gen {}",
        "api/target/Copied.java": "class Copied {}",
    })
    assert [p.name for p in iter_java_files(temp_dir, source_root=False)] == ["Tool.java"]


def test_find_file_shallowest(temp_dir: Path, write_tree):
    write_tree(temp_dir, {"deep/er/pom.xml": "", "deep/POM.xml": ""})
    assert find_file(temp_dir, "pom.xml", 4) == temp_dir / "deep" / "POM.xml"

"""Pytest configuration and fixtures for LegacyLens tests."""

import shutil
import struct
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, Optional

import pytest


def build_class_bytes(
    name: str,
    superclass: Optional[str] = "java/lang/Object",
    interfaces: Iterable[str] = (),
    access: int = 0x0021,
) -> bytes:
    """Smallest well-formed class file: header, constant pool, no members."""
    pool = []

    def utf8(value: str) -> int:
        raw = value.encode("utf-8")
        pool.append(b"\x01" + struct.pack(">H", len(raw)) + raw)
        return len(pool)

    def class_ref(value: str) -> int:
        index = utf8(value)
        pool.append(b"\x07" + struct.pack(">H", index))
        return len(pool)

    this_index = class_ref(name)
    super_index = class_ref(superclass) if superclass else 0
    interface_indexes = [class_ref(i) for i in interfaces]

    data = struct.pack(">IHHH", 0xCAFEBABE, 0, 52, len(pool) + 1) + b"".join(pool)
    data += struct.pack(">HHHH", access, this_index, super_index, len(interface_indexes))
    data += b"".join(struct.pack(">H", i) for i in interface_indexes)
    data += struct.pack(">HHH", 0, 0, 0)
    return data


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample Java project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_project_copy(temp_dir: Path, sample_project_path: Path) -> Path:
    """Writable copy of the sample project (compilation writes into it)."""
    target = temp_dir / "sample_project"
    shutil.copytree(sample_project_path, target)
    return target


@pytest.fixture
def write_tree() -> Callable[[Path, Dict[str, str]], Path]:
    """Write ``{relative path: text}`` under a root and return the root."""

    def _write(root: Path, files: Dict[str, str]) -> Path:
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return _write


@pytest.fixture
def class_bytes() -> Callable[..., bytes]:
    """Builder for minimal class files."""
    return build_class_bytes


@pytest.fixture
def write_class() -> Callable[..., Path]:
    """Write a compiled class ``a/b/Name`` into a classes directory."""

    def _write(classes_dir: Path, name: str, **kwargs) -> Path:
        path = classes_dir / f"{name}.class"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_class_bytes(name, **kwargs))
        return path

    return _write


@pytest.fixture
def isolated_config(temp_dir: Path, monkeypatch) -> Path:
    """Point the default config file into the temporary directory."""
    config_file = temp_dir / "home" / "config.toml"
    monkeypatch.setattr("legacylens.config.BASE_DIR", config_file.parent)
    monkeypatch.setattr("legacylens.config.CONFIG_FILE", config_file)
    return config_file

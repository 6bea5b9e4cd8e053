"""Reading and normalizing Java source text.

Legacy trees mix encodings and are full of commented-out code, so every
extractor reads sources through :func:`read_source`, which:

- decodes UTF-8 and falls back to ISO-8859-1 when the bytes are not valid
  UTF-8 (or already contain replacement characters);
- strips block and line comments while leaving string literals alone, so a
  ``"http://"`` literal survives and commented calls never produce edges;
- keeps line breaks, so declarations stay on their own lines.
"""

from __future__ import annotations

import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set

from .errors import SourceReadFailed

logger = logging.getLogger(__name__)

# Tool and VCS directories, never part of a source tree
IGNORED_DIRS: Set[str] = {
    ".git", ".svn", ".hg", ".idea", ".vscode", ".settings", ".gradle", ".mvn",
    "node_modules", "__pycache__",
}
# Build output; inside a source tree these names are ordinary packages
BUILD_OUTPUT_DIRS: Set[str] = {"target", "build", "out", "bin", "dist"}
SKIP_DIRS: Set[str] = IGNORED_DIRS | BUILD_OUTPUT_DIRS
SOURCE_TREE_DIRS: Set[str] = {"src", "java"}

_COMMENT_OR_LITERAL = re.compile(
    r'("(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\')|(/\*.*?\*/|//[^\n]*)',
    re.DOTALL,
)
_TYPE_DECLARATION = re.compile(r"\b(?:class|interface|enum|record)\s+([A-Za-z_]\w*)")


def decode_source(data: bytes) -> str:
    """Decode source bytes, repairing Latin-1 files saved by old IDEs."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("iso-8859-1")
    if "�" in text:
        return data.decode("iso-8859-1")
    return text


def strip_comments(code: str) -> str:
    """Remove comments, keeping literals and the line structure."""

    def _replace(match: re.Match) -> str:
        literal, comment = match.group(1), match.group(2)
        if literal is not None:
            return literal
        return "\n" * comment.count("\n") or " "

    return _COMMENT_OR_LITERAL.sub(_replace, code)


def read_source(path: Path) -> str:
    """Return the normalized text of *path*.

    Raises:
        SourceReadFailed: if the file cannot be read.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SourceReadFailed(f"Cannot read {path}: {exc}") from exc
    return strip_comments(decode_source(data))


def declared_type_name(text: str) -> Optional[str]:
    """Name of the first class/interface/enum/record declared in *text*."""
    match = _TYPE_DECLARATION.search(text)
    return match.group(1) if match else None


def walk_dirs(root: Path, max_depth: int) -> Iterator[Path]:
    """Yield directories below *root* breadth-first, down to *max_depth* levels."""
    frontier: List[Path] = [root]
    for _ in range(max_depth):
        next_frontier: List[Path] = []
        for directory in frontier:
            try:
                children = sorted(p for p in directory.iterdir() if p.is_dir())
            except OSError as exc:
                logger.debug("Cannot list %s: %s", directory, exc)
                continue
            for child in children:
                yield child
                next_frontier.append(child)
        frontier = next_frontier


def find_file(root: Path, name: str, max_depth: int) -> Optional[Path]:
    """Shallowest file called *name* (case-insensitive) within *max_depth* levels."""
    wanted = name.lower()
    for directory in [root, *walk_dirs(root, max_depth - 1)]:
        if directory != root and directory.name in SKIP_DIRS:
            continue
        try:
            for entry in sorted(directory.iterdir()):
                if entry.is_file() and entry.name.lower() == wanted:
                    return entry
        except OSError:
            continue
    return None


def find_source_root(root: Path, candidates: Sequence[str]) -> Optional[Path]:
    """First existing conventional source root, else a ``java`` directory."""
    for candidate in candidates:
        path = root / candidate
        if path.is_dir():
            return path
    for directory in walk_dirs(root, 4):
        if directory.name.lower() == "java" and not (set(directory.relative_to(root).parts) & SKIP_DIRS):
            return directory
    return None


def iter_java_files(root: Path, source_root: bool = True) -> Iterator[Path]:
    """Yield ``.java`` files under *root* in a stable order.

    Tool and VCS directories are always skipped. Build output names such as
    ``build`` or ``target`` are skipped only outside a source tree: never
    when *root* is itself a source root, and otherwise only until the walk
    has entered a ``src`` or ``java`` directory. A ``com/acme/build``
    package is therefore still read.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        rel_parts = Path(dirpath).relative_to(root).parts
        inside = source_root or any(part in SOURCE_TREE_DIRS for part in rel_parts)
        skip = IGNORED_DIRS if inside else SKIP_DIRS
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for filename in sorted(filenames):
            if filename.endswith(".java"):
                yield Path(dirpath) / filename


class ScanState(Enum):
    CODE = "code"
    STRING = "string"
    CHAR = "char"


def find_block_end(text: str, open_index: int) -> Optional[int]:
    """Index just past the brace that closes the one at *open_index*.

    A small state machine over characters: braces only count in CODE, so
    ``"}"`` and ``'{'`` literals leave the depth alone. Returns ``None`` when
    the block never balances.
    """
    state = ScanState.CODE
    depth = 0
    escaped = False
    for index in range(open_index, len(text)):
        ch = text[index]
        if state is not ScanState.CODE:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif (state is ScanState.STRING and ch == '"') or (state is ScanState.CHAR and ch == "'"):
                state = ScanState.CODE
            continue
        if ch == '"':
            state = ScanState.STRING
        elif ch == "'":
            state = ScanState.CHAR
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None

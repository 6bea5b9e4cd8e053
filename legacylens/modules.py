"""Splitting a project root into independently buildable modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .errors import ResourceNotFound
from .source_reader import SKIP_DIRS, iter_java_files, walk_dirs

logger = logging.getLogger(__name__)

BUILD_FILES = ("pom.xml", "build.gradle", "build.gradle.kts")
MODULE_SEARCH_DEPTH = 2


def has_java_sources(directory: Path) -> bool:
    """True if *directory* holds at least one ``.java`` file."""
    if not directory.is_dir():
        return False
    return next(iter_java_files(directory), None) is not None


def is_buildable(directory: Path) -> bool:
    """True if *directory* holds a build description or a ``src`` tree with Java sources."""
    if any((directory / name).is_file() for name in BUILD_FILES):
        return True
    return has_java_sources(directory / "src")


def _candidates(root: Path) -> List[Path]:
    found: List[Path] = []
    for directory in walk_dirs(root, MODULE_SEARCH_DEPTH):
        rel_parts = directory.relative_to(root).parts
        if any(part in SKIP_DIRS or part.startswith(".") for part in rel_parts):
            continue
        # the src tree of a module is not a module of its own
        if "src" in rel_parts:
            continue
        if is_buildable(directory):
            found.append(directory)
    return found


def partition(root: Path, enabled: bool = True) -> List[Path]:
    """Return the module roots to process for *root*.

    A root is multi-module when more than one directory within two levels
    qualifies as a buildable unit. Directories that contain another
    qualifying directory (aggregators) are represented by their children.
    A root with Java sources of its own under ``src`` stays in the
    partition next to its submodules.
    """
    root = Path(root)
    if not root.is_dir():
        raise ResourceNotFound(f"Project root not found: {root}")
    if not enabled:
        return [root]

    candidates = _candidates(root)
    leaves = [
        c for c in candidates
        if not any(other != c and c in other.parents for other in candidates)
    ]
    own_sources = has_java_sources(root / "src")
    if not leaves or (len(leaves) == 1 and not own_sources):
        logger.info("Single-module project: %s", root)
        return [root]

    modules = ([root] if own_sources else []) + leaves
    logger.info("Multi-module project with %d modules: %s",
                len(modules), ", ".join(str(p.relative_to(root)) for p in modules))
    return modules

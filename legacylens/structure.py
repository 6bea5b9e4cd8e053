"""Recovering the class graph from compiled output."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set

from .classfile import ClassInfo, read_class
from .errors import ClassFormatError
from .models import ClassGraph, ClassNode
from .source_reader import walk_dirs

logger = logging.getLogger(__name__)

CONVENTIONAL_CLASS_DIRS = ["target/classes", "build/classes/java/main", "bin"]
CLASSES_SEARCH_DEPTH = 4
TRIVIAL_SUPERCLASSES = {"java.lang.Object", "java.lang.Enum", "java.lang.Record"}


def find_classes_dirs(root: Path) -> List[Path]:
    """Compiled-class directories of a (possibly multi-module) tree.

    Conventional locations at the root come first, then any directory named
    ``classes`` within four levels. Paths are absolute and unique.
    """
    found: List[Path] = []
    for rel in CONVENTIONAL_CLASS_DIRS:
        candidate = root / rel
        if candidate.is_dir():
            found.append(candidate)
    for directory in walk_dirs(root, CLASSES_SEARCH_DEPTH):
        if directory.name == "classes":
            found.append(directory)

    unique: List[Path] = []
    seen: Set[Path] = set()
    for path in found:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique.append(resolved)
    return unique


def _class_files(classes_dir: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(classes_dir):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(".class"):
                yield Path(dirpath) / filename


def _package_of(classes_dir: Path, class_file: Path) -> str:
    rel = class_file.relative_to(classes_dir).with_suffix("")
    return ".".join(rel.parts[:-1])


def detect_packages(classes_dir: Path, limit: int = 150) -> Set[str]:
    """Distinct packages of the class files under *classes_dir*, at most *limit*."""
    packages: Set[str] = set()
    for class_file in _class_files(classes_dir):
        package = _package_of(classes_dir, class_file)
        if not package:
            continue
        packages.add(package)
        if len(packages) >= limit:
            logger.warning("Package limit of %d reached in %s", limit, classes_dir)
            break
    return packages


def _eligible(info: ClassInfo, include_abstract: bool) -> bool:
    if not info.is_standard_class or info.is_synthetic or info.is_anonymous:
        return False
    return include_abstract or not info.is_abstract


def _simple(name: str) -> str:
    return name.rsplit(".", 1)[-1].rsplit("$", 1)[-1]


def _to_node(info: ClassInfo) -> ClassNode:
    superclass = None
    if info.superclass and info.superclass not in TRIVIAL_SUPERCLASSES:
        superclass = _simple(info.superclass)
    return ClassNode(
        name=info.simple_name,
        superclass=superclass,
        interfaces=tuple(_simple(i) for i in info.interfaces),
        qualified_name=info.name,
    )


def _load_classes(class_dirs: Iterable[Path], packages: Optional[Set[str]]) -> Iterator[ClassInfo]:
    for classes_dir in class_dirs:
        for class_file in _class_files(classes_dir):
            if packages and _package_of(classes_dir, class_file) not in packages:
                continue
            try:
                yield read_class(class_file)
            except ClassFormatError as exc:
                logger.warning("Skipping unreadable class file: %s", exc)


def extract_classes(
    class_dirs: Iterable[Path],
    packages: Optional[Set[str]] = None,
    max_classes: int = 500,
    include_abstract: bool = True,
) -> ClassGraph:
    """Build the class graph of *class_dirs*, restricted to *packages*.

    At most *max_classes* nodes are emitted; ``truncated`` is set when more
    eligible classes exist. Any failure while scanning yields an empty graph
    marked as failed instead of raising.
    """
    graph = ClassGraph()
    seen: Set[str] = set()
    try:
        for info in _load_classes(list(class_dirs), packages):
            if info.name in seen or not _eligible(info, include_abstract):
                continue
            if len(graph.classes) >= max_classes:
                graph.truncated = True
                logger.warning("Class limit of %d reached, class graph truncated", max_classes)
                break
            seen.add(info.name)
            graph.classes.append(_to_node(info))
    except Exception as exc:
        logger.error("Class scan failed: %s", exc)
        return ClassGraph.failure(str(exc))

    logger.info("Class graph: %d classes%s", len(graph.classes), " (truncated)" if graph.truncated else "")
    return graph


def extract_module_classes(
    module_root: Path,
    class_dirs: Optional[List[Path]] = None,
    max_classes: int = 500,
    package_limit: int = 150,
    include_abstract: bool = True,
) -> ClassGraph:
    """Locate compiled output of *module_root*, derive the package filter and extract."""
    dirs = class_dirs if class_dirs is not None else find_classes_dirs(module_root)
    if not dirs:
        return ClassGraph.failure(f"No compiled classes under {module_root}")
    packages: Set[str] = set()
    for classes_dir in dirs:
        remaining = package_limit - len(packages)
        if remaining <= 0:
            break
        packages |= detect_packages(classes_dir, remaining)
    logger.debug("Packages detected: %s", sorted(packages) or "none")
    return extract_classes(dirs, packages or None, max_classes, include_abstract)

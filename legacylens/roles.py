"""Role classification of source classes.

Rules are tried in order and the first hit wins: framework annotations,
marker supertypes, a role keyword in the file path, then the file-name
suffix. Anything else is unclassified and ignored by the behavioral pass.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import SourceReadFailed
from .models import ClassRole, Role, RoleAssignment
from .source_reader import declared_type_name, iter_java_files, read_source

logger = logging.getLogger(__name__)


def _any_of(*words: str) -> "re.Pattern[str]":
    return re.compile("|".join(words))


ANNOTATION_RULES: List[Tuple[Role, "re.Pattern[str]"]] = [
    (Role.ENTRY_POINT, _any_of(r"@RestController\b", r"@Controller\b", r"@WebServlet\b", r"@Path\b")),
    (Role.COMPONENT, _any_of(r"@Service\b", r"@Stateless\b", r"@Stateful\b", r"@Singleton\b")),
    (Role.DATA_ACCESS, _any_of(r"@Repository\b")),
]

MARKER_RULES: List[Tuple[Role, "re.Pattern[str]"]] = [
    (Role.ENTRY_POINT, _any_of(r"\bextends\s+HttpServlet\b")),
    (Role.COMPONENT, _any_of(r"\bimplements\b[^{]*\b(?:SessionBean|SessionSynchronization)\b")),
    (
        Role.DATA_ACCESS,
        _any_of(
            r"\b(?:extends|implements)\b[^{]*\b(?:JpaRepository|CrudRepository|PagingAndSortingRepository|MongoRepository)\b",
            r"\bEntityManager\s+\w+\s*[;=]",
        ),
    ),
]

PATH_KEYWORDS: List[Tuple[Role, Tuple[str, ...]]] = [
    (Role.ENTRY_POINT, ("controller",)),
    (Role.COMPONENT, ("service",)),
    (Role.DATA_ACCESS, ("repository", "dao")),
]

NAME_SUFFIXES: List[Tuple[Role, Tuple[str, ...]]] = [
    (Role.ENTRY_POINT, ("Controller", "Resource", "Endpoint", "Servlet", "Action")),
    (Role.COMPONENT, ("Service", "ServiceImpl", "Manager", "Facade", "Bean")),
    (Role.DATA_ACCESS, ("Repository", "RepositoryImpl", "Dao", "DaoImpl", "DAO", "Mapper")),
]


def _relative_path(path: Path, source_root: Optional[Path]) -> str:
    if source_root is not None:
        try:
            return path.relative_to(source_root).as_posix().lower()
        except ValueError:
            pass
    return path.as_posix().lower()


def classify_text(path: Path, text: str, source_root: Optional[Path] = None) -> Role:
    for role, pattern in ANNOTATION_RULES:
        if pattern.search(text):
            return role
    for role, pattern in MARKER_RULES:
        if pattern.search(text):
            return role
    rel = _relative_path(path, source_root)
    for role, keywords in PATH_KEYWORDS:
        if any(k in rel for k in keywords):
            return role
    for role, suffixes in NAME_SUFFIXES:
        if path.stem.endswith(suffixes):
            return role
    return Role.UNCLASSIFIED


def classify(path: Path, text: str, source_root: Optional[Path] = None) -> Optional[ClassRole]:
    """Role of the type declared in *path*, or ``None`` when it declares none."""
    name = declared_type_name(text)
    if name is None:
        return None
    return ClassRole(name=name, role=classify_text(path, text, source_root), path=path)


def classify_sources(source_root: Path) -> Tuple[RoleAssignment, int]:
    """Classify every Java file under *source_root*.

    Returns the assignment and the number of files that could not be read.
    """
    assignment = RoleAssignment()
    skipped = 0
    for path in iter_java_files(source_root):
        try:
            text = read_source(path)
        except SourceReadFailed as exc:
            logger.warning("Skipping unreadable source: %s", exc)
            skipped += 1
            continue
        entry = classify(path, text, source_root)
        if entry is None:
            logger.debug("No type declaration in %s", path)
            continue
        if not assignment.add(entry):
            logger.debug("Duplicate class name %s in %s, keeping first", entry.name, path)

    logger.info(
        "Roles: %d entry points, %d components, %d data access, %d unclassified",
        len(assignment.of_role(Role.ENTRY_POINT)),
        len(assignment.of_role(Role.COMPONENT)),
        len(assignment.of_role(Role.DATA_ACCESS)),
        len(assignment.of_role(Role.UNCLASSIFIED)),
    )
    return assignment, skipped

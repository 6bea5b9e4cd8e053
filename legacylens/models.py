"""Core data models shared by the scanners, extractors and the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class TechStackSummary:
    project_type: str
    language_version: Optional[str] = None
    framework_version: Optional[str] = None
    runtime_version: Optional[str] = None
    dependencies: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", MappingProxyType(dict(self.dependencies)))

    @classmethod
    def empty(cls, project_type: str) -> "TechStackSummary":
        return cls(project_type=project_type)


@dataclass(frozen=True)
class ClassNode:
    name: str
    superclass: Optional[str] = None
    interfaces: Tuple[str, ...] = ()
    qualified_name: str = ""


@dataclass
class ClassGraph:
    classes: List[ClassNode] = field(default_factory=list)
    truncated: bool = False
    failed: bool = False
    error: str = ""

    def edges(self) -> Iterator[Tuple[str, str, str]]:
        """Yield ``(child, parent, kind)`` for every inheritance edge."""
        for node in self.classes:
            if node.superclass:
                yield node.name, node.superclass, "extends"
            for itf in node.interfaces:
                yield node.name, itf, "implements"

    @classmethod
    def failure(cls, error: str) -> "ClassGraph":
        return cls(failed=True, error=error)


class Role(str, Enum):
    ENTRY_POINT = "entry_point"
    COMPONENT = "component"
    DATA_ACCESS = "data_access"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ClassRole:
    name: str
    role: Role
    path: Path


class RoleAssignment:
    """Class name -> role for one module. A class keeps its first role."""

    def __init__(self) -> None:
        self._entries: Dict[str, ClassRole] = {}

    def add(self, entry: ClassRole) -> bool:
        if entry.name in self._entries:
            return False
        self._entries[entry.name] = entry
        return True

    def get(self, name: str) -> Optional[ClassRole]:
        return self._entries.get(name)

    def role_of(self, name: str) -> Role:
        entry = self._entries.get(name)
        return entry.role if entry else Role.UNCLASSIFIED

    def of_role(self, role: Role) -> Dict[str, ClassRole]:
        return {n: e for n, e in self._entries.items() if e.role is role}

    def names(self, *roles: Role) -> List[str]:
        return [n for n, e in self._entries.items() if e.role in roles]

    def __iter__(self) -> Iterator[ClassRole]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


# variable or field name -> class name it refers to
InjectionMap = Dict[str, str]


@dataclass
class Operation:
    owner: str
    name: str
    request_type: Optional[str] = None
    request_fields: List[str] = field(default_factory=list)
    response_type: Optional[str] = None
    response_status: Optional[str] = None
    http_method: Optional[str] = None


@dataclass(frozen=True)
class CallEdge:
    caller: str
    callee: str
    method: str


@dataclass
class CallSequence:
    operation: Operation
    edges: List[CallEdge] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.edges)


@dataclass(frozen=True)
class StrategyResult:
    name: str
    success: bool
    detail: str = ""


@dataclass
class CompiledOutput:
    strategy: str
    class_dirs: List[Path] = field(default_factory=list)
    attempts: List[StrategyResult] = field(default_factory=list)


class ModuleStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass
class ModuleAnalysis:
    name: str
    root: Path
    status: ModuleStatus = ModuleStatus.SUCCESS
    architecture: str = ""
    compiled: Optional[CompiledOutput] = None
    class_graph: Optional[ClassGraph] = None
    roles: Optional[RoleAssignment] = None
    sequences: Dict[str, List[CallSequence]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


@dataclass
class ProjectAnalysis:
    root: Path
    tech_stack: TechStackSummary
    modules: List[ModuleAnalysis] = field(default_factory=list)
    status: ModuleStatus = ModuleStatus.SUCCESS
    errors: List[str] = field(default_factory=list)

"""Single coordinating flow of an analysis run.

``AnalysisEngine.analyze(root)`` scans the tech stack once, partitions the
tree into modules and processes the modules on a small thread pool. Inside a
module the compile-then-extract structural pass runs on a second worker
while roles are classified and call sequences traced on the calling one.
Nothing raised inside a module escapes it: the module is marked as failed
and its siblings carry on.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional

from .behavior import BehavioralExtractor
from .compiler import CompilationOrchestrator
from .config_manager import EngineConfig
from .errors import CompilationFailed, ResourceNotFound, SourceReadFailed
from .heuristics import detect_architecture
from .metadata import ScannerSelector
from .models import ClassGraph, ModuleAnalysis, ModuleStatus, ProjectAnalysis, RoleAssignment
from .modules import partition
from .roles import classify_sources
from .source_reader import find_source_root, read_source
from .structure import extract_module_classes

logger = logging.getLogger(__name__)


def module_status(analysis: ModuleAnalysis, skipped_files: int = 0) -> ModuleStatus:
    structural_ok = analysis.class_graph is not None and not analysis.class_graph.failed
    behavioral_ok = analysis.roles is not None
    if structural_ok and behavioral_ok and skipped_files == 0:
        return ModuleStatus.SUCCESS
    if not structural_ok and not (analysis.roles and len(analysis.roles)):
        return ModuleStatus.FAILURE
    return ModuleStatus.PARTIAL


def project_status(modules: List[ModuleAnalysis]) -> ModuleStatus:
    if not modules or all(m.status is ModuleStatus.FAILURE for m in modules):
        return ModuleStatus.FAILURE
    if all(m.status is ModuleStatus.SUCCESS for m in modules):
        return ModuleStatus.SUCCESS
    return ModuleStatus.PARTIAL


class AnalysisEngine:
    """Runs metadata, structural and behavioral extraction over a project tree."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        orchestrator: Optional[CompilationOrchestrator] = None,
        selector: Optional[ScannerSelector] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.orchestrator = orchestrator or CompilationOrchestrator(self.config)
        self.selector = selector or ScannerSelector()

    def analyze(self, root: Path) -> ProjectAnalysis:
        root = Path(root)
        started = time.perf_counter()
        tech_stack = self.selector.scan(root)
        logger.info("Tech stack: %s", tech_stack.project_type)

        try:
            module_roots = partition(root, self.config.multi_module)
        except ResourceNotFound as exc:
            logger.error("%s", exc)
            return ProjectAnalysis(root=root, tech_stack=tech_stack, status=ModuleStatus.FAILURE, errors=[str(exc)])

        workers = max(1, min(self.config.max_workers, len(module_roots)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="module") as pool:
            modules = list(pool.map(lambda m: self._analyze_module_safely(root, m), module_roots))

        analysis = ProjectAnalysis(root=root, tech_stack=tech_stack, modules=modules)
        analysis.status = project_status(modules)
        for module in modules:
            analysis.errors.extend(f"{module.name}: {e}" for e in module.errors)
        logger.info(
            "Analysis of %s finished in %.1fs: %s (%d modules)",
            root, time.perf_counter() - started, analysis.status.value, len(modules),
        )
        return analysis

    def _analyze_module_safely(self, project_root: Path, module_root: Path) -> ModuleAnalysis:
        name = _module_name(project_root, module_root)
        try:
            return self.analyze_module(module_root, name)
        except Exception as exc:
            logger.exception("Module %s failed", name)
            return ModuleAnalysis(name=name, root=module_root, status=ModuleStatus.FAILURE, errors=[str(exc)])

    def analyze_module(self, module_root: Path, name: Optional[str] = None) -> ModuleAnalysis:
        """Analyze one module; the structural pass runs next to the behavioral one."""
        analysis = ModuleAnalysis(name=name or module_root.name, root=module_root)
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="structure") as pool:
            structural = pool.submit(self._structural_pass, module_root, analysis)
            skipped = self._behavioral_pass(module_root, analysis)
            analysis.class_graph = structural.result()

        analysis.status = module_status(analysis, skipped)
        logger.info("Module %s: %s", analysis.name, analysis.status.value)
        return analysis

    def _structural_pass(self, module_root: Path, analysis: ModuleAnalysis) -> Optional[ClassGraph]:
        """Compile and extract the class graph; never raises, so sequences survive."""
        try:
            analysis.compiled = self.orchestrator.compile(module_root)
        except CompilationFailed as exc:
            logger.warning("%s", exc)
            analysis.errors.append(str(exc))
            return None
        except Exception as exc:
            logger.exception("Compilation of %s failed unexpectedly", module_root)
            analysis.errors.append(f"Compilation failed: {exc}")
            return ClassGraph.failure(str(exc))

        try:
            graph = extract_module_classes(
                module_root,
                analysis.compiled.class_dirs,
                max_classes=self.config.max_classes,
                package_limit=self.config.package_limit,
                include_abstract=self.config.include_abstract,
            )
        except Exception as exc:
            logger.exception("Class extraction of %s failed", module_root)
            graph = ClassGraph.failure(str(exc))
        if graph.failed:
            analysis.errors.append(f"Class scan failed: {graph.error}")
        return graph

    def _behavioral_pass(self, module_root: Path, analysis: ModuleAnalysis) -> int:
        """Classify roles and trace sequences; returns the number of unreadable files."""
        source_root = find_source_root(module_root, self.config.source_roots)
        if source_root is None:
            error = ResourceNotFound(f"No source root under {module_root}")
            logger.warning("%s", error)
            analysis.errors.append(str(error))
            return 0

        roles, skipped = classify_sources(source_root)
        if skipped:
            analysis.errors.append(f"{skipped} source files could not be read")
        analysis.roles = roles
        analysis.architecture = detect_architecture(_texts(roles))
        analysis.sequences = BehavioralExtractor(roles, source_root, self.config).trace_all()
        return skipped


def _module_name(project_root: Path, module_root: Path) -> str:
    try:
        rel = module_root.relative_to(project_root)
    except ValueError:
        return module_root.name
    return rel.as_posix() if rel.parts else project_root.name


def _texts(roles: RoleAssignment) -> Iterator[str]:
    for entry in roles:
        try:
            yield read_source(entry.path)
        except SourceReadFailed as exc:
            logger.debug("Skipping %s: %s", entry.path, exc)

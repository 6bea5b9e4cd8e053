"""Cascading compilation of an arbitrary module into class files.

The cascade is an explicit ordered list of strategies. Each one is asked
whether it applies to the module; applicable strategies run in order until
one leaves compiled classes behind:

1. Maven wrapper (``mvnw`` / ``mvnw.cmd``)
2. ``mvn`` on the PATH, when a ``pom.xml`` is present
3. Gradle wrapper (``gradlew`` / ``gradlew.cmd``)
4. ``gradle`` on the PATH, when a Gradle build script is present
5. ``javac`` over every source file, with a classpath guessed from the
   frameworks the sources mention and the jars found in the local cache

A non-zero exit, a timeout (the child is killed) or an exit without output
moves on to the next strategy. Running out of strategies raises
:class:`CompilationFailed`.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config_manager import EngineConfig
from .errors import CompilationFailed, SourceReadFailed
from .heuristics import detect_frameworks, jar_prefixes
from .models import CompiledOutput, StrategyResult
from .source_reader import find_source_root, iter_java_files, read_source
from .structure import find_classes_dirs

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"
MAX_CLASSPATH_JARS = 200


@dataclass(frozen=True)
class BuildFamily:
    name: str
    wrapper: str
    tool: str
    manifests: Tuple[str, ...]
    args: Tuple[str, ...]
    skip_test_args: Tuple[str, ...]


MAVEN = BuildFamily(
    name="maven",
    wrapper="mvnw",
    tool="mvn",
    manifests=("pom.xml",),
    args=("clean", "compile", "-q"),
    skip_test_args=("-DskipTests",),
)
GRADLE = BuildFamily(
    name="gradle",
    wrapper="gradlew",
    tool="gradle",
    manifests=("build.gradle", "build.gradle.kts"),
    args=("build",),
    skip_test_args=("-x", "test"),
)


def has_class_files(class_dirs: Sequence[Path]) -> bool:
    for classes_dir in class_dirs:
        if next(classes_dir.rglob("*.class"), None) is not None:
            return True
    return False


def run_build_command(name: str, command: List[str], cwd: Path, timeout: int) -> StrategyResult:
    """Run one build command, logging its output; never raises."""
    logger.info("Compiling %s with %s: %s", cwd, name, " ".join(command))
    try:
        completed = subprocess.run(
            command,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %ss in %s", name, timeout, cwd)
        return StrategyResult(name, False, f"timed out after {timeout}s")
    except OSError as exc:
        logger.warning("%s could not be started: %s", name, exc)
        return StrategyResult(name, False, str(exc))

    for line in (completed.stdout or "").splitlines():
        logger.debug("[BUILD] %s", line)
    if completed.returncode != 0:
        logger.warning("%s exited with code %d", name, completed.returncode)
        return StrategyResult(name, False, f"exit code {completed.returncode}")
    return StrategyResult(name, True)


# ===================================================================
# Strategies
# ===================================================================

class BuildStrategy(ABC):
    """One way of turning a module into class files."""

    name: str = "strategy"

    @abstractmethod
    def applicable(self, module_root: Path) -> bool:
        ...

    @abstractmethod
    def run(self, module_root: Path, timeout: int) -> StrategyResult:
        ...


class WrapperStrategy(BuildStrategy):
    """Build-tool wrapper script shipped with the module."""

    def __init__(self, family: BuildFamily, skip_tests: bool = True, windows: bool = IS_WINDOWS) -> None:
        self.family = family
        self.skip_tests = skip_tests
        self.windows = windows
        self.name = f"{family.name}-wrapper"

    def _script(self, module_root: Path) -> Path:
        suffix = ".cmd" if self.windows else ""
        return module_root / f"{self.family.wrapper}{suffix}"

    def applicable(self, module_root: Path) -> bool:
        return self._script(module_root).is_file()

    def command(self, module_root: Path) -> List[str]:
        script = self._script(module_root).resolve()
        args = list(self.family.args)
        if self.skip_tests:
            args += self.family.skip_test_args
        if self.windows:
            return ["cmd.exe", "/c", str(script), *args]
        # wrappers extracted from archives often lose the executable bit
        if not os.access(script, os.X_OK):
            return ["sh", str(script), *args]
        return [str(script), *args]

    def run(self, module_root: Path, timeout: int) -> StrategyResult:
        return run_build_command(self.name, self.command(module_root), module_root, timeout)


class PathToolStrategy(BuildStrategy):
    """Build tool installed on the PATH, used when its manifest is present."""

    def __init__(self, family: BuildFamily, skip_tests: bool = True, windows: bool = IS_WINDOWS) -> None:
        self.family = family
        self.skip_tests = skip_tests
        self.windows = windows
        self.name = family.tool

    def applicable(self, module_root: Path) -> bool:
        has_manifest = any((module_root / m).is_file() for m in self.family.manifests)
        return has_manifest and shutil.which(self.family.tool) is not None

    def command(self) -> List[str]:
        args = list(self.family.args)
        if self.skip_tests:
            args += self.family.skip_test_args
        if self.windows:
            return ["cmd.exe", "/c", self.family.tool, *args]
        return [self.family.tool, *args]

    def run(self, module_root: Path, timeout: int) -> StrategyResult:
        return run_build_command(self.name, self.command(), module_root, timeout)


def assemble_classpath(sources: Sequence[Path], cache_dir: Path, limit: int = MAX_CLASSPATH_JARS) -> List[Path]:
    """Jars from *cache_dir* whose names start with a prefix of a framework the sources use."""
    if not cache_dir.is_dir():
        logger.debug("Dependency cache %s not found", cache_dir)
        return []

    def texts():
        for path in sources:
            try:
                yield read_source(path)
            except SourceReadFailed as exc:
                logger.debug("Skipping %s: %s", path, exc)

    prefixes = tuple(jar_prefixes(detect_frameworks(texts())))
    if not prefixes:
        return []

    jars: List[Path] = []
    for jar in sorted(cache_dir.rglob("*.jar")):
        name = jar.name
        if name.endswith(("-sources.jar", "-javadoc.jar")) or not name.startswith(prefixes):
            continue
        jars.append(jar)
        if len(jars) >= limit:
            logger.warning("Classpath capped at %d archives", limit)
            break
    logger.info("Classpath assembled from %d archives (prefixes: %s)", len(jars), ", ".join(prefixes))
    return jars


def _argfile_line(path: Path) -> str:
    return '"' + str(path).replace("\\", "\\\\") + '"'


class DirectCompileStrategy(BuildStrategy):
    """Single ``javac`` pass over every source file of the module."""

    name = "javac"

    def __init__(self, source_roots: Sequence[str], dependency_cache: Path) -> None:
        self.source_roots = list(source_roots)
        self.dependency_cache = dependency_cache

    def applicable(self, module_root: Path) -> bool:
        return shutil.which("javac") is not None and find_source_root(module_root, self.source_roots) is not None

    def run(self, module_root: Path, timeout: int) -> StrategyResult:
        source_root = find_source_root(module_root, self.source_roots)
        sources = list(iter_java_files(source_root)) if source_root else []
        if not sources:
            logger.warning("No Java sources to compile under %s", module_root)
            return StrategyResult(self.name, False, "no sources")

        output_dir = module_root / "target" / "classes"
        output_dir.mkdir(parents=True, exist_ok=True)
        argfile = module_root / "target" / "legacylens-sources.txt"
        argfile.write_text("\n".join(_argfile_line(p) for p in sources), encoding="utf-8")

        command = ["javac", "-encoding", "UTF-8", "-nowarn", "-d", str(output_dir)]
        classpath = assemble_classpath(sources, self.dependency_cache)
        if classpath:
            command += ["-cp", os.pathsep.join(str(j) for j in classpath)]
        command.append(f"@{argfile}")
        return run_build_command(self.name, command, module_root, timeout)


# ===================================================================
# Orchestrator
# ===================================================================

class CompilationOrchestrator:
    """Runs the strategy cascade for one module at a time."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        strategies: Optional[List[BuildStrategy]] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.strategies = strategies if strategies is not None else self.default_strategies(self.config)

    @staticmethod
    def default_strategies(config: EngineConfig, windows: bool = IS_WINDOWS) -> List[BuildStrategy]:
        strategies: List[BuildStrategy] = []
        for family in (MAVEN, GRADLE):
            if config.use_wrappers:
                strategies.append(WrapperStrategy(family, config.skip_tests, windows))
            strategies.append(PathToolStrategy(family, config.skip_tests, windows))
        if config.fallback_compiler:
            strategies.append(DirectCompileStrategy(config.source_roots, Path(config.dependency_cache).expanduser()))
        return strategies

    def compile(self, module_root: Path) -> CompiledOutput:
        """Compile *module_root* with the first strategy that produces classes.

        Raises:
            CompilationFailed: when no strategy succeeded.
        """
        attempts: List[StrategyResult] = []
        for strategy in self.strategies:
            if not strategy.applicable(module_root):
                logger.debug("Strategy %s not applicable to %s", strategy.name, module_root)
                continue
            try:
                result = strategy.run(module_root, self.config.compile_timeout)
            except OSError as exc:
                logger.warning("%s failed in %s: %s", strategy.name, module_root, exc)
                result = StrategyResult(strategy.name, False, str(exc))
            if result.success:
                class_dirs = find_classes_dirs(module_root)
                if not has_class_files(class_dirs):
                    result = StrategyResult(strategy.name, False, "no compiled classes produced")
                    logger.warning("%s finished without compiled classes in %s", strategy.name, module_root)
            attempts.append(result)
            if result.success:
                logger.info("Compiled %s with %s", module_root, strategy.name)
                return CompiledOutput(strategy=strategy.name, class_dirs=class_dirs, attempts=attempts)

        raise CompilationFailed(module_root, attempts)

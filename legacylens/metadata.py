"""Build-description scanners producing a :class:`TechStackSummary`.

Three interchangeable strategies (Maven ``pom.xml``, Gradle build scripts,
packaged archives / compiled-class directories) sit behind a common
:class:`MetadataScanner` interface; :class:`ScannerSelector` inspects a path and
delegates to the right one.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

from .errors import SourceReadFailed
from .heuristics import detect_frameworks, libraries_from_keywords
from .models import TechStackSummary
from .source_reader import find_file, iter_java_files, read_source, walk_dirs

logger = logging.getLogger(__name__)

UNSPECIFIED = "unspecified"
UNKNOWN = "unknown"
_SOURCE_SAMPLE_LIMIT = 400


# ===================================================================
# Abstract Scanner Interface
# ===================================================================

class MetadataScanner(ABC):
    """Reads one build-description format into a tech-stack summary."""

    project_type: str = "UNKNOWN"

    @abstractmethod
    def scan(self, path: Path) -> TechStackSummary:
        """Summarize the project found at *path*."""
        ...

    def safe_scan(self, path: Path) -> TechStackSummary:
        try:
            return self.scan(path)
        except Exception as exc:
            logger.error("Failed to analyse %s project at %s: %s", self.project_type, path, exc)
            return TechStackSummary.empty(f"{self.project_type}_ERROR")


def _source_texts(root: Path) -> Iterator[str]:
    for index, path in enumerate(iter_java_files(root, source_root=False)):
        if index >= _SOURCE_SAMPLE_LIMIT:
            return
        try:
            yield read_source(path)
        except SourceReadFailed as exc:
            logger.debug("Skipping %s: %s", path, exc)


def libraries_from_source(root: Path) -> Dict[str, str]:
    """Libraries implied by imports and annotations in the Java sources."""
    if not root.is_dir():
        return {}
    return libraries_from_keywords(detect_frameworks(_source_texts(root)))


def _merge(declared: Dict[str, str], detected: Dict[str, str]) -> Dict[str, str]:
    merged = dict(declared)
    declared_artifacts = {k.split(":")[-1] for k in declared}
    for coordinate, version in detected.items():
        if coordinate in merged or coordinate.split(":")[-1] in declared_artifacts:
            continue
        merged[coordinate] = version
    return merged


def _framework_version(dependencies: Dict[str, str], fallback: Optional[str]) -> str:
    for coordinate, version in dependencies.items():
        if "spring-core" not in coordinate and "spring-context" not in coordinate:
            continue
        if version not in (UNSPECIFIED, UNKNOWN):
            return version
    return fallback or UNKNOWN


# ===================================================================
# Maven
# ===================================================================

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if element is None:
        return None
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _text(element: Optional[ET.Element], name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


class MavenScanner(MetadataScanner):
    project_type = "MAVEN"

    def scan(self, path: Path) -> TechStackSummary:
        pom = path / "pom.xml"
        logger.info("Reading %s", pom)
        root = ET.parse(pom).getroot()

        properties: Dict[str, str] = {}
        props = _child(root, "properties")
        if props is not None:
            for prop in props:
                if prop.text:
                    properties[_local(prop.tag)] = prop.text.strip()
        project_version = _text(root, "version") or _text(_child(root, "parent"), "version")
        if project_version:
            properties.setdefault("project.version", project_version)

        def resolve(value: Optional[str]) -> str:
            if not value:
                return UNSPECIFIED
            return _PLACEHOLDER.sub(lambda m: properties.get(m.group(1), m.group(0)), value)

        language_version = (
            properties.get("java.version")
            or properties.get("maven.compiler.release")
            or properties.get("maven.compiler.source")
        )

        dependencies: Dict[str, str] = {}
        for dep in self._dependency_elements(root):
            group, artifact = _text(dep, "groupId"), _text(dep, "artifactId")
            if not group or not artifact:
                continue
            version = resolve(_text(dep, "version"))
            if "${" in version:
                version = UNSPECIFIED
            dependencies[f"{resolve(group)}:{artifact}"] = version

        runtime_version = self._boot_version(root, properties)
        framework_version = _framework_version(dependencies, runtime_version)
        dependencies = _merge(dependencies, libraries_from_source(path))

        logger.info(
            "Maven project: java=%s framework=%s runtime=%s libraries=%d",
            language_version, framework_version, runtime_version, len(dependencies),
        )
        return TechStackSummary(
            project_type=self.project_type,
            language_version=language_version,
            framework_version=framework_version,
            runtime_version=runtime_version,
            dependencies=dependencies,
        )

    @staticmethod
    def _dependency_elements(root: ET.Element) -> Iterable[ET.Element]:
        deps = _child(root, "dependencies")
        return [d for d in deps if _local(d.tag) == "dependency"] if deps is not None else []

    @staticmethod
    def _boot_version(root: ET.Element, properties: Dict[str, str]) -> Optional[str]:
        parent = _child(root, "parent")
        if parent is not None and _text(parent, "groupId") == "org.springframework.boot":
            return _text(parent, "version")
        return properties.get("spring-boot.version") or None


# ===================================================================
# Gradle
# ===================================================================

_GRADLE_JAVA = [
    re.compile(r"sourceCompatibility\s*=\s*['\"]?(\d+(?:\.\d+)?)['\"]?"),
    re.compile(r"JavaVersion\.VERSION_(\d+(?:_\d+)?)"),
    re.compile(r"languageVersion(?:\.set\(|\s*=\s*)\s*JavaLanguageVersion\.of\(\s*(\d+)\s*\)"),
]
_GRADLE_BOOT = [
    re.compile(r"id\s*\(?\s*['\"]org\.springframework\.boot['\"]\s*\)?\s*version\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"spring-boot[\w-]*['\"]?\s*[:=]\s*['\"]?(\d+\.\d+\.\d+[\w.-]*)"),
    re.compile(r"springBootVersion\s*=\s*['\"]([^'\"]+)['\"]"),
]
_GRADLE_DEPENDENCY = re.compile(
    r"\b(?:implementation|api|compileOnly|runtimeOnly|testImplementation|compile|annotationProcessor)"
    r"\s*\(?\s*['\"]([\w.\-]+):([\w.\-]+)(?::([^'\"@]+))?(?:@\w+)?['\"]"
)


def _first(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).replace("_", ".")
    return None


class GradleScanner(MetadataScanner):
    project_type = "GRADLE"

    def scan(self, path: Path) -> TechStackSummary:
        build = path / "build.gradle"
        if not build.exists():
            build = path / "build.gradle.kts"
        content = build.read_text(encoding="utf-8", errors="replace")

        language_version = _first(_GRADLE_JAVA, content)
        runtime_version = _first(_GRADLE_BOOT, content)

        dependencies: Dict[str, str] = {}
        for match in _GRADLE_DEPENDENCY.finditer(content):
            coordinate = f"{match.group(1)}:{match.group(2)}"
            version = match.group(3) or UNSPECIFIED
            if "$" in version:
                version = UNSPECIFIED
            dependencies.setdefault(coordinate, version)

        framework_version = _framework_version(dependencies, runtime_version)
        dependencies = _merge(dependencies, libraries_from_source(path))

        logger.info("Gradle project: java=%s runtime=%s libraries=%d",
                    language_version, runtime_version, len(dependencies))
        return TechStackSummary(
            project_type=self.project_type,
            language_version=language_version,
            framework_version=framework_version,
            runtime_version=runtime_version,
            dependencies=dependencies,
        )


# ===================================================================
# Packaged archives and compiled-class directories
# ===================================================================

_BUNDLED_JAR = re.compile(r"^(?:BOOT-INF|WEB-INF)/lib/([^/]+?)-(\d[^/]*)\.jar$")


def _parse_manifest(raw: str) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    last_key: Optional[str] = None
    for line in raw.splitlines():
        if line.startswith(" ") and last_key:
            attributes[last_key] += line[1:]
        elif ":" in line:
            key, value = line.split(":", 1)
            last_key = key.strip()
            attributes[last_key] = value.strip()
    return attributes


class JarScanner(MetadataScanner):
    project_type = "JAR"

    def scan(self, path: Path) -> TechStackSummary:
        if path.is_dir():
            return self._scan_directory(path)

        runtime_version = None
        language_version = None
        framework = None
        dependencies: Dict[str, str] = {}
        with zipfile.ZipFile(path) as archive:
            names = archive.namelist()
            if "META-INF/MANIFEST.MF" in names:
                manifest = _parse_manifest(archive.read("META-INF/MANIFEST.MF").decode("utf-8", "replace"))
                runtime_version = manifest.get("Spring-Boot-Version") or manifest.get("Implementation-Version")
                language_version = manifest.get("Build-Jdk-Spec") or manifest.get("Build-Jdk")
            else:
                logger.warning("No manifest in %s", path)
            for name in names:
                if name.startswith(("org/springframework/", "BOOT-INF/classes/org/springframework/")):
                    framework = "present"
                match = _BUNDLED_JAR.match(name)
                if match:
                    dependencies[match.group(1)] = match.group(2)
                    if match.group(1).startswith("spring-core"):
                        framework = match.group(2)

        if framework is None and any(k.startswith("spring-") for k in dependencies):
            framework = "present"
        if framework is None and runtime_version is None:
            logger.warning("No framework indicators found in %s", path)
        return TechStackSummary(
            project_type=self.project_type,
            language_version=language_version,
            framework_version=framework,
            runtime_version=runtime_version,
            dependencies=_merge(dependencies, libraries_from_source(path.parent)),
        )

    def _scan_directory(self, path: Path) -> TechStackSummary:
        framework = None
        for class_file in path.rglob("*.class"):
            if "org/springframework/" in class_file.as_posix():
                framework = "present"
                break
        return TechStackSummary(
            project_type=self.project_type,
            framework_version=framework,
            dependencies=libraries_from_source(path),
        )


# ===================================================================
# Selector
# ===================================================================

def _has_compiled_classes(root: Path, max_depth: int) -> bool:
    for directory in [root, *walk_dirs(root, max_depth - 1)]:
        try:
            if any(p.suffix == ".class" for p in directory.iterdir() if p.is_file()):
                return True
        except OSError:
            continue
    return False


class ScannerSelector(MetadataScanner):
    """Picks the scanner matching what is found at a path and delegates to it."""

    project_type = "SELECTOR"

    def __init__(
        self,
        maven: Optional[MavenScanner] = None,
        gradle: Optional[GradleScanner] = None,
        jar: Optional[JarScanner] = None,
        search_depth: int = 4,
    ) -> None:
        self.maven = maven or MavenScanner()
        self.gradle = gradle or GradleScanner()
        self.jar = jar or JarScanner()
        self.search_depth = search_depth

    def scan(self, path: Path) -> TechStackSummary:
        path = Path(path)
        if not path.exists():
            logger.error("Path does not exist: %s", path)
            return TechStackSummary.empty("NOT_FOUND")

        if path.is_file() and path.suffix.lower() in (".jar", ".war", ".ear"):
            logger.info("Archive detected: %s", path)
            return self.jar.safe_scan(path)

        if path.is_dir():
            pom = find_file(path, "pom.xml", self.search_depth)
            if pom is not None:
                logger.info("Maven project detected at %s", pom.parent)
                return self.maven.safe_scan(pom.parent)

            gradle = find_file(path, "build.gradle", self.search_depth) or find_file(
                path, "build.gradle.kts", self.search_depth
            )
            if gradle is not None:
                logger.info("Gradle project detected at %s", gradle.parent)
                return self.gradle.safe_scan(gradle.parent)

            if _has_compiled_classes(path, 3):
                logger.info("Compiled classes without a build file, scanning as archive")
                return self.jar.safe_scan(path)

        logger.warning("Project type not identified for %s (no pom.xml, build.gradle or classes)", path)
        return TechStackSummary.empty("UNKNOWN")


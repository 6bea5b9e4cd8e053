"""Name-based heuristics shared by the extractors.

Everything here is approximate on purpose: receivers are matched to classes
by normalized substring, so ``userRepo`` finds ``UserRepository`` and
``UserServiceImpl`` stands in for ``UserService``. Some false links are
expected and accepted.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import config

_ROLE_SUFFIXES = ("impl", "service", "repository", "dao")


# keyword in source -> (dependency coordinate, jar name prefixes in the local cache)
FRAMEWORK_KEYWORDS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "org.springframework": ("org.springframework:spring-context", ("spring-",)),
    "camunda": ("org.camunda.bpm:camunda-engine", ("camunda-",)),
    "org.apache.camel": ("org.apache.camel:camel-core", ("camel-",)),
    "feign": ("io.github.openfeign:feign-core", ("feign-", "spring-cloud-openfeign")),
    "lombok": ("org.projectlombok:lombok", ("lombok",)),
    "javax.persistence": ("javax.persistence:javax.persistence-api", ("javax.persistence", "hibernate-core")),
    "jakarta.persistence": ("jakarta.persistence:jakarta.persistence-api", ("jakarta.persistence", "hibernate-core")),
    "javax.ejb": ("javax.ejb:javax.ejb-api", ("javax.ejb", "ejb-api")),
    "javax.servlet": ("javax.servlet:javax.servlet-api", ("javax.servlet", "servlet-api")),
    "jakarta.servlet": ("jakarta.servlet:jakarta.servlet-api", ("jakarta.servlet",)),
    "org.slf4j": ("org.slf4j:slf4j-api", ("slf4j-",)),
    "org.apache.log4j": ("log4j:log4j", ("log4j",)),
    "org.junit": ("org.junit.jupiter:junit-jupiter", ("junit",)),
    "org.mockito": ("org.mockito:mockito-core", ("mockito-",)),
    "com.fasterxml.jackson": ("com.fasterxml.jackson.core:jackson-databind", ("jackson-",)),
    "io.swagger": ("io.swagger.core.v3:swagger-annotations", ("swagger-",)),
    "org.hibernate": ("org.hibernate:hibernate-core", ("hibernate-",)),
}

SOURCE_DETECTED = "detected-in-source"


class CallFilter:
    """Deny-list for low-information call names (accessors, logging, validation)."""

    def __init__(
        self,
        patterns: Optional[Sequence[str]] = None,
        substrings: Optional[Sequence[str]] = None,
    ) -> None:
        pats = config.DEFAULT_IGNORE_PATTERNS if patterns is None else patterns
        subs = config.DEFAULT_IGNORE_SUBSTRINGS if substrings is None else substrings
        self._pattern = _compile_patterns(tuple(p.lower() for p in pats))
        self._substrings = tuple(s.lower() for s in subs)

    def ignores(self, method: str) -> bool:
        lower = method.lower()
        if self._pattern is not None and self._pattern.fullmatch(lower):
            return True
        return any(s in lower for s in self._substrings)


@lru_cache(maxsize=32)
def _compile_patterns(patterns: Tuple[str, ...]) -> Optional["re.Pattern[str]"]:
    if not patterns:
        return None
    return re.compile("|".join(f"(?:{p})" for p in patterns))


def normalize_name(name: str) -> str:
    """Lower-case *name* and drop role suffixes such as ``Impl`` or ``Service``."""
    lowered = name.lower()
    for suffix in _ROLE_SUFFIXES:
        lowered = lowered.replace(suffix, "")
    return lowered


def names_match(left: str, right: str) -> bool:
    """Approximate match: after normalization one name contains the other."""
    a, b = normalize_name(left), normalize_name(right)
    if not a or not b:
        return left.lower() == right.lower()
    return a == b or a in b or b in a


def resolve_target(var_name: str, class_names: Iterable[str]) -> Optional[str]:
    """Guess which known class a receiver variable such as ``userRepo`` refers to."""
    names = list(class_names)
    for name in names:
        if name.lower() == var_name.lower():
            return name
    for name in names:
        if names_match(var_name, name):
            return name
    return None


def detect_frameworks(texts: Iterable[str]) -> Set[str]:
    """Framework keywords from :data:`FRAMEWORK_KEYWORDS` found in *texts*."""
    found: Set[str] = set()
    remaining = set(FRAMEWORK_KEYWORDS)
    for text in texts:
        for keyword in list(remaining):
            if keyword in text:
                found.add(keyword)
                remaining.discard(keyword)
        if not remaining:
            break
    return found


def libraries_from_keywords(keywords: Iterable[str]) -> Dict[str, str]:
    return {FRAMEWORK_KEYWORDS[k][0]: SOURCE_DETECTED for k in sorted(keywords)}


def jar_prefixes(keywords: Iterable[str]) -> List[str]:
    prefixes: List[str] = []
    for keyword in sorted(keywords):
        for prefix in FRAMEWORK_KEYWORDS[keyword][1]:
            if prefix not in prefixes:
                prefixes.append(prefix)
    return prefixes


_ARCHITECTURE_MARKERS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Spring Boot", ("@RestController", "@SpringBootApplication")),
    ("Camunda BPM", ("Camunda", "ProcessEngine")),
    ("Apache Camel", ("camelContext", "RouteBuilder")),
    ("Feign Client", ("@FeignClient",)),
    ("EJB / Java EE", ("@EJB", "@Stateless", "SessionBean")),
    ("Servlet / JEE", ("extends HttpServlet", "@WebServlet")),
    ("Jakarta EE / JPA", ("jakarta.persistence", "@Entity")),
]


def detect_architecture(texts: Iterable[str]) -> str:
    """Label of the first architecture whose markers appear in a source file."""
    for text in texts:
        for label, markers in _ARCHITECTURE_MARKERS:
            if any(m in text for m in markers):
                return label
    return "Plain Java"

"""Inferring call sequences from raw source text.

For every operation of an entry point the method body is isolated with a
brace-depth scan, ``receiver.method(`` calls are matched inside it and each
receiver is resolved to a known class. Component targets are followed one
more hop into their own method body, looking only for data-access calls.
There is no parsing beyond that, so results are approximate.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .config_manager import EngineConfig
from .endpoints import PayloadIndex, extract_operations
from .errors import SourceReadFailed
from .heuristics import CallFilter, resolve_target
from .injection import resolve_injections
from .models import CallEdge, CallSequence, InjectionMap, Role, RoleAssignment
from .source_reader import find_block_end, read_source

logger = logging.getLogger(__name__)

_CALL = re.compile(r"\b([A-Za-z_]\w*)\s*\.\s*([A-Za-z_]\w*)\s*\(")
_STRING_LITERAL = re.compile(r'"(?:\\.|[^"\\\n])*"')
_SELF_RECEIVERS = {"this", "super"}


def extract_method_body(text: str, method: str) -> Optional[str]:
    """Body of the first declaration of *method* in *text*, without its braces.

    Returns ``None`` when no declaration is found or its braces never balance.
    """
    declaration = re.compile(
        r"(?:\b(?:public|protected|private|static|final|synchronized|default)\s+|[\w>\]]\s+)"
        + re.escape(method)
        + r"\s*\((?:[^()]|\([^()]*\))*\)\s*(?:throws\s+[\w.,\s]+?)?\s*\{"
    )
    for match in declaration.finditer(text):
        open_index = match.end() - 1
        end = find_block_end(text, open_index)
        if end is None:
            logger.debug("Unbalanced body for %s", method)
            return None
        return text[open_index + 1:end - 1]
    return None


def find_calls(body: str) -> Iterator[Tuple[str, str]]:
    """``(receiver, method)`` for every ``receiver.method(`` in *body*, in order."""
    code = _STRING_LITERAL.sub('""', body)
    for match in _CALL.finditer(code):
        yield match.group(1), match.group(2)


class BehavioralExtractor:
    """Traces entry point -> component -> data access calls for one module."""

    def __init__(
        self,
        roles: RoleAssignment,
        source_root: Optional[Path] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.roles = roles
        self.source_root = source_root
        self.config = config or EngineConfig()
        self.call_filter = CallFilter(self.config.ignore_patterns, self.config.ignore_substrings)
        self._payloads = PayloadIndex(source_root)
        self._texts: Dict[str, Optional[str]] = {}

    def _source(self, class_name: str) -> Optional[str]:
        if class_name not in self._texts:
            entry = self.roles.get(class_name)
            text = None
            if entry is not None:
                try:
                    text = read_source(entry.path)
                except SourceReadFailed as exc:
                    logger.warning("Skipping %s: %s", class_name, exc)
            self._texts[class_name] = text
        return self._texts[class_name]

    def _resolve(self, receiver: str, injections: InjectionMap, targets: Sequence[str]) -> Optional[str]:
        if receiver in _SELF_RECEIVERS:
            return None
        injected = injections.get(receiver)
        if injected in targets:
            return injected
        return resolve_target(receiver, targets)

    def _component_body(self, component: str, method: str) -> Tuple[Optional[str], Optional[str]]:
        """Body of *method* in *component*, else in an implementing component such as ``<Name>Impl``."""
        candidates = [component] + [
            name
            for name in self.roles.names(Role.COMPONENT)
            if name != component and component.lower() in name.lower()
        ]
        for name in candidates:
            text = self._source(name)
            if text is None:
                continue
            body = extract_method_body(text, method)
            if body is not None:
                return text, body
        return None, None

    def _data_access_edges(self, component: str, method: str) -> List[CallEdge]:
        text, body = self._component_body(component, method)
        if body is None:
            logger.debug("No body for %s.%s", component, method)
            return []
        data_access = self.roles.names(Role.DATA_ACCESS)
        injections = resolve_injections(text, data_access)
        edges = []
        for receiver, called in find_calls(body):
            if self.call_filter.ignores(called):
                continue
            target = self._resolve(receiver, injections, data_access)
            if target is not None:
                edges.append(CallEdge(component, target, called))
        return edges

    def trace_operations(self, entry_point: str) -> List[CallSequence]:
        """One call sequence per operation of *entry_point* whose body could be isolated."""
        text = self._source(entry_point)
        if text is None:
            return []

        targets = self.roles.names(Role.COMPONENT, Role.DATA_ACCESS)
        injections = resolve_injections(text, targets)
        sequences: List[CallSequence] = []
        for operation in extract_operations(entry_point, text, self.source_root, self.call_filter, self._payloads):
            body = extract_method_body(text, operation.name)
            if body is None:
                logger.debug("No body for %s.%s", entry_point, operation.name)
                continue

            sequence = CallSequence(operation)
            seen: Set[CallEdge] = set()

            def record(edge: CallEdge) -> None:
                if edge not in seen:
                    seen.add(edge)
                    sequence.edges.append(edge)

            for receiver, called in find_calls(body):
                if self.call_filter.ignores(called):
                    continue
                target = self._resolve(receiver, injections, targets)
                if target is None:
                    continue
                record(CallEdge(entry_point, target, called))
                if self.roles.role_of(target) is Role.COMPONENT:
                    for edge in self._data_access_edges(target, called):
                        record(edge)
            sequences.append(sequence)
        return sequences

    def trace_all(self) -> Dict[str, List[CallSequence]]:
        """Call sequences of every entry point, keyed by class name."""
        result: Dict[str, List[CallSequence]] = {}
        for entry_point in self.roles.names(Role.ENTRY_POINT):
            result[entry_point] = self.trace_operations(entry_point)
        edges = sum(s.length for seqs in result.values() for s in seqs)
        logger.info("Traced %d entry points, %d edges", len(result), edges)
        return result

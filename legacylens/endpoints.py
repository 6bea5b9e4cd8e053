"""Recovering the externally reachable operations of an entry-point class."""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from pathlib import Path
from typing import Dict, List, Optional

from .errors import SourceReadFailed
from .heuristics import CallFilter
from .models import Operation
from .source_reader import iter_java_files, read_source

logger = logging.getLogger(__name__)

_ANNOTATION = r"@[\w.]+(?:\s*\((?:[^()]|\([^()]*\))*\))?"
_RETURN_TYPE = r"([\w.]+(?:\s*<[^;{}()]*>)?(?:\s*\[\])*)"
_METHOD_TAIL = (
    r"\s*(?:(?:public|protected|private|static|final|synchronized)\s+)*"
    r"(?:<[^<>]*>\s*)?" + _RETURN_TYPE + r"\s+(\w+)\s*\("
)

_MAPPED_METHOD = re.compile(
    r"@(GetMapping|PostMapping|PutMapping|DeleteMapping|PatchMapping|RequestMapping"
    r"|GET|POST|PUT|DELETE|PATCH)\b(\s*\((?:[^()]|\([^()]*\))*\))?"
    r"(?:\s*" + _ANNOTATION + r")*" + _METHOD_TAIL
)
_SERVLET_METHOD = re.compile(r"\b(?:public|protected)\s+(void)\s+(doGet|doPost|doPut|doDelete)\s*\(")
_PUBLIC_METHOD = re.compile(
    r"\bpublic\s+(?!static\b|class\b|interface\b|enum\b|record\b)"
    r"(?:(?:final|synchronized)\s+)*(?:<[^<>]*>\s*)?" + _RETURN_TYPE + r"\s+(\w+)\s*\("
)

_REQUEST_METHOD = re.compile(r"RequestMethod\.(\w+)")
_REQUEST_BODY = re.compile(r"@RequestBody\b(?:\s*" + _ANNOTATION + r")*\s+(?:final\s+)?([\w.]+)")
_RESPONSE_STATUS = re.compile(r"@ResponseStatus\s*\(\s*(?:(?:code|value)\s*=\s*)?HttpStatus\.(\w+)")
_FIELD = re.compile(
    r"\b(?:private|protected|public)\s+(?!static\b)(?:final\s+)?"
    r"([\w.]+(?:\s*<[^;=(){}]*>)?(?:\s*\[\])*)\s+(\w+)\s*[;=]"
)
_RECORD_HEADER = re.compile(r"\brecord\s+\w+\s*\(([^)]*)\)")

_SERVLET_VERBS = {"doGet": "GET", "doPost": "POST", "doPut": "PUT", "doDelete": "DELETE"}


def _parameter_list(text: str, open_paren: int) -> str:
    depth = 0
    for index in range(open_paren, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return text[open_paren + 1:index]
    return text[open_paren + 1:]


def _declaration_prefix(text: str, start: int) -> str:
    """Annotations and modifiers in front of the declaration starting near *start*."""
    boundary = max(text.rfind(c, 0, start) for c in ";{}") + 1
    return text[boundary:start]


def _http_method(annotation: str, arguments: Optional[str]) -> Optional[str]:
    if annotation.endswith("Mapping") and annotation != "RequestMapping":
        return annotation[: -len("Mapping")].upper()
    if annotation == "RequestMapping":
        match = _REQUEST_METHOD.search(arguments or "")
        return match.group(1).upper() if match else None
    return annotation


def _response_type(declared: str) -> Optional[str]:
    declared = " ".join(declared.split())
    if declared == "void":
        return None
    match = re.fullmatch(r"(?:[\w.]+\.)?ResponseEntity\s*<\s*(.+)\s*>", declared)
    if match:
        inner = match.group(1).strip()
        return None if inner in ("?", "Void") else inner
    return declared


def _response_status(prefix: str) -> Optional[str]:
    match = _RESPONSE_STATUS.search(prefix)
    if not match:
        return None
    name = match.group(1)
    try:
        return f"{HTTPStatus[name].value} {name}"
    except KeyError:
        return name


class PayloadIndex:
    """Lazily resolves ``<Type>.java`` files under a source root."""

    def __init__(self, source_root: Optional[Path]) -> None:
        self.source_root = source_root
        self._files: Optional[Dict[str, Path]] = None

    def _index(self) -> Dict[str, Path]:
        if self._files is None:
            self._files = {}
            if self.source_root is not None and self.source_root.is_dir():
                for path in iter_java_files(self.source_root):
                    self._files.setdefault(path.stem, path)
        return self._files

    def fields(self, type_name: str) -> List[str]:
        path = self._index().get(type_name.rsplit(".", 1)[-1])
        if path is None:
            return []
        try:
            text = read_source(path)
        except SourceReadFailed as exc:
            logger.warning("Cannot read payload type: %s", exc)
            return []
        record = _RECORD_HEADER.search(text)
        if record:
            pairs = [p.split() for p in record.group(1).split(",") if p.strip()]
            return [f"{p[-1]}: {' '.join(p[:-1])}" for p in pairs if len(p) >= 2]
        return [f"{name}: {' '.join(declared.split())}" for declared, name in _FIELD.findall(text)]


def extract_operations(
    owner: str,
    text: str,
    source_root: Optional[Path] = None,
    call_filter: Optional[CallFilter] = None,
    payloads: Optional[PayloadIndex] = None,
) -> List[Operation]:
    """Operations of entry-point *owner* given its normalized source *text*.

    Mapped handler methods win; servlet ``doXxx`` handlers come next; when
    neither exists every public, non-accessor instance method counts.
    """
    call_filter = call_filter or CallFilter()
    payloads = payloads or PayloadIndex(source_root)
    operations: List[Operation] = []
    seen = set()

    def add(name: str, return_type: str, start: int, params_at: int, http_method: Optional[str]) -> None:
        if name in seen or name == owner:
            return
        seen.add(name)
        params = _parameter_list(text, params_at)
        body = _REQUEST_BODY.search(params)
        request_type = body.group(1) if body else None
        operations.append(
            Operation(
                owner=owner,
                name=name,
                request_type=request_type,
                request_fields=payloads.fields(request_type) if request_type else [],
                response_type=_response_type(return_type),
                response_status=_response_status(_declaration_prefix(text, start) + text[start:params_at]),
                http_method=http_method,
            )
        )

    for match in _MAPPED_METHOD.finditer(text):
        verb = _http_method(match.group(1), match.group(2))
        add(match.group(4), match.group(3), match.start(), match.end() - 1, verb)

    if not operations:
        for match in _SERVLET_METHOD.finditer(text):
            add(match.group(2), match.group(1), match.start(), match.end() - 1, _SERVLET_VERBS[match.group(2)])

    if not operations:
        for match in _PUBLIC_METHOD.finditer(text):
            name = match.group(2)
            if call_filter.ignores(name):
                continue
            add(name, match.group(1), match.start(), match.end() - 1, None)

    logger.debug("%s: %d operations", owner, len(operations))
    return operations

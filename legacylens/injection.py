"""Mapping injected variables to the classes they hold.

Three passes over one source file, all additive; the first pass that maps
a variable keeps it:

1. fields carrying an injection annotation (``@Autowired``, ``@Inject``,
   ``@EJB``, ``@Resource``);
2. constructor injection, ``this.repo = repo;`` where ``repo`` is a
   constructor parameter;
3. any other field declaration.

A variable enters the map only if its declared type resolves to one of the
known classes.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from .heuristics import resolve_target
from .models import InjectionMap
from .source_reader import declared_type_name, find_block_end

logger = logging.getLogger(__name__)

_TYPE = r"([\w.]+(?:\s*<[^;=(){}]*>)?(?:\s*\[\])*)"
_ANNOTATION = r"@[\w.]+(?:\s*\((?:[^()]|\([^()]*\))*\))?"
_MODIFIERS = r"(?:(?:private|protected|public|static|final|transient|volatile)\s+)*"

_ANNOTATED_FIELD = re.compile(
    r"@(?:Autowired|Inject|EJB|Resource)\b(?:\s*\((?:[^()]|\([^()]*\))*\))?"
    r"(?:\s*" + _ANNOTATION + r")*\s*"
    + _MODIFIERS + _TYPE + r"\s+(\w+)\s*[;=]"
)
_PLAIN_FIELD = re.compile(
    r"\b(?:private|protected|public)\s+(?:final\s+)?" + _TYPE + r"\s+(\w+)\s*[;=]"
)
_FIELD_ASSIGNMENT = re.compile(r"\bthis\s*\.\s*(\w+)\s*=\s*(\w+)\s*;")


def _base_type(declared: str) -> str:
    """``java.util.Optional<Foo>[]`` -> ``Optional``."""
    bare = declared.split("<", 1)[0].replace("[]", "").strip()
    return bare.rsplit(".", 1)[-1]


def _known_type(declared: str, known: Sequence[str]) -> Optional[str]:
    return resolve_target(_base_type(declared), known)


def _parameters(params: str) -> List[Tuple[str, str]]:
    """``(type, name)`` pairs of a parameter list, annotations dropped."""
    params = re.sub(_ANNOTATION, " ", params)
    pairs: List[Tuple[str, str]] = []
    depth = 0
    current = ""
    pieces: List[str] = []
    for ch in params:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            pieces.append(current)
            current = ""
        else:
            current += ch
    pieces.append(current)
    for piece in pieces:
        tokens = piece.replace("final ", " ").split()
        if len(tokens) >= 2:
            pairs.append((" ".join(tokens[:-1]), tokens[-1]))
    return pairs


def _constructors(text: str, class_name: str):
    """Yield ``(parameters, body)`` for each constructor of *class_name*."""
    pattern = re.compile(
        r"\b" + re.escape(class_name) + r"\s*\(((?:[^()]|\([^()]*\))*)\)\s*(?:throws\s+[\w.,\s]+)?\{"
    )
    for match in pattern.finditer(text):
        prefix = text[max(0, match.start() - 5):match.start()]
        if prefix.rstrip().endswith("new"):
            continue
        end = find_block_end(text, match.end() - 1)
        if end is None:
            continue
        yield match.group(1), text[match.end():end - 1]


def resolve_injections(text: str, known: Sequence[str]) -> InjectionMap:
    """Variable name -> known class name for one normalized source file."""
    known = list(known)
    mapping: Dict[str, str] = {}

    def put(variable: str, declared: str, origin: str) -> None:
        if variable in mapping:
            return
        target = _known_type(declared, known)
        if target is not None:
            mapping[variable] = target
            logger.debug("Injection (%s): %s -> %s", origin, variable, target)

    for match in _ANNOTATED_FIELD.finditer(text):
        put(match.group(2), match.group(1), "annotation")

    class_name = declared_type_name(text)
    if class_name:
        for params, body in _constructors(text, class_name):
            types = {name: declared for declared, name in _parameters(params)}
            for field_name, source in _FIELD_ASSIGNMENT.findall(body):
                if source in types:
                    put(field_name, types[source], "constructor")

    for match in _PLAIN_FIELD.finditer(text):
        put(match.group(2), match.group(1), "field")

    return mapping

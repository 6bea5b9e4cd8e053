"""JSON export of an analysis for the downstream renderers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import CallSequence, ClassGraph, ModuleAnalysis, ProjectAnalysis, TechStackSummary


def _tech_stack(summary: TechStackSummary) -> Dict[str, Any]:
    return {
        "project_type": summary.project_type,
        "language_version": summary.language_version,
        "framework_version": summary.framework_version,
        "runtime_version": summary.runtime_version,
        "dependencies": dict(sorted(summary.dependencies.items())),
    }


def _class_graph(graph: Optional[ClassGraph]) -> Dict[str, Any]:
    if graph is None:
        return {"error": "not compiled", "classes": [], "edges": [], "truncated": False}
    payload: Dict[str, Any] = {
        "classes": [
            {
                "name": node.name,
                "qualified_name": node.qualified_name,
                "superclass": node.superclass,
                "interfaces": list(node.interfaces),
            }
            for node in graph.classes
        ],
        "edges": [{"from": child, "to": parent, "kind": kind} for child, parent, kind in graph.edges()],
        "truncated": graph.truncated,
    }
    if graph.failed:
        payload["error"] = graph.error or "class scan failed"
    return payload


def _sequence(sequence: CallSequence) -> Dict[str, Any]:
    op = sequence.operation
    return {
        "operation": op.name,
        "http_method": op.http_method,
        "request_type": op.request_type,
        "request_fields": list(op.request_fields),
        "response_type": op.response_type,
        "response_status": op.response_status,
        "calls": [{"caller": e.caller, "callee": e.callee, "method": e.method} for e in sequence.edges],
    }


def _module(module: ModuleAnalysis) -> Dict[str, Any]:
    roles: Dict[str, List[str]] = {}
    if module.roles is not None:
        for entry in module.roles:
            roles.setdefault(entry.role.value, []).append(entry.name)
    payload: Dict[str, Any] = {
        "name": module.name,
        "root": str(module.root),
        "status": module.status.value,
        "architecture": module.architecture,
        "compiled_with": module.compiled.strategy if module.compiled else None,
        "class_graph": _class_graph(module.class_graph),
        "roles": roles,
        "sequences": {
            entry_point: [_sequence(s) for s in sequences]
            for entry_point, sequences in module.sequences.items()
        },
        "errors": list(module.errors),
    }
    if module.roles is None:
        payload["sequences_error"] = "no source root"
    return payload


def analysis_to_dict(analysis: ProjectAnalysis) -> Dict[str, Any]:
    """Plain-data form of *analysis*; failed parts carry an ``error`` marker."""
    return {
        "root": str(analysis.root),
        "status": analysis.status.value,
        "tech_stack": _tech_stack(analysis.tech_stack),
        "modules": [_module(m) for m in analysis.modules],
        "errors": list(analysis.errors),
    }


def write_analysis_json(analysis: ProjectAnalysis, output_file: Path) -> Path:
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(json.dumps(analysis_to_dict(analysis), indent=2), encoding="utf-8")
    return output_file

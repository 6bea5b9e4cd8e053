"""Exception hierarchy for the analysis engine."""

from __future__ import annotations


class LegacyLensError(Exception):
    """Base class for every error raised by the engine."""


class ResourceNotFound(LegacyLensError):
    """The project root or an expected build descriptor is missing."""


class CompilationFailed(LegacyLensError):
    """Every compilation strategy was exhausted without compiled output."""

    def __init__(self, module_root, attempts=None):
        self.module_root = module_root
        self.attempts = list(attempts or [])
        tried = ", ".join(a.name for a in self.attempts) or "none applicable"
        super().__init__(f"No compiled output for {module_root} (tried: {tried})")


class ClasspathScanFailed(LegacyLensError):
    """Reading compiled class metadata failed."""


class ClassFormatError(ClasspathScanFailed):
    """A compiled class file is truncated or not a class file at all."""


class SourceReadFailed(LegacyLensError):
    """A source file could not be read or decoded."""

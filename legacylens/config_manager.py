"""Configuration manager for LegacyLens using TOML files."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config

logger = logging.getLogger(__name__)

SECTION = "scan"

# Older key spellings still accepted in [scan]
KEY_ALIASES: Dict[str, str] = {
    "max_class_count": "max_classes",
    "limit_classes": "max_classes",
    "compile_timeout_seconds": "compile_timeout",
    "timeout_seconds": "compile_timeout",
    "detect_multi_module": "multi_module",
    "multi_module_enabled": "multi_module",
    "max_packages": "package_limit",
    "ignored_patterns": "ignore_patterns",
    "ignore_list": "ignore_patterns",
    "workers": "max_workers",
    "m2_repository": "dependency_cache",
}


@dataclass
class EngineConfig:
    """Settings consumed by the analysis engine."""

    max_classes: int = config.DEFAULT_MAX_CLASSES
    compile_timeout: int = config.DEFAULT_COMPILE_TIMEOUT
    multi_module: bool = config.DEFAULT_MULTI_MODULE
    package_limit: int = config.DEFAULT_PACKAGE_LIMIT
    max_workers: int = config.DEFAULT_MAX_WORKERS
    ignore_patterns: List[str] = field(default_factory=lambda: list(config.DEFAULT_IGNORE_PATTERNS))
    ignore_substrings: List[str] = field(default_factory=lambda: list(config.DEFAULT_IGNORE_SUBSTRINGS))
    source_roots: List[str] = field(default_factory=lambda: list(config.SOURCE_ROOT_CANDIDATES))
    dependency_cache: str = str(config.DEFAULT_DEPENDENCY_CACHE)
    use_wrappers: bool = True
    fallback_compiler: bool = True
    include_abstract: bool = True
    skip_tests: bool = True

    def validate(self) -> "EngineConfig":
        if self.max_classes < 1:
            raise ValueError("max_classes must be at least 1")
        if self.compile_timeout < 1:
            raise ValueError("compile_timeout must be at least 1 second")
        if self.package_limit < 1:
            raise ValueError("package_limit must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        return self


@dataclass
class ConfigState:
    """Loaded configuration plus the last project it was applied to."""

    config: EngineConfig
    config_file: Optional[Path] = None
    last_analyzed_path: Optional[Path] = None


def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(EngineConfig)}
    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        name = key.replace("-", "_")
        name = KEY_ALIASES.get(name, name)
        if name in ("compile_timeout_minutes", "timeout_minutes"):
            name, value = "compile_timeout", int(value) * 60
        if name not in known:
            logger.warning("Ignoring unknown configuration key '%s'", key)
            continue
        normalized[name] = value
    return normalized


def config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    """Build an :class:`EngineConfig` from a ``[scan]`` table."""
    return EngineConfig(**_normalize_keys(raw)).validate()


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Load engine settings from the ``[scan]`` section of a TOML file.

    Returns defaults when the file does not exist. A file that exists but
    cannot be parsed raises ``ValueError``.
    """
    config_file = path or config.CONFIG_FILE
    if not config_file.exists():
        logger.debug("No config file at %s, using defaults", config_file)
        return EngineConfig()

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except toml.TomlDecodeError as exc:
        raise ValueError(f"Invalid configuration file {config_file}: {exc}") from exc

    return config_from_dict(data.get(SECTION, {}))


def save_config(engine_config: EngineConfig, path: Optional[Path] = None) -> Path:
    """Write *engine_config* to the ``[scan]`` section, preserving other sections."""
    config_file = path or config.CONFIG_FILE
    data: Dict[str, Any] = {}
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            data = toml.load(f)
    data[SECTION] = asdict(engine_config)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        toml.dump(data, f)
    return config_file


def default_config_toml() -> str:
    """Render the default settings as a TOML document."""
    return toml.dumps({SECTION: asdict(EngineConfig())})


def load_state(path: Optional[Path] = None) -> ConfigState:
    return ConfigState(config=load_config(path), config_file=path)


def remember_analyzed_path(state: ConfigState, project_path: Path) -> ConfigState:
    return replace(state, last_analyzed_path=project_path)


def reload_config(state: ConfigState) -> ConfigState:
    """Re-read the configuration file, keeping the last analyzed project."""
    logger.info("Reloading configuration from %s", state.config_file or config.CONFIG_FILE)
    return ConfigState(
        config=load_config(state.config_file),
        config_file=state.config_file,
        last_analyzed_path=state.last_analyzed_path,
    )

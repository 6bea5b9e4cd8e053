"""Configuration paths and engine defaults for LegacyLens."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("LEGACYLENS_HOME", str(Path.home() / ".legacylens"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Structural extraction
DEFAULT_MAX_CLASSES = 500
DEFAULT_PACKAGE_LIMIT = 150

# Compilation
DEFAULT_COMPILE_TIMEOUT = 300  # seconds
DEFAULT_DEPENDENCY_CACHE = Path.home() / ".m2" / "repository"
SOURCE_ROOT_CANDIDATES = ["src/main/java", "src", "app", "code"]

# Module processing
DEFAULT_MULTI_MODULE = True
DEFAULT_MAX_WORKERS = 2

# Call names that carry no business meaning (case-insensitive full match)
DEFAULT_IGNORE_PATTERNS = [
    "get.*",
    "set.*",
    "to.*",
    "from.*",
    "equals",
    "hashcode",
    "tostring",
    "builder",
    "build",
    "mapstruct.*",
    "trace",
    "debug",
    "info",
    "warn",
    "error",
    "log",
    "logger",
    "println",
    "printf",
    "validate.*",
    "isvalid.*",
    "requirenonnull",
]

# Call names containing any of these are ignored as well
DEFAULT_IGNORE_SUBSTRINGS = ["dto", "entity", "converter", "util"]

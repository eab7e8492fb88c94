"""Process-wide defaults for DocMeta.

These are only defaults. The values a run actually uses are assembled into a
:class:`~docmeta_cli.config_manager.ProjectConfig` and passed explicitly to the
resolver, builder and classifier.
"""

from __future__ import annotations

import os

RECORD_FILENAME = ".docmeta.json"
RECORD_VERSION = 3

# DOCMETA_CONFIG overrides the project config filename
CONFIG_FILENAME = os.environ.get("DOCMETA_CONFIG", ".docmetarc.toml")
LEGACY_CONFIG_FILENAME = ".docmetarc.json"
ALIAS_CONFIG_FILES = ("tsconfig.json", "jsconfig.json")

PURPOSE_PLACEHOLDER = "[purpose]"

DEFAULT_IGNORE_DIRS = (
    "node_modules",
    ".git",
    ".next",
    "dist",
    "build",
    "__pycache__",
    "venv",
    ".venv",
)

# Both project-root aliases are always present, ahead of any configured ones
DEFAULT_ALIASES = (
    ("@/*", ("/*",)),
    ("~/*", ("/*",)),
)

# Extensions stripped when landing a resolved reference on a node
SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".rs")

# Index files also answer for their folder path
INDEX_BASENAMES = ("index.ts", "index.tsx", "index.js", "index.jsx", "index.mjs", "index.py")

# A pattern ending in one of these anchors at the end of the path
PATTERN_END_EXTENSIONS = SOURCE_EXTENSIONS + (".vue", ".svelte")

DEFAULT_ENTRY_POINT_PATTERNS = (
    # Next.js app router
    "app/**/route.ts",
    "app/**/route.js",
    "app/**/page.tsx",
    "app/**/page.jsx",
    "app/**/layout.tsx",
    "app/**/layout.jsx",
    # Next.js pages router
    "pages/**/*.tsx",
    "pages/**/*.jsx",
    "pages/api/**/*.ts",
    "pages/api/**/*.js",
    # CLI and scripts
    "bin/**/*.js",
    "scripts/**/*.js",
    "scripts/**/*.ts",
    # Common entry files
    "**/cli.js",
    "**/cli.ts",
    "**/main.js",
    "**/main.ts",
    "**/index.js",
    "**/index.ts",
    "**/server.js",
    "**/server.ts",
    "**/app.js",
    "**/app.ts",
)

# How many unresolved references the rebuild report lists
UNRESOLVED_REPORT_LIMIT = 15

"""Project configuration for DocMeta.

Reads ``.docmetarc.toml`` (or the legacy ``.docmetarc.json``) from the project
root and path aliases from ``tsconfig.json``/``jsconfig.json``, and merges
them with the defaults in :mod:`docmeta_cli.config`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import toml

from . import config
from .models import AliasTable

logger = logging.getLogger(__name__)

# Legacy JSON configs use camelCase keys
_KEY_ALIASES = {
    "customIgnoreDirs": "custom_ignore_dirs",
    "customEntryPointPatterns": "custom_entry_point_patterns",
    "pathAliases": "path_aliases",
}

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"^\s*//.*$", re.MULTILINE)


@dataclass(frozen=True)
class ProjectConfig:
    """Everything a run needs to know about the project, fixed for the run."""

    root: Path
    ignore_dirs: Tuple[str, ...] = config.DEFAULT_IGNORE_DIRS
    entry_point_patterns: Tuple[str, ...] = config.DEFAULT_ENTRY_POINT_PATTERNS
    aliases: AliasTable = AliasTable.from_pairs(config.DEFAULT_ALIASES)
    source_extensions: Tuple[str, ...] = config.SOURCE_EXTENSIONS

    @property
    def has_custom_aliases(self) -> bool:
        return len(self.aliases) > len(config.DEFAULT_ALIASES)


def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in raw.items()}


def load_settings(root: Path) -> Dict[str, Any]:
    """Load the raw project settings dict, or ``{}`` when there is none."""
    toml_path = root / config.CONFIG_FILENAME
    if toml_path.exists():
        try:
            with open(toml_path, "r", encoding="utf-8") as f:
                return _normalize_keys(toml.load(f))
        except (OSError, toml.TomlDecodeError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", toml_path, exc)
            return {}

    json_path = root / config.LEGACY_CONFIG_FILENAME
    if json_path.exists():
        try:
            payload = json.loads(json_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", json_path, exc)
            return {}
        if isinstance(payload, dict):
            return _normalize_keys(payload)
        logger.warning("Ignoring config %s: expected an object", json_path)
    return {}


def _strip_json_comments(text: str) -> str:
    text = _BLOCK_COMMENT_RE.sub("", text)
    return _LINE_COMMENT_RE.sub("", text)


def _resolve_alias_target(target: str, base_url: str) -> str:
    if base_url in (".", "./", ""):
        return target[1:] if target.startswith("./") else "/" + target
    base = "/" + base_url.replace("./", "", 1).strip("/")
    return base + target[1:] if target.startswith("./") else base + "/" + target


def _alias_pairs(payload: Any) -> Optional[List[Tuple[str, Tuple[str, ...]]]]:
    """``compilerOptions.paths`` as alias pairs, or ``None`` when the shape is wrong."""
    if not isinstance(payload, dict):
        return None
    options = payload.get("compilerOptions", {})
    if not isinstance(options, dict):
        return None
    base_url = options.get("baseUrl") or "."
    paths = options.get("paths", {})
    if not isinstance(base_url, str) or not isinstance(paths, dict):
        return None

    pairs = []
    for pattern, targets in paths.items():
        if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
            return None
        if targets:
            pairs.append((pattern, tuple(_resolve_alias_target(t, base_url) for t in targets)))
    return pairs


def load_path_aliases(root: Path) -> List[Tuple[str, Tuple[str, ...]]]:
    """Read ``compilerOptions.paths`` from the first usable tsconfig/jsconfig.

    Targets are rewritten to project-relative paths using ``baseUrl``. A file
    that is not valid JSON, or whose ``compilerOptions`` has the wrong shape,
    is skipped.
    """
    for name in config.ALIAS_CONFIG_FILES:
        path = root / name
        if not path.exists():
            continue
        try:
            payload = json.loads(_strip_json_comments(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Skipping %s: %s", path, exc)
            continue

        pairs = _alias_pairs(payload)
        if pairs is None:
            logger.warning(
                "Ignoring %s: expected compilerOptions.paths to map patterns to lists of strings",
                path,
            )
            continue
        logger.debug("Loaded %d path aliases from %s", len(pairs), path)
        return pairs
    return []


def _string_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    logger.warning("Ignoring config key '%s': expected a list of strings", key)
    return []


def load_project_config(root: Path) -> ProjectConfig:
    """Assemble the :class:`ProjectConfig` for the project at *root*."""
    root = root.resolve()
    settings = load_settings(root)

    ignore_dirs = list(config.DEFAULT_IGNORE_DIRS)
    for name in _string_list(settings.get("custom_ignore_dirs"), "custom_ignore_dirs"):
        if name not in ignore_dirs:
            ignore_dirs.append(name)

    patterns = list(config.DEFAULT_ENTRY_POINT_PATTERNS)
    patterns.extend(
        _string_list(settings.get("custom_entry_point_patterns"), "custom_entry_point_patterns")
    )

    alias_pairs: List[Tuple[str, Tuple[str, ...]]] = list(config.DEFAULT_ALIASES)
    alias_pairs.extend(load_path_aliases(root))
    configured = settings.get("path_aliases") or {}
    if isinstance(configured, dict):
        for pattern, targets in configured.items():
            if isinstance(targets, str):
                targets = [targets]
            alias_pairs.append((pattern, tuple(_string_list(targets, "path_aliases"))))
    else:
        logger.warning("Ignoring config key 'path_aliases': expected a table")

    return ProjectConfig(
        root=root,
        ignore_dirs=tuple(ignore_dirs),
        entry_point_patterns=tuple(patterns),
        aliases=AliasTable.from_pairs(alias_pairs),
    )

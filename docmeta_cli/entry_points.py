"""Entry-point classification.

Glob patterns are translated to regular expressions over canonical paths:

- ``**/`` matches zero or more leading segments, including their separators
- ``**``  matches anything, separators included
- ``*``   matches within one segment

Patterns prefixed with ``re:`` are taken as raw regular expressions. A raw
expression that does not compile falls back to a literal substring match,
and the returned :class:`CompiledPattern` says which happened.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from . import config
from .models import FileNode, Graph

logger = logging.getLogger(__name__)

RAW_PREFIX = "re:"


class PatternKind(str, enum.Enum):
    COMPILED = "compiled"
    LITERAL_FALLBACK = "literal-fallback"


@dataclass(frozen=True)
class CompiledPattern:
    source: str
    regex: re.Pattern
    kind: PatternKind = PatternKind.COMPILED
    error: Optional[str] = None

    def matches(self, path: str) -> bool:
        return self.regex.search(path) is not None


def glob_to_regex(pattern: str) -> str:
    """Translate an entry-point glob into an anchored regular expression."""
    body = pattern.lstrip("/")
    out: List[str] = []
    i = 0
    while i < len(body):
        if body.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif body.startswith("**", i):
            out.append(".*")
            i += 2
        elif body[i] == "*":
            out.append("[^/]*")
            i += 1
        else:
            out.append(re.escape(body[i]))
            i += 1

    if body.startswith("**"):
        # "**/x" still needs the leading separator of the canonical path
        prefix = "^/" if body.startswith("**/") else "^"
    elif body.startswith("*"):
        prefix = "(?:^|/)"
    else:
        prefix = "^/"
    suffix = "$" if body.endswith(config.PATTERN_END_EXTENSIONS) else ""
    return prefix + "".join(out) + suffix


def compile_pattern(pattern: str) -> CompiledPattern:
    if pattern.startswith(RAW_PREFIX):
        raw = pattern[len(RAW_PREFIX):]
        try:
            return CompiledPattern(pattern, re.compile(raw))
        except re.error as exc:
            logger.warning("Entry pattern %r is not a valid regex (%s); matching literally", raw, exc)
            return CompiledPattern(
                pattern, re.compile(re.escape(raw)), PatternKind.LITERAL_FALLBACK, str(exc)
            )
    return CompiledPattern(pattern, re.compile(glob_to_regex(pattern)))


@dataclass(frozen=True)
class EntryPointMatcher:
    patterns: Tuple[CompiledPattern, ...]

    def matches(self, path: str) -> bool:
        return any(p.matches(path) for p in self.patterns)

    @property
    def fallbacks(self) -> List[CompiledPattern]:
        return [p for p in self.patterns if p.kind is PatternKind.LITERAL_FALLBACK]


def compile_patterns(patterns: Iterable[str]) -> EntryPointMatcher:
    seen = []
    for pattern in patterns:
        if pattern and pattern not in seen:
            seen.append(pattern)
    return EntryPointMatcher(tuple(compile_pattern(p) for p in seen))


def is_root(node: FileNode, graph: Graph) -> bool:
    """No inbound uses edge and no outbound reference that lands in the graph."""
    return not node.used_by and not graph.has_internal_deps(node.path)


def classify(path: str, node: FileNode, matcher: EntryPointMatcher, graph: Graph) -> bool:
    return entry_reason(path, node, matcher, graph) is not None


def entry_reason(
    path: str, node: FileNode, matcher: EntryPointMatcher, graph: Graph
) -> Optional[str]:
    if matcher.matches(path):
        return "pattern"
    if is_root(node, graph):
        return "root"
    return None

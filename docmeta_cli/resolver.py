"""Reference resolution: raw ``uses`` strings to canonical project paths.

Two strategies exist for the same conceptual edge:

``strict_resolve``
    Used by the builder. Relative references are joined against the
    referencing folder, everything else must match the alias table. It never
    consults the node index.

``fuzzy_resolve``
    Used by analyzer traversals. Falls back to suffix and containment matches
    against the live index, so two files whose paths share a suffix can
    produce a false edge.
"""

from __future__ import annotations

import posixpath
from typing import Iterable, List, Optional

from . import config
from .models import AliasTable, Graph


def _strip_wildcard(target: str) -> str:
    return target[:-2] if target.endswith("/*") else target


def is_relative(reference: str) -> bool:
    return reference.startswith(".")


def strict_resolve(reference: str, from_dir: str, aliases: AliasTable) -> Optional[str]:
    """Resolve *reference* written in folder *from_dir* to a canonical path.

    Returns ``None`` for references that are neither relative nor aliased
    (external packages).
    """
    if is_relative(reference):
        joined = posixpath.normpath(posixpath.join(from_dir or "/", reference))
        # normpath keeps a leading "//"; ".." above the root stays at the root
        return "/" + joined.lstrip("/")

    for entry in aliases.entries:
        if entry.is_wildcard:
            if reference.startswith(entry.prefix + "/"):
                remainder = reference[len(entry.prefix) + 1:]
                return _strip_wildcard(entry.targets[0]) + "/" + remainder
        elif reference == entry.pattern:
            return _strip_wildcard(entry.targets[0])
    return None


def lookup_key(path: str, extensions: Iterable[str] = config.SOURCE_EXTENSIONS) -> str:
    """Path with a recognized source extension removed."""
    for ext in extensions:
        if path.endswith(ext):
            return path[: -len(ext)]
    return path


def find_node(graph: Graph, resolved: str) -> Optional[str]:
    """Land a resolved path on an indexed node, or ``None``."""
    if resolved in graph.nodes:
        return resolved
    key = lookup_key(resolved)
    if key in graph.lookup:
        return graph.lookup[key]
    return graph.lookup.get(key.rstrip("/"))


def _bare(reference: str) -> str:
    while reference.startswith("./") or reference.startswith("../"):
        reference = reference.split("/", 1)[1]
    return reference


def fuzzy_resolve(
    reference: str, from_path: str, graph: Graph, paths: Optional[List[str]] = None
) -> Optional[str]:
    """Resolve loosely against the nodes actually present in *graph*.

    Order: strict resolution landed on the index, then the first node (in
    sorted order) whose extension-less path ends with the bare reference, then
    the first node whose path contains it (path-like references only).

    Callers resolving many references should pass *paths*, the sorted node
    paths, so they are not re-sorted on every call.
    """
    from_dir = posixpath.dirname(from_path) or "/"
    resolved = strict_resolve(reference, from_dir, graph.aliases)
    if resolved is not None:
        hit = find_node(graph, resolved)
        if hit is not None:
            return hit

    bare = lookup_key(_bare(reference))
    if not bare or bare in (".", ".."):
        return None

    if paths is None:
        paths = graph.paths()
    suffix = bare if bare.startswith("/") else "/" + bare
    for path in paths:
        if lookup_key(path).endswith(suffix):
            return path
    # Containment only for path-like references; bare package names would
    # otherwise match any file that happens to contain them
    if "/" in bare:
        for path in paths:
            if bare in path:
                return path
    return None

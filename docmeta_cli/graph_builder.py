"""Build the bidirectional dependency graph from loaded records.

The builder is the only writer of ``usedBy``. Every run clears all ``usedBy``
lists and recomputes them from ``uses``, so stale entries never survive.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from . import config
from .config_manager import ProjectConfig, load_project_config
from .models import BuildResult, FileNode, Graph, RebuildReport, RecordFile, ScanError
from .resolver import find_node, lookup_key, strict_resolve
from .storage import RecordStore, RecordWriteError

logger = logging.getLogger(__name__)


def _str_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _index_records(
    records: List[RecordFile], project: ProjectConfig
) -> Tuple[Graph, Dict[str, Tuple[RecordFile, str]]]:
    graph = Graph(root=project.root, aliases=project.aliases)
    owners: Dict[str, Tuple[RecordFile, str]] = {}
    for record in sorted(records, key=lambda r: r.folder):
        for file_name, entry in record.files.items():
            path = record.file_path(file_name)
            if path in graph.nodes:
                logger.warning("Duplicate entry for %s in %s, keeping the first", path, record.path)
                continue
            owners[path] = (record, file_name)
            graph.nodes[path] = FileNode(
                path=path,
                purpose=entry.get("purpose") or "",
                exports=_str_list(entry.get("exports")),
                uses=_str_list(entry.get("uses")),
                used_by=_str_list(entry.get("usedBy")),
                calls=_str_list(entry.get("calls")),
                called_by=_str_list(entry.get("calledBy")),
            )

            keys = [lookup_key(path, project.source_extensions)]
            if file_name in config.INDEX_BASENAMES:
                keys.append(record.folder)
            for key in keys:
                owner = graph.lookup.setdefault(key, path)
                if owner != path:
                    logger.debug("Lookup key %s already owned by %s, not %s", key, owner, path)
    return graph, owners


def build(records: List[RecordFile], project: ProjectConfig) -> BuildResult:
    """Index, reset and re-derive ``usedBy`` for every record.

    Mutates the ``usedBy`` lists inside ``records`` in place; records whose
    list changed are returned in :attr:`BuildResult.changed`. Nothing is
    written to disk here, see :func:`persist`.
    """
    graph, owners = _index_records(records, project)

    used_by: Dict[str, Set[str]] = {path: set() for path in graph.nodes}
    unresolved: Dict[str, List[str]] = {}
    links = 0

    for path in graph.paths():
        node = graph.nodes[path]
        targets: List[str] = []
        for reference in node.uses:
            resolved = strict_resolve(reference, node.folder, graph.aliases)
            target = find_node(graph, resolved) if resolved is not None else None
            if target is None:
                sources = unresolved.setdefault(reference, [])
                if path not in sources:
                    sources.append(path)
                continue
            if target not in targets:
                targets.append(target)
            if path not in used_by[target]:
                used_by[target].add(path)
                links += 1
        graph.edges[path] = targets

    changed: Dict[Path, RecordFile] = {}
    for path in graph.paths():
        node = graph.nodes[path]
        node.used_by = sorted(used_by[path])
        record, file_name = owners[path]
        entry = record.files[file_name]
        # compare against the raw value so non-string entries on disk get rewritten
        if entry.get("usedBy") != node.used_by:
            changed.setdefault(record.path, record)
        entry["usedBy"] = list(node.used_by)

    logger.info(
        "Built graph: %d nodes, %d links, %d unresolved references",
        len(graph), links, len(unresolved),
    )
    return BuildResult(
        graph=graph,
        unresolved=unresolved,
        links_created=links,
        changed=list(changed.values()),
    )


def persist(result: BuildResult, store: RecordStore) -> List[ScanError]:
    """Write back every record the build changed, one file at a time.

    A failed write is a hard failure for that folder only; the remaining
    records are still written and the failures are returned.
    """
    errors: List[ScanError] = []
    for record in result.changed:
        try:
            store.write(record)
        except RecordWriteError as exc:
            logger.error("%s", exc)
            errors.append(ScanError(str(exc.path), "write", exc.reason))
    return errors


def load_and_build(
    root: Path, project: Optional[ProjectConfig] = None
) -> Tuple[RecordStore, List[RecordFile], List[ScanError], BuildResult]:
    """Load every record under *root* and build the graph in memory."""
    project = project or load_project_config(root)
    store = RecordStore(project.root, ignore_dirs=project.ignore_dirs)
    records, errors = store.load()
    return store, records, errors, build(records, project)


def rebuild(root: Path, project: Optional[ProjectConfig] = None) -> RebuildReport:
    """Full rebuild pass: load, build, and write back changed records."""
    store, records, errors, result = load_and_build(root, project)
    write_errors = persist(result, store)
    return RebuildReport(
        records=len(records),
        result=result,
        written=len(result.changed) - len(write_errors),
        errors=errors + write_errors,
    )

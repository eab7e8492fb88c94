"""Core data models shared by the store, builder and analyzer."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class FileNode:
    path: str
    purpose: str = ""
    exports: List[str] = field(default_factory=list)
    uses: List[str] = field(default_factory=list)
    used_by: List[str] = field(default_factory=list)
    calls: List[str] = field(default_factory=list)
    called_by: List[str] = field(default_factory=list)

    @property
    def folder(self) -> str:
        """Project-relative folder of this file ("/" for the root)."""
        head = self.path.rsplit("/", 1)[0]
        return head or "/"


@dataclass(frozen=True)
class AliasEntry:
    pattern: str
    targets: Tuple[str, ...]

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.endswith("/*")

    @property
    def prefix(self) -> str:
        return self.pattern[:-2] if self.is_wildcard else self.pattern


@dataclass(frozen=True)
class AliasTable:
    """Ordered pattern -> targets mapping, fixed for the duration of a run."""

    entries: Tuple[AliasEntry, ...] = ()

    @classmethod
    def from_pairs(cls, pairs) -> "AliasTable":
        merged: Dict[str, Tuple[str, ...]] = {}
        for pattern, targets in pairs:
            targets = tuple(targets)
            if not targets:
                continue
            # dict keeps the first insertion position for repeated patterns
            merged[pattern] = targets
        return cls(tuple(AliasEntry(p, t) for p, t in merged.items()))

    def patterns(self) -> List[str]:
        return [entry.pattern for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class RecordFile:
    """One ``.docmeta.json`` file as loaded from disk."""

    path: Path
    folder: str
    content: Dict[str, Any]

    @property
    def files(self) -> Dict[str, Dict[str, Any]]:
        return self.content.setdefault("files", {})

    def file_path(self, file_name: str) -> str:
        return f"{self.folder}/{file_name}" if self.folder != "/" else f"/{file_name}"


@dataclass
class ScanError:
    path: str
    stage: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "stage": self.stage, "message": self.message}


@dataclass
class Graph:
    root: Path
    aliases: AliasTable
    nodes: Dict[str, FileNode] = field(default_factory=dict)
    lookup: Dict[str, str] = field(default_factory=dict)
    edges: Dict[str, List[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, path: str) -> bool:
        return path in self.nodes

    def paths(self) -> List[str]:
        return sorted(self.nodes)

    def has_internal_deps(self, path: str) -> bool:
        return bool(self.edges.get(path))

    def raw_nodes(self) -> Dict[str, Dict[str, Any]]:
        payload: Dict[str, Dict[str, Any]] = {}
        for path in self.paths():
            node = self.nodes[path]
            entry: Dict[str, Any] = {
                "purpose": node.purpose,
                "exports": list(node.exports),
                "uses": list(node.uses),
                "usedBy": list(node.used_by),
            }
            if node.calls:
                entry["calls"] = list(node.calls)
            if node.called_by:
                entry["calledBy"] = list(node.called_by)
            payload[path] = entry
        return payload


@dataclass
class BuildResult:
    graph: Graph
    unresolved: Dict[str, List[str]] = field(default_factory=dict)
    links_created: int = 0
    changed: List[RecordFile] = field(default_factory=list)


@dataclass
class RebuildReport:
    records: int
    result: Optional[BuildResult]
    written: int = 0
    errors: List[ScanError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class EntryPoint:
    path: str
    purpose: str
    dependents: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "purpose": self.purpose,
            "dependents": self.dependents,
            "reason": self.reason,
        }


@dataclass
class Orphan:
    path: str
    purpose: str
    uses: int

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "purpose": self.purpose, "uses": self.uses}


@dataclass
class ClusterMember:
    path: str
    purpose: str
    uses: int
    used_by: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "purpose": self.purpose,
            "uses": self.uses,
            "usedBy": self.used_by,
        }


@dataclass
class Cluster:
    members: List[ClusterMember]

    @property
    def size(self) -> int:
        return len(self.members)

    def paths(self) -> List[str]:
        return [m.path for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        return {"size": self.size, "files": [m.to_dict() for m in self.members]}


@dataclass
class BlastRadius:
    target: str
    file: Optional[str] = None
    purpose: str = ""
    direct: List[str] = field(default_factory=list)
    transitive: List[str] = field(default_factory=list)
    http_callers: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.error is None

    @property
    def total(self) -> int:
        return len(self.direct) + len(self.transitive) + len(self.http_callers)

    def to_dict(self) -> Dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "file": self.file,
            "purpose": self.purpose,
            "direct": self.direct,
            "transitive": self.transitive,
            "httpCallers": self.http_callers,
            "total": self.total,
        }


@dataclass
class Analysis:
    total_files: int
    entry_points: List[EntryPoint]
    orphans: List[Orphan]
    cycles: List[List[str]]
    clusters: List[Cluster]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "entryPoints": [e.to_dict() for e in self.entry_points],
            "orphans": [o.to_dict() for o in self.orphans],
            "cycles": self.cycles,
            "clusters": [c.to_dict() for c in self.clusters],
        }

"""Graph analytics: cycles, orphans, entry points, clusters and blast radius.

The analyzer only reads a :class:`~docmeta_cli.models.Graph` produced by the
builder. Traversals over ``uses`` go through
:func:`~docmeta_cli.resolver.fuzzy_resolve`; ``usedBy`` and the strict
``edges`` map come straight from the build.
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .entry_points import EntryPointMatcher, compile_patterns, entry_reason
from .models import (
    Analysis,
    BlastRadius,
    Cluster,
    ClusterMember,
    EntryPoint,
    Graph,
    Orphan,
)
from .resolver import fuzzy_resolve

logger = logging.getLogger(__name__)


class _Visit(enum.Enum):
    ON_STACK = 1
    DONE = 2


def canonical_cycle(members: List[str]) -> List[str]:
    """Rotate a cycle (without its closing node) to start at its smallest member.

    The closing node is appended to the result.
    """
    start = members.index(min(members))
    rotated = members[start:] + members[:start]
    return rotated + [rotated[0]]


class GraphAnalyzer:
    """Run the analyses over one built graph."""

    def __init__(self, graph: Graph, matcher: Optional[EntryPointMatcher] = None) -> None:
        self.graph = graph
        self.matcher = matcher or compile_patterns(())
        self._targets: Dict[str, List[str]] = {}
        self._paths = graph.paths()

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def targets(self, path: str) -> List[str]:
        """Outbound ``uses`` targets of *path*, fuzzily resolved and cached."""
        cached = self._targets.get(path)
        if cached is not None:
            return cached
        found: List[str] = []
        node = self.graph.nodes.get(path)
        if node is not None:
            for reference in node.uses:
                target = fuzzy_resolve(reference, path, self.graph, self._paths)
                if target is not None and target not in found:
                    found.append(target)
        self._targets[path] = found
        return found

    def _entry_reason(self, path: str) -> Optional[str]:
        node = self.graph.nodes[path]
        reason = entry_reason(path, node, self.matcher, self.graph)
        if reason is None and node.called_by:
            reason = "http"
        return reason

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def _cycles_from(self, start: str) -> Iterator[List[str]]:
        state: Dict[str, _Visit] = {start: _Visit.ON_STACK}
        path: List[str] = [start]
        frames: List[Tuple[str, Iterator[str]]] = [(start, iter(self.targets(start)))]

        while frames:
            node, cursor = frames[-1]
            nxt = next(cursor, None)
            if nxt is None:
                frames.pop()
                path.pop()
                state[node] = _Visit.DONE
                continue

            seen = state.get(nxt)
            if seen is _Visit.ON_STACK:
                yield path[path.index(nxt):]
            elif seen is None:
                state[nxt] = _Visit.ON_STACK
                path.append(nxt)
                frames.append((nxt, iter(self.targets(nxt))))

    def find_cycles(self) -> List[List[str]]:
        """Every distinct cycle found by a DFS from each node.

        Each cycle starts and ends with its lexicographically smallest member.
        """
        cycles: List[List[str]] = []
        seen: Set[Tuple[str, ...]] = set()
        for start in self._paths:
            for members in self._cycles_from(start):
                cycle = canonical_cycle(members)
                key = tuple(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
        logger.debug("Found %d cycles", len(cycles))
        return cycles

    # ------------------------------------------------------------------
    # Orphans and entry points
    # ------------------------------------------------------------------

    def find_orphans(self) -> List[Orphan]:
        orphans = []
        for path in self._paths:
            node = self.graph.nodes[path]
            if node.used_by or node.called_by:
                continue
            if entry_reason(path, node, self.matcher, self.graph) is not None:
                continue
            # files with no internal references are leaf utilities, not dead code
            if not self.graph.has_internal_deps(path):
                continue
            orphans.append(Orphan(path=path, purpose=node.purpose, uses=len(node.uses)))
        return orphans

    def find_entry_points(self) -> List[EntryPoint]:
        entries = []
        for path in self._paths:
            reason = self._entry_reason(path)
            if reason is None:
                continue
            node = self.graph.nodes[path]
            entries.append(
                EntryPoint(
                    path=path,
                    purpose=node.purpose,
                    dependents=len(node.used_by),
                    reason=reason,
                )
            )
        entries.sort(key=lambda e: (-e.dependents, e.path))
        return entries

    # ------------------------------------------------------------------
    # Clusters
    # ------------------------------------------------------------------

    def reachable(self) -> Set[str]:
        """Nodes reachable from any entry point by following ``uses``."""
        roots = [p for p in self._paths if self._entry_reason(p) is not None]
        reached: Set[str] = set(roots)
        queue = deque(roots)
        while queue:
            current = queue.popleft()
            for target in self.targets(current):
                if target not in reached:
                    reached.add(target)
                    queue.append(target)
        return reached

    def find_clusters(self) -> List[Cluster]:
        reached = self.reachable()
        isolated = [p for p in self._paths if p not in reached]
        if not isolated:
            return []

        members = set(isolated)
        adjacency: Dict[str, Set[str]] = {p: set() for p in isolated}
        for path in isolated:
            neighbours = self.targets(path) + self.graph.nodes[path].used_by
            for other in neighbours:
                if other in members and other != path:
                    adjacency[path].add(other)
                    adjacency[other].add(path)

        assigned: Set[str] = set()
        clusters: List[Cluster] = []
        for start in isolated:
            if start in assigned:
                continue
            component = []
            assigned.add(start)
            queue = deque([start])
            while queue:
                current = queue.popleft()
                component.append(current)
                for other in adjacency[current]:
                    if other not in assigned:
                        assigned.add(other)
                        queue.append(other)
            clusters.append(Cluster(members=[self._member(p) for p in sorted(component)]))

        clusters.sort(key=lambda c: (-c.size, c.members[0].path))
        return clusters

    def _member(self, path: str) -> ClusterMember:
        node = self.graph.nodes[path]
        return ClusterMember(
            path=path,
            purpose=node.purpose,
            uses=len(node.uses),
            used_by=len(node.used_by),
        )

    # ------------------------------------------------------------------
    # Blast radius
    # ------------------------------------------------------------------

    def locate(self, target: str) -> Optional[str]:
        """Exact canonical match first, then the first suffix or substring hit."""
        raw = target.replace("\\", "/").strip()
        if not raw:
            return None
        normalized = raw if raw.startswith("/") else "/" + raw
        if normalized in self.graph.nodes:
            return normalized
        for path in self._paths:
            if path.endswith(raw) or raw in path:
                return path
        return None

    def blast_radius(self, target: str) -> BlastRadius:
        match = self.locate(target)
        if match is None:
            return BlastRadius(target=target, error=f"File not found in graph: {target}")

        distance: Dict[str, int] = {match: 0}
        queue = deque([match])
        while queue:
            current = queue.popleft()
            node = self.graph.nodes.get(current)
            if node is None:
                continue
            for dependent in node.used_by:
                if dependent not in distance:
                    distance[dependent] = distance[current] + 1
                    queue.append(dependent)

        node = self.graph.nodes[match]
        return BlastRadius(
            target=target,
            file=match,
            purpose=node.purpose,
            direct=sorted(p for p, d in distance.items() if d == 1),
            transitive=sorted(p for p, d in distance.items() if d >= 2),
            http_callers=sorted(set(node.called_by) - set(distance)),
        )

    # ------------------------------------------------------------------
    # Everything
    # ------------------------------------------------------------------

    def analyze(self) -> Analysis:
        return Analysis(
            total_files=len(self.graph),
            entry_points=self.find_entry_points(),
            orphans=self.find_orphans(),
            cycles=self.find_cycles(),
            clusters=self.find_clusters(),
        )

"""Graph export helpers for JSON snapshots and Graphviz DOT."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .models import Analysis, Graph


def snapshot(graph: Graph, analysis: Analysis) -> Dict[str, Any]:
    """Full graph payload: analysis results plus the raw node map."""
    return {
        "generated": datetime.now(timezone.utc).isoformat(),
        "root": str(graph.root),
        **analysis.to_dict(),
        "nodes": graph.raw_nodes(),
    }


def export_json(graph: Graph, analysis: Analysis, output_file: Path) -> None:
    payload = snapshot(graph, analysis)
    output_file.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def export_dot(graph: Graph, output_file: Path, analysis: Optional[Analysis] = None) -> None:
    """Write ``uses`` edges as a DOT digraph; cycle members are drawn red."""
    in_cycle = set()
    if analysis is not None:
        for cycle in analysis.cycles:
            in_cycle.update(cycle)

    lines = ["digraph DocMeta {"]
    lines.append("  rankdir=LR;")

    for path in graph.paths():
        node = graph.nodes[path]
        attrs = [f'label="{_esc(path)}"']
        if node.purpose:
            attrs.append(f'tooltip="{_esc(node.purpose)}"')
        if path in in_cycle:
            attrs.append("color=red")
        lines.append(f'  "{_esc(path)}" [{", ".join(attrs)}];')

    for path in graph.paths():
        for target in graph.edges.get(path, []):
            lines.append(f'  "{_esc(path)}" -> "{_esc(target)}" [label="uses"];')
        for caller in graph.nodes[path].called_by:
            if caller in graph.nodes:
                lines.append(f'  "{_esc(caller)}" -> "{_esc(path)}" [label="calls", style=dashed];')

    lines.append("}")
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')

"""Typer-based CLI for DocMeta dependency graphs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__, config
from .analyzer import GraphAnalyzer
from .config_manager import ProjectConfig, load_project_config
from .entry_points import EntryPointMatcher, compile_patterns
from .graph_builder import load_and_build, rebuild
from .graph_export import export_dot, export_json
from .models import BuildResult, ScanError
from .render import (
    render_analysis,
    render_blast_radius,
    render_clusters,
    render_cycles,
    render_entry_points,
    render_errors,
    render_orphans,
    render_rebuild,
)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="📚 DocMeta CLI: dependency graph analytics for documented source files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

NO_RECORDS = f'No {config.RECORD_FILENAME} files found. Run "docmeta init" first.'


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"DocMeta CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """DocMeta CLI: resolve usedBy links and analyze the dependency graph."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _echo_json(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _load_project(project_path: Path) -> ProjectConfig:
    project = load_project_config(project_path)
    if project.has_custom_aliases:
        custom = [p for p in project.aliases.patterns() if p not in dict(config.DEFAULT_ALIASES)]
        err_console.print(f"[dim]📦 {len(custom)} custom path aliases: {escape(', '.join(custom[:5]))}[/dim]")
    return project


def _matcher(project: ProjectConfig) -> EntryPointMatcher:
    matcher = compile_patterns(project.entry_point_patterns)
    for pattern in matcher.fallbacks:
        err_console.print(
            f"[yellow]⚠️  Entry pattern {escape(pattern.source)!r} is not a valid regex, "
            f"matched literally ({escape(pattern.error or '')})[/yellow]"
        )
    return matcher


def _build_graph(project: ProjectConfig) -> Tuple[BuildResult, List[ScanError]]:
    _, _, errors, result = load_and_build(project.root, project)
    return result, errors


def _finish(errors: List[ScanError], as_json: bool) -> None:
    if not errors:
        return
    render_errors(err_console if as_json else console, errors)
    raise typer.Exit(code=1)


@app.command("rebuild")
def rebuild_usedby(
    project_path: Path = typer.Argument(
        Path("."), exists=True, file_okay=False, help="Project root to scan."
    ),
):
    """Recompute every usedBy list from the uses lists and write records back."""
    project = _load_project(project_path)
    report = rebuild(project.root, project)

    if report.records == 0 and not report.errors:
        console.print(NO_RECORDS)
        raise typer.Exit(code=0)

    render_rebuild(console, report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("graph")
def graph(
    project_path: Path = typer.Argument(
        Path("."), exists=True, file_okay=False, help="Project root to analyze."
    ),
    blast_radius: Optional[str] = typer.Option(
        None, "--blast-radius", "-b", help="What breaks if this file changes?"
    ),
    orphans: bool = typer.Option(False, "--orphans", "-o", help="Files with no dependents."),
    cycles: bool = typer.Option(False, "--cycles", "-c", help="Circular dependencies."),
    entry_points: bool = typer.Option(
        False, "--entry-points", "-e", help="Where execution starts."
    ),
    clusters: bool = typer.Option(
        False, "--clusters", "--islands", help="Isolated groups unreachable from entry points."
    ),
    as_json: bool = typer.Option(False, "--json", "-j", help="Output results as JSON."),
    output: Optional[Path] = typer.Option(
        None, "--output", help="Also export the full graph snapshot to this JSON file."
    ),
):
    """Analyze the dependency graph (full analysis unless a mode is given)."""
    modes = [blast_radius is not None, orphans, cycles, entry_points, clusters]
    if sum(modes) > 1:
        raise typer.BadParameter(
            "Choose at most one of --blast-radius, --orphans, --cycles, --entry-points, --clusters."
        )

    project = _load_project(project_path)
    result, errors = _build_graph(project)
    if not len(result.graph):
        console.print(NO_RECORDS)
        _finish(errors, as_json)
        raise typer.Exit(code=0)

    analyzer = GraphAnalyzer(result.graph, _matcher(project))

    if blast_radius is not None:
        radius = analyzer.blast_radius(blast_radius)
        if as_json:
            _echo_json(radius.to_dict())
        else:
            render_blast_radius(console, radius)
        if not radius.found:
            raise typer.Exit(code=1)
    elif orphans:
        found = analyzer.find_orphans()
        if as_json:
            _echo_json({"count": len(found), "orphans": [o.to_dict() for o in found]})
        else:
            render_orphans(console, found)
    elif cycles:
        found_cycles = analyzer.find_cycles()
        if as_json:
            _echo_json({"count": len(found_cycles), "cycles": found_cycles})
        else:
            render_cycles(console, found_cycles)
    elif entry_points:
        entries = analyzer.find_entry_points()
        if as_json:
            _echo_json({"count": len(entries), "entryPoints": [e.to_dict() for e in entries]})
        else:
            render_entry_points(console, entries)
    elif clusters:
        found_clusters = analyzer.find_clusters()
        if as_json:
            _echo_json(
                {
                    "count": len(found_clusters),
                    "totalFiles": sum(c.size for c in found_clusters),
                    "clusters": [c.to_dict() for c in found_clusters],
                }
            )
        else:
            render_clusters(console, found_clusters)
    else:
        analysis = analyzer.analyze()
        if output is not None:
            export_json(result.graph, analysis, output)
            (err_console if as_json else console).print(f"Graph exported to {escape(str(output))}")
        if as_json:
            _echo_json(analysis.to_dict())
        else:
            render_analysis(console, analysis)

    _finish(errors, as_json)


@app.command("export")
def export_graph(
    project_path: Path = typer.Argument(
        Path("."), exists=True, file_okay=False, help="Project root to export."
    ),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Export a snapshot of the full graph to JSON or Graphviz DOT."""
    fmt = fmt.lower()
    if fmt not in {"json", "dot"}:
        raise typer.BadParameter("Format must be one of: json, dot")

    project = _load_project(project_path)
    result, errors = _build_graph(project)
    if not len(result.graph):
        console.print(NO_RECORDS)
        _finish(errors, False)
        raise typer.Exit(code=0)

    analysis = GraphAnalyzer(result.graph, _matcher(project)).analyze()
    if output is None:
        output = Path.cwd() / f"{project.root.name or 'project'}_graph.{fmt}"

    if fmt == "json":
        export_json(result.graph, analysis, output)
    else:
        export_dot(result.graph, output, analysis)

    console.print(f"Exported graph to {escape(str(output))}")
    _finish(errors, False)


if __name__ == "__main__":
    app()

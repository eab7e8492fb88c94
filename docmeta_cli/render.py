"""Rich terminal rendering for rebuild reports and graph analyses."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import config
from .models import Analysis, BlastRadius, Cluster, EntryPoint, Orphan, RebuildReport, ScanError


def _has_purpose(purpose: str) -> bool:
    return bool(purpose) and purpose != config.PURPOSE_PLACEHOLDER


def _plural(count: int, one: str, many: str) -> str:
    return one if count == 1 else many


def _more(console: Console, total: int, shown: int, noun: str = "more") -> None:
    if total > shown:
        console.print(f"  [dim]... and {total - shown} {noun}[/dim]")


def render_errors(console: Console, errors: List[ScanError]) -> None:
    if not errors:
        return
    table = Table(title=f"Errors ({len(errors)})", show_header=True, title_style="bold red")
    table.add_column("Stage", style="red", width=6)
    table.add_column("Record")
    table.add_column("Message")
    for error in errors:
        table.add_row(error.stage, escape(error.path), escape(error.message))
    console.print(table)


def render_rebuild(console: Console, report: RebuildReport) -> None:
    result = report.result
    console.print("\n[bold cyan]🔗 DocMeta UsedBy Resolver[/bold cyan]\n")
    console.print(f"Found {report.records} {config.RECORD_FILENAME} files")
    if result is None:
        return

    console.print(
        f"[green]✓[/green] Created {result.links_created} usedBy links, "
        f"updated {report.written} {_plural(report.written, 'record', 'records')}"
    )

    if result.unresolved:
        console.print(
            f"\n[yellow]⚠️  {len(result.unresolved)} import targets not found in any "
            f"{config.RECORD_FILENAME}:[/yellow]"
        )
        ranked = sorted(result.unresolved.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        for reference, sources in ranked[: config.UNRESOLVED_REPORT_LIMIT]:
            console.print(f"   {escape(reference)}")
            console.print(f"      [dim]← used by {len(sources)} file(s)[/dim]")
        _more(console, len(ranked), config.UNRESOLVED_REPORT_LIMIT)
        console.print(
            "\n   These are external packages, folders without records, "
            "or aliases missing from the project config."
        )

    render_errors(console, report.errors)


def render_entry_points(console: Console, entries: List[EntryPoint], limit: int = 0) -> None:
    console.print(f"\n[bold]Entry Points ({len(entries)})[/bold]")
    if not entries:
        console.print("  (none found)")
        return
    shown = entries[:limit] if limit else entries
    for entry in shown:
        deps = f" ({entry.dependents} dependents)" if entry.dependents else ""
        console.print(f"  {escape(entry.path)}{deps} [dim]{entry.reason}[/dim]")
        if not limit and _has_purpose(entry.purpose):
            console.print(f"    Purpose: {escape(entry.purpose)}")
    _more(console, len(entries), len(shown))


def render_orphans(console: Console, orphans: List[Orphan], limit: int = 0) -> None:
    console.print(
        f"\n[bold]Orphans ({len(orphans)} files with no dependents - dead code candidates)[/bold]"
    )
    if not orphans:
        console.print("  (none found - all files are used!)")
        return
    shown = orphans[:limit] if limit else orphans
    for orphan in shown:
        console.print(f"  {escape(orphan.path)}")
        if not limit and _has_purpose(orphan.purpose):
            console.print(f"    Purpose: {escape(orphan.purpose)}")
    _more(console, len(orphans), len(shown))


def render_cycles(console: Console, cycles: List[List[str]], limit: int = 0) -> None:
    noun = _plural(len(cycles), "dependency", "dependencies")
    console.print(f"\n[bold]Cycles ({len(cycles)} circular {noun})[/bold]")
    if not cycles:
        console.print("  (none found - no circular dependencies!)")
        return
    shown = cycles[:limit] if limit else cycles
    for cycle in shown:
        console.print(f"  {escape(' -> '.join(cycle))}")
    _more(console, len(cycles), len(shown))


def render_clusters(console: Console, clusters: List[Cluster], limit: int = 0) -> None:
    total = sum(c.size for c in clusters)
    noun = _plural(len(clusters), "isolated group", "isolated groups")
    console.print(f"\n[bold]Clusters ({len(clusters)} {noun} with {total} total files)[/bold]")
    if not clusters:
        console.print("  (none found - all code reachable from entry points!)")
        return
    shown = clusters[:limit] if limit else clusters
    for index, cluster in enumerate(shown, 1):
        table = Table(title=f"Cluster {index} ({cluster.size} files)", show_header=True)
        table.add_column("File", style="cyan")
        table.add_column("Uses", justify="right")
        table.add_column("Used by", justify="right")
        for member in cluster.members:
            table.add_row(escape(member.path), str(member.uses), str(member.used_by))
        console.print(table)
    _more(console, len(clusters), len(shown), "more clusters")


def render_analysis(console: Console, analysis: Analysis) -> None:
    console.print("\n[bold cyan]DocMeta Graph Analysis[/bold cyan]")
    render_entry_points(console, analysis.entry_points, limit=10)
    render_orphans(console, analysis.orphans, limit=10)
    render_cycles(console, analysis.cycles, limit=5)
    render_clusters(console, analysis.clusters, limit=3)
    console.print(
        Panel.fit(
            f"{analysis.total_files} files, {len(analysis.entry_points)} entry points, "
            f"{len(analysis.orphans)} orphans, {len(analysis.cycles)} cycles, "
            f"{len(analysis.clusters)} clusters",
            title="[bold]Summary[/bold]",
            border_style="cyan",
        )
    )


def render_blast_radius(console: Console, result: BlastRadius) -> None:
    if not result.found:
        console.print(f"[red]✗[/red] {escape(result.error or '')}")
        return

    console.print("\n[bold cyan]Blast Radius Analysis[/bold cyan]\n")
    console.print(f"File: {escape(result.file or '')}")
    if _has_purpose(result.purpose):
        console.print(f"Purpose: {escape(result.purpose)}")

    sections = (
        ("Direct dependents", result.direct, "(none - this file is not used by anything)"),
        ("Transitive dependents", result.transitive, "(none)"),
        ("HTTP callers", result.http_callers, "(none)"),
    )
    for title, paths, empty in sections:
        console.print(f"\n[bold]{title} ({len(paths)})[/bold]")
        if not paths:
            console.print(f"  {empty}")
        for path in paths:
            console.print(f"  {escape(path)}")

    console.print(f"\n[bold]Total blast radius: {result.total} files[/bold]")

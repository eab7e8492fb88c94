"""Tests for the graph builder and the rebuild pass."""

import json
from pathlib import Path

import pytest

from docmeta_cli.config import RECORD_FILENAME
from docmeta_cli.config_manager import load_project_config
from docmeta_cli.graph_builder import build, load_and_build, persist, rebuild
from docmeta_cli.models import RecordFile
from docmeta_cli.resolver import find_node, strict_resolve
from docmeta_cli.storage import RecordStore, RecordWriteError

from conftest import read_record


def _used_by_invariant_holds(graph) -> bool:
    """Recompute usedBy from each node's raw uses and compare."""
    expected = {path: set() for path in graph.nodes}
    for source, node in graph.nodes.items():
        for reference in node.uses:
            resolved = strict_resolve(reference, node.folder, graph.aliases)
            target = find_node(graph, resolved) if resolved is not None else None
            if target is not None:
                expected[target].add(source)
    return all(node.used_by == sorted(expected[path]) for path, node in graph.nodes.items())


class TestBuild:
    """Tests for build()."""

    def test_cycle_links_are_bidirectional(self, cycle_project: Path):
        """Test a -> b -> c -> a gives each file exactly one dependent."""
        report = rebuild(cycle_project)

        data = read_record(cycle_project, "/src")["files"]
        assert data["a.js"]["usedBy"] == ["/src/c.js"]
        assert data["b.js"]["usedBy"] == ["/src/a.js"]
        assert data["c.js"]["usedBy"] == ["/src/b.js"]
        assert report.result.links_created == 3
        assert report.result.unresolved == {}

    def test_used_by_matches_uses(self, sample_project: Path):
        """Test that usedBy is exactly the set of internally resolving sources."""
        _, _, errors, result = load_and_build(sample_project)

        assert errors == []
        assert _used_by_invariant_holds(result.graph)
        nodes = result.graph.nodes
        assert nodes["/src/lib/log.js"].used_by == [
            "/src/lib/db.js",
            "/src/main.js",
            "/src/tools/orphan.js",
        ]
        assert nodes["/src/lib/db.js"].used_by == ["/api/users.js", "/src/main.js"]
        assert nodes["/src/config.js"].used_by == ["/src/lib/db.js"]

    def test_stale_used_by_is_cleared(self, sample_project: Path):
        """Test that usedBy entries nobody backs any more are dropped."""
        rebuild(sample_project)

        data = read_record(sample_project, "/src")["files"]
        assert data["main.js"]["usedBy"] == []

    def test_non_string_used_by_entries_are_rewritten(self, make_project):
        """Test that junk next to a valid usedBy entry does not survive a rebuild."""
        root = make_project(
            {"/src": {"a.js": {"uses": ["./b"]}, "b.js": {"usedBy": [1, "/src/a.js"]}}}
        )

        report = rebuild(root)

        assert report.written == 1
        assert read_record(root, "/src")["files"]["b.js"]["usedBy"] == ["/src/a.js"]
        assert rebuild(root).written == 0

    def test_invariant_check_detects_wrong_used_by(self, cycle_project: Path):
        _, _, _, result = load_and_build(cycle_project)
        result.graph.nodes["/src/a.js"].used_by = ["/src/b.js"]

        assert not _used_by_invariant_holds(result.graph)

    def test_unresolved_reference_is_reported(self, make_project):
        """Test './missing' is reported, not raised, and adds no edge."""
        root = make_project({"/src": {"a.js": {"uses": ["./missing", "lodash"]}}})

        report = rebuild(root)

        assert report.ok
        assert report.result.unresolved == {"./missing": ["/src/a.js"], "lodash": ["/src/a.js"]}
        assert report.result.links_created == 0
        assert report.result.graph.edges["/src/a.js"] == []

    def test_duplicate_uses_count_once(self, make_project):
        root = make_project({"/src": {"a.js": {"uses": ["./b", "./b.js", "@/src/b"]}, "b.js": {}}})

        report = rebuild(root)

        assert report.result.links_created == 1
        assert read_record(root, "/src")["files"]["b.js"]["usedBy"] == ["/src/a.js"]

    def test_cross_folder_and_index_resolution(self, make_project):
        root = make_project(
            {
                "/app": {"page.tsx": {"uses": ["../lib", "@/lib/db"]}},
                "/lib": {"index.ts": {}, "db.ts": {}},
            }
        )

        rebuild(root)

        files = read_record(root, "/lib")["files"]
        assert files["index.ts"]["usedBy"] == ["/app/page.tsx"]
        assert files["db.ts"]["usedBy"] == ["/app/page.tsx"]

    def test_configured_alias(self, make_project):
        root = make_project(
            {"/app": {"a.ts": {"uses": ["#ui/button"]}}, "/packages/ui": {"button.ts": {}}}
        )
        (root / ".docmetarc.toml").write_text(
            '[path_aliases]\n"#ui/*" = ["/packages/ui/*"]\n', encoding="utf-8"
        )

        rebuild(root)

        assert read_record(root, "/packages/ui")["files"]["button.ts"]["usedBy"] == ["/app/a.ts"]

    def test_other_fields_are_preserved(self, make_project):
        """Test that purpose, exports, calls and calledBy survive a rebuild."""
        root = make_project(
            {
                "/src": {
                    "a.js": {"purpose": "Alpha", "exports": ["a"], "uses": ["./b"], "calls": ["/api/x"]},
                    "b.js": {"calledBy": ["/src/c.js"], "extra": 1},
                }
            }
        )

        rebuild(root)

        data = read_record(root, "/src")
        assert data["v"] == 3
        assert data["files"]["a.js"]["purpose"] == "Alpha"
        assert data["files"]["a.js"]["exports"] == ["a"]
        assert data["files"]["a.js"]["calls"] == ["/api/x"]
        assert data["files"]["b.js"]["calledBy"] == ["/src/c.js"]
        assert data["files"]["b.js"]["extra"] == 1


class TestIdempotence:
    """A second rebuild with no edits changes nothing."""

    def test_second_rebuild_writes_nothing(self, sample_project: Path):
        first = rebuild(sample_project)
        snapshot = {
            p: p.read_text(encoding="utf-8") for p in sample_project.rglob(RECORD_FILENAME)
        }

        second = rebuild(sample_project)

        assert first.written > 0
        assert second.written == 0
        assert second.result.changed == []
        assert second.result.links_created == first.result.links_created
        for path, text in snapshot.items():
            assert path.read_text(encoding="utf-8") == text

    def test_only_changed_records_are_written(self, sample_project: Path):
        """Test that records whose usedBy lists did not move keep their timestamp."""
        report = rebuild(sample_project)

        # /src/tools and /api gain no dependents
        tools = read_record(sample_project, "/src/tools")
        assert tools["updated"] == "2024-01-01T00:00:00.000Z"
        assert report.written == 3


class TestErrors:
    """Per-folder failures never abort the whole pass."""

    def test_malformed_record_does_not_stop_build(self, make_project):
        root = make_project({"/src": {"a.js": {"uses": ["../lib/b"]}}, "/lib": {"b.js": {}}})
        (root / "broken").mkdir()
        (root / "broken" / RECORD_FILENAME).write_text("{", encoding="utf-8")

        report = rebuild(root)

        assert not report.ok
        assert [e.stage for e in report.errors] == ["parse"]
        assert read_record(root, "/lib")["files"]["b.js"]["usedBy"] == ["/src/a.js"]

    def test_non_list_uses_is_reported(self, make_project):
        """Test that a string 'uses' value is a parse error, not a silently empty list."""
        root = make_project({"/src": {"a.js": {"uses": "./b"}, "b.js": {}}, "/lib": {"c.js": {}}})

        report = rebuild(root)

        assert not report.ok
        assert [(e.stage, e.path) for e in report.errors] == [
            ("parse", str(root / "src" / RECORD_FILENAME))
        ]
        assert "'uses' is not a list of strings" in report.errors[0].message
        assert report.records == 1

    def test_write_failure_is_reported_per_folder(self, make_project, monkeypatch):
        """Test that one failed write is a hard error while other folders still get written."""
        root = make_project(
            {
                "/lib": {"b.js": {}},
                "/util": {"c.js": {}},
                "/src": {"a.js": {"uses": ["../lib/b", "../util/c"]}},
            }
        )
        real_write = RecordStore.write

        def flaky_write(self, record, touch=True):
            if record.folder == "/lib":
                raise RecordWriteError(record.path, "disk full")
            return real_write(self, record, touch)

        monkeypatch.setattr(RecordStore, "write", flaky_write)

        report = rebuild(root)

        assert not report.ok
        assert len(report.errors) == 1
        assert report.errors[0].stage == "write"
        assert report.errors[0].message == "disk full"
        assert report.written == 1
        assert read_record(root, "/util")["files"]["c.js"]["usedBy"] == ["/src/a.js"]
        assert read_record(root, "/lib")["files"]["b.js"]["usedBy"] == []

    def test_persist_returns_write_errors(self, make_project):
        root = make_project({"/src": {"a.js": {"uses": ["./b"]}, "b.js": {}}})
        project = load_project_config(root)
        store = RecordStore(root)
        records, _ = store.load()
        result = build(records, project)
        for record in result.changed:
            record.path = root / "nowhere" / RECORD_FILENAME

        errors = persist(result, store)

        assert [e.stage for e in errors] == ["write"]


class TestDuplicates:
    def test_first_record_keeps_a_duplicate_path(self, make_project):
        """Test that a path listed twice keeps its first owner and is not duplicated."""
        root = make_project({"/src": {"a.js": {"uses": ["./b"]}, "b.js": {}}})
        records, _ = RecordStore(root).load()
        clone = json.loads(json.dumps(records[0].content))
        records.append(RecordFile(records[0].path, "/src", clone))

        result = build(records, load_project_config(root))

        assert sorted(result.graph.nodes) == ["/src/a.js", "/src/b.js"]
        assert result.graph.nodes["/src/b.js"].used_by == ["/src/a.js"]


@pytest.mark.parametrize(
    "layout",
    [
        {"/": {"index.js": {"uses": ["./src/a"]}}, "/src": {"a.js": {"uses": ["../index"]}}},
        {"/x": {"a.py": {"uses": ["../y/b", "../y/b", "requests"]}}, "/y": {"b.py": {"uses": ["../x/a"]}}},
        {"/deep/er/est": {"f.ts": {"uses": ["@/top", "~/top"]}}, "/": {"top.ts": {}}},
    ],
)
def test_invariant_on_varied_layouts(make_project, layout):
    """Test the usedBy invariant on a few differently shaped projects."""
    root = make_project(layout)

    _, _, _, result = load_and_build(root)

    assert _used_by_invariant_holds(result.graph)

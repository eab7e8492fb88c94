"""Pytest configuration and fixtures for DocMeta CLI tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator

import pytest

from docmeta_cli.config import RECORD_FILENAME
from docmeta_cli.config_manager import ProjectConfig, load_project_config
from docmeta_cli.graph_builder import load_and_build
from docmeta_cli.models import Graph


def write_record(
    root: Path, folder: str, files: Dict[str, Dict[str, Any]], purpose: str = ""
) -> Path:
    """Write one ``.docmeta.json`` for *folder* ("/" or "/src/lib") under *root*."""
    directory = root / folder.strip("/") if folder.strip("/") else root
    directory.mkdir(parents=True, exist_ok=True)
    entries = {}
    for name, entry in files.items():
        entries[name] = {"purpose": "", "exports": [], "uses": [], "usedBy": [], **entry}
    record_path = directory / RECORD_FILENAME
    record_path.write_text(
        json.dumps(
            {"v": 3, "purpose": purpose, "files": entries, "updated": "2024-01-01T00:00:00Z"},
            indent=2,
        ),
        encoding="utf-8",
    )
    return record_path


def read_record(root: Path, folder: str) -> Dict[str, Any]:
    directory = root / folder.strip("/") if folder.strip("/") else root
    return json.loads((directory / RECORD_FILENAME).read_text(encoding="utf-8"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, Dict[str, Dict[str, Any]]]], Path]:
    """Build a project from ``{folder: {file_name: entry}}`` and return its root."""

    def _make(layout: Dict[str, Dict[str, Dict[str, Any]]]) -> Path:
        root = temp_dir / "project"
        root.mkdir(parents=True, exist_ok=True)
        for folder, files in layout.items():
            write_record(root, folder, files)
        return root.resolve()

    return _make


@pytest.fixture
def build_graph() -> Callable[[Path], Graph]:
    """Load and build the graph of a project root without writing anything."""

    def _build(root: Path, project: ProjectConfig = None) -> Graph:
        _, _, errors, result = load_and_build(root, project)
        assert errors == []
        return result.graph

    return _build


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_project(temp_dir: Path, sample_project_path: Path) -> Path:
    """Writable copy of the sample project."""
    root = temp_dir / "sample"
    shutil.copytree(sample_project_path, root)
    return root.resolve()


@pytest.fixture
def sample_config(sample_project: Path) -> ProjectConfig:
    return load_project_config(sample_project)


@pytest.fixture
def cycle_project(make_project) -> Path:
    """a -> b -> c -> a."""
    return make_project(
        {
            "/src": {
                "a.js": {"uses": ["./b"]},
                "b.js": {"uses": ["./c"]},
                "c.js": {"uses": ["./a"]},
            }
        }
    )


@pytest.fixture
def chain_project(make_project) -> Path:
    """top -> middle -> leaf."""
    return make_project(
        {
            "/src": {
                "top.js": {"uses": ["./middle"]},
                "middle.js": {"uses": ["./leaf"]},
                "leaf.js": {"uses": []},
            }
        }
    )

"""Persistence layer for per-folder ``.docmeta.json`` records.

The store is the only component that touches the filesystem:

- **discovery** walks the project, skipping ignored and hidden directories;
  an unreadable directory simply contributes nothing.
- **loading** parses each record; a malformed record is skipped for that
  folder only and reported as a :class:`~docmeta_cli.models.ScanError`.
- **writing** serializes a record back with 2-space indentation. A failed
  write raises :class:`RecordWriteError` so the caller can report it.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from . import config
from .models import RecordFile, ScanError

logger = logging.getLogger(__name__)


class RecordWriteError(Exception):
    """Raised when a record cannot be written back to disk."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to write {path}: {reason}")
        self.path = path
        self.reason = reason


class RecordStore:
    """Discover, load and write the ``.docmeta.json`` records of one project."""

    def __init__(
        self,
        root: Path,
        ignore_dirs: Iterable[str] = config.DEFAULT_IGNORE_DIRS,
        record_filename: str = config.RECORD_FILENAME,
    ) -> None:
        self.root = root.resolve()
        self.ignore_dirs = frozenset(ignore_dirs)
        self.record_filename = record_filename

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _skip_dir(self, name: str) -> bool:
        return name in self.ignore_dirs or name.startswith(".")

    def discover(self) -> List[Path]:
        """Return every record file under the root, sorted by path."""
        found: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._on_walk_error):
            dirnames[:] = sorted(d for d in dirnames if not self._skip_dir(d))
            if self.record_filename in filenames:
                found.append(Path(dirpath) / self.record_filename)
        return sorted(found)

    @staticmethod
    def _on_walk_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

    def folder_path(self, record_path: Path) -> str:
        """Canonical folder path of a record ("/" for the project root)."""
        rel = record_path.parent.relative_to(self.root).as_posix()
        return "/" if rel in ("", ".") else "/" + rel

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, record_path: Path) -> Tuple[Optional[RecordFile], Optional[ScanError]]:
        """Load one record, returning either the record or the error that skipped it."""
        try:
            text = record_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Unreadable record %s: %s", record_path, exc)
            return None, ScanError(str(record_path), "read", str(exc))

        try:
            content = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping malformed record %s: %s", record_path, exc)
            return None, ScanError(str(record_path), "parse", str(exc))

        if not isinstance(content, dict):
            return None, ScanError(str(record_path), "parse", "record is not a JSON object")
        files = content.setdefault("files", {})
        if not isinstance(files, dict):
            return None, ScanError(str(record_path), "parse", "'files' is not an object")
        for name, entry in files.items():
            if not isinstance(entry, dict):
                return None, ScanError(
                    str(record_path), "parse", f"entry '{name}' is not an object"
                )
            uses = entry.get("uses")
            if uses is not None and (
                not isinstance(uses, list) or not all(isinstance(u, str) for u in uses)
            ):
                return None, ScanError(
                    str(record_path), "parse", f"entry '{name}': 'uses' is not a list of strings"
                )

        return RecordFile(record_path, self.folder_path(record_path), content), None

    def load(self) -> Tuple[List[RecordFile], List[ScanError]]:
        """Load every record in the project. Errors accumulate, they never abort."""
        records: List[RecordFile] = []
        errors: List[ScanError] = []
        for record_path in self.discover():
            record, error = self.read(record_path)
            if record is not None:
                records.append(record)
            if error is not None:
                errors.append(error)
        logger.info("Loaded %d records (%d skipped) from %s", len(records), len(errors), self.root)
        return records, errors

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(self, record: RecordFile, touch: bool = True) -> None:
        record.content.setdefault("v", config.RECORD_VERSION)
        if touch:
            record.content["updated"] = datetime.now(timezone.utc).isoformat()
        payload = json.dumps(record.content, indent=2, ensure_ascii=False) + "\n"
        try:
            record.path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise RecordWriteError(record.path, str(exc)) from exc
        logger.debug("Wrote %s", record.path)

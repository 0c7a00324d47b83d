from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import Lock, RLock
from typing import Dict, List, Sequence

from pydantic import TypeAdapter, ValidationError

from .fs_utils import atomic_write_text
from .models import Project, RegistryError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_FILENAME = "registry.json"

_PROJECT_LIST = TypeAdapter(List[Project])
_LOCKS: Dict[Path, RLock] = {}
_LOCKS_GUARD = Lock()


def registry_lock(directory: Path) -> RLock:
    """One lock per project directory, shared by every registry handle on it."""
    key = directory.expanduser().resolve()
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = RLock()
            _LOCKS[key] = lock
        return lock


class ProjectRegistry:
    """JSON sidecar caching scan results inside the project directory."""

    def __init__(self, project_dir: Path, filename: str = DEFAULT_REGISTRY_FILENAME) -> None:
        self.project_dir = project_dir
        self.path = project_dir / filename
        self.lock = registry_lock(project_dir)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> List[Project]:
        with self.lock:
            return self._read()

    def save(self, projects: Sequence[Project]) -> None:
        with self.lock:
            self._write(projects)

    def upsert(self, project: Project) -> None:
        """Add ``project`` without a rescan, replacing any entry with the same path."""
        with self.transaction() as projects:
            for index, existing in enumerate(projects):
                if existing.path == project.path:
                    projects[index] = project
                    break
            else:
                projects.append(project)

    @contextmanager
    def transaction(self) -> Iterator[List[Project]]:
        """Hold the lock across a read-modify-write; the list is saved on clean exit."""
        with self.lock:
            projects = self._read()
            yield projects
            self._write(projects)

    def _read(self) -> List[Project]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise RegistryError(f"failed to read {self.path}: {exc}") from exc
        if not raw.strip():
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryError(f"failed to parse {self.path}: {exc}") from exc
        if payload is None:
            return []
        try:
            return _PROJECT_LIST.validate_python(payload)
        except ValidationError as exc:
            raise RegistryError(f"failed to parse {self.path}: {exc}") from exc

    def _write(self, projects: Sequence[Project]) -> None:
        records = [project.to_record() for project in projects]
        try:
            atomic_write_text(self.path, json.dumps(records, indent=2) + "\n")
        except OSError as exc:
            raise RegistryError(f"failed to write {self.path}: {exc}") from exc
        logger.debug("Wrote %d projects to %s", len(records), self.path)

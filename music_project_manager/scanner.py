from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Dict, List, Optional

from .models import Project, TempoParseError, is_project_file
from .registry import ProjectRegistry
from .rpp import DEFAULT_SCAN_LINES, extract_bpm

logger = logging.getLogger(__name__)


class ScanCancelled(Exception):
    pass


def _raise_walk_error(exc: OSError) -> None:
    raise exc


class ProjectScanner:
    """Walks the project directory and builds a registry entry for every .RPP file."""

    def __init__(self, project_dir: Path, *, bpm_scan_lines: int = DEFAULT_SCAN_LINES) -> None:
        self.project_dir = project_dir
        self.bpm_scan_lines = bpm_scan_lines

    def iter_project_files(self, cancel: Optional[Event] = None) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self.project_dir, onerror=_raise_walk_error):
            # Lexical order keeps repeated scans (and sort ties) stable.
            dirnames.sort()
            directory = Path(dirpath)
            for name in sorted(filenames):
                if cancel is not None and cancel.is_set():
                    raise ScanCancelled(str(self.project_dir))
                file_path = directory / name
                if not is_project_file(file_path) or not file_path.is_file():
                    continue
                yield file_path

    def build_project(self, path: Path) -> Project:
        try:
            bpm = extract_bpm(path, self.bpm_scan_lines)
        except (TempoParseError, OSError) as exc:
            logger.warning("Failed to extract BPM from %s: %s", path, exc)
            bpm = 0.0
        return Project.from_file(path, bpm=bpm)

    def scan(self, cancel: Optional[Event] = None) -> List[Project]:
        return [self.build_project(path) for path in self.iter_project_files(cancel)]


class ScanState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class ScanStatus:
    state: ScanState = ScanState.IDLE
    project_dir: Optional[Path] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    project_count: Optional[int] = None
    error: Optional[str] = None

    def to_record(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "project_dir": str(self.project_dir) if self.project_dir else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "project_count": self.project_count,
            "error": self.error,
        }


class ScanTask:
    """Runs one scan at a time on a daemon thread and tracks its outcome."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._status = ScanStatus()
        self._thread: Optional[Thread] = None
        self._cancel = Event()

    @property
    def status(self) -> ScanStatus:
        with self._lock:
            return dataclasses.replace(self._status)

    def is_running(self) -> bool:
        with self._lock:
            return self._status.state is ScanState.RUNNING

    def start(self, scanner: ProjectScanner, registry: ProjectRegistry) -> bool:
        with self._lock:
            if self._status.state is ScanState.RUNNING:
                return False
            self._cancel = Event()
            self._status = ScanStatus(
                state=ScanState.RUNNING,
                project_dir=scanner.project_dir,
                started_at=datetime.now().astimezone(),
            )
            self._thread = Thread(
                target=self._run,
                args=(scanner, registry, self._cancel),
                name="project-scan",
                daemon=True,
            )
            self._thread.start()
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self._status.state is not ScanState.RUNNING:
                return False
            self._cancel.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> ScanStatus:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self.status

    def _run(self, scanner: ProjectScanner, registry: ProjectRegistry, cancel: Event) -> None:
        logger.info("Starting background scan of %s", scanner.project_dir)
        try:
            projects = scanner.scan(cancel=cancel)
            if cancel.is_set():
                raise ScanCancelled(str(scanner.project_dir))
            registry.save(projects)
        except ScanCancelled:
            logger.info("Scan of %s cancelled; registry left unchanged", scanner.project_dir)
            self._finish(ScanState.CANCELLED)
        except Exception as exc:
            logger.exception("Scan of %s failed", scanner.project_dir)
            self._finish(ScanState.ERROR, error=str(exc))
        else:
            logger.info(
                "Scan complete. Found %d projects and saved to %s",
                len(projects),
                registry.path,
            )
            self._finish(ScanState.DONE, project_count=len(projects))

    def _finish(
        self,
        state: ScanState,
        *,
        project_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._status.state = state
            self._status.finished_at = datetime.now().astimezone()
            self._status.project_count = project_count
            self._status.error = error

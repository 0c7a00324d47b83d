from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import (
    AmbiguousMatchError,
    InvalidInputError,
    Project,
    ProjectNotFoundError,
)
from .registry import ProjectRegistry

DEFAULT_LIST_LIMIT = 30


def _recency_key(project: Project) -> datetime:
    modified = project.last_modified
    # Naive timestamps are read as local time so they compare with aware ones.
    return modified if modified.tzinfo is not None else modified.astimezone()


def most_recent(projects: Iterable[Project], limit: int = DEFAULT_LIST_LIMIT) -> List[Project]:
    """Newest first; equal timestamps keep registry order."""
    ordered = sorted(projects, key=_recency_key, reverse=True)
    return ordered[:limit]


@dataclass(frozen=True)
class ProjectFilter:
    name: Optional[str] = None
    bpm: int = 0
    min_bpm: int = 0
    max_bpm: int = 0

    def __post_init__(self) -> None:
        for label, value in (("bpm", self.bpm), ("min_bpm", self.min_bpm), ("max_bpm", self.max_bpm)):
            if value < 0:
                raise InvalidInputError(f"{label} cannot be negative, got {value}")

    def matches(self, project: Project) -> bool:
        if self.name and self.name.lower() not in project.name.lower():
            return False
        if self.bpm > 0 and int(project.bpm) != self.bpm:
            return False
        if self.min_bpm > 0 and project.bpm < self.min_bpm:
            return False
        if self.max_bpm > 0 and project.bpm > self.max_bpm:
            return False
        return True


def resolve_project(projects: Sequence[Project], query: str) -> Project:
    """Exact (case-insensitive) name first, then a unique substring match."""
    needle = query.strip().lower()
    if not needle:
        raise InvalidInputError("project name is required and cannot be empty")
    exact = [project for project in projects if project.name.lower() == needle]
    if len(exact) == 1:
        return exact[0]
    if len(exact) > 1:
        raise AmbiguousMatchError(query, exact)
    partial = [project for project in projects if needle in project.name.lower()]
    if len(partial) == 1:
        return partial[0]
    if len(partial) > 1:
        raise AmbiguousMatchError(query, partial)
    raise ProjectNotFoundError(f"no project matching {query!r} in the registry")


class RegistryQuery:
    """Read-side views over the registry sidecar."""

    def __init__(self, registry: ProjectRegistry, limit: int = DEFAULT_LIST_LIMIT) -> None:
        self.registry = registry
        self.limit = limit

    def list_projects(self) -> List[Project]:
        return most_recent(self.registry.load(), self.limit)

    def filter_projects(self, criteria: ProjectFilter) -> Tuple[int, List[Project]]:
        """Return the total number of matches and the capped, newest-first page."""
        matched = [project for project in self.registry.load() if criteria.matches(project)]
        return len(matched), most_recent(matched, self.limit)

    def find(self, query: str) -> Project:
        return resolve_project(self.registry.load(), query)

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_EXTENSION = ".RPP"

# Registries written by other tools may carry nanosecond timestamps.
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


class Project(BaseModel):
    """One REAPER project file as recorded in the registry sidecar."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    path: Path
    last_modified: datetime = Field(alias="lastModified")
    size: int = 0
    bpm: float = 0.0

    @field_validator("last_modified", mode="before")
    @classmethod
    def _truncate_fraction(cls, value: object) -> object:
        if isinstance(value, str):
            return _EXTRA_FRACTION.sub(r"\1", value, count=1)
        return value

    @classmethod
    def from_file(cls, path: Path, bpm: float = 0.0) -> "Project":
        stat = path.stat()
        return cls(
            name=path.stem,
            path=path.resolve(),
            last_modified=datetime.fromtimestamp(stat.st_mtime).astimezone(),
            size=stat.st_size,
            bpm=bpm,
        )

    def refresh_stat(self) -> None:
        stat = self.path.stat()
        self.last_modified = datetime.fromtimestamp(stat.st_mtime).astimezone()
        self.size = stat.st_size

    def to_record(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)

    def summary(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "path": str(self.path),
            "date": self.last_modified.strftime("%Y-%m-%d"),
            "bpm": self.bpm,
        }


def is_project_file(path: Path) -> bool:
    return path.suffix.lower() == PROJECT_EXTENSION.lower()


class ProjectManagerError(Exception):
    """Base class for errors surfaced to the calling agent."""


class InvalidInputError(ProjectManagerError):
    """Raised before any I/O when operation arguments are unusable."""


class SettingsError(ProjectManagerError):
    pass


class RegistryError(ProjectManagerError):
    pass


class TemplateNotFoundError(ProjectManagerError):
    pass


class TempoParseError(ProjectManagerError):
    pass


class LaunchError(ProjectManagerError):
    pass


class ProjectNotFoundError(ProjectManagerError):
    pass


class ProjectExistsError(ProjectManagerError):
    pass


class AmbiguousMatchError(ProjectManagerError):
    def __init__(self, query: str, candidates: Sequence[Project]) -> None:
        self.query = query
        self.candidates: List[Project] = list(candidates)
        listing = "\n".join(f"- {p.name} ({p.path})" for p in self.candidates)
        super().__init__(
            f"Multiple projects match {query!r}; be more specific:\n{listing}"
        )

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .fs_utils import same_path, safe_rename, validate_project_name
from .models import (
    InvalidInputError,
    Project,
    ProjectExistsError,
    ProjectManagerError,
    ProjectNotFoundError,
)
from .query import resolve_project
from .registry import ProjectRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenamePlan:
    old_file: Path
    new_file: Path
    old_folder: Path
    new_folder: Path

    @property
    def moves_folder(self) -> bool:
        return self.old_folder != self.new_folder


@dataclass(frozen=True)
class RenamedProject:
    old_name: str
    old_path: Path
    project: Project


class ProjectOrganizer:
    """Renames projects on disk and keeps the registry in step."""

    def __init__(self, registry: ProjectRegistry) -> None:
        self.registry = registry

    def rename(self, old_name: str, new_name: str) -> RenamedProject:
        validate_project_name(new_name, field="new project name")
        if not old_name or not old_name.strip():
            raise InvalidInputError("current project name is required and cannot be empty")
        with self.registry.transaction() as projects:
            project = resolve_project(projects, old_name)
            if project.name == new_name:
                raise InvalidInputError(f"project is already named {new_name!r}")
            if not project.path.is_file():
                raise ProjectNotFoundError(f"project file no longer exists: {project.path}")
            plan = self.plan(project, new_name)
            self._apply(plan)
            previous_name = project.name
            self._update_entries(projects, project, plan, new_name)
        logger.info("Renamed project %s -> %s", plan.old_file, plan.new_file)
        return RenamedProject(old_name=previous_name, old_path=plan.old_file, project=project)

    def plan(self, project: Project, new_name: str) -> RenamePlan:
        old_file = project.path
        old_folder = old_file.parent
        file_name = f"{new_name}{old_file.suffix}"
        # The project directory itself is never renamed.
        if same_path(old_folder, self.registry.project_dir):
            new_folder = old_folder
        else:
            new_folder = old_folder.with_name(new_name)
            if new_folder.exists() and not same_path(new_folder, old_folder):
                raise ProjectExistsError(f"a folder named {new_name!r} already exists: {new_folder}")
        # Checked before the folder moves so a clash leaves the tree untouched.
        clash = old_folder / file_name
        if clash.exists() and not same_path(clash, old_file):
            raise ProjectExistsError(f"a project file named {file_name!r} already exists: {clash}")
        new_file = new_folder / file_name
        return RenamePlan(
            old_file=old_file,
            new_file=new_file,
            old_folder=old_folder,
            new_folder=new_folder,
        )

    def _apply(self, plan: RenamePlan) -> None:
        if not plan.moves_folder:
            try:
                safe_rename(plan.old_file, plan.new_file)
            except OSError as exc:
                raise ProjectManagerError(
                    f"failed to rename {plan.old_file} -> {plan.new_file}: {exc}"
                ) from exc
            return

        try:
            safe_rename(plan.old_folder, plan.new_folder)
        except OSError as exc:
            raise ProjectManagerError(
                f"failed to rename folder {plan.old_folder} -> {plan.new_folder}: {exc}"
            ) from exc
        moved_file = plan.new_folder / plan.old_file.name
        try:
            safe_rename(moved_file, plan.new_file)
        except OSError as exc:
            try:
                safe_rename(plan.new_folder, plan.old_folder)
                logger.warning(
                    "Rolled back folder rename for %s after failed file rename", plan.old_folder
                )
            except OSError as rollback_exc:
                logger.warning(
                    "Failed to roll back folder rename %s -> %s: %s",
                    plan.new_folder,
                    plan.old_folder,
                    rollback_exc,
                )
            raise ProjectManagerError(
                f"failed to rename project file {moved_file} -> {plan.new_file}: {exc}"
            ) from exc

    @staticmethod
    def _update_entries(
        projects: List[Project], project: Project, plan: RenamePlan, new_name: str
    ) -> None:
        for entry in projects:
            if entry is project:
                continue
            if plan.moves_folder and entry.path.is_relative_to(plan.old_folder):
                entry.path = plan.new_folder / entry.path.relative_to(plan.old_folder)
        project.name = new_name
        project.path = plan.new_file
        try:
            project.refresh_stat()
        except OSError as exc:
            logger.warning("Could not stat renamed project %s: %s", plan.new_file, exc)

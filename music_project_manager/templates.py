from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import PluginConfig, Settings
from .fs_utils import validate_project_name
from .launcher import Launcher
from .models import (
    PROJECT_EXTENSION,
    InvalidInputError,
    Project,
    ProjectExistsError,
    ProjectManagerError,
    RegistryError,
    TemplateNotFoundError,
    TempoParseError,
)
from .registry import ProjectRegistry
from .rpp import extract_bpm, update_project_bpm

logger = logging.getLogger(__name__)


class TemplateInstantiator:
    """Materialises a new project from ``default.RPP`` and hands it to the DAW."""

    def __init__(self, config: PluginConfig, launcher: Launcher) -> None:
        self.config = config
        self.launcher = launcher

    def validate(self, name: Optional[str], bpm: Optional[int]) -> None:
        validate_project_name(name)
        if bpm and not self.config.bpm.contains(bpm):
            raise InvalidInputError(
                f"BPM must be between {self.config.bpm.minimum} and "
                f"{self.config.bpm.maximum}, got {bpm}"
            )

    def create(self, settings: Settings, name: str, bpm: Optional[int] = None) -> Path:
        self.validate(name, bpm)
        project_dir = settings.project_dir
        template = settings.default_template
        if project_dir is None or template is None:
            raise ProjectManagerError("project_dir and template_dir must be configured")

        project_root = project_dir / name
        try:
            project_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ProjectManagerError(
                f"failed to create project directory {project_root}: {exc}"
            ) from exc

        try:
            data = template.read_bytes()
        except FileNotFoundError as exc:
            raise TemplateNotFoundError(
                f"template file not found at {template}. Please ensure a "
                f"{template.name} template exists in your template directory"
            ) from exc
        except OSError as exc:
            raise ProjectManagerError(f"failed to read template file {template}: {exc}") from exc

        dest = project_root / f"{name}{PROJECT_EXTENSION}"
        if dest.exists():
            raise ProjectExistsError(f"project file already exists: {dest}")
        try:
            dest.write_bytes(data)
            if bpm:
                update_project_bpm(dest, bpm)
        except OSError as exc:
            raise ProjectManagerError(f"failed to write project file {dest}: {exc}") from exc
        logger.info("Created project %s from %s", dest, template)

        self._register(project_dir, dest, bpm)
        if self.config.daw.launch_after_create:
            self.launcher.open_in_daw(dest)
        return dest

    def _register(self, project_dir: Path, dest: Path, bpm: Optional[int]) -> None:
        registry = ProjectRegistry(project_dir, self.config.registry.filename)
        try:
            tempo = float(bpm) if bpm else extract_bpm(dest, self.config.registry.bpm_scan_lines)
        except (TempoParseError, OSError) as exc:
            logger.warning("Failed to extract BPM from %s: %s", dest, exc)
            tempo = 0.0
        try:
            registry.upsert(Project.from_file(dest, bpm=tempo))
        except RegistryError as exc:
            logger.warning("Could not add %s to %s: %s", dest, registry.path, exc)

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .config import DEFAULT_TEMPLATE_NAME, AgentContext, PluginConfig, Settings
from .fs_utils import expand_path, validate_project_name
from .launcher import Launcher
from .models import (
    PROJECT_EXTENSION,
    InvalidInputError,
    ProjectManagerError,
    ProjectNotFoundError,
    is_project_file,
)
from .organizer import ProjectOrganizer
from .query import ProjectFilter, RegistryQuery
from .registry import ProjectRegistry
from .scanner import ProjectScanner, ScanTask
from .settings_store import AgentSettingsStore
from .templates import TemplateInstantiator

logger = logging.getLogger(__name__)

SETUP_REQUIRED = (
    "Music Project Manager needs to be set up first. Please run music_project_manager "
    "with operation 'init_setup' to begin the setup process."
)
PROJECT_DIR_REQUIRED = (
    "Music Project Manager needs to be configured. Please set project_dir using "
    "'set_project_dir' or 'complete_setup'."
)
NOT_CONFIGURED_STATUS = "Not configured - run setup to initialize"
NO_MATCHES = "No projects match the filter criteria"


def _dump(payload: object) -> str:
    return json.dumps(payload, indent=2)


@dataclass
class MusicProjectManagerApp:
    config: PluginConfig
    launcher: Launcher
    store: Optional[AgentSettingsStore] = None
    scan_task: ScanTask = field(default_factory=ScanTask)
    _instantiator: Optional[TemplateInstantiator] = None

    @classmethod
    def create(
        cls,
        config: PluginConfig,
        agent_context: Optional[AgentContext] = None,
        *,
        launcher: Optional[Launcher] = None,
    ) -> "MusicProjectManagerApp":
        return cls(
            config=config,
            launcher=launcher or Launcher(config.daw.app_name),
            store=AgentSettingsStore(agent_context) if agent_context else None,
        )

    def set_agent_context(self, agent_context: AgentContext) -> None:
        self.store = AgentSettingsStore(agent_context)

    @property
    def instantiator(self) -> TemplateInstantiator:
        if self._instantiator is None:
            self._instantiator = TemplateInstantiator(self.config, self.launcher)
        return self._instantiator

    def load_settings(self) -> Settings:
        if self.store is None:
            return Settings()
        return self.store.load()

    def registry_for(self, settings: Settings) -> ProjectRegistry:
        if settings.project_dir is None:
            raise ProjectManagerError("project_dir is not configured")
        return ProjectRegistry(settings.project_dir, self.config.registry.filename)

    # -- template instantiation -------------------------------------------

    def create_project(self, name: Optional[str], bpm: int = 0) -> str:
        self.instantiator.validate(name, bpm)
        settings = self.load_settings()
        if not settings.is_configured:
            return SETUP_REQUIRED
        dest = self.instantiator.create(settings, name or "", bpm)
        verb = "Created and launched" if self.config.daw.launch_after_create else "Created"
        message = f"{verb} project: {dest}"
        if bpm:
            message += f" (BPM {bpm})"
        return message

    # -- scanning -----------------------------------------------------------

    def scan(self) -> str:
        settings = self.load_settings()
        if settings.project_dir is None:
            return PROJECT_DIR_REQUIRED
        if not settings.project_dir.is_dir():
            return f"Project directory does not exist: {settings.project_dir}"
        scanner = ProjectScanner(
            settings.project_dir, bpm_scan_lines=self.config.registry.bpm_scan_lines
        )
        if not self.scan_task.start(scanner, self.registry_for(settings)):
            return (
                f"A scan of {self.scan_task.status.project_dir} is already running. "
                "Use 'scan_status' to check progress."
            )
        return (
            f"Scanning {settings.project_dir} in the background. Use 'list_projects' to see "
            "results once complete, or 'scan_status' to check progress."
        )

    def scan_status(self) -> str:
        return _dump(self.scan_task.status.to_record())

    def cancel_scan(self) -> str:
        if self.scan_task.cancel():
            return "Cancellation requested; the registry will not be updated by this scan."
        return "No scan is running."

    # -- registry queries ---------------------------------------------------

    def _query(self, settings: Settings) -> RegistryQuery | str:
        if settings.project_dir is None:
            return PROJECT_DIR_REQUIRED
        registry = self.registry_for(settings)
        if not registry.exists():
            return (
                f"No {registry.path.name} file found at {registry.path}. "
                "Run 'scan' operation first to generate the projects list."
            )
        return RegistryQuery(registry, self.config.registry.list_limit)

    def list_projects(self) -> str:
        query = self._query(self.load_settings())
        if isinstance(query, str):
            return query
        projects = query.list_projects()
        if not projects:
            return f"No projects found in {query.registry.path}"
        return _dump([project.summary() for project in projects])

    def filter_project(
        self,
        name: Optional[str] = None,
        bpm: int = 0,
        min_bpm: int = 0,
        max_bpm: int = 0,
    ) -> str:
        criteria = ProjectFilter(name=name, bpm=bpm, min_bpm=min_bpm, max_bpm=max_bpm)
        query = self._query(self.load_settings())
        if isinstance(query, str):
            return query
        total, page = query.filter_projects(criteria)
        if total == 0:
            return NO_MATCHES
        return (
            f"Found {total} projects matching filters, showing {len(page)} most recent:\n"
            + _dump([project.summary() for project in page])
        )

    def rename_project(self, name: Optional[str], new_name: Optional[str]) -> str:
        validate_project_name(new_name, field="new project name")
        if not name or not name.strip():
            raise InvalidInputError("name of the project to rename is required")
        query = self._query(self.load_settings())
        if isinstance(query, str):
            return query
        renamed = ProjectOrganizer(query.registry).rename(name, new_name or "")
        return (
            f"Renamed project '{renamed.old_name}' to '{renamed.project.name}': "
            f"{renamed.project.path}"
        )

    # -- launching ----------------------------------------------------------

    def _locate(self, path: Optional[str], name: Optional[str]) -> Path | str:
        if path:
            project_path = expand_path(path)
            if not project_path.exists():
                raise ProjectNotFoundError(f"project file not found: {project_path}")
            if not is_project_file(project_path):
                raise InvalidInputError(
                    f"file must be a {PROJECT_EXTENSION} (Reaper project) file, "
                    f"got: {project_path.suffix or '<no extension>'}"
                )
            return project_path
        if not name:
            raise InvalidInputError("either path or name is required")
        query = self._query(self.load_settings())
        if isinstance(query, str):
            return query
        project = query.find(name)
        if not project.path.exists():
            raise ProjectNotFoundError(f"project file not found: {project.path}")
        return project.path

    def open_project(self, path: Optional[str], name: Optional[str] = None) -> str:
        located = self._locate(path, name)
        if isinstance(located, str):
            return located
        self.launcher.open_in_daw(located)
        return f"Opened project: {located}"

    def open_in_finder(self, path: Optional[str], name: Optional[str] = None) -> str:
        located = self._locate(path, name)
        if isinstance(located, str):
            return located
        self.launcher.reveal(located)
        return f"Revealed project in file browser: {located}"

    # -- settings -----------------------------------------------------------

    def get_settings(self) -> str:
        if self.store is None or not self.store.exists():
            return _dump(
                {
                    "project_dir": None,
                    "template_dir": None,
                    "path": None,
                    "default_template": None,
                    "initialized": False,
                    "status": NOT_CONFIGURED_STATUS,
                }
            )
        settings = self.store.load()
        payload: Dict[str, object] = {
            "project_dir": str(settings.project_dir) if settings.project_dir else None,
            "template_dir": str(settings.template_dir) if settings.template_dir else None,
            "path": str(settings.project_dir.parent) if settings.project_dir else None,
            "default_template": (
                str(settings.default_template) if settings.default_template else None
            ),
            "initialized": settings.initialized,
        }
        if not settings.is_configured:
            payload["status"] = NOT_CONFIGURED_STATUS
        return _dump(payload)

    def init_setup(self) -> str:
        settings = self.load_settings()
        if settings.is_configured and settings.initialized:
            return (
                "Music Project Manager is already set up and ready to use.\n\n"
                "Current settings:\n"
                f"- Project Directory: {settings.project_dir}\n"
                f"- Template Directory: {settings.template_dir}\n"
                f"- Default Template: {settings.default_template}\n\n"
                "Use operation 'get_settings' to view detailed configuration."
            )
        project_dir, template_dir = self.config.suggested_directories()
        return (
            "Welcome to Music Project Manager!\n\n"
            "Please complete the setup by providing:\n\n"
            "1. **Project Directory** - Where new music projects will be created\n"
            f"   Suggested: {project_dir}\n\n"
            f"2. **Template Directory** - Where your {PROJECT_EXTENSION} template files are stored\n"
            f"   Suggested: {template_dir}\n\n"
            "Please use operation 'complete_setup' with project_dir and template_dir "
            "parameters to finish the setup.\n\n"
            f'Example: music_project_manager(operation="complete_setup", '
            f'project_dir="{project_dir}", template_dir="{template_dir}")'
        )

    def _require_store(self) -> AgentSettingsStore:
        if self.store is None:
            raise ProjectManagerError(
                "no agent context available - cannot determine settings file path"
            )
        return self.store

    @staticmethod
    def _make_dir(path: Path, label: str) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ProjectManagerError(f"failed to create {label} {path}: {exc}") from exc

    def complete_setup(self, project_dir: Optional[str], template_dir: Optional[str]) -> str:
        if not project_dir or not template_dir:
            raise InvalidInputError("complete_setup requires both project_dir and template_dir")
        store = self._require_store()
        projects = expand_path(project_dir)
        templates = expand_path(template_dir)
        self._make_dir(projects, "project directory")
        self._make_dir(templates, "template directory")
        settings = store.update(project_dir=projects, template_dir=templates, initialized=True)
        return (
            "Setup completed successfully!\n\n"
            "Configuration saved:\n"
            f"- Project Directory: {settings.project_dir}\n"
            f"- Template Directory: {settings.template_dir}\n"
            f"- Default Template: {settings.default_template}\n\n"
            "You can now use operation 'create_project' to create new music projects. "
            f"Make sure to place a {DEFAULT_TEMPLATE_NAME} template file in your template "
            "directory for best results."
        )

    def set_project_dir(self, project_dir: Optional[str]) -> str:
        if not project_dir:
            raise InvalidInputError("project_dir is required")
        store = self._require_store()
        settings = store.update(project_dir=expand_path(project_dir))
        return f"Project directory set to: {settings.project_dir}"

    def set_template_dir(self, template_dir: Optional[str]) -> str:
        if not template_dir:
            raise InvalidInputError("template_dir is required")
        store = self._require_store()
        templates = expand_path(template_dir)
        self._make_dir(templates, "template directory")
        settings = store.update(template_dir=templates)
        return f"Template directory set to: {settings.template_dir}"

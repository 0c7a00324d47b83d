"""Function-call entry point used by the agent host.

The host sends one JSON object per call; ``operation`` picks the handler and
the remaining fields are operation-specific. Handlers return plain text or
JSON text. Failures are raised as :class:`ProjectManagerError` subclasses so
the host can report them as tool errors.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Literal, Mapping, Optional, get_args

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .app import MusicProjectManagerApp
from .config import AgentContext, PluginConfig
from .launcher import Launcher
from .models import InvalidInputError

logger = logging.getLogger(__name__)

Operation = Literal[
    "create_project",
    "scan",
    "scan_status",
    "cancel_scan",
    "list_projects",
    "filter_project",
    "rename_project",
    "open_project",
    "open_in_finder",
    "get_settings",
    "init_setup",
    "complete_setup",
    "set_project_dir",
    "set_template_dir",
]
OPERATIONS: tuple[str, ...] = get_args(Operation)


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")

    operation: Operation
    name: Optional[str] = None
    new_name: Optional[str] = None
    path: Optional[str] = None
    bpm: int = 0
    min_bpm: int = 0
    max_bpm: int = 0
    project_dir: Optional[str] = None
    template_dir: Optional[str] = None

    @field_validator("bpm", "min_bpm", "max_bpm", mode="before")
    @classmethod
    def _null_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


def build_definition(config: PluginConfig) -> Dict[str, Any]:
    bpm_bounds = {"minimum": config.bpm.minimum, "maximum": config.bpm.maximum}
    return {
        "name": config.name,
        "description": (
            "Manage REAPER music projects: create projects from a template, open projects "
            "in REAPER, reveal them in the file browser, scan for .RPP files, list, filter "
            "by name/BPM, rename projects, and configure the project/template directories"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "description": "Operation to perform",
                    "enum": list(OPERATIONS),
                },
                "name": {
                    "type": "string",
                    "description": (
                        "Project name for create_project, name filter for filter_project, "
                        "project to find for open_project/open_in_finder, or the current "
                        "name of the project to rename"
                    ),
                },
                "new_name": {
                    "type": "string",
                    "description": "New project name for rename_project",
                },
                "path": {
                    "type": "string",
                    "description": "Full path to a .RPP file for open_project or open_in_finder",
                },
                "bpm": {
                    "type": "integer",
                    "description": "BPM for create_project, exact BPM for filter_project",
                    **bpm_bounds,
                },
                "min_bpm": {
                    "type": "integer",
                    "description": "Minimum BPM for filter_project",
                    **bpm_bounds,
                },
                "max_bpm": {
                    "type": "integer",
                    "description": "Maximum BPM for filter_project",
                    **bpm_bounds,
                },
                "project_dir": {
                    "type": "string",
                    "description": "Project directory for complete_setup or set_project_dir",
                },
                "template_dir": {
                    "type": "string",
                    "description": "Template directory for complete_setup or set_template_dir",
                },
            },
            "required": ["operation"],
        },
    }


class MusicProjectManagerTool:
    def __init__(
        self,
        config: Optional[PluginConfig] = None,
        agent_context: Optional[AgentContext] = None,
        *,
        launcher: Optional[Launcher] = None,
    ) -> None:
        self.config = config or PluginConfig()
        self.app = MusicProjectManagerApp.create(self.config, agent_context, launcher=launcher)

    @property
    def version(self) -> str:
        return self.config.version

    def definition(self) -> Dict[str, Any]:
        return build_definition(self.config)

    def set_agent_context(self, agent_context: AgentContext) -> None:
        self.app.set_agent_context(agent_context)

    def call(self, args: str | Mapping[str, Any]) -> str:
        params = self.parse_arguments(args)
        handler = self._handlers()[params.operation]
        logger.debug("Dispatching %s", params.operation)
        return handler(params)

    @staticmethod
    def parse_arguments(args: str | Mapping[str, Any]) -> ToolArguments:
        if isinstance(args, str):
            try:
                args = json.loads(args or "{}")
            except json.JSONDecodeError as exc:
                raise InvalidInputError(f"failed to parse arguments: {exc}") from exc
        if not isinstance(args, Mapping):
            raise InvalidInputError("arguments must be a JSON object")
        operation = args.get("operation")
        if operation not in OPERATIONS:
            raise InvalidInputError(
                f"unknown operation {operation!r}. Valid operations: {', '.join(OPERATIONS)}"
            )
        try:
            return ToolArguments.model_validate(args)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid arguments for {operation}: {exc}") from exc

    def _handlers(self) -> Dict[str, Callable[[ToolArguments], str]]:
        app = self.app
        return {
            "create_project": lambda p: app.create_project(p.name, p.bpm),
            "scan": lambda p: app.scan(),
            "scan_status": lambda p: app.scan_status(),
            "cancel_scan": lambda p: app.cancel_scan(),
            "list_projects": lambda p: app.list_projects(),
            "filter_project": lambda p: app.filter_project(p.name, p.bpm, p.min_bpm, p.max_bpm),
            "rename_project": lambda p: app.rename_project(p.name, p.new_name),
            "open_project": lambda p: app.open_project(p.path, p.name),
            "open_in_finder": lambda p: app.open_in_finder(p.path, p.name),
            "get_settings": lambda p: app.get_settings(),
            "init_setup": lambda p: app.init_setup(),
            "complete_setup": lambda p: app.complete_setup(p.project_dir, p.template_dir),
            "set_project_dir": lambda p: app.set_project_dir(p.project_dir),
            "set_template_dir": lambda p: app.set_template_dir(p.template_dir),
        }

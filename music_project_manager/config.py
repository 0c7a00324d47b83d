from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

DEFAULT_TEMPLATE_NAME = "default.RPP"
CONFIG_FILENAMES = ("music-project-manager.yaml", "music-project-manager.yml")


def _expand_optional(value: Optional[str | Path]) -> Optional[Path]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return Path(value).expanduser()


class DawSettings(BaseModel):
    app_name: str = "REAPER"
    launch_after_create: bool = True


class BpmSettings(BaseModel):
    minimum: int = 30
    maximum: int = 300

    @model_validator(mode="after")
    def _check_bounds(self) -> "BpmSettings":
        if self.minimum <= 0 or self.minimum >= self.maximum:
            raise ValueError(
                f"bpm.minimum must be positive and below bpm.maximum "
                f"(got {self.minimum}..{self.maximum})"
            )
        return self

    def contains(self, bpm: float) -> bool:
        return self.minimum <= bpm <= self.maximum


class RegistrySettings(BaseModel):
    filename: str = "registry.json"
    list_limit: int = Field(default=30, gt=0)
    bpm_scan_lines: int = Field(default=100, gt=0)


class DefaultsSettings(BaseModel):
    project_dir: Optional[Path] = None
    template_dir: Optional[Path] = None

    @field_validator("project_dir", "template_dir", mode="before")
    @classmethod
    def _expand(cls, value: Optional[str | Path]) -> Optional[Path]:
        return _expand_optional(value)


class PluginConfig(BaseModel):
    name: str = "music_project_manager"
    version: str = "0.1.0"
    daw: DawSettings = DawSettings()
    bpm: BpmSettings = BpmSettings()
    registry: RegistrySettings = RegistrySettings()
    defaults: DefaultsSettings = DefaultsSettings()

    @classmethod
    def load(cls, path: Path) -> "PluginConfig":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw or {})

    def suggested_directories(self) -> Tuple[Path, Path]:
        project_dir, template_dir = platform_default_directories()
        return (
            self.defaults.project_dir or project_dir,
            self.defaults.template_dir or template_dir,
        )


class Settings(BaseModel):
    """Per-agent directories; ``default_template`` is derived from ``template_dir``."""

    project_dir: Optional[Path] = None
    template_dir: Optional[Path] = None
    initialized: bool = False

    @field_validator("project_dir", "template_dir", mode="before")
    @classmethod
    def _expand(cls, value: Optional[str | Path]) -> Optional[Path]:
        return _expand_optional(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def default_template(self) -> Optional[Path]:
        if self.template_dir is None:
            return None
        return self.template_dir / DEFAULT_TEMPLATE_NAME

    @property
    def is_configured(self) -> bool:
        return self.project_dir is not None and self.template_dir is not None


@dataclass(frozen=True, slots=True)
class AgentContext:
    """Identifies the agent whose settings file the plugin reads and writes."""

    name: str
    config_path: Path
    settings_path: Path
    agent_dir: Path

    @classmethod
    def for_agent(cls, agents_root: Path, name: str) -> "AgentContext":
        agent_dir = agents_root / name
        return cls(
            name=name,
            config_path=agent_dir / "config.json",
            settings_path=agent_dir / "agent_settings.json",
            agent_dir=agent_dir,
        )


def platform_default_directories(platform: str | None = None) -> Tuple[Path, Path]:
    platform = platform or sys.platform
    home = Path.home()
    project_dir = home / "Music" / "Projects"
    if platform == "darwin":
        template_dir = home / "Library" / "Application Support" / "REAPER" / "ProjectTemplates"
    elif platform.startswith("win"):
        template_dir = home / "AppData" / "Roaming" / "REAPER" / "ProjectTemplates"
    else:
        template_dir = home / "Music" / "Templates"
    return project_dir, template_dir


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        return explicit_path
    cwd = Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = cwd / name
        if candidate.exists():
            return candidate
    return None


def load_config(explicit_path: Optional[Path] = None) -> PluginConfig:
    path = find_config(explicit_path)
    if path is None:
        return PluginConfig()
    return PluginConfig.load(path)

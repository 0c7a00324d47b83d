from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from .config import AgentContext, Settings
from .fs_utils import atomic_write_text
from .models import SettingsError

logger = logging.getLogger(__name__)

SETTINGS_NAMESPACE = "music_project_manager"


class AgentSettingsStore:
    """Reads and writes this plugin's section of an agent's settings file.

    The file may hold sections for other plugins; those keys are left alone.
    """

    def __init__(self, context: AgentContext, namespace: str = SETTINGS_NAMESPACE) -> None:
        self.context = context
        self.namespace = namespace
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self.context.settings_path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Settings:
        section = self._section(self._read_document())
        if section is None:
            return Settings()
        return self._to_settings(section)

    def update(
        self,
        *,
        project_dir: Optional[Path] = None,
        template_dir: Optional[Path] = None,
        initialized: Optional[bool] = None,
    ) -> Settings:
        with self._lock:
            document = self._read_document()
            section = self._section(document)
            if section is None:
                section = {}
                document[self.namespace] = section
            if project_dir is not None:
                section["project_dir"] = str(project_dir)
                section["path"] = str(project_dir.parent)
            if template_dir is not None:
                settings = Settings(template_dir=template_dir)
                section["template_dir"] = str(template_dir)
                section["default_template"] = str(settings.default_template)
            if initialized is not None:
                section["initialized"] = initialized
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_text(self.path, json.dumps(document, indent=2) + "\n")
            except OSError as exc:
                raise SettingsError(f"failed to write settings to {self.path}: {exc}") from exc
        logger.info("Updated %s settings in %s", self.namespace, self.path)
        return self._to_settings(section)

    def _read_document(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise SettingsError(f"failed to read agent settings at {self.path}: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SettingsError(f"failed to parse agent settings at {self.path}: {exc}") from exc
        if not isinstance(document, dict):
            raise SettingsError(f"agent settings at {self.path} must be a JSON object")
        return document

    def _section(self, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        section = document.get(self.namespace)
        if section is None:
            return None
        if not isinstance(section, dict):
            raise SettingsError(
                f"invalid {self.namespace} settings format in {self.path}"
            )
        return section

    @staticmethod
    def _to_settings(section: Dict[str, Any]) -> Settings:
        return Settings(
            project_dir=section.get("project_dir"),
            template_dir=section.get("template_dir"),
            initialized=bool(section.get("initialized", bool(section))),
        )

import json
import subprocess
import tempfile
import unittest
from pathlib import Path

from music_project_manager.app import (
    NO_MATCHES,
    NOT_CONFIGURED_STATUS,
    PROJECT_DIR_REQUIRED,
    SETUP_REQUIRED,
)
from music_project_manager.config import AgentContext, PluginConfig
from music_project_manager.launcher import Launcher
from music_project_manager.models import InvalidInputError, ProjectManagerError
from music_project_manager.tool import OPERATIONS, MusicProjectManagerTool

TEMPLATE = "<REAPER_PROJECT 0.1\n  TEMPO 120 4 4\n>\n"


class RecordingRunner:
    def __init__(self) -> None:
        self.commands: list[list[str]] = []

    def __call__(self, command, check=False):
        self.commands.append(command)
        return subprocess.CompletedProcess(command, 0)


class TestToolDefinition(unittest.TestCase):
    def test_definition_lists_operations_and_bpm_bounds(self) -> None:
        config = PluginConfig.model_validate({"bpm": {"minimum": 60, "maximum": 200}})
        definition = MusicProjectManagerTool(config).definition()
        props = definition["parameters"]["properties"]
        self.assertEqual(definition["name"], "music_project_manager")
        self.assertEqual(props["operation"]["enum"], list(OPERATIONS))
        self.assertEqual(len(OPERATIONS), 14)
        self.assertEqual((props["bpm"]["minimum"], props["bpm"]["maximum"]), (60, 200))
        self.assertEqual(props["min_bpm"]["minimum"], 60)
        self.assertEqual(definition["parameters"]["required"], ["operation"])


class TestToolArguments(unittest.TestCase):
    def setUp(self) -> None:
        self.tool = MusicProjectManagerTool()

    def test_malformed_json_raises(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            self.tool.call("{oops")
        self.assertIn("failed to parse arguments", str(ctx.exception))

    def test_unknown_operation_lists_valid_ones(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            self.tool.call({"operation": "delete_everything"})
        self.assertIn("create_project", str(ctx.exception))

    def test_null_bpm_means_unset(self) -> None:
        params = self.tool.parse_arguments('{"operation": "filter_project", "bpm": null}')
        self.assertEqual(params.bpm, 0)

    def test_without_agent_context(self) -> None:
        self.assertEqual(self.tool.call({"operation": "create_project", "name": "x"}), SETUP_REQUIRED)
        self.assertEqual(self.tool.call({"operation": "scan"}), PROJECT_DIR_REQUIRED)
        self.assertEqual(json.loads(self.tool.call({"operation": "get_settings"}))["status"], NOT_CONFIGURED_STATUS)
        with self.assertRaises(ProjectManagerError):
            self.tool.call({"operation": "set_project_dir", "project_dir": "/tmp/x"})


class TestToolWorkflow(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.runner = RecordingRunner()
        self.tool = MusicProjectManagerTool(
            PluginConfig(),
            AgentContext.for_agent(self.root / "agents", "producer"),
            launcher=Launcher(platform="linux", runner=self.runner),
        )
        self.projects = self.root / "music" / "projects"
        self.templates = self.root / "music" / "templates"

    def tearDown(self) -> None:
        self.tool.app.scan_task.wait(5)
        self._tmp.cleanup()

    def _setup(self) -> None:
        message = self.tool.call(
            {
                "operation": "complete_setup",
                "project_dir": str(self.projects),
                "template_dir": str(self.templates),
            }
        )
        self.assertIn("Setup completed successfully", message)
        (self.templates / "default.RPP").write_text(TEMPLATE, encoding="utf-8")

    def test_init_setup_suggests_then_reports_configured(self) -> None:
        self.assertIn("Welcome to Music Project Manager", self.tool.call({"operation": "init_setup"}))
        self._setup()
        self.assertIn("already set up", self.tool.call({"operation": "init_setup"}))

    def test_complete_setup_persists_settings(self) -> None:
        self._setup()
        settings = json.loads(self.tool.call({"operation": "get_settings"}))
        self.assertEqual(settings["project_dir"], str(self.projects))
        self.assertEqual(settings["path"], str(self.projects.parent))
        self.assertEqual(settings["default_template"], str(self.templates / "default.RPP"))
        self.assertTrue(settings["initialized"])
        self.assertNotIn("status", settings)
        self.assertTrue(self.projects.is_dir())

    def test_complete_setup_requires_both_directories(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.tool.call({"operation": "complete_setup", "project_dir": str(self.projects)})

    def test_list_without_registry_asks_for_scan(self) -> None:
        self._setup()
        message = self.tool.call({"operation": "list_projects"})
        self.assertIn("Run 'scan' operation first", message)

    def test_create_scan_list_filter_rename_open(self) -> None:
        self._setup()
        created = self.tool.call({"operation": "create_project", "name": "Groove", "bpm": 128})
        self.assertEqual(
            created,
            f"Created and launched project: {self.projects / 'Groove' / 'Groove.RPP'} (BPM 128)",
        )
        self.tool.call({"operation": "create_project", "name": "Ballad", "bpm": 70})

        self.assertIn("in the background", self.tool.call({"operation": "scan"}))
        status = self.tool.app.scan_task.wait(5)
        self.assertEqual(status.project_count, 2)
        self.assertEqual(json.loads(self.tool.call({"operation": "scan_status"}))["state"], "done")

        listed = json.loads(self.tool.call({"operation": "list_projects"}))
        self.assertEqual({p["name"] for p in listed}, {"Groove", "Ballad"})
        self.assertEqual(set(listed[0]), {"name", "path", "date", "bpm"})

        filtered = self.tool.call({"operation": "filter_project", "min_bpm": 100})
        header, _, body = filtered.partition("\n")
        self.assertEqual(header, "Found 1 projects matching filters, showing 1 most recent:")
        self.assertEqual(json.loads(body)[0]["name"], "Groove")
        self.assertEqual(
            self.tool.call({"operation": "filter_project", "name": "zzz-nonexistent"}), NO_MATCHES
        )

        renamed = self.tool.call({"operation": "rename_project", "name": "groove", "new_name": "Groove Final"})
        self.assertIn("Renamed project 'Groove' to 'Groove Final'", renamed)
        new_path = self.projects / "Groove Final" / "Groove Final.RPP"
        self.assertTrue(new_path.is_file())

        self.runner.commands.clear()
        opened = self.tool.call({"operation": "open_project", "name": "final"})
        self.assertEqual(opened, f"Opened project: {new_path}")
        revealed = self.tool.call({"operation": "open_in_finder", "path": str(new_path)})
        self.assertEqual(revealed, f"Revealed project in file browser: {new_path}")
        self.assertEqual(
            self.runner.commands,
            [["xdg-open", str(new_path)], ["xdg-open", str(new_path.parent)]],
        )

    def test_open_rejects_non_project_file(self) -> None:
        other = self.root / "notes.txt"
        other.write_text("", encoding="utf-8")
        with self.assertRaises(InvalidInputError):
            self.tool.call({"operation": "open_project", "path": str(other)})

    def test_scan_of_missing_directory(self) -> None:
        self.tool.call({"operation": "set_project_dir", "project_dir": str(self.root / "nowhere")})
        self.assertIn("does not exist", self.tool.call({"operation": "scan"}))

    def test_set_template_dir_creates_directory(self) -> None:
        message = self.tool.call({"operation": "set_template_dir", "template_dir": str(self.templates)})
        self.assertEqual(message, f"Template directory set to: {self.templates}")
        self.assertTrue(self.templates.is_dir())


if __name__ == "__main__":
    unittest.main()

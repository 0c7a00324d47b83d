import subprocess
import tempfile
import unittest
from pathlib import Path

from music_project_manager.config import PluginConfig, Settings
from music_project_manager.launcher import Launcher
from music_project_manager.models import (
    InvalidInputError,
    LaunchError,
    ProjectExistsError,
    TemplateNotFoundError,
)
from music_project_manager.registry import ProjectRegistry
from music_project_manager.templates import TemplateInstantiator

TEMPLATE = "<REAPER_PROJECT 0.1\n  RIPPLE 0\n  TEMPO 120 4 4\n>\n"


class RecordingRunner:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.commands: list[list[str]] = []

    def __call__(self, command, check=False):
        self.commands.append(command)
        return subprocess.CompletedProcess(command, self.returncode)


class TestTemplateInstantiator(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.settings = Settings(project_dir=root / "projects", template_dir=root / "templates")
        self.settings.template_dir.mkdir()
        self.settings.default_template.write_text(TEMPLATE, encoding="utf-8")
        self.runner = RecordingRunner()
        self.instantiator = TemplateInstantiator(
            PluginConfig(), Launcher(platform="darwin", runner=self.runner)
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_creates_patched_copy_registers_and_launches(self) -> None:
        dest = self.instantiator.create(self.settings, "Night Drive", 95)

        self.assertEqual(dest, self.settings.project_dir / "Night Drive" / "Night Drive.RPP")
        self.assertEqual(
            dest.read_text(encoding="utf-8"), TEMPLATE.replace("TEMPO 120", "TEMPO 95")
        )
        self.assertEqual(self.runner.commands, [["open", "-a", "REAPER", str(dest)]])
        (entry,) = ProjectRegistry(self.settings.project_dir).load()
        self.assertEqual(entry.name, "Night Drive")
        self.assertEqual(entry.bpm, 95.0)

    def test_without_bpm_template_is_copied_verbatim(self) -> None:
        dest = self.instantiator.create(self.settings, "Sketch", 0)
        self.assertEqual(dest.read_text(encoding="utf-8"), TEMPLATE)
        (entry,) = ProjectRegistry(self.settings.project_dir).load()
        self.assertEqual(entry.bpm, 120.0)

    def test_launch_can_be_disabled(self) -> None:
        config = PluginConfig.model_validate({"daw": {"launch_after_create": False}})
        instantiator = TemplateInstantiator(config, Launcher(runner=self.runner))
        instantiator.create(self.settings, "Quiet", None)
        self.assertEqual(self.runner.commands, [])

    def test_invalid_input_rejected_before_any_io(self) -> None:
        for name, bpm in (("", 120), ("bad:name", 120), ("ok", 301), ("ok", 10)):
            with self.subTest(name=name, bpm=bpm):
                with self.assertRaises(InvalidInputError):
                    self.instantiator.create(self.settings, name, bpm)
        self.assertFalse(self.settings.project_dir.exists())

    def test_missing_template_leaves_directory_behind(self) -> None:
        self.settings.default_template.unlink()
        with self.assertRaises(TemplateNotFoundError):
            self.instantiator.create(self.settings, "Orphan", 100)
        self.assertTrue((self.settings.project_dir / "Orphan").is_dir())
        self.assertEqual(list((self.settings.project_dir / "Orphan").iterdir()), [])

    def test_existing_project_is_not_overwritten(self) -> None:
        self.instantiator.create(self.settings, "Twice", 100)
        with self.assertRaises(ProjectExistsError):
            self.instantiator.create(self.settings, "Twice", 140)
        dest = self.settings.project_dir / "Twice" / "Twice.RPP"
        self.assertIn("TEMPO 100 4 4", dest.read_text(encoding="utf-8"))

    def test_launch_failure_keeps_created_project(self) -> None:
        instantiator = TemplateInstantiator(
            PluginConfig(), Launcher(platform="darwin", runner=RecordingRunner(returncode=1))
        )
        with self.assertRaises(LaunchError):
            instantiator.create(self.settings, "Stuck", 100)
        self.assertTrue((self.settings.project_dir / "Stuck" / "Stuck.RPP").is_file())
        self.assertEqual(len(ProjectRegistry(self.settings.project_dir).load()), 1)


if __name__ == "__main__":
    unittest.main()

import io
import json
import logging
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from music_project_manager import cli


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._handlers = logging.getLogger().handlers[:]
        self._level = logging.getLogger().level

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.handlers[:] = self._handlers
        root.setLevel(self._level)

    def test_definition_prints_json(self) -> None:
        out = io.StringIO()
        with redirect_stdout(out):
            cli.main(["definition"])
        self.assertEqual(json.loads(out.getvalue())["name"], "music_project_manager")

    def test_call_uses_explicit_settings_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = Path(tmpdir) / "agent_settings.json"
            projects = Path(tmpdir) / "projects"
            out = io.StringIO()
            with redirect_stdout(out), redirect_stderr(io.StringIO()):
                cli.main(
                    [
                        "--settings",
                        str(settings),
                        "call",
                        json.dumps({"operation": "set_project_dir", "project_dir": str(projects)}),
                    ]
                )
            self.assertEqual(out.getvalue().strip(), f"Project directory set to: {projects}")
            stored = json.loads(settings.read_text(encoding="utf-8"))
            self.assertEqual(stored["music_project_manager"]["project_dir"], str(projects))

    def test_errors_exit_nonzero(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
            cli.main(["call", '{"operation": "bogus"}'])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("error: unknown operation", err.getvalue())

    def test_warning_summary_uses_directory_labels(self) -> None:
        summary = cli.configure_logging(
            "WARNING",
            {"<projects>": Path("/music"), "<templates>": Path("/music/templates/")},
        )
        log = logging.getLogger("music_project_manager.test")
        log.info("ignored")
        log.warning("moved /music/a/a.RPP")
        log.warning("missing /music/templates/default.RPP")
        self.assertEqual(
            summary.records,
            [
                "W | music_project_manager.test | moved <projects>/a/a.RPP",
                "W | music_project_manager.test | missing <templates>/default.RPP",
            ],
        )


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Optional

from .models import LaunchError

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


class Launcher:
    """Hands files to the DAW or the system file browser.

    Child stdout/stderr are inherited so launcher output lands in the host's
    streams. There is no timeout: a hung launcher blocks the caller.
    """

    def __init__(
        self,
        app_name: str = "REAPER",
        *,
        platform: Optional[str] = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self.app_name = app_name
        self.platform = platform or sys.platform
        self._runner = runner

    def open_command(self, path: Path) -> List[str]:
        if self.platform == "darwin":
            return ["open", "-a", self.app_name, str(path)]
        if self.platform.startswith("win"):
            return ["cmd", "/c", "start", "", str(path)]
        return ["xdg-open", str(path)]

    def reveal_command(self, path: Path) -> List[str]:
        if self.platform == "darwin":
            return ["open", "-R", str(path)]
        if self.platform.startswith("win"):
            return ["explorer", f"/select,{path}"]
        return ["xdg-open", str(path.parent)]

    def open_in_daw(self, path: Path) -> None:
        self._run(self.open_command(path), f"launch {self.app_name} with {path}")

    def reveal(self, path: Path) -> None:
        # explorer.exe exits with 1 even when it succeeds.
        check = not self.platform.startswith("win")
        self._run(self.reveal_command(path), f"reveal {path}", check_exit=check)

    def _run(self, command: List[str], action: str, *, check_exit: bool = True) -> None:
        logger.debug("Running %s", " ".join(command))
        try:
            completed = self._runner(command, check=False)
        except OSError as exc:
            raise LaunchError(f"failed to {action}: {exc}") from exc
        if check_exit and completed.returncode != 0:
            raise LaunchError(
                f"failed to {action}: {command[0]} exited with code {completed.returncode}"
            )

"""Access to the single ``TEMPO`` line of a REAPER ``.RPP`` project.

Everything outside the tempo value is opaque and must survive byte-for-byte,
so text is decoded with ``surrogateescape`` and line endings are kept as-is.
"""

from __future__ import annotations

import logging
from itertools import islice
from pathlib import Path
from typing import Optional, Tuple

from .fs_utils import atomic_write_bytes
from .models import TempoParseError

logger = logging.getLogger(__name__)

TEMPO_TOKEN = "TEMPO "
DEFAULT_SCAN_LINES = 100
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _split_tempo_line(line: str) -> Optional[Tuple[str, list[str]]]:
    trimmed = line.lstrip(" \t")
    if not trimmed.startswith(TEMPO_TOKEN):
        return None
    indent = line[: len(line) - len(trimmed)]
    return indent, trimmed.split()


def patch_tempo(text: str, bpm: int) -> str:
    """Return ``text`` with the second field of the first TEMPO line set to ``bpm``."""
    lines = text.split("\n")
    for index, line in enumerate(lines):
        body = line[:-1] if line.endswith("\r") else line
        parsed = _split_tempo_line(body)
        if parsed is None:
            continue
        indent, fields = parsed
        if len(fields) >= 2:
            fields[1] = str(int(bpm))
            lines[index] = indent + " ".join(fields) + line[len(body):]
        # Later TEMPO lines are left untouched.
        break
    return "\n".join(lines)


def update_project_bpm(path: Path, bpm: int) -> None:
    data = path.read_bytes()
    patched = patch_tempo(data.decode(_ENCODING, _ERRORS), bpm)
    atomic_write_bytes(path, patched.encode(_ENCODING, _ERRORS))
    logger.debug("Set TEMPO %s in %s", bpm, path)


def extract_bpm(path: Path, max_lines: int = DEFAULT_SCAN_LINES) -> float:
    """Read the tempo from the first ``max_lines`` lines; 0.0 when absent."""
    with path.open("r", encoding=_ENCODING, errors=_ERRORS, newline="") as fh:
        for line in islice(fh, max_lines):
            parsed = _split_tempo_line(line.rstrip("\r\n"))
            if parsed is None:
                continue
            _indent, fields = parsed
            if len(fields) < 2:
                continue
            try:
                return float(fields[1])
            except ValueError as exc:
                raise TempoParseError(
                    f"failed to parse BPM value {fields[1]!r} in {path}"
                ) from exc
    return 0.0

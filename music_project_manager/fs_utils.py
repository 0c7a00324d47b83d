from __future__ import annotations

import errno
import os
import tempfile
from pathlib import Path

from .models import InvalidInputError

FORBIDDEN_NAME_CHARS = '<>:"/\\|?*'


def validate_project_name(name: str | None, *, field: str = "project name") -> str:
    if not name or not name.strip():
        raise InvalidInputError(f"{field} is required and cannot be empty")
    if any(ch in FORBIDDEN_NAME_CHARS for ch in name):
        raise InvalidInputError(
            f'{field} contains invalid characters. Avoid: < > : " / \\ | ? *'
        )
    if name.strip() in {".", ".."}:
        raise InvalidInputError(f"{field} cannot be {name!r}")
    return name


def expand_path(value: str | Path) -> Path:
    return Path(value).expanduser()


def same_path(first: Path, second: Path) -> bool:
    """True when both names refer to one inode (e.g. a case-only change)."""
    try:
        return os.path.samefile(first, second)
    except OSError:
        return False


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` next to ``path`` and move it into place in one step."""
    try:
        mode = path.stat().st_mode & 0o777
    except FileNotFoundError:
        mode = 0o644
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def safe_rename(src: Path, dst: Path) -> None:
    """Rename ``src`` to ``dst``, refusing to clobber an existing target.

    Falls back to directory-relative renames when the absolute path is too long
    for the platform.
    """
    if dst.exists() and not same_path(src, dst):
        raise FileExistsError(errno.EEXIST, "Target already exists", str(dst))
    try:
        src.rename(dst)
        return
    except OSError as exc:
        if exc.errno != errno.ENAMETOOLONG:
            raise
    src_dir_fd = os.open(src.parent, os.O_RDONLY)
    try:
        dst_dir_fd = os.open(dst.parent, os.O_RDONLY)
        try:
            os.rename(src.name, dst.name, src_dir_fd=src_dir_fd, dst_dir_fd=dst_dir_fd)
        finally:
            os.close(dst_dir_fd)
    finally:
        os.close(src_dir_fd)

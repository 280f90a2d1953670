"""Shared constants, logging setup, and the filesystem walker."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import os
import stat
import tempfile
import time
from pathlib import Path
from typing import Iterator

# ------------------------------- Constants ---------------------------------- #

APP_NAME = "transcript_janitor"
DEFAULT_DATA_ROOT = Path(os.getenv("TRANSCRIPT_JANITOR_HOME", str(Path.home() / ".claude")))
DEFAULT_LOG_FILE = Path(
    os.getenv(
        "TRANSCRIPT_JANITOR_LOG_FILE",
        str(Path.home() / ".local" / "share" / APP_NAME / "actions.log"),
    )
)

WIPE_CHUNK_BYTES = 1024 * 1024
SECONDS_PER_DAY = 86400


# ------------------------------- Utilities ---------------------------------- #


def now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def epoch_to_iso(epoch: float | None) -> str | None:
    if epoch is None:
        return None
    return dt.datetime.fromtimestamp(epoch, dt.timezone.utc).isoformat()


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def human_bytes(size: int) -> str:
    val = float(max(size, 0))
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if val < 1024.0 or unit == "TB":
            if unit == "B":
                return f"{int(val)} {unit}"
            return f"{val:.1f} {unit}"
        val /= 1024.0
    return f"{size} B"


def age_cutoff(days: int | None, now_ts: float | None = None) -> float:
    """Epoch seconds before which a file counts as older than `days`; 0 disables the filter."""
    if not days:
        return 0.0
    ref = now_ts if now_ts is not None else time.time()
    return ref - days * SECONDS_PER_DAY


def relative_posix(path: str | Path, root: str | Path) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


def setup_logger(log_file: Path = DEFAULT_LOG_FILE) -> logging.Logger:
    logger = logging.getLogger(APP_NAME)
    if logger.handlers:
        return logger

    chosen = log_file
    try:
        ensure_parent(log_file)
    except OSError:
        chosen = Path(tempfile.gettempdir()) / APP_NAME / "actions.log"
        ensure_parent(chosen)

    logger.setLevel(logging.INFO)
    fh = logging.FileHandler(chosen, encoding="utf-8")
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger


# ------------------------------ File Walker --------------------------------- #


@dataclasses.dataclass(slots=True)
class FileEntry:
    path: str
    size: int
    mtime: float


@dataclasses.dataclass(slots=True)
class ScanError:
    """A path the walker could not read, with the reason."""

    path: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(slots=True)
class WalkResult:
    files: list[FileEntry] = dataclasses.field(default_factory=list)
    errors: list[ScanError] = dataclasses.field(default_factory=list)


def iter_files(root: str | Path, errors: list[ScanError]) -> Iterator[FileEntry]:
    """Yield every regular file under root, appending unreadable paths to errors.

    Symlinks are never followed.
    """
    stack = [Path(root)]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except (PermissionError, FileNotFoundError, OSError) as exc:
            errors.append(ScanError(path=str(current), error=str(exc)))
            continue

        subdirs: list[Path] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                st = entry.stat(follow_symlinks=False)
            except (PermissionError, FileNotFoundError, OSError) as exc:
                errors.append(ScanError(path=entry.path, error=str(exc)))
                continue

            if not stat.S_ISREG(st.st_mode):
                continue

            yield FileEntry(path=entry.path, size=int(st.st_size), mtime=float(st.st_mtime))

        # reversed so the stack pops subdirectories in name order
        stack.extend(reversed(subdirs))


def walk_files(root: str | Path) -> WalkResult:
    result = WalkResult()
    root_path = Path(root)
    if not root_path.is_dir():
        return result
    result.files = list(iter_files(root_path, result.errors))
    return result

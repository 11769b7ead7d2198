"""Build log storage and capture.

Each `rn-run` build writes one plain-text log:

    ~/.rn-run/logs/rn-run-<platform>-<YYYY-MM-DD_HH-MM-SS>.log

LogStore owns the directory (naming, listing, retention). LogSession is the
writer for a single run: it mirrors everything to the console and appends
it to the file, reopening the file for every write so a crash never leaves
a half-written handle behind.
"""

from __future__ import annotations

import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TextIO

LOG_DIR = Path(".rn-run") / "logs"
LOG_SUFFIX = ".log"
MAX_LOGS = 10
PLATFORMS = ("ios", "android")

FILENAME_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"
DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

GREEN = "\x1b[32m"
RESET = "\x1b[0m"


def _home_dir() -> Path:
    """Home directory, or the cwd when it cannot be determined."""
    try:
        return Path.home()
    except (RuntimeError, KeyError):
        return Path.cwd()


def _stat(path: Path) -> os.stat_result | None:
    try:
        return path.stat()
    except OSError:
        return None


@dataclass
class LogEntry:
    path: Path
    name: str
    size: int
    modified: float  # epoch seconds

    @property
    def modified_str(self) -> str:
        return time.strftime(DISPLAY_TIME_FORMAT, time.localtime(self.modified))

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "size": self.size,
            "modified": self.modified_str,
        }


class LogStore:
    """The directory holding build logs, capped at max_logs files."""

    def __init__(
        self,
        directory: Path | str | None = None,
        max_logs: int = MAX_LOGS,
        clock: Callable[[], float] = time.time,
    ):
        self._directory = Path(directory).expanduser() if directory else None
        self.max_logs = max_logs
        self._clock = clock

    def resolve_directory(self) -> Path:
        """Return the log directory path. Does not touch the filesystem."""
        if self._directory is not None:
            return self._directory
        return _home_dir() / LOG_DIR

    def ensure_directory(self) -> Path:
        """Create the log directory if needed. Raises OSError on failure."""
        log_dir = self.resolve_directory()
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir

    def now(self) -> float:
        return self._clock()

    def allocate_path(self, platform: str, when: float | None = None) -> Path:
        """Path for a new log file. The file is not created."""
        if when is None:
            when = self.now()
        stamp = time.strftime(FILENAME_TIME_FORMAT, time.localtime(when))
        return self.resolve_directory() / f"rn-run-{platform}-{stamp}{LOG_SUFFIX}"

    def _scan(self) -> list[tuple[Path, os.stat_result | None]]:
        """All *.log files, newest first. Unreadable metadata sorts last."""
        log_dir = self.resolve_directory()
        try:
            paths = [p for p in log_dir.iterdir() if p.suffix == LOG_SUFFIX and p.is_file()]
        except FileNotFoundError:
            return []
        found = [(p, _stat(p)) for p in paths]
        found.sort(key=lambda item: (item[1] is None, -item[1].st_mtime_ns if item[1] else 0))
        return found

    def rotate(self, reserve: int = 0) -> list[Path]:
        """Delete the oldest logs so at most max_logs - reserve remain.

        Deletion is best effort: a file that can't be removed is skipped.
        Returns the paths that were deleted.
        """
        keep = max(self.max_logs - reserve, 0)
        deleted = []
        for path, _ in self._scan()[keep:]:
            try:
                path.unlink()
            except OSError:
                continue
            deleted.append(path)
        return deleted

    def list_logs(self) -> list[LogEntry]:
        """Current log files, newest first. Empty if the directory is missing."""
        entries = []
        for path, st in self._scan():
            if st is None:
                continue
            entries.append(LogEntry(
                path=path,
                name=path.name,
                size=st.st_size,
                modified=st.st_mtime,
            ))
        return entries

    def latest(self) -> LogEntry | None:
        logs = self.list_logs()
        return logs[0] if logs else None


def _use_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _echo_raw(data: bytes, stream: TextIO) -> None:
    """Write bytes to a console stream unchanged."""
    buf = getattr(stream, "buffer", None)
    if buf is not None:
        stream.flush()
        buf.write(data)
        buf.flush()
    else:
        stream.write(data.decode("utf-8", errors="replace"))
        stream.flush()


def _as_bytes(data: bytes | str | None) -> bytes:
    if not data:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


class LogSession:
    """Writer for one build run's log file.

    Holds only the path. Every write opens the existing file, appends
    and closes it again.
    """

    def __init__(self, path: Path, platform: str):
        self.path = path
        self.platform = platform

    @classmethod
    def open(cls, platform: str, store: LogStore | None = None) -> LogSession:
        """Rotate old logs and start a new log file with its header.

        Raises ValueError for an unknown platform and OSError when the
        directory or file cannot be created.
        """
        if platform not in PLATFORMS:
            raise ValueError(f"unknown platform: {platform!r} (expected ios or android)")
        store = store or LogStore()
        store.ensure_directory()
        # One slot is kept free for the file created below
        store.rotate(reserve=1)
        started = store.now()
        path = store.allocate_path(platform, started)
        with open(path, "w", encoding="utf-8") as f:
            f.write(f"=== rn-run {platform} build log ===\n")
            f.write(f"Started: {time.strftime(DISPLAY_TIME_FORMAT, time.localtime(started))}\n")
            f.write("\n")
        return cls(path, platform)

    def _append(self, data: bytes) -> bool:
        # No create: a log removed mid-run stays removed
        try:
            with open(self.path, "r+b") as f:
                f.seek(0, os.SEEK_END)
                f.write(data)
        except OSError:
            return False
        return True

    def write_line(self, message: str) -> None:
        """Print message and append it to the log."""
        print(message)
        self._append(f"{message}\n".encode("utf-8"))

    def write_highlighted(self, message: str) -> None:
        """Like write_line, green on a color terminal. The file gets plain text."""
        if _use_color(sys.stdout):
            print(f"{GREEN}{message}{RESET}")
        else:
            print(message)
        self._append(f"{message}\n".encode("utf-8"))

    def write_process_output(self, stdout: bytes | str | None, stderr: bytes | str | None = None) -> None:
        """Echo captured child output to stdout/stderr and append it verbatim."""
        out = _as_bytes(stdout)
        err = _as_bytes(stderr)
        if out:
            _echo_raw(out, sys.stdout)
            self._append(out)
        if err:
            _echo_raw(err, sys.stderr)
            self._append(err)

"""
rn-run - React Native build logs

Every rn-run build writes its output to a log file. These commands find,
read and clean those logs.

COMMANDS:
    rn-run logs [--json]                   List build logs (newest first)
    rn-run show-log [path] [--raw]         Show the latest (or given) log, cleaned
    rn-run clean-log [file]                Strip color codes + spinner frames
    rn-run record <ios|android> -- <cmd>   Run a command and capture it to a new log

EXAMPLES:
    rn-run logs                            # What builds ran recently?
    rn-run show-log                        # Readable output of the last build
    rn-run show-log --raw                  # Exactly what was captured
    rn-run record ios -- npx react-native run-ios

ENVIRONMENT:
    RN_RUN_LOG_DIR             Log directory
                              Default: ~/.rn-run/logs
    RN_RUN_MAX_LOGS            Number of logs kept
                              Default: 10
    NO_COLOR                   Disable colored console output

CONFIG FILE:
    rn-run.json                Project config (searched in cwd, then parent dirs)
                              Keys: logDir, maxLogs
                              Priority: env vars > rn-run.json > defaults

FILES:
    ~/.rn-run/logs/rn-run-<platform>-<YYYY-MM-DD_HH-MM-SS>.log
"""

from __future__ import annotations

import contextlib
import json
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from rnrun.logs import MAX_LOGS, PLATFORMS, LogSession, LogStore
from rnrun.sanitize import clean

CONFIG_FILENAME = "rn-run.json"

# Hardcoded defaults
_DEFAULTS = {
    "logDir": None,
    "maxLogs": MAX_LOGS,
}


@dataclass
class Config:
    log_dir: Path | None  # None means ~/.rn-run/logs
    max_logs: int


def _positive_int(value) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def find_config_file() -> Path | None:
    """Walk up from cwd looking for rn-run.json. Returns path or None."""
    current = Path.cwd()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config() -> Config:
    """Load config with priority: env vars > rn-run.json > defaults."""
    log_dir = _DEFAULTS["logDir"]
    max_logs = _DEFAULTS["maxLogs"]

    # Layer on rn-run.json if found
    config_path = find_config_file()
    if config_path:
        try:
            data = json.loads(config_path.read_text())
            if data.get("logDir"):
                log_dir = Path(data["logDir"]).expanduser()
                # Relative paths are relative to the config file
                if not log_dir.is_absolute():
                    log_dir = config_path.parent / log_dir
            if "maxLogs" in data and _positive_int(data["maxLogs"]):
                max_logs = _positive_int(data["maxLogs"])
        except (json.JSONDecodeError, OSError, AttributeError):
            pass

    # Env vars override everything
    if env_dir := os.environ.get("RN_RUN_LOG_DIR"):
        log_dir = Path(env_dir).expanduser()
    if env_max := _positive_int(os.environ.get("RN_RUN_MAX_LOGS")):
        max_logs = env_max

    return Config(log_dir=log_dir, max_logs=max_logs)


# Module-level config, initialized in main()
cfg: Config = None  # type: ignore[assignment]


def get_store() -> LogStore:
    """LogStore for the current config."""
    if cfg is None:
        return LogStore()
    return LogStore(cfg.log_dir, max_logs=cfg.max_logs)


# === Output ===

def emit_json(command: str, data=None, error: str | None = None,
              suggested_fix: str | None = None) -> None:
    """Print the JSON result envelope. Absent fields are omitted."""
    out: dict = {"command": command, "success": error is None}
    if data is not None:
        out["data"] = data
    if error is not None:
        out["error"] = error
    if suggested_fix is not None:
        out["suggested_fix"] = suggested_fix
    print(json.dumps(out, indent=2))


def _fail(command: str, message: str, as_json: bool = False) -> None:
    """Report a command failure and exit 1."""
    if as_json:
        emit_json(command, error=message)
    else:
        print(message)
    sys.exit(1)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


# === Commands ===

def _read_log(path: Path) -> str:
    """Read a captured log without newline translation."""
    return path.read_bytes().decode("utf-8", errors="replace")


def _read_stdin() -> str:
    buf = getattr(sys.stdin, "buffer", None)
    if buf is not None:
        return buf.read().decode("utf-8", errors="replace")
    return sys.stdin.read()


def cmd_logs(as_json: bool = False) -> None:
    """List build logs, newest first."""
    store = get_store()
    try:
        entries = store.list_logs()
    except OSError as e:
        _fail("logs", f"Cannot read {store.resolve_directory()}: {e.strerror or e}", as_json)

    if as_json:
        emit_json("logs", {
            "log_dir": str(store.resolve_directory()),
            "logs": [e.to_dict() for e in entries],
        })
        return

    if not entries:
        print("No logs yet.")
        print(f"Logs are written to {store.resolve_directory()}")
        return
    for e in entries:
        print(f"{e.modified_str}  {_format_size(e.size):>9}  {e.name}")
    print()
    print(f"{len(entries)} log(s) in {store.resolve_directory()}")


def cmd_show_log(path: str | None = None, raw: bool = False, as_json: bool = False) -> None:
    """Print a log, cleaned for reading unless raw."""
    if path:
        log_path = Path(path)
    else:
        store = get_store()
        try:
            entry = store.latest()
        except OSError as e:
            _fail("show-log", f"Cannot read {store.resolve_directory()}: {e.strerror or e}", as_json)
        if entry is None:
            if as_json:
                emit_json("show-log", error="No logs found",
                          suggested_fix="Run a build first: rn-run record <ios|android> -- <cmd>")
                sys.exit(1)
            print("No logs yet.")
            return
        log_path = entry.path

    try:
        content = _read_log(log_path)
    except OSError as e:
        _fail("show-log", f"Cannot read {log_path}: {e.strerror or e}", as_json)

    text = content if raw else clean(content)
    if as_json:
        emit_json("show-log", {"path": str(log_path), "content": text})
        return
    print(f"Log: {log_path}", file=sys.stderr)
    print(text)


def cmd_clean_log(file_path: str | None = None) -> None:
    """Clean a log file (or stdin) and print it."""
    if file_path:
        try:
            content = _read_log(Path(file_path))
        except OSError as e:
            print(f"Cannot read {file_path}: {e.strerror or e}")
            sys.exit(1)
    else:
        content = _read_stdin()
    print(clean(content))


def _run_captured(session: LogSession, command: list[str]) -> int:
    """Run command to completion and send its output through the session."""
    session.write_highlighted(f"Running: {' '.join(command)}")
    try:
        result = subprocess.run(command, capture_output=True)
    except FileNotFoundError:
        session.write_line(f"command not found: {command[0]}")
        return 127
    except OSError as e:
        session.write_line(f"failed to run {command[0]}: {e.strerror or e}")
        return 126
    session.write_process_output(result.stdout, result.stderr)
    if result.returncode == 0:
        session.write_highlighted("✓ done")
    else:
        session.write_line(f"✗ exited with code {result.returncode}")
    return result.returncode


def cmd_record(platform: str, command: list[str], as_json: bool = False) -> None:
    """Run one command to completion, capturing its output to a new log."""
    try:
        session = LogSession.open(platform, get_store())
    except OSError as e:
        msg = f"Failed to create log file: {e.strerror or e}"
        if as_json:
            emit_json("record", error=msg,
                      suggested_fix="Check that RN_RUN_LOG_DIR (or ~/.rn-run/logs) is writable")
        else:
            print(msg)
        sys.exit(1)

    if as_json:
        # Keep stdout for the envelope only
        with contextlib.redirect_stdout(sys.stderr):
            code = _run_captured(session, command)
        emit_json("record", {
            "platform": platform,
            "command": command,
            "exit_code": code,
            "log_path": str(session.path),
        })
    else:
        code = _run_captured(session, command)
        print(f"Log: {session.path}")
    if code != 0:
        sys.exit(code)


COMMAND_HELP = {
    "logs": """
rn-run logs [--json]

List build logs, newest first.

Options:
  --json    Output the JSON result envelope

Output:
  Modified time, size and file name of each log.
  Only the newest logs are kept (default 10, see RN_RUN_MAX_LOGS).
""",
    "show-log": """
rn-run show-log [path] [--raw] [--json]

Print a build log in readable form.

Arguments:
  path      Log file to show (default: most recent log)

Options:
  --raw     Print the file exactly as captured
  --json    Output the JSON result envelope

Cleaning:
  - color codes and other terminal escape sequences are removed
  - carriage returns are removed
  - blank lines are dropped
  - repeated spinner frames ("- Building project...") are shown once
""",
    "clean-log": """
rn-run clean-log [file]

Clean a captured log the same way show-log does and print it.
Reads stdin when no file is given.

Example:
  some-build-cmd 2>&1 | rn-run clean-log
""",
    "record": """
rn-run record <ios|android> -- <command...> [--json]

Run a command once and capture its output to a new build log.

Arguments:
  ios|android   Platform tag used in the log file name
  command       Command to run (everything after --)

Output:
  The command's stdout/stderr as it finishes, then the log path.
  Exit code is the command's exit code.

Older logs are rotated out before the new one is created.
""",
}


def print_help(cmd: str | None = None) -> None:
    """Print help for a command or general help."""
    if cmd and cmd in COMMAND_HELP:
        print(COMMAND_HELP[cmd])
    else:
        print(__doc__)


# Flag spellings of the log commands
_ALIASES = {
    "--logs": "logs",
    "--show-log": "show-log",
}


def main(argv: list[str] | None = None) -> None:
    global cfg
    cfg = load_config()

    args = sys.argv[1:] if argv is None else list(argv)

    if not args or args[0] in ("-h", "--help", "help"):
        print_help(args[1] if len(args) > 1 else None)
        sys.exit(0)

    cmd = _ALIASES.get(args[0], args[0])

    # Everything after -- belongs to the recorded command
    if "--" in args:
        split = args.index("--")
        args, passthrough = args[:split], args[split + 1:]
    else:
        passthrough = []

    # Check for command-specific help
    if "--help" in args or "-h" in args:
        print_help(cmd)
        sys.exit(0)

    as_json = "--json" in args
    positional = [a for a in args[1:] if not a.startswith("-")]

    if cmd == "logs":
        cmd_logs(as_json)
    elif cmd == "show-log":
        cmd_show_log(positional[0] if positional else None,
                     raw="--raw" in args, as_json=as_json)
    elif cmd == "clean-log":
        cmd_clean_log(positional[0] if positional else None)
    elif cmd == "record":
        if not positional or positional[0] not in PLATFORMS or not passthrough:
            print("Usage: rn-run record <ios|android> -- <command...>")
            print("Run 'rn-run help record' for details.")
            sys.exit(1)
        cmd_record(positional[0], passthrough, as_json)
    else:
        print(f"Unknown command: {cmd}")
        print("Run 'rn-run --help' for usage.")
        sys.exit(1)


if __name__ == "__main__":
    main()

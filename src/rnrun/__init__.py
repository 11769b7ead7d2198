"""rn-run build log capture, rotation and cleanup."""

from rnrun.logs import LogEntry, LogSession, LogStore
from rnrun.sanitize import clean, collapse_progress, strip_control_sequences

__version__ = "0.1.0"

__all__ = [
    "LogEntry",
    "LogSession",
    "LogStore",
    "clean",
    "collapse_progress",
    "strip_control_sequences",
]

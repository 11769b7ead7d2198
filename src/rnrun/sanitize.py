"""Clean captured build output for display.

Raw log files keep everything a child process printed, including color codes
and the carriage-return animation of progress spinners. For `rn-run show-log`
that content is run through clean():

    strip_control_sequences   drop ESC [ ... <letter> spans, lone ESC and CR
    collapse_progress         drop blank lines, keep one frame per spinner

Nothing here touches the files on disk.
"""

from __future__ import annotations

from typing import Iterator

ESC = "\x1b"
CSI_INTRODUCER = "["
CR = "\r"

# Spinner frames look like "- Building project." / "- Building project....."
PROGRESS_PREFIX = "- "
PROGRESS_SUFFIX = "."


def _is_final_byte(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def _visible_chars(text: str) -> Iterator[str]:
    """Yield the characters of text that survive control-sequence removal.

    Forward-only scan with one flag: inside an escape span or not. An ESC
    followed by "[" opens a span that ends at the first ASCII letter; any
    other ESC is dropped on its own and the next character is scanned
    normally.
    """
    in_escape = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        i += 1
        if in_escape:
            if _is_final_byte(ch):
                in_escape = False
            continue
        if ch == ESC:
            if i < n and text[i] == CSI_INTRODUCER:
                in_escape = True
                i += 1
            continue
        if ch == CR:
            continue
        yield ch


def strip_control_sequences(text: str) -> str:
    """Remove ANSI CSI sequences, stray ESC characters and carriage returns."""
    return "".join(_visible_chars(text))


def is_progress_line(line: str) -> bool:
    # Also matches plain bullet text such as "- Fixed a bug."
    trimmed = line.strip()
    return trimmed.startswith(PROGRESS_PREFIX) and trimmed.endswith(PROGRESS_SUFFIX)


def collapse_progress(text: str) -> str:
    """Drop blank lines and repeated spinner frames.

    The first frame of each spinner is normalized to end in "..."; later
    frames with the same base are dropped. Every other line is kept,
    trimmed, in its original position.
    """
    seen: set[str] = set()
    out: list[str] = []
    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        if is_progress_line(trimmed):
            base = trimmed.rstrip(PROGRESS_SUFFIX)
            if base in seen:
                continue
            seen.add(base)
            out.append(base + "...")
        else:
            out.append(trimmed)
    return "\n".join(out)


def clean(raw: str) -> str:
    """Full display cleanup: strip control sequences, then collapse progress."""
    return collapse_progress(strip_control_sequences(raw))

"""Decide whether remote shell output signals a failure.

Matching is case-insensitive substring search. A marker only counts when it
appears on a line that is not an interactive sudo password prompt, so
``[sudo] password for deploy:`` followed by the real output is never flagged
on account of the prompt itself.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Markers (stored lowercase)
# ---------------------------------------------------------------------------

ERROR_MARKERS: list[str] = [
    "command not found",
    "permission denied",
    "no such file or directory",
    "cannot create directory",
    "operation not permitted",
    "access denied",
    "bash: line",
    "error:",
    "failed",
    "cannot access",
    "not found",
]

SUDO_PROMPT_MARKERS: list[str] = [
    "[sudo] password for",
    "sorry, try again",
]


def is_sudo_prompt(line: str) -> bool:
    lowered = line.lower()
    return any(marker in lowered for marker in SUDO_PROMPT_MARKERS)


def detect_error(output: str) -> str | None:
    """Return the first line carrying an error marker, or None."""
    if not output:
        return None
    lowered = output.lower()
    for marker in ERROR_MARKERS:
        if marker not in lowered:
            continue
        for line in output.splitlines():
            clean = line.strip()
            if marker in clean.lower() and not is_sudo_prompt(clean):
                return clean
    return None


def has_error(output: str) -> bool:
    return detect_error(output) is not None

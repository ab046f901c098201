"""
Canonical text normalization for Inkbridge.

Change detection compares canonical forms, never raw display text. Checkbox
glyphs are folded into one form and task markers a user adds in Logseq are
stripped, so that checking off a task or fixing whitespace is invisible to
the comparison.
"""

import re
from typing import List, Optional


CHECKBOX = "[ ]"

TASK_MARKERS = (
    "TODO",
    "DOING",
    "DONE",
    "LATER",
    "NOW",
    "WAITING",
    "WAIT",
    "CANCELED",
    "CANCELLED",
    "IN-PROGRESS",
)

_CHECKBOX_PATTERN = re.compile(r"\[\s*[xX✓✔]?\s*\]|[☐☑☒]")
_CHECKED_PATTERN = re.compile(r"^\s*(?:\[\s*[xX✓✔]\s*\]|[☑☒])")
_UNCHECKED_PATTERN = re.compile(r"^\s*(?:\[\s*\]|☐)")
_MARKER_PATTERN = re.compile(
    r"^(?:(?:" + "|".join(re.escape(m) for m in TASK_MARKERS) + r")(?:\s+|$))+"
)
_PROPERTY_LINE_PATTERN = re.compile(r"^\s*[A-Za-z0-9_\-]+::(?:\s|$)")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def canonicalize(text: Optional[str]) -> str:
    """
    Map text to its canonical comparison form.

    The function is idempotent: canonicalize(canonicalize(x)) == canonicalize(x).

    Args:
        text: Recognized or stored line text

    Returns:
        Text with checkboxes folded to '[ ]', leading task markers removed,
        whitespace collapsed and trimmed
    """
    if not text:
        return ""

    result = _WHITESPACE_PATTERN.sub(" ", text).strip()
    result = _MARKER_PATTERN.sub("", result)
    result = _CHECKBOX_PATTERN.sub(CHECKBOX, result)
    return _WHITESPACE_PATTERN.sub(" ", result).strip()


def task_marker(content: Optional[str]) -> Optional[str]:
    """
    Return the leading Logseq task marker of a block's display text, if any.
    """
    if not content:
        return None
    first = content.strip().split(" ", 1)[0].split("\n", 1)[0]
    return first if first in TASK_MARKERS else None


def strip_task_marker(text: str) -> str:
    stripped = _MARKER_PATTERN.sub("", text.strip())
    stripped = _CHECKED_PATTERN.sub("", stripped, count=1)
    stripped = _UNCHECKED_PATTERN.sub("", stripped, count=1)
    return stripped.strip()


def render_display_text(text: str, previous: Optional[str] = None) -> str:
    """
    Build the display text written to a block for recognized text.

    A leading checkbox in the recognized text becomes a Logseq task marker
    (TODO for an empty box, DONE for a checked one). When the block already
    carried a task marker, that marker wins, so completion state set in
    Logseq survives re-recognition.

    Args:
        text: Freshly recognized line text
        previous: Display text the block currently has, if it exists

    Returns:
        The new display text
    """
    text = _WHITESPACE_PATTERN.sub(" ", text).strip()

    marker = task_marker(previous)
    if marker is None:
        if _CHECKED_PATTERN.match(text):
            marker = "DONE"
        elif _UNCHECKED_PATTERN.match(text):
            marker = "TODO"
        else:
            marker = task_marker(text)

    body = strip_task_marker(text)
    if marker is None:
        return body
    return f"{marker} {body}".strip()


def property_lines(content: Optional[str]) -> List[str]:
    """Return the 'key:: value' property lines of a block's content."""
    if not content:
        return []
    return [line for line in content.splitlines() if _PROPERTY_LINE_PATTERN.match(line)]


def strip_property_lines(content: Optional[str]) -> str:
    """Return a block's content without its 'key:: value' property lines."""
    if not content:
        return ""
    kept = [line for line in content.splitlines() if not _PROPERTY_LINE_PATTERN.match(line)]
    return "\n".join(kept).strip()

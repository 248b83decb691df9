"""
Utilities for the task identifier stored in a reminder's notes field.

Reminders created for a vault task carry two lines in their notes: an
``obsidian://`` link back to the note and an ``ID: <id>`` line that ties
the reminder to the task's block identifier.
"""

import re
from typing import Optional
from urllib.parse import quote

ID_LINE_RE = re.compile(r'^[ \t]*ID:[ \t]*([A-Za-z0-9-]+)[ \t]*$', re.MULTILINE)
# Caret identifiers are only trusted in notes when they look like a UUID
CARET_UUID_RE = re.compile(
    r'(?<!\S)\^([A-Fa-f0-9]{8}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{12})(?![\w-])'
)


def extract_task_id(notes: Optional[str]) -> Optional[str]:
    """
    Find the task identifier embedded in reminder notes.

    The ``ID: <id>`` line wins; a caret-prefixed UUID is the fallback.

    Args:
        notes: Raw notes string

    Returns:
        The identifier, or None if the notes carry none
    """
    if not notes:
        return None
    match = ID_LINE_RE.search(notes)
    if match:
        return match.group(1)
    match = CARET_UUID_RE.search(notes)
    if match:
        return match.group(1)
    return None


def append_task_id(notes: Optional[str], task_id: str) -> str:
    """Append an ``ID:`` line to existing notes."""
    if notes and notes.strip():
        return f"{notes.rstrip()}\nID: {task_id}"
    return f"ID: {task_id}"


def strip_task_ids(notes: Optional[str]) -> str:
    """Remove every identifier line and caret identifier from notes."""
    if not notes:
        return ""
    kept = [line for line in notes.splitlines() if not ID_LINE_RE.match(line)]
    return CARET_UUID_RE.sub('', "\n".join(kept)).strip()


def build_obsidian_url(vault_name: str, file_path: str) -> str:
    """Build an ``obsidian://open`` link for a vault-relative note path."""
    return (
        f"obsidian://open?vault={quote(vault_name, safe='')}"
        f"&file={quote(file_path, safe='/')}"
    )


def build_notes(vault_name: str, file_path: str, task_id: str) -> str:
    """Notes written on reminders created for a vault task."""
    return f"{build_obsidian_url(vault_name, file_path)}\nID: {task_id}"

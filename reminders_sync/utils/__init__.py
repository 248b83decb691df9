"""
Utility functions for reminders-sync.
"""

from .io import read_json, safe_write_json, atomic_write, backup_file
from .date import parse_date, format_date, dates_equal
from .notes import (
    extract_task_id, append_task_id, strip_task_ids,
    build_obsidian_url, build_notes
)

__all__ = [
    # I/O utilities
    'read_json',
    'safe_write_json',
    'atomic_write',
    'backup_file',
    # Date utilities
    'parse_date',
    'format_date',
    'dates_equal',
    # Notes utilities
    'extract_task_id',
    'append_task_id',
    'strip_task_ids',
    'build_obsidian_url',
    'build_notes',
]

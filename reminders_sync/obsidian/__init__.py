"""
Obsidian integration module for reminders-sync.
"""

from .vault import VaultStore, find_vaults
from .tasks import ObsidianTaskManager, VaultDocument
from .parser import parse_task_line, format_task_line, contains_exclusion_tag

__all__ = [
    'VaultStore',
    'find_vaults',
    'ObsidianTaskManager',
    'VaultDocument',
    'parse_task_line',
    'format_task_line',
    'contains_exclusion_tag',
]

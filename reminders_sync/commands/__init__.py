"""
Command implementations for reminders-sync.
"""

from .sync import SyncCommand
from .cleanup import CleanupCommand
from .reset import ResetCommand, ClearIdsCommand
from .vaults import VaultsCommand

__all__ = [
    'SyncCommand',
    'CleanupCommand',
    'ResetCommand',
    'ClearIdsCommand',
    'VaultsCommand',
]

"""
Synchronization module for reminders-sync.
"""

from .mapping import MappingStore
from .identity import IdentityResolver, new_task_id
from .resolver import ConflictResolver
from .emitter import MarkdownEmitter
from .reconciler import Reconciler, ReconcileContext, ReconcileResult
from .engine import SyncEngine

__all__ = [
    'MappingStore',
    'IdentityResolver',
    'new_task_id',
    'ConflictResolver',
    'MarkdownEmitter',
    'Reconciler',
    'ReconcileContext',
    'ReconcileResult',
    'SyncEngine',
]

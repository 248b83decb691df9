"""
Core module for reminders-sync - contains domain models, configuration, and exceptions.
"""

from .models import (
    TaskRecord,
    TaskMapping,
    SourceLocation,
    Vault,
    SyncConfig,
    SyncSummary,
    ItemFailure,
    DEFAULT_LIST,
)

from .exceptions import (
    RemindersSyncError,
    ConfigurationError,
    VaultNotFoundError,
    RemindersError,
    AuthorizationError,
    EventKitImportError,
    BackendFetchError,
    BackendWriteError,
    DocumentReadError,
    DocumentWriteError,
    MappingStoreError,
    MappingStoreCorrupt,
    MappingStoreWriteError,
)

__all__ = [
    # Models
    'TaskRecord',
    'TaskMapping',
    'SourceLocation',
    'Vault',
    'SyncConfig',
    'SyncSummary',
    'ItemFailure',
    'DEFAULT_LIST',
    # Exceptions
    'RemindersSyncError',
    'ConfigurationError',
    'VaultNotFoundError',
    'RemindersError',
    'AuthorizationError',
    'EventKitImportError',
    'BackendFetchError',
    'BackendWriteError',
    'DocumentReadError',
    'DocumentWriteError',
    'MappingStoreError',
    'MappingStoreCorrupt',
    'MappingStoreWriteError',
]

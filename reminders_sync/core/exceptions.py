"""
Exception classes for reminders-sync.

Every error carries a ``fatal`` flag. Fatal errors abort the whole pass;
non-fatal errors concern a single document or record and are collected
into the pass summary instead.
"""


class RemindersSyncError(Exception):
    """Base exception for all reminders-sync errors."""
    fatal = True


class ConfigurationError(RemindersSyncError):
    """Raised when configuration is invalid or missing."""
    pass


class VaultNotFoundError(RemindersSyncError):
    """Raised when an Obsidian vault cannot be found."""
    pass


class RemindersError(RemindersSyncError):
    """Base exception for Reminders-related errors."""
    pass


class AuthorizationError(RemindersError):
    """Raised when access to Reminders is denied."""
    pass


class EventKitImportError(RemindersError):
    """Raised when EventKit/PyObjC dependencies are not available."""
    pass


class BackendFetchError(RemindersError):
    """Raised when the reminders snapshot cannot be fetched completely."""
    pass


class BackendWriteError(RemindersError):
    """Raised when creating, updating or deleting a single reminder fails."""
    fatal = False


class DocumentReadError(RemindersSyncError):
    """Raised when a vault document cannot be read or decoded."""
    fatal = False


class DocumentWriteError(RemindersSyncError):
    """Raised when a vault document cannot be written."""
    fatal = False


class MappingStoreError(RemindersSyncError):
    """Base exception for mapping store errors."""
    pass


class MappingStoreCorrupt(MappingStoreError):
    """Raised when the mapping file cannot be decoded.

    The store recovers from this by backing the file up and starting empty.
    """
    fatal = False


class MappingStoreWriteError(MappingStoreError):
    """Raised when the mapping file cannot be persisted."""
    pass

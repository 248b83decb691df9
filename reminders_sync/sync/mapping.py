"""Persisted links between vault task ids and Reminders records."""

import os
from typing import Callable, Iterator, List, Optional
import logging

from ..core.exceptions import MappingStoreCorrupt, MappingStoreWriteError
from ..core.models import TaskMapping
from ..utils.io import backup_file, read_json, safe_write_json


class MappingStore:
    """Table of TaskMapping entries, loaded once and saved once per pass.

    At most one entry exists per local id and per backend id.
    """

    BACKUP_SUFFIX = ".backup"

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger(__name__)
        self._entries: List[TaskMapping] = []
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TaskMapping]:
        return iter(list(self._entries))

    @property
    def dirty(self) -> bool:
        """Whether the store changed since it was last loaded or saved."""
        return self._dirty

    @property
    def entries(self) -> List[TaskMapping]:
        return list(self._entries)

    def load(self) -> "MappingStore":
        """
        Load entries from disk.

        A missing or empty file yields an empty store. An unreadable or
        malformed file is copied aside as ``<file>.backup`` and the store
        starts empty; this never aborts the pass.
        """
        self._entries = []
        self._dirty = False
        try:
            self._entries = self._decode(read_json(self.path))
        except (OSError, TimeoutError, ValueError, MappingStoreCorrupt) as exc:
            backup = backup_file(self.path, self.BACKUP_SUFFIX)
            self.logger.warning(
                "Mapping file %s is unreadable (%s); starting with an empty store (backup: %s)",
                self.path, exc, backup,
            )
            self._entries = []
        self.logger.debug("Loaded %d mappings from %s", len(self._entries), self.path)
        return self

    def _decode(self, data) -> List[TaskMapping]:
        if data is None:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("mappings"), list):
            raise MappingStoreCorrupt("expected an object with a 'mappings' list")
        entries: List[TaskMapping] = []
        for raw in data["mappings"]:
            entry = TaskMapping.from_dict(raw)
            self._drop_conflicts(entries, entry)
            entries.append(entry)
        return entries

    def save(self) -> None:
        """Persist entries atomically; raises MappingStoreWriteError on failure."""
        payload = {"mappings": [entry.to_dict() for entry in self._entries]}
        if not safe_write_json(self.path, payload):
            raise MappingStoreWriteError(f"Failed to write mapping file {self.path}")
        self._dirty = False
        self.logger.debug("Saved %d mappings to %s", len(self._entries), self.path)

    def delete_file(self) -> bool:
        """Remove the mapping file from disk and clear the store."""
        self._entries = []
        self._dirty = False
        if os.path.exists(self.path):
            os.remove(self.path)
            return True
        return False

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_by_local_id(self, local_id: str) -> Optional[TaskMapping]:
        for entry in self._entries:
            if entry.local_id == local_id:
                return entry
        return None

    def find_by_backend_id(self, backend_id: str) -> Optional[TaskMapping]:
        for entry in self._entries:
            if entry.backend_id == backend_id:
                return entry
        return None

    def find_by_signature(self, signature: str) -> Optional[TaskMapping]:
        for entry in self._entries:
            if entry.signature == signature:
                return entry
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    @staticmethod
    def _drop_conflicts(entries: List[TaskMapping], entry: TaskMapping) -> None:
        entries[:] = [
            existing for existing in entries
            if existing.local_id != entry.local_id and existing.backend_id != entry.backend_id
        ]

    def upsert(self, entry: TaskMapping) -> bool:
        """
        Insert an entry, replacing any entry sharing its local or backend id.

        Returns:
            True if the store changed
        """
        current = self.find_by_local_id(entry.local_id)
        if current == entry and self.find_by_backend_id(entry.backend_id) == entry:
            return False
        self._drop_conflicts(self._entries, entry)
        self._entries.append(entry)
        self._dirty = True
        return True

    def remove(self, predicate: Callable[[TaskMapping], bool]) -> int:
        """Drop every entry matching predicate; returns how many were removed."""
        kept = [entry for entry in self._entries if not predicate(entry)]
        removed = len(self._entries) - len(kept)
        if removed:
            self._entries = kept
            self._dirty = True
        return removed


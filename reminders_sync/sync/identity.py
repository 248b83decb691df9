"""Identifier assignment for vault tasks."""

import uuid
from typing import Callable, Optional, Set
import logging

from ..core.models import compute_signature
from .mapping import MappingStore


def new_task_id() -> str:
    """Mint a fresh task identifier (an upper-case UUID)."""
    return str(uuid.uuid4()).upper()


class IdentityResolver:
    """Decides which identifier a task carries within one pass.

    Identifiers embedded in the text always win. A task without one gets
    the id stored for its signature in the mapping store, or a freshly
    minted id when there is no such entry or that id is already taken.
    """

    def __init__(
        self,
        mapping_store: MappingStore,
        id_factory: Optional[Callable[[], str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.mapping_store = mapping_store
        self.id_factory = id_factory or new_task_id
        self.logger = logger or logging.getLogger(__name__)
        self._claimed: Set[str] = set()

    def claim(self, task_id: str) -> bool:
        """Reserve an embedded identifier; False if it was already taken."""
        if task_id in self._claimed:
            return False
        self._claimed.add(task_id)
        return True

    def mint(self) -> str:
        """Mint an identifier no task in this pass uses yet."""
        task_id = self.id_factory()
        while task_id in self._claimed:
            task_id = self.id_factory()
        self._claimed.add(task_id)
        return task_id

    def resolve(self, file_path: str, title: str) -> str:
        """
        Resolve the identifier for a task that has none embedded.

        Args:
            file_path: Vault-relative document path
            title: Normalized task title

        Returns:
            The reused or newly minted identifier, now claimed
        """
        entry = self.mapping_store.find_by_signature(compute_signature(file_path, title))
        if entry is not None and entry.local_id not in self._claimed:
            self._claimed.add(entry.local_id)
            self.logger.debug("Reusing id %s for '%s' in %s", entry.local_id, title, file_path)
            return entry.local_id
        task_id = self.mint()
        self.logger.debug("Minted id %s for '%s' in %s", task_id, title, file_path)
        return task_id

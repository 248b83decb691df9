"""
Obsidian vault discovery and document storage.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional
import logging

from ..core.exceptions import DocumentReadError, DocumentWriteError
from ..core.models import Vault
from ..utils.io import atomic_write


def find_vaults(search_paths: Optional[List[str]] = None, max_depth: int = 2) -> List[Vault]:
    """
    Find Obsidian vaults in common locations.

    A vault is identified by the presence of a .obsidian directory.

    Args:
        search_paths: Optional list of paths to search. Uses defaults if not provided.
        max_depth: Maximum directory depth to search

    Returns:
        List of discovered vaults
    """
    if search_paths is None:
        home = Path.home()
        search_paths = [
            str(home / "Documents"),
            str(home / "Desktop"),
            str(home / "Library" / "Mobile Documents" / "iCloud~md~obsidian" / "Documents"),
            str(home / "Dropbox"),
        ]

    vaults = []
    seen_paths = set()

    for search_path in search_paths:
        search_path = os.path.expanduser(search_path)
        if not os.path.exists(search_path):
            continue

        for root, dirs, _ in os.walk(search_path):
            depth = root[len(search_path):].count(os.sep)
            if depth > max_depth:
                dirs.clear()
                continue

            # Skip hidden directories (except .obsidian)
            dirs[:] = [d for d in dirs if not d.startswith('.') or d == '.obsidian']

            if os.path.isdir(os.path.join(root, '.obsidian')):
                if root not in seen_paths:
                    seen_paths.add(root)
                    vaults.append(Vault(name=os.path.basename(root), path=root))
                # Don't search inside vaults
                dirs.clear()

    return vaults


class VaultStore:
    """Reads and writes whole markdown documents inside one vault.

    Paths handed in and out are vault-relative and use forward slashes.
    """

    def __init__(
        self,
        vault_path: str,
        output_document: str = "_AppleReminders.md",
        reserved_prefixes: Iterable[str] = ("Templates/", "aiprompts/"),
        logger: Optional[logging.Logger] = None,
    ):
        self.root = Path(vault_path)
        self.output_document = output_document
        self.reserved_prefixes = tuple(
            prefix if prefix.endswith('/') else f"{prefix}/"
            for prefix in reserved_prefixes if prefix
        )
        self.logger = logger or logging.getLogger(__name__)

    def _absolute(self, rel_path: str) -> Path:
        return self.root.joinpath(*rel_path.split('/'))

    def is_reserved(self, rel_path: str) -> bool:
        """Whether a document is outside the set of scanned notes."""
        name = rel_path.rsplit('/', 1)[-1]
        if name.startswith('._') or rel_path == self.output_document:
            return True
        return rel_path.startswith(self.reserved_prefixes)

    def iter_documents(self) -> List[str]:
        """
        List the vault's markdown notes.

        Hidden directories and files, ``._`` state files, the output
        document and reserved folders are left out.

        Returns:
            Sorted vault-relative POSIX paths
        """
        documents = []

        for root, dirs, files in os.walk(self.root):
            dirs[:] = [d for d in dirs if not d.startswith('.')]

            for filename in files:
                if not filename.endswith('.md') or filename.startswith('.'):
                    continue
                rel_path = Path(root, filename).relative_to(self.root).as_posix()
                if self.is_reserved(rel_path):
                    continue
                documents.append(rel_path)

        return sorted(documents)

    def exists(self, rel_path: str) -> bool:
        return self._absolute(rel_path).is_file()

    def read(self, rel_path: str) -> str:
        """Read a document as UTF-8 text."""
        try:
            with open(self._absolute(rel_path), 'r', encoding='utf-8', newline='') as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(f"Cannot read {rel_path}: {exc}") from exc

    def write(self, rel_path: str, text: str) -> None:
        """Replace a document's content atomically."""
        if not atomic_write(str(self._absolute(rel_path)), text):
            raise DocumentWriteError(f"Cannot write {rel_path}")
        self.logger.debug("Wrote %s", rel_path)

    def remove(self, rel_path: str) -> bool:
        """Delete a file in the vault; returns False if it was absent."""
        path = self._absolute(rel_path)
        if not path.exists():
            return False
        path.unlink()
        return True

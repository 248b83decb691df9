"""
Domain models for reminders-sync.

This module contains the core data structures shared by the parser, the
mapping store, the reconciler and the commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional
import hashlib
import json
import os

from .exceptions import ConfigurationError, MappingStoreCorrupt


DEFAULT_LIST = "Inbox"

DELETE_UPSTREAM = "delete-upstream"
KEEP = "keep"
DELETION_POLICIES = (DELETE_UPSTREAM, KEEP)


def normalize_vault_path(path: str) -> str:
    """Normalize a vault path for consistent identification.

    Expands ``~``, makes the path absolute, resolves symlinks and drops
    any trailing separator.
    """
    if not path:
        raise ValueError("Path cannot be empty")

    resolved = os.path.realpath(os.path.abspath(os.path.expanduser(path)))
    if resolved != os.sep and resolved.endswith(os.sep):
        resolved = resolved.rstrip(os.sep)
    return resolved


def deterministic_vault_id(normalized_path: str) -> str:
    """Generate a deterministic vault ID from a normalized path."""
    if not normalized_path:
        raise ValueError("Normalized path cannot be empty")
    path_hash = hashlib.sha256(normalized_path.encode('utf-8')).hexdigest()
    return f"vault-{path_hash[:12]}"


def compute_signature(file_path: str, task_text: str) -> str:
    """Content fingerprint of a task: its document plus normalized title."""
    return hashlib.sha256(f"{file_path}|{task_text}".encode('utf-8')).hexdigest()


@dataclass
class Vault:
    """Represents an Obsidian vault and the Reminders list it owns."""

    name: str
    path: str
    vault_id: str = ""
    is_default: bool = False
    list_name: Optional[str] = None

    def __post_init__(self) -> None:
        self.path = normalize_vault_path(self.path)
        if not self.vault_id:
            self.vault_id = deterministic_vault_id(self.path)

    @property
    def designated_list(self) -> str:
        """The Reminders list mirrored by the vault's notes."""
        return self.list_name or self.name


@dataclass(frozen=True)
class SourceLocation:
    """Where a text-side task lives: vault-relative file and 1-based line."""

    file_path: str
    line_number: int


@dataclass
class TaskRecord:
    """A task observed on the text side or the Reminders side."""

    id: Optional[str]
    title: str
    completed: bool = False
    due_date: Optional[date] = None
    list_name: str = DEFAULT_LIST
    location: Optional[SourceLocation] = None
    backend_id: Optional[str] = None
    notes: Optional[str] = None

    @property
    def file_path(self) -> Optional[str]:
        return self.location.file_path if self.location else None


@dataclass
class TaskMapping:
    """Links a text-side task id to the Reminders record that mirrors it."""

    local_id: str
    backend_id: str
    file_path: str
    task_text: str

    @property
    def signature(self) -> str:
        return compute_signature(self.file_path, self.task_text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "obsidianId": self.local_id,
            "reminderId": self.backend_id,
            "filePath": self.file_path,
            "taskText": self.task_text,
        }

    @classmethod
    def from_dict(cls, data: Any) -> TaskMapping:
        if not isinstance(data, dict):
            raise MappingStoreCorrupt(f"Mapping entry is not an object: {data!r}")
        values = {}
        for key in ("obsidianId", "reminderId", "filePath", "taskText"):
            value = data.get(key)
            if not isinstance(value, str):
                raise MappingStoreCorrupt(f"Mapping entry has invalid '{key}': {data!r}")
            values[key] = value
        return cls(
            local_id=values["obsidianId"],
            backend_id=values["reminderId"],
            file_path=values["filePath"],
            task_text=values["taskText"],
        )


@dataclass
class ItemFailure:
    """A per-document or per-record error that did not abort the pass."""

    kind: str
    subject: str
    message: str

    @classmethod
    def from_error(cls, subject: str, error: Exception) -> ItemFailure:
        return cls(kind=type(error).__name__, subject=subject, message=str(error))


@dataclass
class SyncSummary:
    """Counts reported at the end of a pass."""

    vault_name: str = ""
    dry_run: bool = True
    documents_scanned: int = 0
    documents_skipped: int = 0
    documents_written: int = 0
    text_tasks: int = 0
    backend_tasks: int = 0
    ids_assigned: int = 0
    ids_removed: int = 0
    created: int = 0
    updated: int = 0
    completed_in_text: int = 0
    folded: int = 0
    deleted: int = 0
    lines_removed: int = 0
    mappings_pruned: int = 0
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any([
            self.ids_assigned, self.ids_removed, self.created, self.updated, self.completed_in_text,
            self.folded, self.deleted, self.lines_removed, self.mappings_pruned,
            self.documents_written,
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vault": self.vault_name,
            "dry_run": self.dry_run,
            "documents": {
                "scanned": self.documents_scanned,
                "skipped": self.documents_skipped,
                "written": self.documents_written,
            },
            "tasks": {
                "text": self.text_tasks,
                "backend": self.backend_tasks,
            },
            "changes": {
                "ids_assigned": self.ids_assigned,
                "ids_removed": self.ids_removed,
                "created": self.created,
                "updated": self.updated,
                "completed_in_text": self.completed_in_text,
                "folded": self.folded,
                "deleted": self.deleted,
                "lines_removed": self.lines_removed,
                "mappings_pruned": self.mappings_pruned,
            },
            "failures": [
                {"kind": f.kind, "subject": f.subject, "message": f.message}
                for f in self.failures
            ],
        }


@dataclass
class SyncConfig:
    """Configuration for sync operations."""

    vaults: List[Vault] = field(default_factory=list)
    default_vault_id: Optional[str] = None
    excluded_lists: List[str] = field(default_factory=list)
    output_document: str = "_AppleReminders.md"
    inbox_document: str = "AppleRemindersInbox.md"
    mapping_file: str = "._RemindersMapping.json"
    exclusion_tag: str = "#cl"
    reserved_prefixes: List[str] = field(default_factory=lambda: ["Templates/", "aiprompts/"])
    default_list: str = DEFAULT_LIST
    deletion_policy: str = DELETE_UPSTREAM

    def __post_init__(self) -> None:
        if self.deletion_policy not in DELETION_POLICIES:
            raise ConfigurationError(
                f"Unknown deletion policy '{self.deletion_policy}' "
                f"(expected one of: {', '.join(DELETION_POLICIES)})"
            )

    @property
    def default_vault(self) -> Optional[Vault]:
        if self.default_vault_id:
            for vault in self.vaults:
                if vault.vault_id == self.default_vault_id:
                    return vault
        for vault in self.vaults:
            if vault.is_default:
                return vault
        return self.vaults[0] if self.vaults else None

    def find_vault(self, name_or_path: str) -> Optional[Vault]:
        """Look a configured vault up by name or by path."""
        for vault in self.vaults:
            if vault.name == name_or_path:
                return vault
        try:
            normalized = normalize_vault_path(name_or_path)
        except ValueError:
            return None
        for vault in self.vaults:
            if vault.path == normalized:
                return vault
        return None

    def add_vault(self, vault: Vault, make_default: bool = False) -> None:
        """Register a vault, replacing any entry for the same path."""
        self.vaults = [v for v in self.vaults if v.path != vault.path]
        self.vaults.append(vault)
        if make_default or len(self.vaults) == 1:
            self.default_vault_id = vault.vault_id

    def excluded_lists_for(self, vault: Vault) -> List[str]:
        """Lists never mirrored into the vault's output document.

        Always contains the vault's own name, whose list is synced through
        the notes themselves, and the lists owned by every other configured
        vault, which are synced through that vault's notes.
        """
        excluded = [vault.name, vault.designated_list]
        for other in self.vaults:
            if other.vault_id != vault.vault_id:
                excluded.extend([other.name, other.designated_list])
        excluded.extend(self.excluded_lists)
        seen = set()
        result = []
        for name in excluded:
            if name and name not in seen:
                seen.add(name)
                result.append(name)
        return result

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    @classmethod
    def load_from_file(cls, config_path: str) -> SyncConfig:
        config_path = os.path.abspath(os.path.expanduser(config_path))
        if not os.path.exists(config_path):
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read configuration {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {config_path} must be a JSON object")

        raw_vaults = data.get("vaults", [])
        if not isinstance(raw_vaults, list):
            raise ConfigurationError(f"'vaults' in {config_path} must be a list")

        vaults: List[Vault] = []
        for entry in raw_vaults:
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Vault entry {entry!r} in {config_path} must be an object")
            try:
                vaults.append(Vault(
                    name=entry.get("name", ""),
                    path=entry.get("path", ""),
                    vault_id=entry.get("vault_id", ""),
                    is_default=entry.get("is_default", False),
                    list_name=entry.get("list_name"),
                ))
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"Invalid vault entry in {config_path}: {exc}") from exc

        sync_settings = data.get("sync", {})
        if not isinstance(sync_settings, dict):
            raise ConfigurationError(f"'sync' in {config_path} must be an object")
        defaults = cls()

        config = cls(
            vaults=vaults,
            default_vault_id=data.get("default_vault_id"),
            excluded_lists=list(sync_settings.get("excluded_lists", defaults.excluded_lists)),
            output_document=sync_settings.get("output_document", defaults.output_document),
            inbox_document=sync_settings.get("inbox_document", defaults.inbox_document),
            mapping_file=sync_settings.get("mapping_file", defaults.mapping_file),
            exclusion_tag=sync_settings.get("exclusion_tag", defaults.exclusion_tag),
            reserved_prefixes=list(sync_settings.get("reserved_prefixes", defaults.reserved_prefixes)),
            default_list=sync_settings.get("default_list", defaults.default_list),
            deletion_policy=sync_settings.get("deletion_policy", defaults.deletion_policy),
        )

        if config.default_vault is not None:
            config.default_vault_id = config.default_vault.vault_id

        return config

    def save_to_file(self, config_path: str) -> None:
        config_path = os.path.abspath(os.path.expanduser(config_path))
        os.makedirs(os.path.dirname(config_path), exist_ok=True)

        if self.default_vault_id and self.vaults:
            for vault in self.vaults:
                vault.is_default = vault.vault_id == self.default_vault_id
        elif self.vaults:
            self.vaults[0].is_default = True
            self.default_vault_id = self.vaults[0].vault_id

        data = {
            "vaults": [
                {
                    "name": v.name,
                    "path": v.path,
                    "vault_id": v.vault_id,
                    "is_default": v.is_default,
                    "list_name": v.list_name,
                }
                for v in self.vaults
            ],
            "default_vault_id": self.default_vault_id,
            "sync": {
                "excluded_lists": self.excluded_lists,
                "output_document": self.output_document,
                "inbox_document": self.inbox_document,
                "mapping_file": self.mapping_file,
                "exclusion_tag": self.exclusion_tag,
                "reserved_prefixes": self.reserved_prefixes,
                "default_list": self.default_list,
                "deletion_policy": self.deletion_policy,
            },
        }

        with open(config_path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)

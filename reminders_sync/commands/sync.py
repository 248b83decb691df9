"""Sync command - reconcile a vault with Apple Reminders."""

import os
from typing import Optional
import logging

from ..core.exceptions import RemindersSyncError, VaultNotFoundError
from ..core.models import SyncConfig, SyncSummary, Vault
from ..reminders.gateway import RemindersGateway
from ..sync.engine import SyncEngine


def resolve_vault(config: SyncConfig, target: Optional[str] = None) -> Vault:
    """
    Find the vault a command should work on.

    Args:
        config: Loaded configuration
        target: A configured vault name, a vault path, or None for the default

    Raises:
        VaultNotFoundError: no such vault, or its directory is missing
    """
    if target is None:
        vault = config.default_vault
        if vault is None:
            raise VaultNotFoundError(
                "No Obsidian vault configured. Run 'reminders-sync add-vault PATH' first."
            )
    else:
        vault = config.find_vault(target)
        if vault is None:
            if not os.path.isdir(os.path.expanduser(target)):
                raise VaultNotFoundError(f"Unknown vault: {target}")
            path = os.path.expanduser(target)
            vault = Vault(name=os.path.basename(os.path.abspath(path).rstrip(os.sep)), path=path)

    if not os.path.isdir(vault.path):
        raise VaultNotFoundError(f"Vault path does not exist: {vault.path}")
    return vault


def print_summary(summary: SyncSummary, title: str = "Sync Summary") -> None:
    """Print a pass summary the same way for every command."""
    dry_run = summary.dry_run
    print(f"\n🔄 {title}: {summary.vault_name}")
    print(f"  Documents scanned: {summary.documents_scanned}")
    if summary.documents_skipped:
        print(f"  Documents skipped: {summary.documents_skipped}")
    print(f"  Vault tasks: {summary.text_tasks}")
    print(f"  Reminders tasks: {summary.backend_tasks}")

    changes = [
        ("Task ids assigned", summary.ids_assigned),
        ("Task ids removed", summary.ids_removed),
        ("Reminders created", summary.created),
        ("Reminders updated", summary.updated),
        ("Reminders deleted", summary.deleted),
        ("Tasks completed in vault", summary.completed_in_text),
        ("Reminders added to vault", summary.folded),
        ("Completed lines removed", summary.lines_removed),
        ("Mappings pruned", summary.mappings_pruned),
        ("Documents written", summary.documents_written),
    ]
    if summary.has_changes:
        print(f"\nChanges {'to make' if dry_run else 'made'}:")
        for label, count in changes:
            if count:
                print(f"  {label}: {count}")
    else:
        print("\nNo changes needed - everything is in sync!")

    if summary.failures:
        print(f"\n⚠️  {len(summary.failures)} item(s) failed:")
        for failure in summary.failures:
            print(f"  • {failure.subject}: {failure.message}")

    if dry_run and summary.has_changes:
        print("\n💡 This was a dry run. Use --apply to make changes.")


class SyncCommand:
    """Command for synchronizing a vault's tasks with Reminders."""

    def __init__(self, config: SyncConfig, verbose: bool = False,
                 gateway: Optional[RemindersGateway] = None):
        self.config = config
        self.verbose = verbose
        self.gateway = gateway
        self.logger = logging.getLogger(__name__)

    def _engine(self) -> SyncEngine:
        return SyncEngine(self.config, gateway=self.gateway, logger=self.logger)

    def run(self, vault_name: Optional[str] = None, apply_changes: bool = False) -> bool:
        """Run the sync command."""
        try:
            vault = resolve_vault(self.config, vault_name)
            print(f"\n📁 Syncing vault: {vault.name} ↔ list '{vault.designated_list}'")
            summary = self._engine().run(vault, dry_run=not apply_changes)
        except RemindersSyncError as exc:
            self.logger.error("Sync command failed: %s", exc)
            print(f"❌ Sync failed: {exc}")
            return False

        print_summary(summary)
        return True

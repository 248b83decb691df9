"""Reset command - remove every trace of syncing from a vault."""

from typing import Optional

from ..core.exceptions import RemindersSyncError
from .sync import SyncCommand, print_summary, resolve_vault


class ResetCommand(SyncCommand):
    """Strips task ids and completed lines from notes and deletes the mapping file.

    Reminders itself is left untouched.
    """

    def run(self, vault_name: Optional[str] = None, apply_changes: bool = False) -> bool:
        try:
            vault = resolve_vault(self.config, vault_name)
            print(f"\n♻️  Resetting vault: {vault.name}")
            summary = self._engine().reset(vault, dry_run=not apply_changes)
        except RemindersSyncError as exc:
            self.logger.error("Reset command failed: %s", exc)
            print(f"❌ Reset failed: {exc}")
            return False

        print_summary(summary, title="Reset Summary")
        return True


class ClearIdsCommand(SyncCommand):
    """Removes task ids from the notes of mirrored reminders."""

    def run(self, vault_name: Optional[str] = None, apply_changes: bool = False) -> bool:
        try:
            vault = resolve_vault(self.config, vault_name)
            print(f"\n🧽 Clearing task ids from Reminders for vault: {vault.name}")
            summary = self._engine().clear_backend_ids(vault, dry_run=not apply_changes)
        except RemindersSyncError as exc:
            self.logger.error("Clear-ids command failed: %s", exc)
            print(f"❌ Clearing ids failed: {exc}")
            return False

        print_summary(summary, title="Clear IDs Summary")
        return True

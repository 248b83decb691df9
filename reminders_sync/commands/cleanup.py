"""Cleanup command - sync, then drop completed tasks from both sides."""

from typing import Optional

from ..core.exceptions import RemindersSyncError
from .sync import SyncCommand, print_summary, resolve_vault


class CleanupCommand(SyncCommand):
    """Runs a sync pass followed by the completed-task cleanup."""

    def run(self, vault_name: Optional[str] = None, apply_changes: bool = False) -> bool:
        try:
            vault = resolve_vault(self.config, vault_name)
            engine = self._engine()
            print(f"\n🧹 Cleaning up vault: {vault.name}")
            sync_summary = engine.run(vault, dry_run=not apply_changes)
            prune_summary = engine.prune_completed(vault, dry_run=not apply_changes)
        except RemindersSyncError as exc:
            self.logger.error("Cleanup command failed: %s", exc)
            print(f"❌ Cleanup failed: {exc}")
            return False

        print_summary(sync_summary)
        print_summary(prune_summary, title="Cleanup Summary")
        return True

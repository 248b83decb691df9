"""Vault commands - register and list the vaults to sync."""

import os
from typing import List, Optional
import logging

from ..core.config import save_config
from ..core.exceptions import RemindersSyncError, VaultNotFoundError
from ..core.models import SyncConfig, Vault
from ..obsidian.vault import find_vaults


class VaultsCommand:
    """Command for managing the configured vaults."""

    def __init__(self, config: SyncConfig, config_path: Optional[str] = None, verbose: bool = False):
        self.config = config
        self.config_path = config_path
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)

    def add(self, path: str, name: Optional[str] = None, list_name: Optional[str] = None,
            make_default: bool = False) -> bool:
        """Register one vault directory."""
        try:
            expanded = os.path.expanduser(path)
            if not os.path.isdir(expanded):
                raise VaultNotFoundError(f"Vault path does not exist: {path}")

            vault = Vault(
                name=name or os.path.basename(os.path.abspath(expanded).rstrip(os.sep)),
                path=expanded,
                list_name=list_name,
            )
            existing = self.config.find_vault(vault.path)
            if existing is not None:
                vault.vault_id = existing.vault_id
            self.config.add_vault(vault, make_default=make_default)
            save_config(self.config, self.config_path)
        except RemindersSyncError as exc:
            self.logger.error("Adding vault failed: %s", exc)
            print(f"❌ {exc}")
            return False

        print(f"✅ Added vault '{vault.name}' → list '{vault.designated_list}'")
        print(f"   {vault.path}")
        if self.config.default_vault_id == vault.vault_id:
            print("   (default vault)")
        return True

    def discover(self, search_paths: Optional[List[str]] = None, make_default: bool = False) -> bool:
        """Register every vault found in the usual locations."""
        print("\n🔍 Looking for Obsidian vaults...")
        found = find_vaults(search_paths)
        new_vaults = [v for v in found if self.config.find_vault(v.path) is None]

        if not found:
            print("No Obsidian vaults were detected. Use 'add-vault PATH' to add one by hand.")
            return False
        if not new_vaults:
            print(f"All {len(found)} discovered vault(s) are already configured.")
            return True

        for index, vault in enumerate(new_vaults):
            self.config.add_vault(vault, make_default=make_default and index == 0)
            print(f"  • {vault.name}: {vault.path}")
        try:
            save_config(self.config, self.config_path)
        except OSError as exc:
            self.logger.error("Saving configuration failed: %s", exc)
            print(f"❌ Could not save configuration: {exc}")
            return False

        print(f"\n✅ Added {len(new_vaults)} vault(s)")
        return True

    def list(self) -> bool:
        """Print the configured vaults."""
        if not self.config.vaults:
            print("No vaults configured. Run 'reminders-sync add-vault PATH' first.")
            return True

        default = self.config.default_vault
        print(f"\n📚 Configured vaults ({len(self.config.vaults)}):")
        for vault in self.config.vaults:
            marker = " (default)" if default is not None and vault.vault_id == default.vault_id else ""
            print(f"  • {vault.name}{marker}")
            print(f"    Path: {vault.path}")
            print(f"    List: {vault.designated_list}")
            excluded = [name for name in self.config.excluded_lists_for(vault)
                        if name not in (vault.name, vault.designated_list)]
            if excluded:
                print(f"    Excluded lists: {', '.join(excluded)}")
        return True

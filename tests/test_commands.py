"""
Tests for the command layer (reminders_sync/commands/).
"""

import json
import os

import pytest

from reminders_sync.commands import (
    CleanupCommand,
    ClearIdsCommand,
    ResetCommand,
    SyncCommand,
    VaultsCommand,
)
from reminders_sync.commands.sync import print_summary, resolve_vault
from reminders_sync.core.exceptions import VaultNotFoundError
from reminders_sync.core.models import ItemFailure, SyncConfig, SyncSummary, Vault


class TestResolveVault:

    def test_default_vault(self, sync_config, vault):
        assert resolve_vault(sync_config).path == vault.path

    def test_by_name_and_path(self, sync_config, vault, vault_path):
        assert resolve_vault(sync_config, "Notes").vault_id == vault.vault_id
        assert resolve_vault(sync_config, vault_path).vault_id == vault.vault_id

    def test_unconfigured_directory(self, sync_config, temp_dir):
        other = os.path.join(temp_dir, "Scratch")
        os.makedirs(other)
        resolved = resolve_vault(sync_config, other)
        assert resolved.name == "Scratch"
        assert resolved.designated_list == "Scratch"

    def test_no_vault_configured(self):
        with pytest.raises(VaultNotFoundError):
            resolve_vault(SyncConfig())

    def test_unknown_name(self, sync_config):
        with pytest.raises(VaultNotFoundError):
            resolve_vault(sync_config, "Nope")

    def test_missing_directory(self, temp_dir):
        config = SyncConfig()
        gone = os.path.join(temp_dir, "Gone")
        os.makedirs(gone)
        config.add_vault(Vault("Gone", gone))
        os.rmdir(gone)
        with pytest.raises(VaultNotFoundError):
            resolve_vault(config)


class TestPrintSummary:

    def test_dry_run_hint(self, capsys):
        print_summary(SyncSummary(vault_name="Notes", dry_run=True, created=2))
        out = capsys.readouterr().out
        assert "Changes to make" in out
        assert "Reminders created: 2" in out
        assert "--apply" in out

    def test_in_sync(self, capsys):
        print_summary(SyncSummary(vault_name="Notes", dry_run=False))
        out = capsys.readouterr().out
        assert "everything is in sync" in out
        assert "--apply" not in out

    def test_failures_listed(self, capsys):
        summary = SyncSummary(vault_name="Notes", dry_run=False)
        summary.failures.append(ItemFailure("DocumentReadError", "Bad.md", "Cannot read Bad.md"))
        print_summary(summary)
        assert "Bad.md: Cannot read Bad.md" in capsys.readouterr().out


class TestPassCommands:

    def test_sync_dry_run(self, sync_config, fake_gateway, write_note, read_note, capsys):
        write_note("Daily.md", "- [ ] Call Bob\n")

        assert SyncCommand(sync_config, gateway=fake_gateway).run()

        assert read_note("Daily.md") == "- [ ] Call Bob\n"
        assert fake_gateway.writes() == []
        assert "This was a dry run" in capsys.readouterr().out

    def test_sync_apply(self, sync_config, fake_gateway, write_note, read_note):
        write_note("Daily.md", "- [ ] Call Bob\n")

        assert SyncCommand(sync_config, gateway=fake_gateway).run("Notes", apply_changes=True)

        assert read_note("Daily.md").startswith("- [ ] Call Bob ^")
        assert fake_gateway.by_title("Call Bob") is not None

    def test_sync_reports_fatal_errors(self, sync_config, fake_gateway, capsys):
        fake_gateway.deny_access = True
        assert not SyncCommand(sync_config, gateway=fake_gateway).run()
        assert "❌ Sync failed" in capsys.readouterr().out

    def test_unknown_vault(self, sync_config, fake_gateway, capsys):
        assert not SyncCommand(sync_config, gateway=fake_gateway).run("Elsewhere")
        assert "Unknown vault" in capsys.readouterr().out

    def test_cleanup(self, sync_config, fake_gateway, write_note, read_note):
        write_note("Daily.md", "- [ ] Call Bob\n- [ ] Keep\n")
        SyncCommand(sync_config, gateway=fake_gateway).run(apply_changes=True)
        fake_gateway.by_title("Call Bob").completed = True

        assert CleanupCommand(sync_config, gateway=fake_gateway).run(apply_changes=True)

        assert "Call Bob" not in read_note("Daily.md")
        assert "Keep" in read_note("Daily.md")
        assert fake_gateway.by_title("Call Bob") is None

    def test_reset(self, sync_config, fake_gateway, write_note, read_note, vault_path):
        write_note("Daily.md", "- [ ] Call Bob\n")
        SyncCommand(sync_config, gateway=fake_gateway).run(apply_changes=True)

        assert ResetCommand(sync_config, gateway=fake_gateway).run(apply_changes=True)

        assert read_note("Daily.md") == "- [ ] Call Bob\n"
        assert not os.path.exists(os.path.join(vault_path, "._RemindersMapping.json"))

    def test_clear_ids(self, sync_config, fake_gateway):
        fake_gateway.add("Work item", "Inbox", notes="ID: X1", uuid="B1")
        assert ClearIdsCommand(sync_config, gateway=fake_gateway).run(apply_changes=True)
        assert fake_gateway.reminders["B1"].notes == ""


class TestVaultsCommand:

    @pytest.fixture
    def config_path(self, temp_dir):
        return os.path.join(temp_dir, "config", "config.json")

    def _saved(self, config_path):
        with open(config_path, encoding="utf-8") as handle:
            return json.load(handle)

    def test_add_saves_config(self, vault_path, config_path, capsys):
        config = SyncConfig()
        assert VaultsCommand(config, config_path=config_path).add(vault_path, list_name="Tasks")

        data = self._saved(config_path)
        assert data["vaults"][0]["name"] == "Notes"
        assert data["vaults"][0]["list_name"] == "Tasks"
        assert data["default_vault_id"] == config.vaults[0].vault_id
        assert "list 'Tasks'" in capsys.readouterr().out

    def test_re_adding_keeps_identity(self, vault_path, config_path):
        config = SyncConfig()
        command = VaultsCommand(config, config_path=config_path)
        command.add(vault_path)
        first_id = config.vaults[0].vault_id
        command.add(vault_path, name="Renamed")
        assert [v.vault_id for v in config.vaults] == [first_id]
        assert config.vaults[0].name == "Renamed"

    def test_add_missing_path(self, temp_dir, config_path):
        command = VaultsCommand(SyncConfig(), config_path=config_path)
        assert not command.add(os.path.join(temp_dir, "missing"))
        assert not os.path.exists(config_path)

    def test_discover(self, temp_dir, vault_path, config_path):
        config = SyncConfig()
        command = VaultsCommand(config, config_path=config_path)

        assert command.discover([temp_dir])
        assert [v.name for v in config.vaults] == ["Notes"]

        assert command.discover([temp_dir])
        assert len(config.vaults) == 1

    def test_discover_nothing(self, temp_dir, config_path):
        empty = os.path.join(temp_dir, "empty")
        os.makedirs(empty)
        assert not VaultsCommand(SyncConfig(), config_path=config_path).discover([empty])

    def test_list(self, sync_config, capsys):
        sync_config.excluded_lists = ["Shopping"]
        assert VaultsCommand(sync_config).list()
        out = capsys.readouterr().out
        assert "Notes (default)" in out
        assert "Excluded lists: Shopping" in out

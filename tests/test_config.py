"""
Tests for configuration (reminders_sync/core/{models,config,paths}.py).

Validates vault registration, exclusion sets, persistence and the
per-user working directory.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from reminders_sync.core.config import get_default_config_path, load_config, save_config
from reminders_sync.core.exceptions import ConfigurationError
from reminders_sync.core.models import (
    SyncConfig,
    SyncSummary,
    Vault,
    deterministic_vault_id,
    normalize_vault_path,
)
from reminders_sync.core.paths import PathManager


class TestVault:

    def test_designated_list_defaults_to_name(self, temp_dir):
        assert Vault("Notes", temp_dir).designated_list == "Notes"
        assert Vault("Notes", temp_dir, list_name="Tasks").designated_list == "Tasks"

    def test_vault_id_is_stable_for_equivalent_paths(self, temp_dir):
        first = Vault("A", temp_dir)
        second = Vault("B", temp_dir + os.sep)
        assert first.vault_id == second.vault_id == deterministic_vault_id(normalize_vault_path(temp_dir))

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            normalize_vault_path("")


class TestSyncConfigHelpers:

    def test_excluded_lists_always_hold_vault_lists(self, temp_dir):
        config = SyncConfig(excluded_lists=["Shopping", "Notes"])
        vault = Vault("Notes", temp_dir, list_name="Tasks")
        assert config.excluded_lists_for(vault) == ["Notes", "Tasks", "Shopping"]

    def test_excluded_lists_hold_other_vaults_lists(self, temp_dir):
        config = SyncConfig(excluded_lists=["Shopping"])
        notes = Vault("Notes", os.path.join(temp_dir, "notes"))
        work = Vault("Work", os.path.join(temp_dir, "work"), list_name="Office")
        config.add_vault(notes)
        config.add_vault(work)
        assert config.excluded_lists_for(notes) == ["Notes", "Work", "Office", "Shopping"]
        assert config.excluded_lists_for(work) == ["Work", "Office", "Notes", "Shopping"]

    def test_find_vault_by_name_or_path(self, temp_dir):
        config = SyncConfig()
        vault = Vault("Notes", temp_dir)
        config.add_vault(vault)
        assert config.find_vault("Notes") is vault
        assert config.find_vault(temp_dir) is vault
        assert config.find_vault("Other") is None

    def test_add_vault_replaces_same_path(self, temp_dir):
        config = SyncConfig()
        config.add_vault(Vault("Old", temp_dir))
        config.add_vault(Vault("New", temp_dir))
        assert [v.name for v in config.vaults] == ["New"]

    def test_default_vault_selection(self, temp_dir):
        first = os.path.join(temp_dir, "a")
        second = os.path.join(temp_dir, "b")
        config = SyncConfig()
        config.add_vault(Vault("A", first))
        config.add_vault(Vault("B", second))
        assert config.default_vault.name == "A"
        config.add_vault(Vault("B", second), make_default=True)
        assert config.default_vault.name == "B"

    def test_unknown_deletion_policy(self):
        with pytest.raises(ConfigurationError):
            SyncConfig(deletion_policy="shred")


class TestPersistence:

    def test_missing_file_gives_defaults(self, temp_dir):
        config = SyncConfig.load_from_file(os.path.join(temp_dir, "none.json"))
        assert config.vaults == []
        assert config.output_document == "_AppleReminders.md"
        assert config.deletion_policy == "delete-upstream"

    def test_round_trip(self, temp_dir):
        path = os.path.join(temp_dir, "cfg", "config.json")
        config = SyncConfig(excluded_lists=["Shopping"], deletion_policy="keep")
        config.add_vault(Vault("Notes", temp_dir, list_name="Tasks"))
        save_config(config, path)

        loaded = load_config(path)
        assert loaded.vaults[0].name == "Notes"
        assert loaded.vaults[0].list_name == "Tasks"
        assert loaded.vaults[0].is_default
        assert loaded.default_vault_id == config.vaults[0].vault_id
        assert loaded.excluded_lists == ["Shopping"]
        assert loaded.deletion_policy == "keep"

    def test_partial_sync_section(self, temp_dir):
        path = os.path.join(temp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump({"vaults": [], "sync": {"exclusion_tag": "#local"}}, handle)
        config = load_config(path)
        assert config.exclusion_tag == "#local"
        assert config.reserved_prefixes == ["Templates/", "aiprompts/"]

    @pytest.mark.parametrize("content", [
        "{broken",
        "[1, 2]",
        '{"sync": {"deletion_policy": "x"}}',
        '{"sync": ["Shopping"]}',
        '{"vaults": {"name": "Notes"}}',
        '{"vaults": ["Notes"]}',
        '{"vaults": [{"name": "Notes"}]}',
    ])
    def test_invalid_files_raise(self, temp_dir, content):
        path = os.path.join(temp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(content)
        with pytest.raises(ConfigurationError):
            load_config(path)


class TestPathManager:

    def test_explicit_working_dir(self, temp_dir):
        manager = PathManager(working_dir=temp_dir)
        assert manager.config_path == Path(temp_dir).resolve() / "config.json"

    def test_environment_override(self, temp_dir):
        with patch.dict(os.environ, {"REMINDERS_SYNC_HOME": temp_dir}):
            assert PathManager().working_dir == Path(temp_dir).resolve()
            assert get_default_config_path() == Path(temp_dir).resolve() / "config.json"

    def test_linux_default(self):
        with patch.dict(os.environ, {}, clear=True), \
                patch("reminders_sync.core.paths.sys.platform", "linux"), \
                patch("reminders_sync.core.paths.Path.home", return_value=Path("/home/u")):
            assert PathManager().working_dir == Path("/home/u/.config/reminders-sync")

    def test_save_config_default_location(self, temp_dir):
        manager = PathManager(working_dir=os.path.join(temp_dir, "home"))
        save_config(SyncConfig(), paths=manager)
        assert manager.config_path.exists()
        assert load_config(paths=manager).vaults == []


def test_summary_to_dict():
    summary = SyncSummary(vault_name="Notes", dry_run=False, created=1, documents_written=2)
    data = summary.to_dict()
    assert data["changes"]["created"] == 1
    assert data["documents"]["written"] == 2
    assert summary.has_changes
    assert not SyncSummary().has_changes

#!/usr/bin/env python3
"""
Global pytest configuration and fixtures.

This module provides:
- Platform-specific test skipping (macOS/EventKit tests)
- A temporary vault, configuration and in-memory Reminders gateway
"""

import itertools
import os
import platform
import sys
import tempfile
import shutil
from typing import Callable, Generator

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reminders_sync.core.models import SyncConfig, Vault  # noqa: E402
from reminders_sync.sync.engine import SyncEngine  # noqa: E402
from tests.fake_reminders_gateway import FakeRemindersGateway  # noqa: E402

HAS_EVENTKIT = False

try:
    if platform.system() == "Darwin":
        import objc  # noqa: F401
        import EventKit  # noqa: F401
        HAS_EVENTKIT = True
except ImportError:
    pass


def pytest_configure(config):
    """Configure pytest environment."""
    config.addinivalue_line("markers", "macos: test requires macOS")
    config.addinivalue_line("markers", "eventkit: test requires EventKit framework")


def pytest_collection_modifyitems(config, items):
    """Skip macOS/EventKit tests where they cannot run."""
    skip_macos = pytest.mark.skip(reason="macOS/EventKit tests require Darwin platform")
    skip_eventkit = pytest.mark.skip(reason="Test requires EventKit framework")

    for item in items:
        if "macos" in item.keywords and platform.system() != "Darwin":
            item.add_marker(skip_macos)
        if "eventkit" in item.keywords and not HAS_EVENTKIT:
            item.add_marker(skip_eventkit)


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = tempfile.mkdtemp(prefix="reminders_sync_test_")
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def vault_path(temp_dir: str) -> str:
    """An empty Obsidian vault called 'Notes'."""
    path = os.path.join(temp_dir, "Notes")
    os.makedirs(os.path.join(path, ".obsidian"))
    return path


@pytest.fixture
def vault(vault_path: str) -> Vault:
    return Vault(name="Notes", path=vault_path, is_default=True)


@pytest.fixture
def sync_config(vault: Vault) -> SyncConfig:
    config = SyncConfig()
    config.add_vault(vault, make_default=True)
    return config


@pytest.fixture
def fake_gateway() -> FakeRemindersGateway:
    return FakeRemindersGateway(lists=["Notes", "Inbox"])


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic task ids: ID-0001, ID-0002, ..."""
    counter = itertools.count(1)
    return lambda: f"ID-{next(counter):04d}"


@pytest.fixture
def engine(sync_config: SyncConfig, fake_gateway: FakeRemindersGateway, id_factory) -> SyncEngine:
    return SyncEngine(sync_config, gateway=fake_gateway, id_factory=id_factory)


@pytest.fixture
def write_note(vault_path: str) -> Callable[[str, str], str]:
    """Write a vault-relative note and return its absolute path."""
    def _write(rel_path: str, content: str) -> str:
        full_path = os.path.join(vault_path, *rel_path.split('/'))
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, 'w', encoding='utf-8', newline='') as handle:
            handle.write(content)
        return full_path
    return _write


@pytest.fixture
def read_note(vault_path: str) -> Callable[[str], str]:
    def _read(rel_path: str) -> str:
        full_path = os.path.join(vault_path, *rel_path.split('/'))
        with open(full_path, 'r', encoding='utf-8', newline='') as handle:
            return handle.read()
    return _read

"""
In-memory Reminders gateway for tests.

Implements the same contract as ``RemindersGateway`` without EventKit:
writes are staged until ``commit()`` like the real store, and individual
operations can be made to fail to exercise error handling.
"""

from __future__ import annotations

import itertools
from typing import Dict, List, Optional, Set

from reminders_sync.core.exceptions import (
    AuthorizationError,
    BackendFetchError,
    BackendWriteError,
)
from reminders_sync.reminders.gateway import ReminderData


class FakeRemindersGateway:
    """Reminders store kept in a dict, keyed by reminder uuid."""

    def __init__(self, lists: Optional[List[str]] = None):
        self.lists: List[str] = list(lists or [])
        self.reminders: Dict[str, ReminderData] = {}
        self._counter = itertools.count(1)

        # Failure injection
        self.deny_access = False
        self.fail_fetch = False
        self.fail_commit = False
        self.fail_create_titles: Set[str] = set()
        self.fail_update_ids: Set[str] = set()
        self.fail_delete_ids: Set[str] = set()

        # Call log
        self.calls: List[tuple] = []
        self.commits = 0

    # ------------------------------------------------------------------
    # Seeding and inspection
    # ------------------------------------------------------------------
    def add(self, title: str, list_name: str, completed: bool = False,
            due_date: Optional[str] = None, notes: Optional[str] = None,
            uuid: Optional[str] = None) -> ReminderData:
        if list_name not in self.lists:
            self.lists.append(list_name)
        uuid = uuid or f"REM-{next(self._counter)}"
        reminder = ReminderData(
            uuid=uuid,
            title=title,
            completed=completed,
            due_date=due_date,
            notes=notes,
            list_id=f"list-{list_name}",
            list_name=list_name,
        )
        self.reminders[uuid] = reminder
        return reminder

    def in_list(self, list_name: str) -> List[ReminderData]:
        return [r for r in self.reminders.values() if r.list_name == list_name]

    def by_title(self, title: str) -> Optional[ReminderData]:
        for reminder in self.reminders.values():
            if reminder.title == title:
                return reminder
        return None

    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in ('create', 'update', 'delete', 'ensure_list')]

    # ------------------------------------------------------------------
    # Gateway contract
    # ------------------------------------------------------------------
    def authorize(self) -> None:
        self.calls.append(('authorize',))
        if self.deny_access:
            raise AuthorizationError("User denied access to Reminders")

    def get_lists(self) -> List[Dict[str, str]]:
        return [{'id': f"list-{name}", 'name': name} for name in self.lists]

    def ensure_list(self, name: str) -> str:
        self.calls.append(('ensure_list', name))
        if name not in self.lists:
            self.lists.append(name)
        return f"list-{name}"

    def get_reminders(self, list_names: Optional[List[str]] = None) -> List[ReminderData]:
        self.calls.append(('fetch', tuple(list_names or ())))
        if self.fail_fetch:
            raise BackendFetchError("Reminder fetch timed out after 30 seconds.")
        return [
            ReminderData(**vars(r)) for r in self.reminders.values()
            if list_names is None or r.list_name in list_names
        ]

    def create_reminder(self, title: str, list_name: str, completed: bool = False,
                        due_date: Optional[str] = None, notes: Optional[str] = None) -> str:
        self.calls.append(('create', title, list_name))
        if title in self.fail_create_titles:
            raise BackendWriteError(f"Failed to save reminder '{title}'")
        if list_name not in self.lists:
            raise BackendWriteError(f"List '{list_name}' not found")
        return self.add(title, list_name, completed=completed, due_date=due_date, notes=notes).uuid

    def update_reminder(self, uuid: str, **updates) -> None:
        self.calls.append(('update', uuid, dict(updates)))
        if uuid in self.fail_update_ids:
            raise BackendWriteError(f"Failed to update reminder {uuid}")
        reminder = self.reminders.get(uuid)
        if reminder is None:
            raise BackendWriteError(f"Reminder {uuid} not found")
        for key, value in updates.items():
            if key == 'list_name':
                if value not in self.lists:
                    raise BackendWriteError(f"List '{value}' not found")
                reminder.list_id = f"list-{value}"
            setattr(reminder, key, value)

    def delete_reminder(self, uuid: str) -> None:
        self.calls.append(('delete', uuid))
        if uuid in self.fail_delete_ids or uuid not in self.reminders:
            raise BackendWriteError(f"Failed to delete reminder {uuid}")
        del self.reminders[uuid]

    def commit(self) -> None:
        self.calls.append(('commit',))
        if self.fail_commit:
            raise BackendWriteError("Failed to commit reminders")
        self.commits += 1

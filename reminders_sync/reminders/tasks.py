"""Task manager for Reminders CRUD operations."""

from typing import Any, Dict, List, Optional
import logging

from ..core.models import TaskRecord
from ..utils.date import format_date, parse_date
from ..utils.notes import build_notes, extract_task_id
from .gateway import RemindersGateway


class RemindersTaskManager:
    """Manages CRUD operations for Reminders tasks expressed as TaskRecords."""

    def __init__(
        self,
        gateway: Optional[RemindersGateway] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.gateway = gateway or RemindersGateway(logger=logger)
        self.logger = logger or logging.getLogger(__name__)

    def authorize(self) -> None:
        self.gateway.authorize()

    def list_names(self) -> List[str]:
        """Names of every reminder list, in the order Reminders reports them."""
        return [lst['name'] for lst in self.gateway.get_lists()]

    def ensure_list(self, name: str) -> str:
        return self.gateway.ensure_list(name)

    def list_tasks(self, list_names: List[str]) -> List[TaskRecord]:
        """
        Fetch every reminder in the given lists.

        The record id is the task identifier found in the notes, or None
        for a reminder that was never linked to a vault task.
        """
        tasks: List[TaskRecord] = []
        for rem in self.gateway.get_reminders(list_names):
            tasks.append(TaskRecord(
                id=extract_task_id(rem.notes),
                title=' '.join((rem.title or '').split()),
                completed=rem.completed,
                due_date=parse_date(rem.due_date),
                list_name=rem.list_name or '',
                backend_id=rem.uuid,
                notes=rem.notes,
            ))
        self.logger.debug(f"Fetched {len(tasks)} reminders from {len(list_names)} lists")
        return tasks

    def create_task(self, record: TaskRecord, vault_name: str) -> str:
        """Create a reminder mirroring a vault task; returns its identifier."""
        notes = build_notes(vault_name, record.file_path or '', record.id)
        backend_id = self.gateway.create_reminder(
            title=record.title,
            list_name=record.list_name,
            completed=record.completed,
            due_date=format_date(record.due_date),
            notes=notes,
        )
        self.logger.debug(f"Created reminder {backend_id} for task {record.id}")
        return backend_id

    def update_task(self, backend_id: str, **fields: Any) -> None:
        """
        Update a reminder.

        Args:
            backend_id: Reminder identifier
            **fields: Any of title, completed, due_date (a date, or None to
                clear it), list_name, notes
        """
        updates: Dict[str, Any] = dict(fields)
        if 'due_date' in updates:
            updates['due_date'] = format_date(updates['due_date'])
        self.gateway.update_reminder(backend_id, **updates)
        self.logger.debug(f"Updated reminder {backend_id}: {sorted(updates)}")

    def delete_task(self, backend_id: str) -> None:
        self.gateway.delete_reminder(backend_id)
        self.logger.debug(f"Deleted reminder {backend_id}")

    def commit(self) -> None:
        self.gateway.commit()

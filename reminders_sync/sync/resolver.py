"""Field-level merge decisions for tasks present on both sides."""

from typing import Any, Dict, Optional
import logging

from ..core.models import TaskRecord
from ..utils.date import dates_equal


class ConflictResolver:
    """Decides how a linked pair of records is merged.

    Completion is merged with OR and never goes back to incomplete. The
    vault text is authoritative for the title, the due date and the list.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def resolve_conflicts(self, text_task: TaskRecord,
                          backend_task: TaskRecord) -> Dict[str, str]:
        """
        Compare a linked pair of records.

        Returns dict with keys 'status_winner', 'title_winner', 'due_winner'
        and 'list_winner'. Values are 'text', 'backend' or 'none'.
        """
        results = {}

        if text_task.completed and not backend_task.completed:
            results['status_winner'] = 'text'
        elif backend_task.completed and not text_task.completed:
            results['status_winner'] = 'backend'
        else:
            results['status_winner'] = 'none'

        results['title_winner'] = 'text' if self._text_differs(text_task.title, backend_task.title) else 'none'
        results['due_winner'] = 'text' if self._dates_differ(text_task.due_date, backend_task.due_date) else 'none'
        results['list_winner'] = 'text' if text_task.list_name != backend_task.list_name else 'none'

        conflicts_found = [k for k, v in results.items() if v != 'none']
        if conflicts_found:
            self.logger.debug(f"Conflicts found for {text_task.id}: {conflicts_found}")

        return results

    def backend_updates(self, text_task: TaskRecord, backend_task: TaskRecord,
                        results: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Fields to write to the backend record so it matches the merge."""
        if results is None:
            results = self.resolve_conflicts(text_task, backend_task)
        updates: Dict[str, Any] = {}
        if results['status_winner'] == 'text':
            updates['completed'] = True
        if results['title_winner'] == 'text':
            updates['title'] = text_task.title
        if results['due_winner'] == 'text':
            updates['due_date'] = text_task.due_date
        if results['list_winner'] == 'text':
            updates['list_name'] = text_task.list_name
        return updates

    def _text_differs(self, text_title: Optional[str], backend_title: Optional[str]) -> bool:
        """Check if titles differ once whitespace is normalized."""
        return ' '.join((text_title or "").split()) != ' '.join((backend_title or "").split())

    def _dates_differ(self, text_date, backend_date) -> bool:
        """Check if dates differ; clearing a date counts as a change."""
        return not dates_equal(text_date, backend_date, tolerance_days=0)

"""Rendering of the mirrored Reminders lists into the output document."""

from typing import Dict, Iterable, List, Optional, Set
import logging

from ..core.models import DEFAULT_LIST, TaskRecord
from ..obsidian.parser import (
    DEFAULT_EXCLUSION_TAG,
    SECTION_PREFIX,
    format_task_line,
    parse_task_line,
)


class MarkdownEmitter:
    """Renders task records as one ``## <List>`` section per list.

    The output is deterministic: the same records always produce the same
    bytes, and parsing the output gives the same records back.
    """

    def __init__(self, default_list: str = DEFAULT_LIST,
                 exclusion_tag: str = DEFAULT_EXCLUSION_TAG,
                 logger: Optional[logging.Logger] = None):
        self.default_list = default_list
        self.exclusion_tag = exclusion_tag
        self.logger = logger or logging.getLogger(__name__)

    def _section_order(self, names: Iterable[str]) -> List[str]:
        names = set(names)
        ordered = [self.default_list] if self.default_list in names else []
        ordered.extend(sorted(name for name in names if name != self.default_list))
        return ordered

    def render(self, records: Iterable[TaskRecord],
               passthrough: Optional[Dict[str, List[str]]] = None,
               keep_completed: Optional[Set[str]] = None) -> str:
        """
        Render the output document.

        Args:
            records: Tasks to render; completed ones are left out
            passthrough: Excluded lines to reproduce per section
            keep_completed: Ids of completed tasks still rendered as `[x]`

        Returns:
            Document text, or "" when there is nothing to render
        """
        passthrough = passthrough or {}
        keep_completed = keep_completed or set()
        by_list: Dict[str, List[TaskRecord]] = {}
        for record in records:
            if record.completed and record.id not in keep_completed:
                continue
            by_list.setdefault(record.list_name or self.default_list, []).append(record)

        sections = []
        for name in self._section_order(list(by_list) + [k for k, v in passthrough.items() if v]):
            lines = [f"{SECTION_PREFIX}{name}", ""]
            tasks = sorted(by_list.get(name, []), key=lambda r: (r.title, r.id or ""))
            lines.extend(format_task_line(r.title, r.completed, r.due_date, r.id) for r in tasks)
            lines.extend(passthrough.get(name, []))
            sections.append("\n".join(lines))

        if not sections:
            return ""
        return "\n\n".join(sections) + "\n"

    def can_round_trip(self, record: TaskRecord) -> bool:
        """Whether the record survives being written as a line and parsed back."""
        if not record.title:
            return False
        line = format_task_line(record.title, record.completed, record.due_date, record.id)
        parsed = parse_task_line(line, self.exclusion_tag)
        if len(parsed) != 1:
            return False
        task = parsed[0]
        return (
            not task.excluded
            and task.title == record.title
            and task.due_date == record.due_date
            and task.task_id == record.id
        )

"""Task manager for vault documents."""

import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, NamedTuple, Optional, Set, Tuple
import logging

from ..core.models import DEFAULT_LIST, SourceLocation, TaskRecord
from .parser import (
    DEFAULT_EXCLUSION_TAG,
    ParsedTask,
    format_task_line,
    parse_task_line,
    render_task,
    section_name,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..sync.identity import IdentityResolver


@dataclass
class VaultDocument:
    """In-memory copy of one document, edited line by line before writing."""

    file_path: str
    original_text: str
    lines: List[str]
    is_output: bool = False
    passthrough: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_text(cls, file_path: str, text: str, is_output: bool = False) -> "VaultDocument":
        return cls(file_path=file_path, original_text=text, lines=text.split('\n'), is_output=is_output)

    @property
    def text(self) -> str:
        return '\n'.join(self.lines)

    @property
    def changed(self) -> bool:
        return self.text != self.original_text


@dataclass
class CollectedVault:
    """Everything the text side contributes to a pass."""

    documents: List[VaultDocument]
    records: List[TaskRecord]
    known_ids: Set[str]
    ids_assigned: int = 0


class _ScannedLine(NamedTuple):
    raw: str
    ending: str
    tasks: List[ParsedTask]
    list_name: str


def _split_ending(raw: str) -> Tuple[str, str]:
    if raw.endswith('\r'):
        return raw[:-1], '\r'
    return raw, ''


class ObsidianTaskManager:
    """Reads tasks out of vault documents and applies edits back to them."""

    def __init__(
        self,
        exclusion_tag: str = DEFAULT_EXCLUSION_TAG,
        default_list: str = DEFAULT_LIST,
        logger: Optional[logging.Logger] = None,
    ):
        self.exclusion_tag = exclusion_tag
        self.default_list = default_list
        self.logger = logger or logging.getLogger(__name__)

    def _scan(self, document: VaultDocument) -> List[_ScannedLine]:
        scanned: List[_ScannedLine] = []
        current_list = self.default_list
        for raw in document.lines:
            line, ending = _split_ending(raw)
            if document.is_output:
                name = section_name(line)
                if name:
                    current_list = name
                    scanned.append(_ScannedLine(raw, ending, [], current_list))
                    continue
            scanned.append(_ScannedLine(raw, ending, parse_task_line(line, self.exclusion_tag), current_list))
        return scanned

    def collect(
        self,
        documents: List[VaultDocument],
        resolver: "IdentityResolver",
        designated_list: str,
    ) -> CollectedVault:
        """
        Parse documents and give every task a unique identifier.

        Embedded identifiers are claimed across all documents first, so a
        signature match can never take an id that appears later in the
        vault. Lines that need an identifier, a canonical identifier or a
        split are rewritten in place on the documents.

        Args:
            documents: Documents to parse, in a stable order
            resolver: Identity resolver for the pass
            designated_list: List assigned to tasks found in notes

        Returns:
            The collected records plus every identifier seen in text
        """
        scanned = [(doc, self._scan(doc)) for doc in documents]
        known_ids: Set[str] = set()
        duplicates: Set[Tuple[str, int, int]] = set()

        for doc, lines in scanned:
            for line_index, line in enumerate(lines):
                for position, task in enumerate(line.tasks):
                    if not task.task_id or task.excluded or not task.is_task:
                        continue
                    known_ids.add(task.task_id)
                    if not resolver.claim(task.task_id):
                        self.logger.warning(
                            "Duplicate task id %s in %s line %d; assigning a new id",
                            task.task_id, doc.file_path, line_index + 1,
                        )
                        duplicates.add((doc.file_path, line_index, position))

        # Excluded lines keep their ids; reserve them so nothing else takes them
        for _doc, lines in scanned:
            for line in lines:
                for task in line.tasks:
                    if task.task_id and (task.excluded or not task.is_task):
                        known_ids.add(task.task_id)
                        resolver.claim(task.task_id)

        records: List[TaskRecord] = []
        ids_assigned = 0

        for doc, lines in scanned:
            new_lines: List[str] = []
            doc.passthrough = {}
            for line_index, line in enumerate(lines):
                if not line.tasks:
                    new_lines.append(line.raw)
                    continue

                resolved: List[Tuple[ParsedTask, Optional[str]]] = []
                rewrite = len(line.tasks) > 1
                for position, task in enumerate(line.tasks):
                    if task.excluded or not task.is_task:
                        resolved.append((task, task.task_id))
                        continue
                    task_id = task.task_id
                    if task_id is None:
                        task_id = resolver.resolve(doc.file_path, task.title)
                    elif (doc.file_path, line_index, position) in duplicates:
                        task_id = resolver.mint()
                    if task_id != task.task_id:
                        ids_assigned += 1
                        rewrite = True
                    elif task.id_style != 'caret':
                        rewrite = True
                    resolved.append((task, task_id))

                if not rewrite:
                    new_lines.append(line.raw)
                for task, task_id in resolved:
                    if rewrite:
                        if task.excluded or not task.is_task:
                            new_lines.append(f"{task.indent}{task.raw}{line.ending}")
                        else:
                            new_lines.append(render_task(task, task_id) + line.ending)

                    if task.excluded:
                        if doc.is_output:
                            doc.passthrough.setdefault(line.list_name, []).append(
                                new_lines[-1].rstrip('\r')
                            )
                        continue
                    if not task.is_task:
                        continue
                    known_ids.add(task_id)
                    records.append(TaskRecord(
                        id=task_id,
                        title=task.title,
                        completed=task.completed,
                        due_date=task.due_date,
                        list_name=line.list_name if doc.is_output else designated_list,
                        location=SourceLocation(doc.file_path, len(new_lines)),
                    ))

            doc.lines = new_lines

        self.logger.debug(
            "Collected %d tasks from %d documents (%d ids assigned)",
            len(records), len(documents), ids_assigned,
        )
        return CollectedVault(documents=[doc for doc, _ in scanned], records=records,
                              known_ids=known_ids, ids_assigned=ids_assigned)

    def mark_completed(self, document: VaultDocument, task_id: str,
                       line_number: Optional[int] = None) -> bool:
        """
        Tick the checkbox of the task carrying ``task_id``.

        The recorded line is tried first; the whole document is searched if
        the line no longer holds that task.
        """
        candidates = list(range(len(document.lines)))
        if line_number is not None and 0 < line_number <= len(document.lines):
            candidates.insert(0, line_number - 1)

        for index in candidates:
            line, ending = _split_ending(document.lines[index])
            tasks = parse_task_line(line, self.exclusion_tag)
            if len(tasks) != 1 or tasks[0].task_id != task_id:
                continue
            task = tasks[0]
            if task.completed:
                return False
            document.lines[index] = render_task(task, task_id, completed=True) + ending
            return True

        self.logger.warning("Task %s not found in %s", task_id, document.file_path)
        return False

    def append_tasks(self, document: VaultDocument, records: List[TaskRecord]) -> None:
        """Append tasks at the end of a note, creating its heading if it is new."""
        if not records:
            return
        lines = document.lines
        if not any(line.strip() for line in lines):
            title = posixpath.splitext(posixpath.basename(document.file_path))[0]
            lines[:] = [f"# {title}", "", ""]
        if lines[-1] == '':
            lines.pop()
        for record in records:
            lines.append(format_task_line(record.title, record.completed, record.due_date, record.id))
            record.location = SourceLocation(document.file_path, len(lines))
        lines.append('')

    def remove_completed(self, document: VaultDocument) -> List[ParsedTask]:
        """
        Drop completed task lines from a note.

        Lines carrying the exclusion tag are left in place.

        Returns:
            The tasks whose lines were removed
        """
        removed: List[ParsedTask] = []
        kept: List[str] = []
        for raw in document.lines:
            tasks = [t for t in parse_task_line(raw, self.exclusion_tag) if t.is_task]
            if tasks and all(t.completed and not t.excluded for t in tasks):
                removed.extend(tasks)
                continue
            kept.append(raw)
        document.lines = kept
        return removed

    def strip_ids(self, document: VaultDocument) -> int:
        """Remove identifier tokens from every task line; returns how many."""
        stripped = 0
        for index, raw in enumerate(document.lines):
            line, ending = _split_ending(raw)
            tasks = parse_task_line(line, self.exclusion_tag)
            if not any(t.task_id and not t.excluded for t in tasks):
                continue
            rendered = []
            for task in tasks:
                if task.excluded:
                    rendered.append(task.raw)
                else:
                    stripped += 1 if task.task_id else 0
                    rendered.append(render_task(task).lstrip())
            document.lines[index] = tasks[0].indent + ' '.join(rendered) + ending
        return stripped

    @staticmethod
    def collapse_blank_lines(document: VaultDocument) -> None:
        document.lines = re.sub(r'\n{3,}', '\n\n', document.text).split('\n')

"""Merge pass between the vault's tasks and its Reminders lists."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
import logging

from ..core.exceptions import BackendWriteError
from ..core.models import (
    DELETE_UPSTREAM,
    ItemFailure,
    SourceLocation,
    TaskMapping,
    TaskRecord,
)
from ..reminders.tasks import RemindersTaskManager
from ..utils.notes import append_task_id
from .emitter import MarkdownEmitter
from .identity import IdentityResolver
from .mapping import MappingStore
from .resolver import ConflictResolver


@dataclass
class ReconcileContext:
    """Per-vault settings the merge pass needs."""

    vault_name: str
    designated_list: str
    excluded_lists: Set[str]
    inbox_document: str
    output_document: str
    deletion_policy: str = DELETE_UPSTREAM
    allow_deletions: bool = True
    available_lists: Set[str] = field(default_factory=set)

    def is_excluded(self, list_name: str) -> bool:
        return list_name in self.excluded_lists and list_name != self.designated_list

    def target_document(self, list_name: str) -> str:
        if list_name == self.designated_list:
            return self.inbox_document
        return self.output_document


@dataclass
class ReconcileResult:
    """What the merge pass decided, for the engine to apply to the vault."""

    completed_ids: Dict[str, Optional[SourceLocation]] = field(default_factory=dict)
    folded: Dict[str, List[TaskRecord]] = field(default_factory=dict)
    created: int = 0
    updated: int = 0
    deleted: int = 0
    folded_count: int = 0
    pruned: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    # (local id, entry it replaced) for every mapping recorded by a creation
    created_mappings: List[Tuple[str, Optional[TaskMapping]]] = field(default_factory=list)
    folded_mappings: Dict[str, List[str]] = field(default_factory=dict)
    # ids whose completion has not reached Reminders; their `[x]` lines are kept
    unsynced_completions: Set[str] = field(default_factory=set)
    pushed_completions: List[str] = field(default_factory=list)


class Reconciler:
    """Merges one vault's text snapshot with its Reminders snapshot.

    Backend writes are issued uncommitted and flushed once at the end;
    a record whose write fails is skipped and reported, never fatal.
    """

    def __init__(
        self,
        backend: RemindersTaskManager,
        mapping_store: MappingStore,
        resolver: IdentityResolver,
        context: ReconcileContext,
        dry_run: bool = True,
        emitter: Optional[MarkdownEmitter] = None,
        conflict_resolver: Optional[ConflictResolver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.backend = backend
        self.mapping_store = mapping_store
        self.resolver = resolver
        self.context = context
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)
        self.emitter = emitter or MarkdownEmitter(logger=self.logger)
        self.conflict_resolver = conflict_resolver or ConflictResolver(logger=self.logger)
        self._writes_issued = False

    def reconcile(self, text_records: List[TaskRecord], backend_records: List[TaskRecord],
                  known_ids: Set[str]) -> ReconcileResult:
        """
        Run the merge pass.

        Args:
            text_records: Backend-bound tasks collected from the vault
            backend_records: Reminders fetched for the vault's lists
            known_ids: Every task id present anywhere in the vault

        Returns:
            ReconcileResult describing the edits to apply to the text side
        """
        result = ReconcileResult()
        self._writes_issued = False

        text_by_id = {record.id: record for record in text_records}
        backend_by_id, unidentified = self._identify(backend_records)

        for task_id, text_task in text_by_id.items():
            backend_task = backend_by_id.get(task_id)
            if backend_task is not None:
                self._merge_pair(text_task, backend_task, result)
            else:
                self._create_backend(text_task, result)

        for task_id, backend_task in backend_by_id.items():
            if task_id not in text_by_id:
                self._handle_backend_only(backend_task, known_ids, result)

        for backend_task in unidentified:
            self._handle_unidentified(backend_task, result)

        self._prune_orphans(known_ids, backend_records, result)
        self._commit(result)

        self.logger.info(
            "Reconciled %d text and %d backend tasks: %d created, %d updated, "
            "%d deleted, %d folded, %d mappings pruned",
            len(text_records), len(backend_records), result.created, result.updated,
            result.deleted, result.folded_count, result.pruned,
        )
        return result

    # ------------------------------------------------------------------
    # Backend identity
    # ------------------------------------------------------------------
    def _identify(self, backend_records: List[TaskRecord]) -> Tuple[Dict[str, TaskRecord], List[TaskRecord]]:
        grouped: Dict[str, List[TaskRecord]] = {}
        unidentified: List[TaskRecord] = []
        for record in backend_records:
            if not record.id:
                entry = self.mapping_store.find_by_backend_id(record.backend_id)
                if entry is not None:
                    record.id = entry.local_id
            if record.id:
                grouped.setdefault(record.id, []).append(record)
            else:
                unidentified.append(record)

        identified: Dict[str, TaskRecord] = {}
        for task_id, records in grouped.items():
            winner = records[0]
            if len(records) > 1:
                entry = self.mapping_store.find_by_local_id(task_id)
                if entry is not None:
                    winner = next((r for r in records if r.backend_id == entry.backend_id), winner)
                self.logger.warning(
                    "%d reminders carry task id %s; using %s and leaving the rest alone",
                    len(records), task_id, winner.backend_id,
                )
            identified[task_id] = winner
        return identified, unidentified

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _fail(self, result: ReconcileResult, subject: str, error: BackendWriteError) -> None:
        self.logger.error("Reminders write failed for %s: %s", subject, error)
        result.failures.append(ItemFailure.from_error(subject, error))

    def _ensure_list(self, list_name: str) -> None:
        if list_name in self.context.available_lists:
            return
        if not self.dry_run:
            self.backend.ensure_list(list_name)
            self._writes_issued = True
        self.context.available_lists.add(list_name)

    def _record_mapping(self, local_id: str, backend_id: str, file_path: str, title: str) -> Optional[TaskMapping]:
        previous = self.mapping_store.find_by_local_id(local_id)
        self.mapping_store.upsert(TaskMapping(local_id, backend_id, file_path, title))
        return previous

    def _merge_pair(self, text_task: TaskRecord, backend_task: TaskRecord, result: ReconcileResult) -> None:
        decisions = self.conflict_resolver.resolve_conflicts(text_task, backend_task)
        if decisions['status_winner'] == 'backend':
            self.logger.debug("Task %s completed in Reminders; marking it done in text", text_task.id)
            result.completed_ids[text_task.id] = text_task.location

        updates: Dict[str, Any] = self.conflict_resolver.backend_updates(text_task, backend_task, decisions)
        if updates:
            try:
                if 'list_name' in updates:
                    self._ensure_list(updates['list_name'])
                if not self.dry_run:
                    self.backend.update_task(backend_task.backend_id, **updates)
                    self._writes_issued = True
            except BackendWriteError as exc:
                if updates.get('completed'):
                    result.unsynced_completions.add(text_task.id)
                self._fail(result, text_task.title, exc)
                return
            if updates.get('completed') and not self.dry_run:
                result.pushed_completions.append(text_task.id)
            self.logger.debug("Updated reminder %s: %s", backend_task.backend_id, sorted(updates))
            result.updated += 1

        if not self.dry_run:
            self._record_mapping(text_task.id, backend_task.backend_id,
                                 text_task.file_path or '', text_task.title)

    def _create_backend(self, text_task: TaskRecord, result: ReconcileResult) -> None:
        if text_task.completed:
            self.logger.debug("Not creating a reminder for completed task %s", text_task.id)
            return
        if self.context.is_excluded(text_task.list_name):
            self.logger.warning(
                "Task '%s' is in excluded list '%s'; no reminder created",
                text_task.title, text_task.list_name,
            )
            return

        if self.dry_run:
            self.logger.debug("Would create reminder for '%s' in %s", text_task.title, text_task.list_name)
            result.created += 1
            return

        try:
            self._ensure_list(text_task.list_name)
            backend_id = self.backend.create_task(text_task, self.context.vault_name)
            self._writes_issued = True
        except BackendWriteError as exc:
            self._fail(result, text_task.title, exc)
            return

        previous = self._record_mapping(text_task.id, backend_id, text_task.file_path or '', text_task.title)
        result.created_mappings.append((text_task.id, previous))
        result.created += 1

    def _handle_backend_only(self, backend_task: TaskRecord, known_ids: Set[str],
                             result: ReconcileResult) -> None:
        if backend_task.id in known_ids:
            self.logger.debug("Task %s is still in the vault; leaving its reminder alone", backend_task.id)
            return

        entry = (self.mapping_store.find_by_local_id(backend_task.id)
                 or self.mapping_store.find_by_backend_id(backend_task.backend_id))
        if entry is None:
            if not backend_task.completed:
                self._fold(backend_task, result)
            return

        if self.context.deletion_policy != DELETE_UPSTREAM:
            self.logger.debug("Task %s left the vault; keeping its reminder", backend_task.id)
            return
        if not self.context.allow_deletions:
            self.logger.info("Skipping deletion of reminder %s: vault scan was incomplete",
                             backend_task.backend_id)
            return
        if backend_task.completed:
            return

        if not self.dry_run:
            try:
                self.backend.delete_task(backend_task.backend_id)
                self._writes_issued = True
            except BackendWriteError as exc:
                self._fail(result, backend_task.title, exc)
                return
            self.mapping_store.remove(lambda e: e.local_id == entry.local_id)
        self.logger.debug("Deleted reminder %s: task %s left the vault",
                          backend_task.backend_id, backend_task.id)
        result.deleted += 1
        result.pruned += 1

    def _handle_unidentified(self, backend_task: TaskRecord, result: ReconcileResult) -> None:
        if backend_task.completed:
            return
        if not self.emitter.can_round_trip(backend_task):
            self.logger.warning("Reminder '%s' cannot be written as a task line; not folded",
                                backend_task.title)
            return

        task_id = self.resolver.mint()
        if not self.dry_run:
            try:
                self.backend.update_task(backend_task.backend_id,
                                         notes=append_task_id(backend_task.notes, task_id))
                self._writes_issued = True
            except BackendWriteError as exc:
                self._fail(result, backend_task.title, exc)
                return
        backend_task.id = task_id
        self._fold(backend_task, result)

    def _fold(self, backend_task: TaskRecord, result: ReconcileResult) -> None:
        if not self.emitter.can_round_trip(backend_task):
            self.logger.warning("Reminder '%s' cannot be written as a task line; not folded",
                                backend_task.title)
            return

        target = self.context.target_document(backend_task.list_name)
        folded = TaskRecord(
            id=backend_task.id,
            title=backend_task.title,
            completed=False,
            due_date=backend_task.due_date,
            list_name=backend_task.list_name,
            location=SourceLocation(target, 0),
            backend_id=backend_task.backend_id,
        )
        result.folded.setdefault(target, []).append(folded)
        result.folded_count += 1
        self.logger.debug("Folding reminder '%s' into %s", backend_task.title, target)

        if not self.dry_run:
            self._record_mapping(folded.id, folded.backend_id, target, folded.title)
            result.folded_mappings.setdefault(target, []).append(folded.id)

    def _prune_orphans(self, known_ids: Set[str], backend_records: List[TaskRecord],
                       result: ReconcileResult) -> None:
        if not self.context.allow_deletions:
            return
        backend_ids = {record.backend_id for record in backend_records}
        folded_ids = {r.id for records in result.folded.values() for r in records}

        def is_orphan(entry: TaskMapping) -> bool:
            return (entry.local_id not in known_ids
                    and entry.local_id not in folded_ids
                    and entry.backend_id not in backend_ids)

        if self.dry_run:
            result.pruned += sum(1 for entry in self.mapping_store if is_orphan(entry))
            return
        pruned = self.mapping_store.remove(is_orphan)
        if pruned:
            self.logger.debug("Pruned %d orphaned mappings", pruned)
        result.pruned += pruned

    def _commit(self, result: ReconcileResult) -> None:
        if self.dry_run or not self._writes_issued:
            return
        try:
            self.backend.commit()
        except BackendWriteError as exc:
            self.logger.error("Committing Reminders changes failed: %s", exc)
            result.failures.append(ItemFailure.from_error("commit", exc))
            result.unsynced_completions.update(result.pushed_completions)
            self.rollback_created(result)

    def rollback_created(self, result: ReconcileResult) -> None:
        """Undo the mappings recorded for reminders created in this pass."""
        for local_id, previous in reversed(result.created_mappings):
            self.mapping_store.remove(lambda e, local_id=local_id: e.local_id == local_id)
            if previous is not None:
                self.mapping_store.upsert(previous)
        result.created_mappings = []
        result.created = 0

    def rollback_folded(self, result: ReconcileResult, document: str) -> int:
        """Undo the mappings of tasks folded into a document that failed to write."""
        local_ids = set(result.folded_mappings.pop(document, []))
        if not local_ids:
            return 0
        return self.mapping_store.remove(lambda e: e.local_id in local_ids)

"""Main sync engine orchestrating the synchronization process."""

import os
from typing import Callable, Dict, List, Optional, Set, Tuple
import logging

from ..core.exceptions import BackendWriteError, DocumentReadError, DocumentWriteError
from ..core.models import ItemFailure, SyncConfig, SyncSummary, TaskRecord, Vault
from ..obsidian.tasks import ObsidianTaskManager, VaultDocument
from ..obsidian.vault import VaultStore
from ..reminders.gateway import RemindersGateway
from ..reminders.tasks import RemindersTaskManager
from ..utils.notes import extract_task_id, strip_task_ids
from .emitter import MarkdownEmitter
from .identity import IdentityResolver
from .mapping import MappingStore
from .reconciler import ReconcileContext, ReconcileResult, Reconciler


LEGACY_STATE_FILES = ("._TaskDB.json", "._ConsolidatedIds.json")


class SyncEngine:
    """Runs sync passes for one vault at a time.

    Every pass defaults to a dry run: it reports what would change and
    writes nothing to the vault, Reminders or the mapping file.
    """

    def __init__(
        self,
        config: SyncConfig,
        gateway: Optional[RemindersGateway] = None,
        logger: Optional[logging.Logger] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.id_factory = id_factory

        self.rem_manager = RemindersTaskManager(gateway, logger=self.logger)
        self.obs_manager = ObsidianTaskManager(
            exclusion_tag=config.exclusion_tag,
            default_list=config.default_list,
            logger=self.logger,
        )
        self.emitter = MarkdownEmitter(
            default_list=config.default_list,
            exclusion_tag=config.exclusion_tag,
            logger=self.logger,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _vault_store(self, vault: Vault) -> VaultStore:
        return VaultStore(
            vault.path,
            output_document=self.config.output_document,
            reserved_prefixes=self.config.reserved_prefixes,
            logger=self.logger,
        )

    def _mapping_store(self, vault: Vault) -> MappingStore:
        return MappingStore(os.path.join(vault.path, self.config.mapping_file), logger=self.logger)

    def _read_documents(self, store: VaultStore, summary: SyncSummary,
                        include_output: bool = True) -> List[VaultDocument]:
        paths = [(path, False) for path in store.iter_documents()]
        if include_output and store.exists(self.config.output_document):
            paths.append((self.config.output_document, True))

        documents: List[VaultDocument] = []
        for path, is_output in paths:
            try:
                text = store.read(path)
            except DocumentReadError as exc:
                self.logger.warning("Skipping %s: %s", path, exc)
                summary.documents_skipped += 1
                summary.failures.append(ItemFailure.from_error(path, exc))
                continue
            documents.append(VaultDocument.from_text(path, text, is_output=is_output))
        summary.documents_scanned = len(documents)
        return documents

    def _write_documents(self, store: VaultStore, documents: List[VaultDocument],
                         summary: SyncSummary, dry_run: bool) -> List[str]:
        """Write changed documents; returns the paths that failed."""
        failed: List[str] = []
        for document in documents:
            if not document.changed:
                continue
            if dry_run:
                self.logger.debug("Would write %s", document.file_path)
                summary.documents_written += 1
                continue
            try:
                store.write(document.file_path, document.text)
            except DocumentWriteError as exc:
                self.logger.error("Failed to write %s: %s", document.file_path, exc)
                summary.failures.append(ItemFailure.from_error(document.file_path, exc))
                failed.append(document.file_path)
                continue
            summary.documents_written += 1
        return failed

    def _backend_lists(self, vault: Vault, dry_run: bool,
                       summary: SyncSummary) -> Tuple[List[str], Set[str], Set[str]]:
        """Lists to fetch, lists that exist, and the exclusion set."""
        designated = vault.designated_list
        available = set(self.rem_manager.list_names())
        if designated not in available:
            if dry_run:
                self.logger.info("Would create Reminders list '%s'", designated)
            else:
                try:
                    self.rem_manager.ensure_list(designated)
                    available.add(designated)
                except BackendWriteError as exc:
                    self.logger.error("Cannot create Reminders list '%s': %s", designated, exc)
                    summary.failures.append(ItemFailure.from_error(designated, exc))

        excluded = set(self.config.excluded_lists_for(vault))
        fetch = [designated] + sorted(name for name in available if name not in excluded)
        return fetch, available, excluded

    def _save_mapping(self, mapping_store: MappingStore, dry_run: bool) -> None:
        if dry_run or not mapping_store.dirty:
            return
        mapping_store.save()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------
    def run(self, vault: Vault, dry_run: bool = True) -> SyncSummary:
        """
        Perform one reconciliation pass between a vault and Reminders.

        Args:
            vault: Vault to sync
            dry_run: Report changes without writing anything

        Returns:
            SyncSummary with counts and per-item failures

        Raises:
            AuthorizationError: Reminders access is denied
            BackendFetchError: the Reminders snapshot could not be fetched
            MappingStoreWriteError: the mapping file could not be saved
        """
        self.logger.info("Starting sync for vault '%s' (dry_run=%s)", vault.name, dry_run)
        summary = SyncSummary(vault_name=vault.name, dry_run=dry_run)

        self.rem_manager.authorize()

        mapping_store = self._mapping_store(vault).load()
        store = self._vault_store(vault)

        self.logger.info("Collecting vault tasks...")
        documents = self._read_documents(store, summary)
        resolver = IdentityResolver(mapping_store, id_factory=self.id_factory, logger=self.logger)
        collected = self.obs_manager.collect(documents, resolver, vault.designated_list)
        summary.text_tasks = len(collected.records)
        summary.ids_assigned = collected.ids_assigned

        self.logger.info("Collecting Reminders tasks...")
        fetch_lists, available, excluded = self._backend_lists(vault, dry_run, summary)
        backend_records = self.rem_manager.list_tasks(fetch_lists)
        summary.backend_tasks = len(backend_records)

        context = ReconcileContext(
            vault_name=vault.name,
            designated_list=vault.designated_list,
            excluded_lists=excluded,
            inbox_document=self.config.inbox_document,
            output_document=self.config.output_document,
            deletion_policy=self.config.deletion_policy,
            allow_deletions=summary.documents_skipped == 0,
            available_lists=available,
        )
        if not context.allow_deletions:
            self.logger.warning("Some documents could not be read; deletions are disabled for this pass")

        reconciler = Reconciler(
            self.rem_manager, mapping_store, resolver, context,
            dry_run=dry_run, emitter=self.emitter, logger=self.logger,
        )
        result = reconciler.reconcile(collected.records, backend_records, collected.known_ids)

        read_paths = {doc.file_path for doc in collected.documents}
        for path in list(result.folded):
            if path not in read_paths and store.exists(path):
                # The target exists but could not be read; never overwrite it
                dropped = result.folded.pop(path)
                result.folded_count -= len(dropped)
                reconciler.rollback_folded(result, path)
                self.logger.warning("Not folding %d reminders into unreadable %s", len(dropped), path)

        self.logger.info("Applying vault changes...")
        documents = self._apply_text_edits(collected.documents, collected.records, result, summary)
        for path in self._write_documents(store, documents, summary, dry_run):
            rolled_back = reconciler.rollback_folded(result, path)
            if rolled_back:
                self.logger.warning("Dropped %d mappings for tasks not written to %s", rolled_back, path)

        self._save_mapping(mapping_store, dry_run)

        summary.created = result.created
        summary.updated = result.updated
        summary.deleted = result.deleted
        summary.folded = result.folded_count
        summary.mappings_pruned = result.pruned
        summary.failures.extend(result.failures)

        self.logger.info("Sync for vault '%s' finished: %s", vault.name, summary.to_dict()["changes"])
        return summary

    def _apply_text_edits(self, documents: List[VaultDocument], records: List[TaskRecord],
                          result: ReconcileResult, summary: SyncSummary) -> List[VaultDocument]:
        by_path: Dict[str, VaultDocument] = {doc.file_path: doc for doc in documents}
        records_by_id = {record.id: record for record in records}
        output_path = self.config.output_document

        for task_id, location in result.completed_ids.items():
            record = records_by_id.get(task_id)
            if record is not None:
                record.completed = True
            if location is None or location.file_path not in by_path:
                continue
            if location.file_path == output_path:
                summary.completed_in_text += 1
            elif self.obs_manager.mark_completed(by_path[location.file_path], task_id, location.line_number):
                summary.completed_in_text += 1

        inbox_path = self.config.inbox_document
        if result.folded.get(inbox_path):
            inbox = by_path.get(inbox_path)
            if inbox is None:
                inbox = VaultDocument.from_text(inbox_path, "")
                by_path[inbox_path] = inbox
            self.obs_manager.append_tasks(inbox, result.folded[inbox_path])

        output = by_path.get(output_path)
        output_records = [r for r in records if r.file_path == output_path]
        output_records.extend(result.folded.get(output_path, []))
        passthrough = output.passthrough if output is not None else {}
        rendered = self.emitter.render(output_records, passthrough,
                                      keep_completed=result.unsynced_completions)
        if output is not None or rendered:
            if output is None:
                output = VaultDocument.from_text(output_path, "", is_output=True)
                by_path[output_path] = output
            output.lines = rendered.split('\n')

        return list(by_path.values())

    def prune_completed(self, vault: Vault, dry_run: bool = True) -> SyncSummary:
        """
        Remove completed tasks from the notes and their reminders.

        Completed task lines are dropped from the notes, completed reminders
        that are linked to a vault task are deleted, and the mappings of
        both are pruned.
        """
        self.logger.info("Pruning completed tasks for vault '%s' (dry_run=%s)", vault.name, dry_run)
        summary = SyncSummary(vault_name=vault.name, dry_run=dry_run)

        self.rem_manager.authorize()
        mapping_store = self._mapping_store(vault).load()
        store = self._vault_store(vault)

        documents = self._read_documents(store, summary, include_output=False)
        removed_ids: Set[str] = set()
        for document in documents:
            removed = self.obs_manager.remove_completed(document)
            summary.lines_removed += len(removed)
            removed_ids.update(task.task_id for task in removed if task.task_id)

        fetch_lists, _available, _excluded = self._backend_lists(vault, True, summary)
        backend_records = self.rem_manager.list_tasks(fetch_lists)
        summary.backend_tasks = len(backend_records)

        deleted_ids: Set[str] = set()
        writes_issued = False
        for record in backend_records:
            task_id = extract_task_id(record.notes)
            entry = (mapping_store.find_by_backend_id(record.backend_id)
                     or (mapping_store.find_by_local_id(task_id) if task_id else None))
            if entry is None:
                continue
            if not (record.completed or entry.local_id in removed_ids):
                continue
            if not dry_run:
                try:
                    self.rem_manager.delete_task(record.backend_id)
                    writes_issued = True
                except BackendWriteError as exc:
                    self.logger.error("Failed to delete reminder %s: %s", record.backend_id, exc)
                    summary.failures.append(ItemFailure.from_error(record.title, exc))
                    continue
            summary.deleted += 1
            deleted_ids.add(entry.local_id)

        if writes_issued:
            try:
                self.rem_manager.commit()
            except BackendWriteError as exc:
                self.logger.error("Committing Reminders changes failed: %s", exc)
                summary.failures.append(ItemFailure.from_error("commit", exc))
                deleted_ids = set()

        prune_ids = deleted_ids | removed_ids
        if dry_run:
            summary.mappings_pruned = sum(1 for entry in mapping_store if entry.local_id in prune_ids)
        else:
            summary.mappings_pruned = mapping_store.remove(lambda e: e.local_id in prune_ids)

        self._write_documents(store, documents, summary, dry_run)
        self._save_mapping(mapping_store, dry_run)
        return summary

    def reset(self, vault: Vault, dry_run: bool = True) -> SyncSummary:
        """
        Return a vault to its pre-sync state.

        Identifiers and completed task lines are removed from the notes and
        the mapping file is deleted. Reminders is not touched.
        """
        self.logger.info("Resetting vault '%s' (dry_run=%s)", vault.name, dry_run)
        summary = SyncSummary(vault_name=vault.name, dry_run=dry_run)
        store = self._vault_store(vault)

        documents = self._read_documents(store, summary, include_output=False)
        for document in documents:
            summary.lines_removed += len(self.obs_manager.remove_completed(document))
            summary.ids_removed += self.obs_manager.strip_ids(document)
            self.obs_manager.collapse_blank_lines(document)
        self._write_documents(store, documents, summary, dry_run)

        mapping_store = self._mapping_store(vault).load()
        summary.mappings_pruned = len(mapping_store)
        if not dry_run:
            mapping_store.delete_file()
            for name in LEGACY_STATE_FILES:
                if store.remove(name):
                    self.logger.info("Removed legacy state file %s", name)
        return summary

    def clear_backend_ids(self, vault: Vault, dry_run: bool = True) -> SyncSummary:
        """Strip task identifiers from reminder notes in the mirrored lists."""
        self.logger.info("Clearing task ids from Reminders for vault '%s' (dry_run=%s)", vault.name, dry_run)
        summary = SyncSummary(vault_name=vault.name, dry_run=dry_run)

        self.rem_manager.authorize()
        excluded = set(self.config.excluded_lists_for(vault))
        lists = [name for name in self.rem_manager.list_names() if name not in excluded]
        records = self.rem_manager.list_tasks(lists)
        summary.backend_tasks = len(records)

        writes_issued = False
        for record in records:
            if not record.notes:
                continue
            cleaned = strip_task_ids(record.notes)
            if cleaned == record.notes.strip():
                continue
            if not dry_run:
                try:
                    self.rem_manager.update_task(record.backend_id, notes=cleaned)
                    writes_issued = True
                except BackendWriteError as exc:
                    self.logger.error("Failed to update reminder %s: %s", record.backend_id, exc)
                    summary.failures.append(ItemFailure.from_error(record.title, exc))
                    continue
            summary.ids_removed += 1
            summary.updated += 1

        if writes_issued:
            try:
                self.rem_manager.commit()
            except BackendWriteError as exc:
                self.logger.error("Committing Reminders changes failed: %s", exc)
                summary.failures.append(ItemFailure.from_error("commit", exc))
        return summary

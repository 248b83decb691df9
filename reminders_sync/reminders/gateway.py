"""Apple Reminders gateway using EventKit."""

import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from reminders_sync.core.exceptions import (
    RemindersError,
    AuthorizationError,
    EventKitImportError,
    BackendFetchError,
    BackendWriteError,
)


@dataclass
class ReminderData:
    """One reminder as read from EventKit, with dates as ISO strings."""
    uuid: str
    title: str
    completed: bool
    due_date: Optional[str] = None
    notes: Optional[str] = None
    list_id: Optional[str] = None
    list_name: Optional[str] = None


class RemindersGateway:
    """Gateway for Apple Reminders via EventKit.

    Writes are saved without committing; call ``commit`` once the pass has
    issued all of them.
    """

    FETCH_TIMEOUT = 30  # seconds
    AUTH_TIMEOUT = 30  # seconds

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._store = None
        self._authorized = False

    def _ensure_eventkit(self):
        """Bind the PyObjC EventKit classes, failing with install instructions."""
        try:
            from EventKit import (
                EKEventStore, EKEntityTypeReminder, EKReminder, EKCalendar,
                EKAuthorizationStatusAuthorized
            )
            from Foundation import NSRunLoop, NSDate, NSDateComponents

            self._EKEventStore = EKEventStore
            self._EKEntityTypeReminder = EKEntityTypeReminder
            self._EKReminder = EKReminder
            self._EKCalendar = EKCalendar
            self._EKAuthorizationStatusAuthorized = EKAuthorizationStatusAuthorized
            self._NSRunLoop = NSRunLoop
            self._NSDate = NSDate
            self._NSDateComponents = NSDateComponents

        except ImportError as e:
            self.logger.error("PyObjC EventKit bindings missing: %s", e)
            raise EventKitImportError(
                "Apple Reminders access needs the PyObjC EventKit bindings:\n"
                "  pip install 'reminders-sync[macos]'\n"
                f"({e})"
            ) from e

    def _wait_for(self, done: threading.Event, timeout: float, error_cls, message: str) -> None:
        """Spin the run loop until an EventKit callback fires."""
        start_time = time.time()
        while not done.is_set():
            if time.time() - start_time > timeout:
                raise error_cls(message)
            self._NSRunLoop.currentRunLoop().runUntilDate_(
                self._NSDate.dateWithTimeIntervalSinceNow_(0.1)
            )

    def authorize(self) -> None:
        """Obtain access to reminders, prompting the user if needed.

        Raises:
            EventKitImportError: PyObjC is not installed
            AuthorizationError: access is denied, restricted or timed out
        """
        self._get_store()

    def _get_store(self):
        """Get or create the EventKit store, requesting access once."""
        if self._store is not None and self._authorized:
            return self._store

        self._ensure_eventkit()

        try:
            self._store = self._EKEventStore.alloc().init()
            self.logger.debug("Opened EventKit store")
        except Exception as e:
            self.logger.error("Could not open EventKit store: %s", e)
            raise RemindersError(f"Failed to initialize EventKit store: {e}") from e

        status = int(self._EKEventStore.authorizationStatusForEntityType_(self._EKEntityTypeReminder))
        if status == int(self._EKAuthorizationStatusAuthorized):
            self.logger.debug("Reminders access already granted")
            self._authorized = True
            return self._store

        if status == 1:  # Restricted
            raise AuthorizationError(
                "Reminders access is blocked on this Mac.\n"
                "Screen Time or a management profile restricts it."
            )
        if status == 2:  # Denied
            raise AuthorizationError(
                "Reminders access was turned off for this terminal.\n"
                "To fix this:\n"
                "  1. Open System Settings > Privacy & Security > Reminders\n"
                "  2. Enable access for your terminal application\n"
                "  3. Run the command again"
            )

        self.logger.info("Asking macOS for Reminders access")
        done = threading.Event()
        outcome = {'granted': False, 'error': None}

        def on_access(granted, error):
            outcome['granted'] = granted
            outcome['error'] = error
            done.set()

        self._store.requestAccessToEntityType_completion_(self._EKEntityTypeReminder, on_access)
        self._wait_for(
            done, self.AUTH_TIMEOUT, AuthorizationError,
            f"Authorization request timed out after {self.AUTH_TIMEOUT} seconds.\n"
            "Answer the macOS permission prompt, then retry."
        )

        if not outcome['granted']:
            detail = f": {outcome['error']}" if outcome['error'] else ""
            raise AuthorizationError(f"User denied access to Reminders{detail}")

        self._authorized = True
        self.logger.info("Reminders access granted")
        return self._store

    def _calendars(self):
        return self._get_store().calendarsForEntityType_(self._EKEntityTypeReminder) or []

    def _calendar_named(self, name: str):
        for cal in self._calendars():
            if str(cal.title() or '') == name:
                return cal
        return None

    def get_lists(self) -> List[Dict[str, str]]:
        """Return every reminder list as `{id, name}`."""
        try:
            return [
                {'id': str(cal.calendarIdentifier()), 'name': str(cal.title() or 'Untitled')}
                for cal in self._calendars()
            ]
        except RemindersError:
            raise
        except Exception as e:
            self.logger.error("Listing reminder lists failed: %s", e)
            raise BackendFetchError(f"Failed to retrieve reminder lists: {e}") from e

    def ensure_list(self, name: str) -> str:
        """Return the id of the list called ``name``, creating it if absent."""
        existing = self._calendar_named(name)
        if existing is not None:
            return str(existing.calendarIdentifier())

        store = self._get_store()
        try:
            calendar = self._EKCalendar.calendarForEntityType_eventStore_(self._EKEntityTypeReminder, store)
            calendar.setTitle_(name)
            default = store.defaultCalendarForNewReminders()
            source = default.source() if default is not None else None
            if source is None:
                sources = [s for s in (store.sources() or []) if int(s.sourceType()) == 0]
                source = sources[0] if sources else None
            if source is None:
                raise BackendWriteError(f"No account available to hold list '{name}'")
            calendar.setSource_(source)
            success, error = store.saveCalendar_commit_error_(calendar, True, None)
        except BackendWriteError:
            raise
        except Exception as e:
            raise BackendWriteError(f"Failed to create list '{name}': {e}") from e
        if not success:
            raise BackendWriteError(f"Failed to create list '{name}': {error}")
        self.logger.info(f"Created Reminders list '{name}'")
        return str(calendar.calendarIdentifier())

    def get_reminders(self, list_names: Optional[List[str]] = None) -> List[ReminderData]:
        """Fetch reminders from the named lists (all lists when None)."""
        store = self._get_store()

        try:
            all_cals = self._calendars()
            if list_names is not None:
                calendars = [c for c in all_cals if str(c.title() or '') in list_names]
            else:
                calendars = list(all_cals)
            if not calendars:
                self.logger.debug(f"No calendars found for lists: {list_names}")
                return []
            predicate = store.predicateForRemindersInCalendars_(calendars)
        except Exception as e:
            self.logger.error("Building the reminder query failed: %s", e)
            raise BackendFetchError(f"Failed to prepare reminder fetch: {e}") from e

        reminders = []
        done = threading.Event()

        def on_fetched(fetched_reminders):
            if fetched_reminders:
                reminders.extend(list(fetched_reminders))
            done.set()

        try:
            store.fetchRemindersMatchingPredicate_completion_(predicate, on_fetched)
        except Exception as e:
            raise BackendFetchError(f"Failed to fetch reminders: {e}") from e
        self._wait_for(
            done, self.FETCH_TIMEOUT, BackendFetchError,
            f"Reminder fetch timed out after {self.FETCH_TIMEOUT} seconds."
        )

        result = []
        for rem in reminders:
            try:
                result.append(self._to_reminder_data(rem))
            except Exception as e:
                raise BackendFetchError(f"Failed to read reminder: {e}") from e
        return result

    def _to_reminder_data(self, rem) -> ReminderData:
        due_date = None
        due_components = rem.dueDateComponents()
        if due_components:
            year, month, day = due_components.year(), due_components.month(), due_components.day()
            if 0 < year < 10000 and 0 < month <= 12 and 0 < day <= 31:
                due_date = f"{year:04d}-{month:02d}-{day:02d}"

        cal = rem.calendar()

        return ReminderData(
            uuid=str(rem.calendarItemIdentifier()),
            title=str(rem.title() or ''),
            completed=bool(rem.isCompleted()),
            due_date=due_date,
            notes=str(rem.notes()) if rem.notes() else None,
            list_id=str(cal.calendarIdentifier()) if cal else None,
            list_name=str(cal.title() or 'Untitled') if cal else None,
        )

    def _due_components(self, due_date: Optional[str]):
        if not due_date:
            return None
        year, month, day = (int(part) for part in due_date.split('-'))
        components = self._NSDateComponents.alloc().init()
        components.setYear_(year)
        components.setMonth_(month)
        components.setDay_(day)
        return components

    def _find_reminder(self, uuid: str):
        reminder = self._get_store().calendarItemWithIdentifier_(uuid)
        if reminder is None:
            raise BackendWriteError(f"Reminder {uuid} not found")
        return reminder

    def create_reminder(self, title: str, list_name: str, completed: bool = False,
                        due_date: Optional[str] = None, notes: Optional[str] = None) -> str:
        """Create a reminder in ``list_name`` and return its identifier."""
        store = self._get_store()
        calendar = self._calendar_named(list_name)
        if calendar is None:
            raise BackendWriteError(f"List '{list_name}' not found")
        try:
            reminder = self._EKReminder.reminderWithEventStore_(store)
            reminder.setTitle_(title)
            reminder.setCalendar_(calendar)
            reminder.setCompleted_(bool(completed))
            if due_date:
                reminder.setDueDateComponents_(self._due_components(due_date))
            if notes:
                reminder.setNotes_(notes)
            success, error = store.saveReminder_commit_error_(reminder, False, None)
        except Exception as e:
            raise BackendWriteError(f"Failed to create reminder '{title}': {e}") from e
        if not success:
            raise BackendWriteError(f"Failed to save reminder '{title}': {error}")
        new_id = str(reminder.calendarItemIdentifier())
        self.logger.debug("Saved new reminder %s in %s", new_id, list_name)
        return new_id

    def update_reminder(self, uuid: str, **updates) -> None:
        """Update fields of an existing reminder.

        Accepted fields: title, completed, due_date (None clears it),
        list_name and notes.
        """
        store = self._get_store()
        reminder = self._find_reminder(uuid)
        try:
            if 'title' in updates:
                reminder.setTitle_(updates['title'])
            if 'completed' in updates:
                reminder.setCompleted_(bool(updates['completed']))
            if 'due_date' in updates:
                reminder.setDueDateComponents_(self._due_components(updates['due_date']))
            if 'list_name' in updates:
                calendar = self._calendar_named(updates['list_name'])
                if calendar is None:
                    raise BackendWriteError(f"List '{updates['list_name']}' not found")
                reminder.setCalendar_(calendar)
            if 'notes' in updates:
                reminder.setNotes_(updates['notes'] or None)
            success, error = store.saveReminder_commit_error_(reminder, False, None)
        except BackendWriteError:
            raise
        except Exception as e:
            raise BackendWriteError(f"Failed to update reminder {uuid}: {e}") from e
        if not success:
            raise BackendWriteError(f"Failed to update reminder {uuid}: {error}")

    def delete_reminder(self, uuid: str) -> None:
        """Delete a reminder."""
        store = self._get_store()
        reminder = self._find_reminder(uuid)
        try:
            success, error = store.removeReminder_commit_error_(reminder, False, None)
        except Exception as e:
            raise BackendWriteError(f"Failed to delete reminder {uuid}: {e}") from e
        if not success:
            raise BackendWriteError(f"Failed to delete reminder {uuid}: {error}")

    def commit(self) -> None:
        """Flush every pending write to the Reminders database."""
        store = self._get_store()
        try:
            success, error = store.commit_(None)
        except Exception as e:
            raise BackendWriteError(f"Failed to commit reminders: {e}") from e
        if not success:
            raise BackendWriteError(f"Failed to commit reminders: {error}")

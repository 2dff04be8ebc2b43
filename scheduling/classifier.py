"""Classification of storage mutations into scheduling notifications.

A storage transaction reports raw creations, updates and deletions. Several
of them often describe one logical change: a new occurrence exception shows
up as a creation plus an update of the series master, a series-wide edit
as one update per stored occurrence. The classifier folds such groups into
a single NotificationIntent and drops mutations that do not concern other
participants at all (alarm-only exceptions, folder moves).

Every mutation record ends up in exactly one terminal state:

- EMITTED: produced exactly one intent
- HANDLED: folded into the intent of another record
- IGNORED: no notification warranted
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.event import AttendeeField, Event, EventField
from models.mutation import CalendarTransaction, CreateResult, DeleteResult, UpdateResult
from models.notification import ChangeType, NotificationIntent
from scheduling.differ import EVENT_DIFFER, Differ
from scheduling.ports import RecurrenceService

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = frozenset({
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
    EventField.MODIFIED_BY,
})

# Fields not compared when deciding whether a new occurrence exception only
# carries personal data of the attendee who created it.
IGNORABLE_EXCEPTION_FIELDS = frozenset({
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
    EventField.MODIFIED_BY,
    EventField.CREATED,
    EventField.CREATED_BY,
    EventField.START_DATE,
    EventField.END_DATE,
    EventField.RECURRENCE_RULE,
    EventField.RECURRENCE_ID,
    EventField.ALARMS,
    EventField.EXTENDED_PROPERTIES,
    EventField.CHANGE_EXCEPTION_DATES,
    EventField.DELETE_EXCEPTION_DATES,
    EventField.ID,
    EventField.ATTENDEE_PRIVILEGES,
})

NOT_MOVE_FIELDS = frozenset(EventField) - {
    EventField.ATTENDEES,
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
}


class MutationKind(str, Enum):
    """Kind of a mutation record."""

    CREATION = "creation"
    UPDATE = "update"
    DELETION = "deletion"


class RecordState(str, Enum):
    """Processing state of a mutation record."""

    PENDING = "pending"
    HANDLED = "handled"
    IGNORED = "ignored"
    EMITTED = "emitted"


RecordKey = tuple[MutationKind, int]


class Classification(BaseModel):
    """Outcome of classifying one transaction.

    Args:
        intents: Notifications to send, in emission order.
        states: Terminal state per mutation record, keyed by kind and index.
    """

    intents: list[NotificationIntent] = Field(default_factory=list, description="Emitted intents")
    states: dict[RecordKey, RecordState] = Field(default_factory=dict, description="Record states")

    def state_of(self, kind: MutationKind, index: int) -> RecordState:
        return self.states.get((kind, index), RecordState.PENDING)

    def is_pending(self, kind: MutationKind, index: int) -> bool:
        return self.state_of(kind, index) == RecordState.PENDING

    def mark(self, kind: MutationKind, index: int, state: RecordState) -> None:
        self.states[(kind, index)] = state

    def emit(
        self,
        key: Optional[RecordKey],
        change_type: ChangeType,
        original: Optional[Event],
        update: Event,
        exceptions: Sequence[Event] = (),
    ) -> NotificationIntent:
        """Record an intent and mark the record it stems from as emitted.

        Raises:
            RuntimeError: If the record has already produced an intent.
        """
        if key is not None:
            if self.states.get(key) == RecordState.EMITTED:
                raise RuntimeError(f"{key[0].value} #{key[1]} was already emitted")
            self.states[key] = RecordState.EMITTED
        intent = NotificationIntent(
            change_type=change_type, original=original, update=update, exceptions=list(exceptions)
        )
        self.intents.append(intent)
        return intent


class ChangeClassifier:
    """Turns the mutations of one transaction into notification intents.

    The classifier keeps no state between calls; every call to classify()
    works on its own Classification.

    Args:
        recurrence_service: Expands series for bulk occurrence deletions.
        differ: Field-level differ for events.
    """

    def __init__(self, recurrence_service: RecurrenceService, differ: Differ = EVENT_DIFFER):
        self.recurrence_service = recurrence_service
        self.differ = differ

    def classify(self, transaction: CalendarTransaction) -> Classification:
        """Classify all mutations of a transaction.

        Creations are processed first since a new occurrence exception
        consumes the update of its series master. Updates and deletions
        follow, each grouped per series.

        Args:
            transaction: The mutations of one storage transaction.

        Returns:
            The emitted intents and the state of every record.
        """
        result = Classification()
        creations = transaction.creations
        updates = transaction.updates
        deletions = transaction.deletions

        for index in range(len(creations)):
            if result.is_pending(MutationKind.CREATION, index):
                self._handle_create(index, creations, updates, result)

        for index in range(len(updates)):
            if result.is_pending(MutationKind.UPDATE, index):
                self._handle_update(index, updates, result)

        for index in range(len(deletions)):
            if result.is_pending(MutationKind.DELETION, index):
                self._handle_delete(index, deletions, result)

        logger.info(
            f"Classified {len(creations)} creations, {len(updates)} updates and "
            f"{len(deletions)} deletions into {len(result.intents)} notifications"
        )
        return result

    # ===== Creations =====

    def _handle_create(
        self,
        index: int,
        creations: list[CreateResult],
        updates: list[UpdateResult],
        result: Classification,
    ) -> None:
        created = creations[index].created_event
        master_index = self._find_exception_master(created, updates, result)
        if master_index is None:
            result.emit((MutationKind.CREATION, index), ChangeType.NEW, None, created)
            return

        master = updates[master_index]
        for sibling_index, sibling in enumerate(creations):
            if sibling.created_event.series_id != master.update.id:
                continue
            if not result.is_pending(MutationKind.CREATION, sibling_index):
                continue
            if self.is_ignorable_exception(master, sibling):
                logger.debug(f"Ignoring personal change exception {sibling.created_event.get_summary()}")
                result.mark(MutationKind.CREATION, sibling_index, RecordState.IGNORED)
                continue
            result.emit(
                (MutationKind.CREATION, sibling_index),
                ChangeType.NEW_EXCEPTION,
                master.original,
                sibling.created_event,
            )

        # The exception notifications cover the master's change-exception bookkeeping
        result.mark(MutationKind.UPDATE, master_index, RecordState.HANDLED)

    def _find_exception_master(
        self, created: Event, updates: list[UpdateResult], result: Classification
    ) -> Optional[int]:
        if not created.is_series_exception():
            return None
        for index, update in enumerate(updates):
            if not result.is_pending(MutationKind.UPDATE, index):
                continue
            if (
                update.update.is_series_master()
                and update.update.id == created.series_id
                and update.contains_any_change_of(EventField.CHANGE_EXCEPTION_DATES)
            ):
                return index
        return None

    def is_ignorable_exception(self, master: UpdateResult, created: CreateResult) -> bool:
        """Check if a new occurrence exception only carries personal changes.

        Such exceptions are created when an attendee adds an alarm to a
        single occurrence. Start and end are compared by time of day only,
        since the date of an occurrence naturally differs from the master.

        Args:
            master: Update of the series master.
            created: Creation of the occurrence exception.

        Returns:
            True if nobody needs to be notified about the exception.
        """
        occurrence = created.created_event
        diff = self.differ.compare(
            master.original,
            occurrence,
            ignored=IGNORABLE_EXCEPTION_FIELDS,
            consider_unset=True,
            ignore_defaults=True,
        )
        if not diff.is_empty():
            return False
        return _same_time_of_day(master.original.start_date, occurrence.start_date) and _same_time_of_day(
            master.original.end_date, occurrence.end_date
        )

    # ===== Updates =====

    def _handle_update(self, index: int, updates: list[UpdateResult], result: Classification) -> None:
        update = updates[index]

        if update.update.is_series_master() and _is_delete_exception_update(update):
            self._handle_new_delete_exceptions(index, update, result)
            return

        target_index = index
        exceptions: list[Event] = []
        series_id = update.update.series_id
        if series_id is not None:
            group = [
                i
                for i, candidate in enumerate(updates)
                if result.is_pending(MutationKind.UPDATE, i) and candidate.update.series_id == series_id
            ]
            if len(group) > 1:
                master_index = next((i for i in group if updates[i].update.id == series_id), None)
                if master_index is not None and updates[master_index].update.is_series_master():
                    master = updates[master_index]
                    if all(updates[i].contains_any_change_of(EventField.SEQUENCE) for i in group):
                        # Series-wide change, one notification for the master with all occurrences
                        for i in group:
                            result.mark(MutationKind.UPDATE, i, RecordState.HANDLED)
                        target_index = master_index
                        exceptions = [updates[i].update for i in group if i != master_index]
                    elif not (master.updated_fields - TIMESTAMP_FIELDS):
                        # Only occurrences changed, the master was merely touched
                        result.mark(MutationKind.UPDATE, master_index, RecordState.IGNORED)
                        if master_index == index:
                            return

        target = updates[target_index]
        if self.is_move(target):
            logger.debug(f"Ignoring folder move of {target.update.get_summary()}")
            result.mark(MutationKind.UPDATE, target_index, RecordState.IGNORED)
            return

        result.emit(
            (MutationKind.UPDATE, target_index), ChangeType.MODIFIED, target.original, target.update, exceptions
        )

    def _handle_new_delete_exceptions(self, index: int, update: UpdateResult, result: Classification) -> None:
        original_dates = update.original.delete_exception_dates or []
        new_deletions = [d for d in update.update.delete_exception_dates or [] if d not in original_dates]

        if new_deletions:
            occurrences = self.recurrence_service.iterate_event_occurrences(update.original, None, None)
            for occurrence in occurrences:
                if occurrence.recurrence_id not in new_deletions:
                    continue
                new_deletions.remove(occurrence.recurrence_id)
                result.emit(None, ChangeType.DELETED, None, occurrence.model_copy(deep=True))
                if not new_deletions:
                    break

        if new_deletions:
            logger.debug(
                f"No occurrence found for {len(new_deletions)} delete exceptions of {update.update.get_summary()}"
            )
        result.mark(MutationKind.UPDATE, index, RecordState.HANDLED)

    def is_move(self, update: UpdateResult) -> bool:
        """Check if an update only moved the event into another folder of one attendee.

        Args:
            update: The update to check.

        Returns:
            True if nothing but a single attendee's folder changed.
        """
        if update.contains_any_change_of(*NOT_MOVE_FIELDS):
            return False
        changes = update.attendee_updates
        if changes is None or changes.added_items or changes.removed_items:
            return False
        if len(changes.updated_items) != 1:
            return False
        return changes.updated_items[0].updated_fields == {AttendeeField.FOLDER_ID}

    # ===== Deletions =====

    def _handle_delete(self, index: int, deletions: list[DeleteResult], result: Classification) -> None:
        target_index = index
        exceptions: list[Event] = []

        series_id = deletions[index].original.series_id
        if series_id is not None:
            group = [
                i
                for i, candidate in enumerate(deletions)
                if result.is_pending(MutationKind.DELETION, i) and candidate.original.series_id == series_id
            ]
            if len(group) > 1:
                master_index = next((i for i in group if deletions[i].original.id == series_id), None)
                if master_index is not None and deletions[master_index].original.is_series_master():
                    for i in group:
                        result.mark(MutationKind.DELETION, i, RecordState.HANDLED)
                    target_index = master_index
                    exceptions = [deletions[i].original for i in group if i != master_index]

        result.emit(
            (MutationKind.DELETION, target_index),
            ChangeType.DELETED,
            None,
            deletions[target_index].original,
            exceptions,
        )


def _is_delete_exception_update(update: UpdateResult) -> bool:
    changed = update.updated_fields - TIMESTAMP_FIELDS - {EventField.SEQUENCE}
    return changed == {EventField.DELETE_EXCEPTION_DATES}


def _same_time_of_day(first: Optional[datetime], second: Optional[datetime]) -> bool:
    if first is None or second is None:
        return first is None and second is None
    if first.hour == 0:
        # Still all day?
        return second.hour == 0
    return first.hour == second.hour and first.minute == second.minute

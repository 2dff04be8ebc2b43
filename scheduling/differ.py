"""Field-level comparison of records.

The scheduling logic only depends on the Differ interface: given two records
it reports which fields differ and gives access to the old and new values.
ModelDiffer implements it for pydantic models whose fields are enumerated by
a str enum (EventField, AttendeeField).
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from models.event import Attendee, AttendeeField, Event, EventField
from models.mutation import AttendeeChanges, AttendeeUpdate, UpdateResult

RecordT = TypeVar("RecordT", bound=BaseModel)
FieldT = TypeVar("FieldT", bound=Enum)


class RecordDiff(Generic[RecordT, FieldT]):
    """Differences between two records.

    Args:
        original: The original record.
        update: The updated record.
        updated_fields: Fields whose values differ.
    """

    def __init__(self, original: RecordT, update: RecordT, updated_fields: Iterable[FieldT]):
        self.original = original
        self.update = update
        self.updated_fields: frozenset[FieldT] = frozenset(updated_fields)

    def is_empty(self) -> bool:
        return not self.updated_fields

    def old(self, field: FieldT) -> Any:
        return getattr(self.original, field.value)

    def new(self, field: FieldT) -> Any:
        return getattr(self.update, field.value)

    def __repr__(self) -> str:
        names = sorted(field.value for field in self.updated_fields)
        return f"RecordDiff({', '.join(names) or 'no changes'})"


class Differ(ABC, Generic[RecordT, FieldT]):
    """Compares records field by field and copies fields between them."""

    @abstractmethod
    def compare(
        self,
        original: RecordT,
        update: RecordT,
        *,
        fields: Optional[Iterable[FieldT]] = None,
        ignored: Iterable[FieldT] = (),
        consider_unset: bool = True,
        ignore_defaults: bool = False,
    ) -> RecordDiff[RecordT, FieldT]:
        """Compare two records.

        Args:
            original: The original record.
            update: The updated record.
            fields: Restrict the comparison to these fields, all if None.
            ignored: Fields to leave out of the comparison.
            consider_unset: Also compare fields never set on the update.
            ignore_defaults: Treat None, empty containers and field defaults as equal.

        Returns:
            The differences found.
        """

    @abstractmethod
    def copy(self, source: RecordT, target: RecordT, fields: Iterable[FieldT]) -> RecordT:
        """Copy the given fields from source to target and return target."""


def _comparable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, (list, tuple)):
        return [_comparable(item) for item in value]
    if isinstance(value, dict):
        return {key: _comparable(item) for key, item in value.items()}
    return value


def _values_equal(a: Any, b: Any) -> bool:
    a, b = _comparable(a), _comparable(b)
    if isinstance(a, list) and isinstance(b, list):
        # Collections compare regardless of order
        if len(a) != len(b):
            return False
        remaining = list(b)
        for item in a:
            for index, candidate in enumerate(remaining):
                if item == candidate:
                    del remaining[index]
                    break
            else:
                return False
        return True
    return a == b


class ModelDiffer(Differ[RecordT, FieldT]):
    """Differ for pydantic models.

    Args:
        field_type: Enum whose values name the compared model attributes.
    """

    def __init__(self, field_type: type[FieldT]):
        self.field_type = field_type

    def compare(
        self,
        original: RecordT,
        update: RecordT,
        *,
        fields: Optional[Iterable[FieldT]] = None,
        ignored: Iterable[FieldT] = (),
        consider_unset: bool = True,
        ignore_defaults: bool = False,
    ) -> RecordDiff[RecordT, FieldT]:
        candidates = list(self.field_type) if fields is None else list(fields)
        skipped = set(ignored)
        model_fields = type(update).model_fields

        updated = []
        for field in candidates:
            if field in skipped:
                continue
            if not consider_unset and field.value not in update.model_fields_set:
                continue
            old = getattr(original, field.value)
            new = getattr(update, field.value)
            if ignore_defaults:
                default = model_fields[field.value].get_default(call_default_factory=True)
                old = self._normalize(old, default)
                new = self._normalize(new, default)
            if not _values_equal(old, new):
                updated.append(field)
        return RecordDiff(original, update, updated)

    def copy(self, source: RecordT, target: RecordT, fields: Iterable[FieldT]) -> RecordT:
        for field in fields:
            setattr(target, field.value, getattr(source, field.value))
        return target

    @staticmethod
    def _normalize(value: Any, default: Any) -> Any:
        if value is None or value == default:
            return None
        if isinstance(value, (list, tuple, dict, set)) and not value:
            return None
        return value


EVENT_DIFFER: ModelDiffer[Event, EventField] = ModelDiffer(EventField)
ATTENDEE_DIFFER: ModelDiffer[Attendee, AttendeeField] = ModelDiffer(AttendeeField)

# Fields that differ between copies of the same event in different calendars
# and never describe a scheduling-relevant change.
ITIP_SKIP_FIELDS = frozenset({
    EventField.FOLDER_ID,
    EventField.ID,
    EventField.SERIES_ID,
    EventField.CREATED_BY,
    EventField.CREATED,
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
    EventField.MODIFIED_BY,
    EventField.SEQUENCE,
    EventField.CALENDAR_USER,
    EventField.ALARMS,
    EventField.ATTENDEE_PRIVILEGES,
})

# Per-user bookkeeping of an attendee, not part of the scheduling state.
PERSONAL_ATTENDEE_FIELDS = frozenset({
    AttendeeField.FOLDER_ID,
    AttendeeField.HIDDEN,
    AttendeeField.TRANSP,
})

STATE_ATTENDEE_FIELDS = frozenset({
    AttendeeField.PART_STAT,
    AttendeeField.COMMENT,
    AttendeeField.RSVP,
})


def diff_attendees(
    original: Optional[list[Attendee]],
    updated: Optional[list[Attendee]],
    ignored: Iterable[AttendeeField] = (),
) -> AttendeeChanges:
    """Compute added, removed and changed attendees.

    Internal attendees are matched by entity, external ones by uri or email.

    Args:
        original: Attendees before the change.
        updated: Attendees after the change.
        ignored: Attendee fields to leave out of the per-attendee comparison.

    Returns:
        The attendee change set.
    """
    original = original or []
    updated = updated or []
    ignored = frozenset(ignored)

    added = [a for a in updated if not any(a.matches(o) for o in original)]
    removed = [o for o in original if not any(o.matches(a) for a in updated)]
    changed = []
    for attendee in original:
        match = next((a for a in updated if attendee.matches(a)), None)
        if match is None:
            continue
        diff = ATTENDEE_DIFFER.compare(attendee, match, ignored=ignored)
        if not diff.is_empty():
            changed.append(
                AttendeeUpdate(original=attendee, update=match, updated_fields=diff.updated_fields)
            )
    return AttendeeChanges(added_items=added, removed_items=removed, updated_items=changed)


def build_update_result(original: Event, update: Event) -> UpdateResult:
    """Describe the change from original to update the way storage reports it.

    Args:
        original: The event before the update.
        update: The event after the update.

    Returns:
        An UpdateResult with changed fields and attendee-level changes.
    """
    diff = EVENT_DIFFER.compare(original, update)
    return UpdateResult(
        original=original,
        update=update,
        updated_fields=diff.updated_fields,
        attendee_updates=diff_attendees(original.attendees, update.attendees),
    )


class ITipEventUpdate:
    """Scheduling-relevant differences between a stored and an incoming event.

    Bookkeeping fields (ITIP_SKIP_FIELDS) and per-user attendee fields
    (PERSONAL_ATTENDEE_FIELDS) are not considered.

    Args:
        original: The stored event.
        update: The incoming event.
        ignored: Additional event fields to leave out.
    """

    def __init__(self, original: Event, update: Event, ignored: Iterable[EventField] = ()):
        self.original = original
        self.update = update
        ignored = ITIP_SKIP_FIELDS | frozenset(ignored)
        diff = EVENT_DIFFER.compare(
            original, update, ignored=ignored | {EventField.ATTENDEES}, ignore_defaults=True
        )
        self.attendee_updates = diff_attendees(
            original.attendees, update.attendees, ignored=PERSONAL_ATTENDEE_FIELDS
        )
        updated_fields = set(diff.updated_fields)
        if EventField.ATTENDEES not in ignored and not self.attendee_updates.is_empty():
            updated_fields.add(EventField.ATTENDEES)
        self.updated_fields: frozenset[EventField] = frozenset(updated_fields)

    def is_empty(self) -> bool:
        return not self.updated_fields

    def is_about_state_changes_only(self) -> bool:
        """Check if only attendee replies (status, comment, rsvp) changed."""
        if self.updated_fields != {EventField.ATTENDEES}:
            return False
        if self.attendee_updates.added_items or self.attendee_updates.removed_items:
            return False
        return all(
            item.updated_fields <= STATE_ATTENDEE_FIELDS for item in self.attendee_updates.updated_items
        )

    def is_about_certain_participants_state_change_only(self, entity: int) -> bool:
        """Check if only the reply of the given attendee changed.

        Args:
            entity: Entity identifier of the attendee.

        Returns:
            True if the reply state of that attendee is the only change.
        """
        if not self.is_about_state_changes_only():
            return False
        return all(item.original.entity == entity for item in self.attendee_updates.updated_items)

"""Storage mutation records.

One storage transaction produces a CalendarTransaction holding the
creations, updates and deletions it performed. The records are consumed
once by the change classifier and then discarded.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.change_set import ChangeSet
from models.event import Attendee, AttendeeField, CalendarUser, Event, EventField


class SchedulingControl(str, Enum):
    """Whether scheduling messages should be generated for a write."""

    ALL = "all"
    NONE = "none"


class CalendarParameters(BaseModel):
    """Contextual parameters of a calendar operation.

    Args:
        comment: Free-text comment to include in notifications.
        scheduling: Scheduling control, NONE suppresses notifications.
        principal: User acting on behalf of the calendar owner, if any.
    """

    comment: Optional[str] = Field(default=None, description="Notification comment")
    scheduling: SchedulingControl = Field(
        default=SchedulingControl.ALL, description="Scheduling control"
    )
    principal: Optional[CalendarUser] = Field(default=None, description="Acting principal")


class AttendeeUpdate(BaseModel):
    """Field-level change of a single attendee.

    Args:
        original: The attendee before the change.
        update: The attendee after the change.
        updated_fields: Attendee fields that differ.
    """

    original: Attendee = Field(description="Attendee before the change")
    update: Attendee = Field(description="Attendee after the change")
    updated_fields: frozenset[AttendeeField] = Field(
        default_factory=frozenset, description="Changed attendee fields"
    )


AttendeeChanges = ChangeSet[Attendee, AttendeeUpdate]


class CreateResult(BaseModel):
    """A created event."""

    created_event: Event = Field(description="The created event")


class UpdateResult(BaseModel):
    """An updated event.

    Args:
        original: The event before the update.
        update: The event after the update.
        updated_fields: Event fields that differ.
        attendee_updates: Attendee-level diff, None if attendees were not compared.
    """

    original: Event = Field(description="Event before the update")
    update: Event = Field(description="Event after the update")
    updated_fields: frozenset[EventField] = Field(
        default_factory=frozenset, description="Changed event fields"
    )
    attendee_updates: Optional[AttendeeChanges] = Field(
        default=None, description="Attendee-level changes"
    )

    def contains_any_change_of(self, *fields: EventField) -> bool:
        """Check if any of the given fields changed."""
        return any(field in self.updated_fields for field in fields)


class DeleteResult(BaseModel):
    """A deleted event."""

    original: Event = Field(description="The deleted event")


class CalendarResult(BaseModel):
    """Result of a storage write request."""

    creations: list[CreateResult] = Field(default_factory=list, description="Created events")
    updates: list[UpdateResult] = Field(default_factory=list, description="Updated events")
    deletions: list[DeleteResult] = Field(default_factory=list, description="Deleted events")


class CalendarTransaction(BaseModel):
    """All mutations of one storage transaction.

    Args:
        account_id: Calendar account the changes were made in.
        user_id: Session user that performed the changes.
        calendar_user: Entity whose calendar was changed.
        parameters: Parameters of the originating operation.
        creations: Created events.
        updates: Updated events.
        deletions: Deleted events.
    """

    account_id: int = Field(default=0, description="Calendar account identifier")
    user_id: int = Field(description="Acting session user")
    calendar_user: int = Field(description="Owner of the changed calendar")
    parameters: CalendarParameters = Field(
        default_factory=CalendarParameters, description="Operation parameters"
    )
    creations: list[CreateResult] = Field(default_factory=list, description="Creations")
    updates: list[UpdateResult] = Field(default_factory=list, description="Updates")
    deletions: list[DeleteResult] = Field(default_factory=list, description="Deletions")

    def is_empty(self) -> bool:
        """Check if the transaction carries no mutations."""
        return not (self.creations or self.updates or self.deletions)

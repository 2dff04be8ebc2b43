"""Calendar event model."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventField(str, Enum):
    """Fields of an Event. Values are the model attribute names."""

    ID = "id"
    FOLDER_ID = "folder_id"
    UID = "uid"
    SERIES_ID = "series_id"
    RECURRENCE_ID = "recurrence_id"
    SEQUENCE = "sequence"
    TIMESTAMP = "timestamp"
    CREATED = "created"
    CREATED_BY = "created_by"
    LAST_MODIFIED = "last_modified"
    MODIFIED_BY = "modified_by"
    CALENDAR_USER = "calendar_user"
    SUMMARY = "summary"
    DESCRIPTION = "description"
    LOCATION = "location"
    START_DATE = "start_date"
    END_DATE = "end_date"
    RECURRENCE_RULE = "recurrence_rule"
    CHANGE_EXCEPTION_DATES = "change_exception_dates"
    DELETE_EXCEPTION_DATES = "delete_exception_dates"
    ORGANIZER = "organizer"
    ATTENDEES = "attendees"
    ALARMS = "alarms"
    EXTENDED_PROPERTIES = "extended_properties"
    ATTENDEE_PRIVILEGES = "attendee_privileges"
    TRANSP = "transp"
    STATUS = "status"


class AttendeeField(str, Enum):
    """Fields of an Attendee. Values are the model attribute names."""

    ENTITY = "entity"
    URI = "uri"
    CN = "cn"
    EMAIL = "email"
    CU_TYPE = "cu_type"
    ROLE = "role"
    PART_STAT = "part_stat"
    COMMENT = "comment"
    RSVP = "rsvp"
    FOLDER_ID = "folder_id"
    HIDDEN = "hidden"
    TRANSP = "transp"


class ParticipationStatus(str, Enum):
    """Reply state of an attendee."""

    NEEDS_ACTION = "NEEDS-ACTION"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    TENTATIVE = "TENTATIVE"
    DELEGATED = "DELEGATED"


class CalendarUser(BaseModel):
    """A calendar user, e.g. the organizer of an event.

    Args:
        entity: Internal entity identifier, positive for internal users.
        uri: Calendar user address, usually a mailto: URI.
        cn: Common name.
        email: Email address.
    """

    entity: Optional[int] = Field(default=None, description="Internal entity identifier")
    uri: Optional[str] = Field(default=None, description="Calendar user address")
    cn: Optional[str] = Field(default=None, description="Common name")
    email: Optional[str] = Field(default=None, description="Email address")


class Attendee(CalendarUser):
    """An attendee of an event.

    Args:
        cu_type: Calendar user type (INDIVIDUAL, GROUP, RESOURCE, ...).
        role: Participation role.
        part_stat: Participation status.
        comment: Reply comment.
        rsvp: Whether a reply is expected.
        folder_id: Folder the attendee's copy of the event lives in.
        hidden: Whether the attendee has hidden the event.
        transp: Per-attendee transparency.
    """

    cu_type: str = Field(default="INDIVIDUAL", description="Calendar user type")
    role: Optional[str] = Field(default=None, description="Participation role")
    part_stat: ParticipationStatus = Field(
        default=ParticipationStatus.NEEDS_ACTION, description="Participation status"
    )
    comment: Optional[str] = Field(default=None, description="Reply comment")
    rsvp: Optional[bool] = Field(default=None, description="Reply expected")
    folder_id: Optional[str] = Field(default=None, description="Attendee folder")
    hidden: Optional[bool] = Field(default=None, description="Hidden by attendee")
    transp: Optional[str] = Field(default=None, description="Attendee transparency")

    @property
    def is_internal(self) -> bool:
        """Whether this attendee is a user of this server."""
        return self.entity is not None and self.entity > 0

    def matches(self, other: "CalendarUser") -> bool:
        """Check if both records denote the same calendar user.

        Internal users are matched by entity, everyone else by uri or email.

        Args:
            other: The calendar user to compare against.

        Returns:
            True if both refer to the same calendar user.
        """
        if self.is_internal and other.entity is not None and other.entity > 0:
            return self.entity == other.entity
        if self.uri and other.uri:
            return self.uri.lower() == other.uri.lower()
        if self.email and other.email:
            return self.email.lower() == other.email.lower()
        return False


class Alarm(BaseModel):
    """A personal reminder attached to an event."""

    action: str = Field(default="DISPLAY", description="Alarm action")
    trigger: str = Field(description="Trigger duration, e.g. -PT15M")
    description: Optional[str] = Field(default=None, description="Alarm text")


class Event(BaseModel):
    """A calendar event, either a single event, a series master or an occurrence.

    Only fields that were explicitly set are considered "contained" (see
    contains()), which lets partial events act as update payloads.

    Args:
        id: Event identifier.
        folder_id: Folder holding the event.
        uid: Globally unique iCalendar UID.
        series_id: Identifier of the series master, None for single events.
        recurrence_id: Original start of an occurrence, None for a master.
        sequence: Monotonic version counter.
        start_date: Start time.
        end_date: End time.
        organizer: The organizer.
        attendees: Attendee list.
        change_exception_dates: Recurrence ids of overridden occurrences.
        delete_exception_dates: Recurrence ids of removed occurrences.
    """

    id: Optional[str] = Field(default=None, description="Event identifier")
    folder_id: Optional[str] = Field(default=None, description="Parent folder")
    uid: Optional[str] = Field(default=None, description="iCalendar UID")
    series_id: Optional[str] = Field(default=None, description="Series identifier")
    recurrence_id: Optional[datetime] = Field(default=None, description="Recurrence identifier")
    sequence: Optional[int] = Field(default=None, description="Sequence number")
    timestamp: Optional[int] = Field(default=None, description="Storage timestamp")
    created: Optional[datetime] = Field(default=None, description="Creation time")
    created_by: Optional[int] = Field(default=None, description="Creating entity")
    last_modified: Optional[datetime] = Field(default=None, description="Last modification time")
    modified_by: Optional[int] = Field(default=None, description="Last modifying entity")
    calendar_user: Optional[int] = Field(default=None, description="Calendar owner entity")
    summary: Optional[str] = Field(default=None, description="Title")
    description: Optional[str] = Field(default=None, description="Description")
    location: Optional[str] = Field(default=None, description="Location")
    start_date: Optional[datetime] = Field(default=None, description="Start time")
    end_date: Optional[datetime] = Field(default=None, description="End time")
    recurrence_rule: Optional[str] = Field(default=None, description="RRULE value")
    change_exception_dates: Optional[list[datetime]] = Field(
        default=None, description="Recurrence ids of change exceptions"
    )
    delete_exception_dates: Optional[list[datetime]] = Field(
        default=None, description="Recurrence ids of delete exceptions"
    )
    organizer: Optional[CalendarUser] = Field(default=None, description="Organizer")
    attendees: Optional[list[Attendee]] = Field(default=None, description="Attendees")
    alarms: Optional[list[Alarm]] = Field(default=None, description="Personal alarms")
    extended_properties: Optional[dict[str, Any]] = Field(
        default=None, description="Non-standard properties"
    )
    attendee_privileges: Optional[str] = Field(default=None, description="Attendee privileges")
    transp: Optional[str] = Field(default=None, description="Transparency")
    status: Optional[str] = Field(default=None, description="Event status")

    def contains(self, field: EventField) -> bool:
        """Check whether a field was explicitly set on this event.

        Args:
            field: The field to check.

        Returns:
            True if the field was set, even if set to None.
        """
        return field.value in self.model_fields_set

    def is_series_master(self) -> bool:
        """Check if this event is the master of a recurring series."""
        return self.id is not None and self.id == self.series_id

    def is_series_exception(self) -> bool:
        """Check if this event is an occurrence of a recurring series."""
        return self.series_id is not None and self.series_id != self.id

    def is_organizer(self, entity: Optional[int]) -> bool:
        """Check if the given entity organizes this event."""
        return entity is not None and self.organizer is not None and self.organizer.entity == entity

    def find_attendee(self, user: CalendarUser | int) -> Optional[Attendee]:
        """Look up an attendee by entity identifier or calendar user.

        Args:
            user: Entity identifier or a calendar user to match.

        Returns:
            The matching attendee, or None.
        """
        if not self.attendees:
            return None
        if isinstance(user, int):
            return next((a for a in self.attendees if a.entity == user), None)
        return next((a for a in self.attendees if a.matches(user)), None)

    def get_summary(self) -> str:
        """Return human-readable summary of this event.

        Returns:
            Brief description for logging.
        """
        start = self.start_date.strftime("%Y-%m-%d %H:%M") if self.start_date else "?"
        title = self.summary or "(no title)"
        if self.recurrence_id is not None:
            return f"[{start}] {title} (occurrence {self.recurrence_id.isoformat()} of {self.series_id})"
        return f"[{start}] {title}"

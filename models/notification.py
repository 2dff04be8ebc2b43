"""Notification models produced by the change classifier."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.event import Event


class ChangeType(str, Enum):
    """Logical operation a notification describes."""

    NEW = "new"
    NEW_EXCEPTION = "new_exception"
    MODIFIED = "modified"
    DELETED = "deleted"


class NotificationIntent(BaseModel):
    """One logical change that warrants a scheduling notification.

    Args:
        change_type: What kind of change this is.
        original: The event before the change, None for creations and deletions.
        update: The resulting event (the deleted event for deletions).
        exceptions: Sibling occurrences to attach to the notification.
    """

    change_type: ChangeType = Field(description="Kind of change")
    original: Optional[Event] = Field(default=None, description="Event before the change")
    update: Event = Field(description="Resulting event")
    exceptions: list[Event] = Field(default_factory=list, description="Attached occurrences")

    def get_summary(self) -> str:
        """Return a brief description for logging."""
        suffix = f" (+{len(self.exceptions)} exceptions)" if self.exceptions else ""
        return f"{self.change_type.value}: {self.update.get_summary()}{suffix}"


class NotificationParticipant(BaseModel):
    """A recipient of a notification mail."""

    entity: Optional[int] = Field(default=None, description="Internal entity identifier")
    email: str = Field(description="Recipient address")
    display_name: Optional[str] = Field(default=None, description="Display name")
    is_organizer: bool = Field(default=False, description="Whether this is the organizer")
    is_external: bool = Field(default=False, description="Whether this is an external recipient")


class ITipMessagePayload(BaseModel):
    """Scheduling payload carried by a notification mail."""

    method: Optional[str] = Field(default=None, description="iTIP method")
    event: Optional[Event] = Field(default=None, description="Main event")
    exceptions: list[Event] = Field(default_factory=list, description="Attached occurrences")

    def add_exception(self, exception: Event) -> None:
        """Attach an occurrence to this payload."""
        self.exceptions.append(exception)


class NotificationMail(BaseModel):
    """A rendered notification mail ready for transmission.

    Args:
        recipient: Who receives the mail.
        change_type: Kind of change, filled from the intent if left unset.
        subject: Mail subject.
        message: Scheduling payload, None for plain notifications.
        headers: Extra mail headers.
    """

    recipient: NotificationParticipant = Field(description="Recipient")
    change_type: Optional[ChangeType] = Field(default=None, description="Kind of change")
    subject: Optional[str] = Field(default=None, description="Mail subject")
    message: Optional[ITipMessagePayload] = Field(default=None, description="Scheduling payload")
    headers: dict[str, Any] = Field(default_factory=dict, description="Extra headers")

"""Contracts of the collaborators the scheduling logic depends on.

Storage, recurrence expansion, identity resolution, mail generation and mail
transmission live outside this package. Implementations are handed to the
classifier, handler and applier through their constructors or through the
CalendarSession.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.event import Attendee, CalendarUser, Event
from models.itip import FolderType
from models.mutation import CalendarParameters, CalendarResult
from models.notification import NotificationMail, NotificationParticipant


class EventID(BaseModel):
    """Full identifier of a stored event."""

    folder_id: Optional[str] = Field(default=None, description="Parent folder")
    object_id: Optional[str] = Field(default=None, description="Event identifier")
    recurrence_id: Optional[datetime] = Field(default=None, description="Occurrence")


class RecurrenceService(ABC):
    """Expands recurring series into occurrences."""

    @abstractmethod
    def iterate_event_occurrences(
        self, master: Event, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Iterator[Event]:
        """Iterate the occurrences of a series master in chronological order.

        Args:
            master: The series master.
            start: Lower bound of the window, unbounded if None.
            end: Upper bound of the window, unbounded if None.

        Returns:
            A lazy iterator of occurrences; each carries its recurrence id.
        """


class EntityResolver(ABC):
    """Resolves internal entities to calendar user data."""

    @abstractmethod
    def prepare_user_attendee(self, entity: int) -> Attendee:
        """Build an attendee record for an internal user.

        Raises:
            EntityResolutionError: If the user cannot be resolved.
        """


class CalendarSession(BaseModel):
    """A calendar session of one user.

    Args:
        user_id: The session user.
        parameters: Parameters applied to writes made through this session.
        entity_resolver: Resolver for internal users.
        calendar_service: Storage access.
    """

    user_id: int = Field(description="Session user")
    parameters: CalendarParameters = Field(
        default_factory=CalendarParameters, description="Write parameters"
    )
    entity_resolver: Optional[EntityResolver] = Field(default=None, description="Entity resolver")
    calendar_service: Optional["CalendarService"] = Field(default=None, description="Calendar service")

    class Config:
        arbitrary_types_allowed = True


class CalendarService(ABC):
    """Storage-level calendar operations."""

    @abstractmethod
    def init(self, user_id: int, parameters: CalendarParameters) -> CalendarSession:
        """Open a calendar session for a user.

        Raises:
            CalendarStorageError: If the session cannot be initialized.
        """

    @abstractmethod
    def create_event(self, session: CalendarSession, folder_id: str, event: Event) -> CalendarResult:
        """Create an event in a folder.

        Raises:
            CalendarStorageError: If the event cannot be stored.
        """

    @abstractmethod
    def update_event_as_organizer(
        self,
        session: CalendarSession,
        event_id: EventID,
        event: Event,
        client_timestamp: Optional[datetime],
    ) -> CalendarResult:
        """Update an event with organizer privileges.

        Args:
            session: The calendar session.
            event_id: The event to update.
            event: Payload holding only the fields to change plus identity fields.
            client_timestamp: Last-modified time the payload is based on.

        Raises:
            CalendarStorageError: If the update fails or is based on stale data.
        """

    @abstractmethod
    def get_default_folder_id(self, session: CalendarSession) -> str:
        """Return the default calendar folder of the session user."""

    @abstractmethod
    def get_folder_type(self, session: CalendarSession, folder_id: str) -> FolderType:
        """Return the type of a calendar folder."""


CalendarSession.model_rebuild()


class MailGenerator(ABC):
    """Renders notification mails for one change, one mail per recipient."""

    @abstractmethod
    def get_recipients(self) -> list[NotificationParticipant]:
        """Return everyone who should be notified about the change."""

    @abstractmethod
    def generate_create_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        """Render an invitation."""

    @abstractmethod
    def generate_create_exception_mail_for(
        self, participant: NotificationParticipant
    ) -> Optional[NotificationMail]:
        """Render an invitation to a new occurrence of a series."""

    @abstractmethod
    def generate_update_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        """Render an update."""

    @abstractmethod
    def generate_delete_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        """Render a cancellation."""


class MailGeneratorFactory(ABC):
    """Creates mail generators."""

    @abstractmethod
    def create(
        self,
        original: Optional[Event],
        update: Event,
        session: CalendarSession,
        on_behalf_of: Optional[int],
        principal: Optional[CalendarUser],
        comment: Optional[str],
    ) -> MailGenerator:
        """Create a generator for the change from original to update.

        Args:
            original: The event before the change, if any.
            update: The event after the change.
            session: The calendar session.
            on_behalf_of: Entity the mail is sent on behalf of, None if not delegated.
            principal: Principal acting for the calendar owner, if any.
            comment: Free-text comment to include.

        Raises:
            SchedulingError: If the generator cannot be set up.
        """


class MailSender(ABC):
    """Transmits rendered notification mails."""

    @abstractmethod
    def send_mail(
        self,
        mail: NotificationMail,
        session: CalendarSession,
        principal: Optional[CalendarUser],
        comment: Optional[str],
    ) -> None:
        """Send a mail.

        Raises:
            MailDeliveryError: If the mail cannot be sent.
        """

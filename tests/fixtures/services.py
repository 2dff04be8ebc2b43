"""In-memory implementations of the external collaborators."""

from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import Optional

import pytest

from models.event import Attendee, CalendarUser, Event
from models.itip import FolderType
from models.mutation import CalendarParameters, CalendarResult, CreateResult, UpdateResult
from models.notification import ITipMessagePayload, NotificationMail, NotificationParticipant
from scheduling.applier import SchedulingActionApplier
from scheduling.classifier import ChangeClassifier
from scheduling.config import SchedulingSettings
from scheduling.exceptions import (
    CalendarStorageError,
    EntityResolutionError,
    MailDeliveryError,
    SchedulingError,
)
from scheduling.handler import ITipHandler
from scheduling.ports import (
    CalendarService,
    CalendarSession,
    EntityResolver,
    EventID,
    MailGenerator,
    MailGeneratorFactory,
    MailSender,
    RecurrenceService,
)
from tests.fixtures.events import ALICE, BOB, ORGANIZER, create_attendee


class DailyRecurrenceService(RecurrenceService):
    """Expands every master into daily occurrences.

    Args:
        count: Number of occurrences per series.
    """

    def __init__(self, count: int = 10):
        self.count = count
        self.yielded = 0

    def iterate_event_occurrences(
        self, master: Event, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Iterator[Event]:
        deleted = set(master.delete_exception_dates or [])
        duration = master.end_date - master.start_date
        for day in range(self.count):
            recurrence_id = master.start_date + timedelta(days=day)
            if recurrence_id in deleted:
                continue
            if start is not None and recurrence_id < start:
                continue
            if end is not None and recurrence_id >= end:
                return
            self.yielded += 1
            yield master.model_copy(
                update={
                    "id": f"{master.id}-{day + 1}",
                    "recurrence_id": recurrence_id,
                    "start_date": recurrence_id,
                    "end_date": recurrence_id + duration,
                    "recurrence_rule": None,
                }
            )


class UnavailableRecurrenceService(RecurrenceService):
    """Recurrence service whose backing storage is unreachable."""

    def iterate_event_occurrences(
        self, master: Event, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Iterator[Event]:
        raise CalendarStorageError("Recurrence data unavailable", code="CAL-0002")


class FakeEntityResolver(EntityResolver):
    """Resolves the entities of a fixed user directory."""

    def __init__(self, users: Optional[dict[int, Attendee]] = None):
        if users is None:
            users = {entity: create_attendee(entity) for entity in (ORGANIZER, ALICE, BOB)}
        self.users = users

    def prepare_user_attendee(self, entity: int) -> Attendee:
        if entity not in self.users:
            raise EntityResolutionError(entity)
        return self.users[entity].model_copy(deep=True)


class FakeCalendarService(CalendarService):
    """Calendar storage keeping events in memory and recording every write.

    Args:
        events: Initially stored events.
        folder_types: Folder types by folder id, PRIVATE if not listed.
    """

    def __init__(
        self,
        events: Optional[list[Event]] = None,
        folder_types: Optional[dict[str, FolderType]] = None,
        resolver: Optional[EntityResolver] = None,
    ):
        self.events = {event.id: event for event in events or []}
        self.folder_types = folder_types or {}
        self.resolver = resolver or FakeEntityResolver()
        self.writes: list[tuple[str, Event]] = []
        self.fail_init = False
        self.fail_writes = False
        self._next_id = 1000

    def store(self, event: Event) -> Event:
        self.events[event.id] = event
        return event

    def init(self, user_id: int, parameters: CalendarParameters) -> CalendarSession:
        if self.fail_init:
            raise CalendarStorageError("Session unavailable", code="CAL-0001")
        return CalendarSession(
            user_id=user_id, parameters=parameters, entity_resolver=self.resolver, calendar_service=self
        )

    def create_event(self, session: CalendarSession, folder_id: str, event: Event) -> CalendarResult:
        self.writes.append(("create", event))
        if self.fail_writes:
            raise CalendarStorageError("Create failed")
        created = event.model_copy(deep=True, update={"id": self._new_id(), "folder_id": folder_id})
        return CalendarResult(creations=[CreateResult(created_event=self.store(created))])

    def update_event_as_organizer(
        self,
        session: CalendarSession,
        event_id: EventID,
        event: Event,
        client_timestamp: Optional[datetime],
    ) -> CalendarResult:
        self.writes.append(("update", event))
        if self.fail_writes:
            raise CalendarStorageError("Update failed")

        stored = self.events.get(event_id.object_id)
        if stored is not None and stored.is_series_master() and event.recurrence_id is not None:
            # New occurrence exception of the series
            values = {name: getattr(event, name) for name in event.model_fields_set}
            values["id"] = self._new_id()
            created = stored.model_copy(deep=True, update=values)
            return CalendarResult(creations=[CreateResult(created_event=self.store(created))])

        base = stored or Event()
        values = {name: getattr(event, name) for name in event.model_fields_set}
        updated = base.model_copy(deep=True, update=values)
        return CalendarResult(updates=[UpdateResult(original=base, update=self.store(updated))])

    def get_default_folder_id(self, session: CalendarSession) -> str:
        return "cal-default"

    def get_folder_type(self, session: CalendarSession, folder_id: str) -> FolderType:
        return self.folder_types.get(folder_id, FolderType.PRIVATE)

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)


class FakeMailGenerator(MailGenerator):
    """Renders one mail per recipient and records which kind was requested."""

    def __init__(self, update: Event, recipients: list[NotificationParticipant], failing: set[str]):
        self.update = update
        self.recipients = recipients
        self.failing = failing
        self.rendered: list[tuple[str, str]] = []

    def get_recipients(self) -> list[NotificationParticipant]:
        return list(self.recipients)

    def generate_create_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        return self._render("REQUEST", "create", participant)

    def generate_create_exception_mail_for(
        self, participant: NotificationParticipant
    ) -> Optional[NotificationMail]:
        return self._render("REQUEST", "create_exception", participant)

    def generate_update_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        return self._render("REQUEST", "update", participant)

    def generate_delete_mail_for(self, participant: NotificationParticipant) -> Optional[NotificationMail]:
        return self._render("CANCEL", "delete", participant)

    def _render(self, method: str, kind: str, participant: NotificationParticipant) -> NotificationMail:
        if participant.email in self.failing:
            raise MailDeliveryError(participant.email, "Rendering failed")
        self.rendered.append((kind, participant.email))
        return NotificationMail(
            recipient=participant,
            subject=f"{kind}: {self.update.summary}",
            message=ITipMessagePayload(method=method, event=self.update),
        )


class FakeMailGeneratorFactory(MailGeneratorFactory):
    """Creates FakeMailGenerators and records the arguments of every call.

    Args:
        recipients: Recipients every generator reports.
    """

    def __init__(self, recipients: Optional[list[NotificationParticipant]] = None):
        if recipients is None:
            recipients = [
                NotificationParticipant(entity=ALICE, email="user2@example.com"),
                NotificationParticipant(entity=BOB, email="user3@example.com"),
            ]
        self.recipients = recipients
        self.failing_recipients: set[str] = set()
        self.fail = False
        self.calls: list[dict] = []
        self.generators: list[FakeMailGenerator] = []

    def create(
        self,
        original: Optional[Event],
        update: Event,
        session: CalendarSession,
        on_behalf_of: Optional[int],
        principal: Optional[CalendarUser],
        comment: Optional[str],
    ) -> MailGenerator:
        self.calls.append(
            {
                "original": original,
                "update": update,
                "on_behalf_of": on_behalf_of,
                "principal": principal,
                "comment": comment,
            }
        )
        if self.fail:
            raise SchedulingError("No generator available")
        generator = FakeMailGenerator(update, self.recipients, self.failing_recipients)
        self.generators.append(generator)
        return generator


class RecordingMailSender(MailSender):
    """Collects sent mails, failing for the configured recipients."""

    def __init__(self):
        self.sent: list[NotificationMail] = []
        self.failing: set[str] = set()

    def send_mail(
        self,
        mail: NotificationMail,
        session: CalendarSession,
        principal: Optional[CalendarUser],
        comment: Optional[str],
    ) -> None:
        if mail.recipient.email in self.failing:
            raise MailDeliveryError(mail.recipient.email, "Connection refused")
        self.sent.append(mail)


@pytest.fixture
def recurrence_service():
    """Provide a daily recurrence service."""
    return DailyRecurrenceService()


@pytest.fixture
def calendar_service():
    """Provide an empty in-memory calendar service."""
    return FakeCalendarService()


@pytest.fixture
def generator_factory():
    """Provide a mail generator factory notifying Alice and Bob."""
    return FakeMailGeneratorFactory()


@pytest.fixture
def mail_sender():
    """Provide a recording mail sender."""
    return RecordingMailSender()


@pytest.fixture
def classifier(recurrence_service):
    """Provide a change classifier."""
    return ChangeClassifier(recurrence_service)


@pytest.fixture
def settings():
    """Provide default scheduling settings."""
    return SchedulingSettings()


@pytest.fixture
def handler(classifier, calendar_service, generator_factory, mail_sender, settings):
    """Provide a handler wired to the in-memory collaborators."""
    return ITipHandler(classifier, calendar_service, generator_factory, mail_sender, settings)


@pytest.fixture
def applier(calendar_service, generator_factory, mail_sender):
    """Provide a scheduling action applier wired to the in-memory collaborators."""
    return SchedulingActionApplier(calendar_service, generator_factory, mail_sender)


@pytest.fixture
def alice_session(calendar_service):
    """Provide a calendar session of Alice."""
    return calendar_service.init(ALICE, CalendarParameters())

"""Application of a user's action on a received scheduling message.

The applier writes the changes of an analyzed iTIP message into the user's
calendar: it sets the acting attendee's participation status, protects the
stored replies of other attendees from stale echoes, and submits a minimal
update payload that always carries the event's identity fields.
"""

import logging
from typing import Optional

from models.event import Attendee, Event, EventField, ParticipationStatus
from models.itip import (
    OWN_STATE_ACTIONS,
    EventDiff,
    FolderType,
    ITipAction,
    ITipAnalysis,
    ITipAttributes,
    ITipChange,
    SchedulingActionContext,
)
from models.mutation import CalendarResult, SchedulingControl
from models.notification import ChangeType
from scheduling.differ import EVENT_DIFFER, Differ, ITipEventUpdate
from scheduling.exceptions import EntityResolutionError
from scheduling.ports import CalendarService, CalendarSession, EventID, MailGeneratorFactory, MailSender

logger = logging.getLogger(__name__)

SUPPORTED_ACTIONS = frozenset({
    ITipAction.ACCEPT,
    ITipAction.ACCEPT_AND_IGNORE_CONFLICTS,
    ITipAction.ACCEPT_AND_REPLACE,
    ITipAction.ACCEPT_PARTY_CRASHER,
    ITipAction.DECLINE,
    ITipAction.TENTATIVE,
    ITipAction.UPDATE,
    ITipAction.CREATE,
    ITipAction.COUNTER,
})

# Fields managed by storage, never part of an update payload diff
PAYLOAD_IGNORED_FIELDS = frozenset({
    EventField.ID,
    EventField.FOLDER_ID,
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
    EventField.CREATED,
    EventField.CREATED_BY,
    EventField.MODIFIED_BY,
    EventField.CALENDAR_USER,
})

ACTION_STATUS = {
    ITipAction.ACCEPT: ParticipationStatus.ACCEPTED,
    ITipAction.ACCEPT_AND_IGNORE_CONFLICTS: ParticipationStatus.ACCEPTED,
    ITipAction.CREATE: ParticipationStatus.ACCEPTED,
    ITipAction.DECLINE: ParticipationStatus.DECLINED,
    ITipAction.TENTATIVE: ParticipationStatus.TENTATIVE,
}


class SchedulingActionApplier:
    """Applies the changes of an analyzed iTIP message.

    Storage and mail errors propagate and abort the remaining changes of the
    message. Changes that need no write are skipped.

    Args:
        calendar_service: Storage access.
        generator_factory: Creates generators for the confirmation mails.
        sender: Transmits the confirmation mails.
        differ: Field-level differ for events.
    """

    def __init__(
        self,
        calendar_service: CalendarService,
        generator_factory: MailGeneratorFactory,
        sender: MailSender,
        differ: Differ = EVENT_DIFFER,
    ):
        self.calendar_service = calendar_service
        self.generator_factory = generator_factory
        self.sender = sender
        self.differ = differ

    def perform(
        self,
        action: ITipAction,
        analysis: ITipAnalysis,
        session: CalendarSession,
        attributes: Optional[ITipAttributes] = None,
    ) -> list[Event]:
        """Apply all changes of a message in the order they appear.

        Args:
            action: The action the user took.
            analysis: The analyzed message.
            session: Calendar session of the acting user.
            attributes: Optional user-supplied attributes.

        Returns:
            The written events.

        Raises:
            ValueError: If the action cannot be applied.
            SchedulingError: If a storage write or a confirmation mail fails.
        """
        if action not in SUPPORTED_ACTIONS:
            raise ValueError(f"Action {action.value} cannot be applied")

        # Writes below are scheduling-neutral, confirmations are sent here
        session.parameters = session.parameters.model_copy(update={"scheduling": SchedulingControl.NONE})

        owner = analysis.owner if analysis.owner is not None and analysis.owner > 0 else session.user_id
        comment = None
        if attributes is not None and attributes.confirmation_message and attributes.confirmation_message.strip():
            comment = attributes.confirmation_message

        processed: dict[str, Event] = {}
        written_events = []
        for change in analysis.changes:
            if change.new_event is None:
                logger.debug("No event found to process.")
                continue
            context = SchedulingActionContext(action=action, change=change, owner=owner, comment=comment)
            written = self._apply(context, session, processed)
            if written is not None:
                written_events.append(written)

        logger.info(f"Applied {action.value} to {len(written_events)} of {len(analysis.changes)} changes")
        return written_events

    def _apply(
        self, context: SchedulingActionContext, session: CalendarSession, processed: dict[str, Event]
    ) -> Optional[Event]:
        change = context.change
        event = change.new_event.model_copy(deep=True)
        exception_create = context.is_exception_create

        if not event.folder_id or self.calendar_service.get_folder_type(session, event.folder_id) != FolderType.PUBLIC:
            reference = change.master_event if exception_create else change.current_event
            event = self.ensure_attendee(event, reference, context, session)

        original = self._determine_original(change, processed)
        if original is not None:
            diff = change.diff if change.diff is not None else ITipEventUpdate(original, event)
            if diff.is_empty():
                logger.debug(f"No changes to apply for {event.get_summary()}")
                return None
            event = self.adjust_attendees_part_stats(context, original, event, diff)
            written = self._update_event(original, event, session)
        elif exception_create:
            original = change.master_event
            event.series_id = original.series_id
            written = self._update_event(original, event, session)
        else:
            event.id = None
            if not event.folder_id:
                event.folder_id = self.calendar_service.get_default_folder_id(session)
            written = self._create_event(event, session)

        if written is None:
            return None
        if not change.exception and written.uid:
            processed[written.uid] = written
        self._write_mail(context, original, written, session)
        return written

    @staticmethod
    def _determine_original(change: ITipChange, processed: dict[str, Event]) -> Optional[Event]:
        event = change.new_event
        previous = processed.get(event.uid) if event.uid else None
        if previous is not None and previous.recurrence_id == event.recurrence_id:
            return previous
        return change.current_event

    # ===== Attendees =====

    def ensure_attendee(
        self,
        event: Event,
        reference: Optional[Event],
        context: SchedulingActionContext,
        session: CalendarSession,
    ) -> Event:
        """Make sure the acting owner attends the event with the status the action implies.

        Args:
            event: The incoming event, modified in place.
            reference: Stored event to carry the current status over from.
            context: The action context.
            session: The calendar session.

        Returns:
            The event.
        """
        attendees = list(event.attendees or [])
        attendee = next((a for a in attendees if a.entity == context.owner), None)
        if attendee is None:
            if session.entity_resolver is None:
                logger.warning(f"No entity resolver available to add user {context.owner}")
                return event
            try:
                attendee = session.entity_resolver.prepare_user_attendee(context.owner)
            except EntityResolutionError as e:
                logger.error(f"Could not resolve user with identifier {context.owner}: {e}")
                return event
        else:
            attendees.remove(attendee)

        changes = {}
        status = self._participation_status(reference, context.action, context.owner)
        if status is not None:
            changes["part_stat"] = status
            changes["rsvp"] = False
        if context.comment:
            changes["comment"] = context.comment
        attendees.append(attendee.model_copy(update=changes))
        event.attendees = attendees
        return event

    @staticmethod
    def _participation_status(
        reference: Optional[Event], action: ITipAction, owner: int
    ) -> Optional[ParticipationStatus]:
        if action in ACTION_STATUS:
            return ACTION_STATUS[action]
        if action == ITipAction.UPDATE and reference is not None:
            stored = reference.find_attendee(owner)
            return stored.part_stat if stored is not None else None
        return None

    def adjust_attendees_part_stats(
        self, context: SchedulingActionContext, original: Event, event: Event, diff: EventDiff
    ) -> Event:
        """Keep the stored replies of other attendees when the owner only replies.

        A reply payload may echo outdated statuses of other attendees; those
        are reset to the stored values so concurrent replies are not lost.

        Args:
            context: The action context.
            original: The stored event.
            event: The incoming event, modified in place.
            diff: Differences between original and event.

        Returns:
            The event.
        """
        if context.action not in OWN_STATE_ACTIONS or not diff.is_about_state_changes_only():
            return event
        if diff.is_about_certain_participants_state_change_only(context.owner):
            return event

        attendees: list[Attendee] = []
        for attendee in event.attendees or []:
            stored = None
            if attendee.is_internal and attendee.entity != context.owner:
                stored = original.find_attendee(attendee.entity)
            if stored is None:
                attendees.append(attendee)
                continue
            if stored.part_stat != attendee.part_stat or stored.comment != attendee.comment:
                logger.debug(f"Restoring stored reply of attendee {attendee.entity} in {event.get_summary()}")
            attendees.append(attendee.model_copy(update={"part_stat": stored.part_stat, "comment": stored.comment}))
        event.attendees = attendees
        return event

    # ===== Storage =====

    def build_update(self, original: Event, event: Event) -> Optional[Event]:
        """Build the payload updating original to event.

        Only changed fields are carried, plus the identity fields of the
        stored event.

        Args:
            original: The stored event.
            event: The desired state.

        Returns:
            The payload, None if nothing changed.
        """
        diff = self.differ.compare(original, event, ignored=PAYLOAD_IGNORED_FIELDS, consider_unset=False)
        if diff.is_empty():
            return None

        update = self.differ.copy(event, Event(), diff.updated_fields)
        update.folder_id = original.folder_id
        update.id = original.id
        if not update.contains(EventField.SEQUENCE):
            update.sequence = original.sequence
        if not update.contains(EventField.UID):
            update.uid = original.uid
        if not update.contains(EventField.ORGANIZER):
            update.organizer = original.organizer
        if original.series_id is not None:
            update.series_id = original.series_id
        if original.recurrence_id is not None:
            update.recurrence_id = original.recurrence_id
        elif event.recurrence_id is not None:
            update.recurrence_id = event.recurrence_id
        return update

    def _update_event(self, original: Event, event: Event, session: CalendarSession) -> Optional[Event]:
        update = self.build_update(original, event)
        if update is None:
            logger.debug(f"Did not write any data for {event.get_summary()}")
            return None

        event_id = EventID(folder_id=update.folder_id, object_id=update.id)
        result = self.calendar_service.update_event_as_organizer(session, event_id, update, original.last_modified)
        written = _first_written(result)
        if written is None:
            logger.warning(f"Wrote data but found no resulting event for {event.get_summary()}")
        return written

    def _create_event(self, event: Event, session: CalendarSession) -> Optional[Event]:
        result = self.calendar_service.create_event(session, event.folder_id, event)
        if not result.creations:
            logger.warning(f"Storage reported no creation for {event.get_summary()}")
            return None
        return result.creations[0].created_event

    # ===== Mail =====

    def _write_mail(
        self, context: SchedulingActionContext, original: Optional[Event], written: Event, session: CalendarSession
    ) -> None:
        generator = self.generator_factory.create(original, written, session, context.owner, None, context.comment)
        change_type = ChangeType.NEW if original is None else ChangeType.MODIFIED
        for participant in generator.get_recipients():
            if original is None:
                mail = generator.generate_create_mail_for(participant)
            else:
                mail = generator.generate_update_mail_for(participant)
            if mail is None:
                continue
            if mail.change_type is None:
                mail.change_type = change_type
            self.sender.send_mail(mail, session, None, context.comment)


def _first_written(result: CalendarResult) -> Optional[Event]:
    # Party crashers and new occurrences surface as creations
    if result.creations:
        return result.creations[0].created_event
    if result.updates:
        return result.updates[0].update
    return None

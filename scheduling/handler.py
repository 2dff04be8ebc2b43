"""Dispatch of scheduling notifications for storage transactions."""

import logging
from typing import Optional

from models.event import AttendeeField, Event, EventField
from models.mutation import CalendarTransaction, SchedulingControl, UpdateResult
from models.notification import ChangeType, NotificationIntent, NotificationMail, NotificationParticipant
from scheduling.classifier import ChangeClassifier
from scheduling.config import MailFailurePolicy, SchedulingSettings
from scheduling.exceptions import CalendarStorageError, SchedulingError
from scheduling.ports import CalendarService, CalendarSession, MailGenerator, MailGeneratorFactory, MailSender

logger = logging.getLogger(__name__)

BOOKKEEPING_ATTENDEE_FIELDS = frozenset({AttendeeField.HIDDEN, AttendeeField.TRANSP})

EVENT_FIELDS_BUT_ATTENDEES = frozenset(EventField) - {
    EventField.ATTENDEES,
    EventField.TIMESTAMP,
    EventField.LAST_MODIFIED,
    EventField.MODIFIED_BY,
}


class ITipHandler:
    """Sends scheduling notifications for the mutations of storage transactions.

    Args:
        classifier: Turns mutations into notification intents.
        calendar_service: Opens the calendar session used for rendering and sending.
        generator_factory: Creates mail generators per intent.
        sender: Transmits rendered mails.
        settings: Runtime settings, defaults if None.
    """

    def __init__(
        self,
        classifier: ChangeClassifier,
        calendar_service: CalendarService,
        generator_factory: MailGeneratorFactory,
        sender: MailSender,
        settings: Optional[SchedulingSettings] = None,
    ):
        self.classifier = classifier
        self.calendar_service = calendar_service
        self.generator_factory = generator_factory
        self.sender = sender
        self.settings = settings or SchedulingSettings()

    def should_handle(self, transaction: Optional[CalendarTransaction]) -> bool:
        """Check if a transaction warrants notifications at all.

        Transactions of other accounts, transactions with scheduling turned
        off and transactions whose updates only toggle per-attendee
        visibility flags are skipped.

        Args:
            transaction: The transaction to check.

        Returns:
            True if the transaction should be classified and dispatched.
        """
        if transaction is None or not self.settings.enabled:
            return False
        if transaction.account_id != self.settings.default_account_id:
            return False
        if transaction.parameters.scheduling == SchedulingControl.NONE:
            return False
        if transaction.creations or transaction.deletions or not transaction.updates:
            return True
        return not all(_is_attendee_bookkeeping_only(update) for update in transaction.updates)

    def handle(self, transaction: Optional[CalendarTransaction]) -> list[NotificationIntent]:
        """Classify a transaction and send a notification for every intent.

        Args:
            transaction: The mutations of one storage transaction.

        Returns:
            The intents that were dispatched.
        """
        if transaction is None:
            logger.debug("No calendar transaction to handle")
            return []
        if not self.should_handle(transaction):
            logger.debug(f"Skipping transaction of calendar user {transaction.calendar_user}")
            return []

        # Nothing is sent unless the whole transaction could be classified
        try:
            session = self.calendar_service.init(transaction.user_id, transaction.parameters)
            intents = self.classifier.classify(transaction).intents
        except CalendarStorageError as e:
            logger.error(f"Unable to handle calendar transaction of user {transaction.user_id}: {e}")
            return []

        for intent in intents:
            sent = self._dispatch(intent, session, transaction)
            logger.info(f"Sent {sent} notifications for {intent.get_summary()}")
        return intents

    def _dispatch(self, intent: NotificationIntent, session: CalendarSession, transaction: CalendarTransaction) -> int:
        principal = transaction.parameters.principal
        comment = transaction.parameters.comment
        on_behalf_of = self.on_behalf_of(session, intent.update, transaction.calendar_user)

        # Generators may annotate the events they render
        original = intent.original.model_copy(deep=True) if intent.original is not None else None
        update = intent.update.model_copy(deep=True)

        try:
            generator = self.generator_factory.create(original, update, session, on_behalf_of, principal, comment)
            recipients = generator.get_recipients()
        except SchedulingError as e:
            logger.error(f"Unable to prepare notifications for {intent.get_summary()}: {e}")
            return 0

        sent = 0
        for participant in recipients:
            try:
                mail = self._generate(generator, intent.change_type, participant)
                if mail is None:
                    continue
                if mail.change_type is None:
                    mail.change_type = intent.change_type
                if intent.exceptions and mail.message is not None:
                    for exception in intent.exceptions:
                        mail.message.add_exception(exception.model_copy(deep=True))
                self.sender.send_mail(mail, session, principal, comment)
                sent += 1
            except SchedulingError as e:
                if self.settings.mail_failure_policy == MailFailurePolicy.FAIL_FAST:
                    logger.error(
                        f"Unable to notify {participant.email} about {intent.get_summary()}, "
                        f"skipping remaining recipients: {e}"
                    )
                    break
                logger.warning(f"Unable to notify {participant.email} about {intent.get_summary()}: {e}")
        return sent

    @staticmethod
    def _generate(
        generator: MailGenerator, change_type: ChangeType, participant: NotificationParticipant
    ) -> Optional[NotificationMail]:
        if change_type == ChangeType.NEW:
            return generator.generate_create_mail_for(participant)
        if change_type == ChangeType.NEW_EXCEPTION:
            return generator.generate_create_exception_mail_for(participant)
        if change_type == ChangeType.MODIFIED:
            return generator.generate_update_mail_for(participant)
        return generator.generate_delete_mail_for(participant)

    @staticmethod
    def on_behalf_of(session: CalendarSession, event: Event, calendar_user: int) -> Optional[int]:
        """Determine the entity a notification is sent on behalf of.

        Args:
            session: The calendar session.
            event: The changed event.
            calendar_user: Owner of the changed calendar.

        Returns:
            None if the session user acts as organizer in their own calendar,
            the organizer if the session user acts in their own calendar but
            does not organize the event, otherwise the calendar owner.
        """
        if calendar_user != session.user_id:
            return calendar_user
        if event.is_organizer(calendar_user):
            return None
        return event.organizer.entity if event.organizer is not None else None


def _is_attendee_bookkeeping_only(update: UpdateResult) -> bool:
    if update.contains_any_change_of(*EVENT_FIELDS_BUT_ATTENDEES):
        return False
    changes = update.attendee_updates
    if changes is None or changes.added_items or changes.removed_items or not changes.updated_items:
        return False
    return all(item.updated_fields <= BOOKKEEPING_ATTENDEE_FIELDS for item in changes.updated_items)

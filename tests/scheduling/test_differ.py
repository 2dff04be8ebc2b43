"""Unit tests for the field-level differ."""

from models.event import Alarm, AttendeeField, Event, EventField, ParticipationStatus
from scheduling.differ import (
    EVENT_DIFFER,
    ITipEventUpdate,
    build_update_result,
    diff_attendees,
)
from tests.fixtures.events import ALICE, BOB, ORGANIZER, create_attendee, create_event, modify


class TestModelDiffer:
    """Test comparison and copying of events."""

    def test_equal_events(self):
        """Verify identical events produce an empty diff."""
        event = create_event()

        diff = EVENT_DIFFER.compare(event, modify(event))

        assert diff.is_empty()

    def test_changed_field(self):
        """Verify changed fields are reported with old and new values."""
        event = create_event()

        diff = EVENT_DIFFER.compare(event, modify(event, summary="Retro"))

        assert diff.updated_fields == {EventField.SUMMARY}
        assert diff.old(EventField.SUMMARY) == "Team Meeting"
        assert diff.new(EventField.SUMMARY) == "Retro"

    def test_ignored_fields(self):
        """Verify ignored fields are not compared."""
        event = create_event()

        diff = EVENT_DIFFER.compare(
            event, modify(event, summary="Retro", sequence=4), ignored=[EventField.SEQUENCE]
        )

        assert diff.updated_fields == {EventField.SUMMARY}

    def test_restricted_fields(self):
        """Verify only requested fields are compared."""
        event = create_event()

        diff = EVENT_DIFFER.compare(
            event, modify(event, summary="Retro", location="Room 2"), fields=[EventField.LOCATION]
        )

        assert diff.updated_fields == {EventField.LOCATION}

    def test_unset_fields_skipped(self):
        """Verify consider_unset=False only compares fields set on the update."""
        event = create_event(location="Room 1")

        diff = EVENT_DIFFER.compare(event, Event(summary="Retro"), consider_unset=False)

        assert diff.updated_fields == {EventField.SUMMARY}

    def test_defaults_ignored(self):
        """Verify None and empty containers compare equal with ignore_defaults."""
        event = create_event(alarms=[])

        strict = EVENT_DIFFER.compare(event, modify(event, alarms=None))
        lenient = EVENT_DIFFER.compare(event, modify(event, alarms=None), ignore_defaults=True)

        assert strict.updated_fields == {EventField.ALARMS}
        assert lenient.is_empty()

    def test_lists_compare_regardless_of_order(self):
        """Verify reordered attendees are not a change."""
        event = create_event()

        diff = EVENT_DIFFER.compare(event, modify(event, attendees=list(reversed(event.attendees))))

        assert diff.is_empty()

    def test_copy(self):
        """Verify copy transfers the given fields and marks them as set."""
        source = create_event(location="Room 1")

        target = EVENT_DIFFER.copy(source, Event(), [EventField.SUMMARY, EventField.LOCATION])

        assert target.summary == "Team Meeting"
        assert target.location == "Room 1"
        assert target.contains(EventField.LOCATION)
        assert not target.contains(EventField.UID)


class TestDiffAttendees:
    """Test attendee change sets."""

    def test_added_and_removed(self):
        """Verify attendees are matched across both lists."""
        original = [create_attendee(ORGANIZER), create_attendee(ALICE)]
        updated = [create_attendee(ORGANIZER), create_attendee(BOB)]

        changes = diff_attendees(original, updated)

        assert [a.entity for a in changes.added_items] == [BOB]
        assert [a.entity for a in changes.removed_items] == [ALICE]
        assert changes.updated_items == ()

    def test_updated(self):
        """Verify per-attendee field changes."""
        original = [create_attendee(ALICE)]
        updated = [create_attendee(ALICE, ParticipationStatus.ACCEPTED, comment="See you")]

        changes = diff_attendees(original, updated)

        assert len(changes.updated_items) == 1
        assert changes.updated_items[0].updated_fields == {AttendeeField.PART_STAT, AttendeeField.COMMENT}

    def test_ignored_attendee_fields(self):
        """Verify ignored attendee fields do not produce updates."""
        original = [create_attendee(ALICE)]
        updated = [create_attendee(ALICE, hidden=True)]

        assert diff_attendees(original, updated, ignored=[AttendeeField.HIDDEN]).is_empty()

    def test_missing_lists(self):
        """Verify missing attendee lists are treated as empty."""
        assert diff_attendees(None, None).is_empty()


class TestBuildUpdateResult:
    """Test UpdateResult construction."""

    def test_fields_and_attendees(self):
        """Verify event fields and attendee changes are both reported."""
        original = create_event()
        attendees = [a.model_copy() for a in original.attendees]
        attendees[1] = attendees[1].model_copy(update={"folder_id": "cal-9"})

        result = build_update_result(original, modify(original, attendees=attendees, sequence=1))

        assert result.updated_fields == {EventField.ATTENDEES, EventField.SEQUENCE}
        assert result.attendee_updates.updated_items[0].updated_fields == {AttendeeField.FOLDER_ID}


class TestITipEventUpdate:
    """Test scheduling-relevant differences."""

    def test_bookkeeping_is_ignored(self):
        """Verify sequence, alarms and timestamps are not relevant."""
        event = create_event()
        update = modify(event, sequence=5, timestamp=99, alarms=[Alarm(trigger="-PT15M")])

        assert ITipEventUpdate(event, update).is_empty()

    def test_personal_attendee_fields_are_ignored(self):
        """Verify per-user attendee data is not relevant."""
        event = create_event()
        attendees = [a.model_copy(update={"hidden": True}) for a in event.attendees]

        assert ITipEventUpdate(event, modify(event, attendees=attendees)).is_empty()

    def test_state_changes_only(self):
        """Verify pure reply changes are recognized."""
        event = create_event()
        update = modify(event, attendees=[
            event.attendees[0],
            event.attendees[1].model_copy(update={"part_stat": ParticipationStatus.ACCEPTED, "rsvp": False}),
            event.attendees[2],
        ])

        diff = ITipEventUpdate(event, update)

        assert diff.updated_fields == {EventField.ATTENDEES}
        assert diff.is_about_state_changes_only()
        assert diff.is_about_certain_participants_state_change_only(ALICE)
        assert not diff.is_about_certain_participants_state_change_only(BOB)

    def test_state_changes_of_several_attendees(self):
        """Verify replies of several attendees are not a single participant's change."""
        event = create_event()
        update = modify(event, attendees=[
            event.attendees[0],
            event.attendees[1].model_copy(update={"part_stat": ParticipationStatus.ACCEPTED}),
            event.attendees[2].model_copy(update={"part_stat": ParticipationStatus.DECLINED}),
        ])

        diff = ITipEventUpdate(event, update)

        assert diff.is_about_state_changes_only()
        assert not diff.is_about_certain_participants_state_change_only(ALICE)

    def test_other_changes_are_not_state_only(self):
        """Verify event field changes rule out a pure reply."""
        event = create_event()
        update = modify(event, summary="Retro", attendees=[
            event.attendees[0],
            event.attendees[1].model_copy(update={"part_stat": ParticipationStatus.ACCEPTED}),
            event.attendees[2],
        ])

        diff = ITipEventUpdate(event, update)

        assert diff.updated_fields == {EventField.SUMMARY, EventField.ATTENDEES}
        assert not diff.is_about_state_changes_only()

    def test_added_attendee_is_not_state_only(self):
        """Verify a new attendee rules out a pure reply."""
        event = create_event()
        update = modify(event, attendees=event.attendees + [create_attendee(7)])

        assert not ITipEventUpdate(event, update).is_about_state_changes_only()

"""Calendar scheduling data models.

This package contains the records exchanged between calendar storage and
the scheduling logic: events and attendees, storage mutation records,
notification intents, time intervals and analyzed iTIP messages.
"""

from models.change_set import ChangeSet
from models.event import (
    Alarm,
    Attendee,
    AttendeeField,
    CalendarUser,
    Event,
    EventField,
    ParticipationStatus,
)
from models.interval import Availability, Available, BusyType, FbType, FreeBusyTime, Interval
from models.itip import (
    EventDiff,
    ITipAction,
    ITipAnalysis,
    ITipAttributes,
    ITipChange,
    FolderType,
    SchedulingActionContext,
)
from models.mutation import (
    AttendeeChanges,
    AttendeeUpdate,
    CalendarParameters,
    CalendarResult,
    CalendarTransaction,
    CreateResult,
    DeleteResult,
    SchedulingControl,
    UpdateResult,
)
from models.notification import (
    ChangeType,
    ITipMessagePayload,
    NotificationIntent,
    NotificationMail,
    NotificationParticipant,
)

__all__ = [
    "ChangeSet",
    "Alarm",
    "Attendee",
    "AttendeeField",
    "CalendarUser",
    "Event",
    "EventField",
    "ParticipationStatus",
    "Availability",
    "Available",
    "BusyType",
    "FbType",
    "FreeBusyTime",
    "Interval",
    "EventDiff",
    "ITipAction",
    "ITipAnalysis",
    "ITipAttributes",
    "ITipChange",
    "FolderType",
    "SchedulingActionContext",
    "AttendeeChanges",
    "AttendeeUpdate",
    "CalendarParameters",
    "CalendarResult",
    "CalendarTransaction",
    "CreateResult",
    "DeleteResult",
    "SchedulingControl",
    "UpdateResult",
    "ChangeType",
    "ITipMessagePayload",
    "NotificationIntent",
    "NotificationMail",
    "NotificationParticipant",
]

"""Scheduling change detection and notification dispatch.

ChangeClassifier turns the mutations of a storage transaction into
notification intents, ITipHandler sends them, and SchedulingActionApplier
writes a user's reply to a received scheduling message back into storage.
"""

from scheduling.applier import SchedulingActionApplier
from scheduling.classifier import ChangeClassifier, Classification, MutationKind, RecordState
from scheduling.config import MailFailurePolicy, SchedulingSettings, load_settings
from scheduling.differ import EVENT_DIFFER, Differ, ITipEventUpdate, ModelDiffer, RecordDiff
from scheduling.exceptions import (
    CalendarStorageError,
    EntityResolutionError,
    MailDeliveryError,
    SchedulingError,
)
from scheduling.handler import ITipHandler

__all__ = [
    "SchedulingActionApplier",
    "ChangeClassifier",
    "Classification",
    "MutationKind",
    "RecordState",
    "MailFailurePolicy",
    "SchedulingSettings",
    "load_settings",
    "EVENT_DIFFER",
    "Differ",
    "ITipEventUpdate",
    "ModelDiffer",
    "RecordDiff",
    "CalendarStorageError",
    "EntityResolutionError",
    "MailDeliveryError",
    "SchedulingError",
    "ITipHandler",
]

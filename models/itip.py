"""Models describing an analyzed incoming iTIP message."""

from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from models.event import Event


class ITipAction(str, Enum):
    """Action a user takes on a received scheduling message."""

    ACCEPT = "accept"
    ACCEPT_AND_IGNORE_CONFLICTS = "accept_and_ignore_conflicts"
    ACCEPT_AND_REPLACE = "accept_and_replace"
    ACCEPT_PARTY_CRASHER = "accept_party_crasher"
    DECLINE = "decline"
    TENTATIVE = "tentative"
    UPDATE = "update"
    CREATE = "create"
    COUNTER = "counter"
    DELEGATE = "delegate"
    DECLINECOUNTER = "declinecounter"
    IGNORE = "ignore"


# Actions through which a user only changes their own participation.
OWN_STATE_ACTIONS = frozenset({
    ITipAction.ACCEPT,
    ITipAction.ACCEPT_AND_IGNORE_CONFLICTS,
    ITipAction.ACCEPT_AND_REPLACE,
    ITipAction.DECLINE,
    ITipAction.TENTATIVE,
})


class FolderType(str, Enum):
    """Kind of calendar folder."""

    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


@runtime_checkable
class EventDiff(Protocol):
    """Scheduling-relevant differences between a stored and an incoming event.

    Implemented by scheduling.differ.ITipEventUpdate.
    """

    def is_empty(self) -> bool: ...

    def is_about_state_changes_only(self) -> bool: ...

    def is_about_certain_participants_state_change_only(self, entity: int) -> bool: ...


class ITipChange(BaseModel):
    """One change carried by an analyzed iTIP message.

    Args:
        new_event: The incoming event, None if there is nothing to apply.
        current_event: The stored event the change refers to, if any.
        master_event: The stored series master, if the change targets an occurrence.
        diff: ITipEventUpdate between current_event and new_event, computed
            on demand if None.
        exception: Whether the change targets an occurrence of a series.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    new_event: Optional[Event] = Field(default=None, description="Incoming event")
    current_event: Optional[Event] = Field(default=None, description="Stored event")
    master_event: Optional[Event] = Field(default=None, description="Stored series master")
    diff: Optional[EventDiff] = Field(
        default=None, description="ITipEventUpdate between stored and incoming event"
    )
    exception: bool = Field(default=False, description="Targets a series occurrence")


class ITipAnalysis(BaseModel):
    """Analysis of one incoming iTIP message.

    Args:
        owner: Entity the message was addressed to, None for the session user.
        method: iTIP method of the message.
        changes: Changes in the order they appear in the message.
    """

    owner: Optional[int] = Field(default=None, description="Addressed entity")
    method: Optional[str] = Field(default=None, description="iTIP method")
    changes: list[ITipChange] = Field(default_factory=list, description="Analyzed changes")


class ITipAttributes(BaseModel):
    """User-supplied attributes of an action."""

    confirmation_message: Optional[str] = Field(default=None, description="Reply comment")


class SchedulingActionContext(BaseModel):
    """Everything needed to apply one change of an iTIP message.

    Args:
        action: The action the user took.
        change: The analyzed change.
        owner: Entity acting on the change.
        comment: Optional confirmation comment.
    """

    action: ITipAction = Field(description="Action taken")
    change: ITipChange = Field(description="Analyzed change")
    owner: int = Field(description="Acting entity")
    comment: Optional[str] = Field(default=None, description="Confirmation comment")

    @property
    def is_exception_create(self) -> bool:
        """Whether applying this change creates a new occurrence of a stored series."""
        return (
            self.change.exception
            and self.change.master_event is not None
            and self.change.master_event.is_series_master()
            and self.change.new_event is not None
            and self.change.new_event.id is None
        )

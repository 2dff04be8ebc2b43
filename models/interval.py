"""Time interval models used by free/busy and availability computations."""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TimePoint = Union[datetime, date]


class BusyType(str, Enum):
    """Busy type of an availability component."""

    BUSY = "BUSY"
    BUSY_UNAVAILABLE = "BUSY-UNAVAILABLE"
    BUSY_TENTATIVE = "BUSY-TENTATIVE"


class FbType(str, Enum):
    """Free/busy type of a free/busy slot."""

    FREE = "FREE"
    BUSY = "BUSY"
    BUSY_UNAVAILABLE = "BUSY-UNAVAILABLE"
    BUSY_TENTATIVE = "BUSY-TENTATIVE"


class Interval(BaseModel):
    """A half-open time range.

    Start and end are either both timestamps or both dates. Callers are
    expected to pass start <= end; this is not validated.

    Args:
        start: Start of the range.
        end: End of the range.
    """

    model_config = ConfigDict(frozen=True)

    start: TimePoint = Field(description="Start of the range")
    end: TimePoint = Field(description="End of the range")

    @property
    def is_date_only(self) -> bool:
        """Whether this interval has day granularity."""
        return not isinstance(self.start, datetime)


class Available(Interval):
    """A block of time inside an availability component during which the user is free."""

    uid: Optional[str] = Field(default=None, description="Component UID")
    summary: Optional[str] = Field(default=None, description="Summary")
    location: Optional[str] = Field(default=None, description="Location")


class FreeBusyTime(Interval):
    """A free/busy slot."""

    fb_type: FbType = Field(default=FbType.BUSY, description="Free/busy type")


class Availability(Interval):
    """An availability window with its free blocks."""

    busy_type: BusyType = Field(default=BusyType.BUSY_UNAVAILABLE, description="Busy type")
    available: list[Available] = Field(default_factory=list, description="Free blocks")

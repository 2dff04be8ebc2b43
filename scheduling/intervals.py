"""Relations between time intervals.

Timestamp intervals use strict bounds for overlap: two ranges that only
touch do not intersect. Day-granular intervals treat a shared boundary day
as overlap when deciding whether one range precedes or succeeds another.
"""

from enum import Enum

from models.interval import Available, BusyType, FbType, Interval


class Overlap(str, Enum):
    """How interval A relates to interval B."""

    NONE = "none"
    CONTAINS = "contains"
    CONTAINED = "contained"
    PRECEDES = "precedes"
    SUCCEEDS = "succeeds"


def intersects(a: Interval, b: Interval) -> bool:
    """Check if A and B overlap.

    Args:
        a: Interval A.
        b: Interval B.

    Returns:
        True if A starts before B ends and A ends after B starts.
    """
    return a.start < b.end and a.end > b.start


def contains(a: Interval, b: Interval) -> bool:
    """Check if A fully contains B, boundaries included."""
    return a.start <= b.start and a.end >= b.end


def precedes_and_intersects(a: Interval, b: Interval) -> bool:
    """Check if A overlaps the left edge of B.

    Args:
        a: Interval A.
        b: Interval B.

    Returns:
        True if both intersect, A starts before B and A ends inside B.
    """
    if not intersects(a, b):
        return False
    if a.is_date_only:
        return a.start <= b.start and a.end > b.start
    return a.start < b.start and a.end > b.start


def succeeds_and_intersects(a: Interval, b: Interval) -> bool:
    """Check if A overlaps the right edge of B.

    Args:
        a: Interval A.
        b: Interval B.

    Returns:
        True if both intersect, A starts inside B and A ends after B.
    """
    if not intersects(a, b):
        return False
    if a.is_date_only:
        return a.start < b.end and a.end >= b.end
    return a.start < b.end and a.end > b.end


def intersects_but_not_contained(a: Interval, b: Interval) -> bool:
    """Check if A and B overlap without either containing the other."""
    if not intersects(a, b):
        return False
    return (a.start < b.start and a.end < b.end) or (a.start > b.start and a.end > b.end)


def merge(a: Interval, b: Interval) -> Interval:
    """Return the smallest interval covering both A and B."""
    return Interval(start=min(a.start, b.start), end=max(a.end, b.end))


def merge_available(a: Available, b: Available) -> Available:
    """Merge two available blocks into one spanning both.

    Only the time range is merged.
    """
    merged = merge(a, b)
    # TODO: carry uid, summary and location of a and b over to the merged block
    return Available(start=merged.start, end=merged.end)


def classify_overlap(a: Interval, b: Interval) -> Overlap:
    """Describe how A overlaps B.

    Args:
        a: Interval A.
        b: Interval B.

    Returns:
        The relation of A to B, Overlap.NONE if they do not intersect.
    """
    if not intersects(a, b):
        return Overlap.NONE
    if contains(b, a):
        return Overlap.CONTAINED
    if contains(a, b):
        return Overlap.CONTAINS
    if precedes_and_intersects(a, b):
        return Overlap.PRECEDES
    return Overlap.SUCCEEDS


def convert_free_busy_type(busy_type: BusyType) -> FbType:
    """Map the busy type of an availability component to a free/busy type."""
    if busy_type == BusyType.BUSY_TENTATIVE:
        return FbType.BUSY_TENTATIVE
    if busy_type == BusyType.BUSY_UNAVAILABLE:
        return FbType.BUSY_UNAVAILABLE
    return FbType.BUSY

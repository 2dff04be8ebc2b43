"""Free/busy slot computation for availability windows."""

import logging

from models.interval import Availability, FreeBusyTime
from scheduling.intervals import (
    contains,
    convert_free_busy_type,
    precedes_and_intersects,
    succeeds_and_intersects,
)

logger = logging.getLogger(__name__)


def calculate_free_busy_times(availability: Availability) -> list[FreeBusyTime]:
    """Derive busy slots of an availability window from its free blocks.

    Every stretch of the window not covered by an available block becomes a
    slot with the free/busy type matching the window's busy type. Overlapping
    available blocks count as one. A window without available blocks is busy
    as a whole.

    Args:
        availability: The availability window.

    Returns:
        Busy slots in chronological order.
    """
    fb_type = convert_free_busy_type(availability.busy_type)
    if not availability.available:
        return [FreeBusyTime(start=availability.start, end=availability.end, fb_type=fb_type)]

    slots = []
    cursor = availability.start
    for available in sorted(availability.available, key=lambda a: (a.start, a.end)):
        if available.end <= cursor:
            # Covered by an earlier block
            continue
        if available.start > cursor:
            slots.append(FreeBusyTime(start=cursor, end=available.start, fb_type=fb_type))
        cursor = available.end

    if availability.end > cursor:
        slots.append(FreeBusyTime(start=cursor, end=availability.end, fb_type=fb_type))
    return slots


def adjust_ranges(
    availability_times: list[FreeBusyTime], event_times: list[FreeBusyTime]
) -> list[FreeBusyTime]:
    """Carve availability slots around the slots occupied by events.

    For each event slot, availability slots inside it are dropped, slots
    overlapped on one side are trimmed, and slots that fully contain the
    event slot are split into the parts before and after it.

    Args:
        availability_times: Slots derived from availability windows.
        event_times: Slots occupied by events.

    Returns:
        The event slots, followed by split parts, followed by the remaining
        availability slots.
    """
    remaining = list(availability_times)
    split_parts: list[FreeBusyTime] = []

    for event_time in event_times:
        adjusted = []
        for slot in remaining:
            if contains(event_time, slot):
                continue
            if precedes_and_intersects(event_time, slot):
                adjusted.append(slot.model_copy(update={"start": event_time.end}))
            elif succeeds_and_intersects(event_time, slot):
                adjusted.append(slot.model_copy(update={"end": event_time.start}))
            elif contains(slot, event_time):
                split_parts.append(FreeBusyTime(start=slot.start, end=event_time.start, fb_type=slot.fb_type))
                split_parts.append(FreeBusyTime(start=event_time.end, end=slot.end, fb_type=slot.fb_type))
            else:
                adjusted.append(slot)
        remaining = adjusted

    logger.debug(
        f"Adjusted {len(availability_times)} availability slots around {len(event_times)} event slots "
        f"into {len(remaining) + len(split_parts)} slots"
    )
    return list(event_times) + split_parts + remaining

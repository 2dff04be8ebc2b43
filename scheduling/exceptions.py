"""Error types raised by the scheduling subsystem and its collaborators."""

from typing import Optional


class SchedulingError(Exception):
    """Base class for errors raised while classifying or applying scheduling changes."""


class CalendarStorageError(SchedulingError):
    """Raised by the storage or session layer.

    Args:
        message: Description of the failure.
        code: Optional storage-specific error code.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message if code is None else f"[{code}] {message}")


class MailDeliveryError(SchedulingError):
    """Raised when a notification mail cannot be generated or sent.

    Args:
        recipient: Address of the recipient the mail was meant for.
        message: Description of the failure.
    """

    def __init__(self, recipient: str, message: str):
        self.recipient = recipient
        self.message = message
        super().__init__(f"Unable to deliver notification to {recipient}: {message}")


class EntityResolutionError(SchedulingError):
    """Raised when an entity cannot be resolved to calendar user data.

    Args:
        entity: The entity identifier that could not be resolved.
    """

    def __init__(self, entity: int):
        self.entity = entity
        super().__init__(f"Unable to resolve entity {entity}")

"""Settings for scheduling notification dispatch."""

import os
from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class MailFailurePolicy(str, Enum):
    """What to do when one recipient's notification fails."""

    FAIL_FAST = "fail_fast"
    BEST_EFFORT = "best_effort"


class SchedulingSettings(BaseModel):
    """Runtime settings of the scheduling subsystem.

    Args:
        enabled: Whether notifications are dispatched at all.
        default_account_id: Only transactions of this calendar account are handled.
        mail_failure_policy: FAIL_FAST skips the remaining recipients of a
            change after the first failure, BEST_EFFORT continues with the
            next recipient.
    """

    enabled: bool = Field(default=True, description="Dispatch notifications")
    default_account_id: int = Field(default=0, description="Handled calendar account")
    mail_failure_policy: MailFailurePolicy = Field(
        default=MailFailurePolicy.FAIL_FAST, description="Per-recipient failure handling"
    )


ENV_ENABLED = "ITIP_SCHEDULING_ENABLED"
ENV_DEFAULT_ACCOUNT_ID = "ITIP_DEFAULT_ACCOUNT_ID"
ENV_MAIL_FAILURE_POLICY = "ITIP_MAIL_FAILURE_POLICY"


def load_settings() -> SchedulingSettings:
    """Build settings from the environment.

    Variables from a .env file are loaded first; unset variables keep
    their defaults.

    Returns:
        The validated settings.

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value.
    """
    load_dotenv()

    values = {}
    if ENV_ENABLED in os.environ:
        values["enabled"] = os.environ[ENV_ENABLED]
    if ENV_DEFAULT_ACCOUNT_ID in os.environ:
        values["default_account_id"] = os.environ[ENV_DEFAULT_ACCOUNT_ID]
    if ENV_MAIL_FAILURE_POLICY in os.environ:
        values["mail_failure_policy"] = os.environ[ENV_MAIL_FAILURE_POLICY].strip().lower()

    return SchedulingSettings(**values)

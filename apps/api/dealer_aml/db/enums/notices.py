"""Notice (SAT filing) enums."""

from enum import Enum


class NoticeStatus(str, Enum):
    """Status of a regulatory filing. Each step is a one-way door."""

    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    SUBMITTED = "SUBMITTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"


# A pending notice blocks creating another for the same reported month.
PENDING_NOTICE_STATUSES = (NoticeStatus.DRAFT.value, NoticeStatus.GENERATED.value)
FILED_NOTICE_STATUSES = (NoticeStatus.SUBMITTED.value, NoticeStatus.ACKNOWLEDGED.value)

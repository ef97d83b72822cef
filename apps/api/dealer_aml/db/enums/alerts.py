"""Alert lifecycle enums."""

from enum import Enum


class AlertStatus(str, Enum):
    """Lifecycle status of a suspicious-activity alert."""

    DETECTED = "DETECTED"
    FILE_GENERATED = "FILE_GENERATED"
    SUBMITTED = "SUBMITTED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class AlertSeverity(str, Enum):
    """Severity levels for alerts and alert rules."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# No transition is accepted out of these.
TERMINAL_ALERT_STATUSES = frozenset({AlertStatus.SUBMITTED, AlertStatus.CANCELLED})

# Statuses that can still be claimed into a notice.
CLAIMABLE_EXCLUDED_STATUSES = (AlertStatus.CANCELLED.value, AlertStatus.SUBMITTED.value)

"""Enum definitions for application constants."""

from dealer_aml.db.enums.alerts import (
    CLAIMABLE_EXCLUDED_STATUSES,
    TERMINAL_ALERT_STATUSES,
    AlertSeverity,
    AlertStatus,
)
from dealer_aml.db.enums.notices import (
    FILED_NOTICE_STATUSES,
    PENDING_NOTICE_STATUSES,
    NoticeStatus,
)
from dealer_aml.db.enums.references import (
    VEHICLE_BRAND_CATALOGS,
    CatalogKey,
    OperationType,
    PersonType,
    VehicleType,
)

__all__ = [
    "AlertSeverity",
    "AlertStatus",
    "CLAIMABLE_EXCLUDED_STATUSES",
    "CatalogKey",
    "FILED_NOTICE_STATUSES",
    "NoticeStatus",
    "OperationType",
    "PENDING_NOTICE_STATUSES",
    "PersonType",
    "TERMINAL_ALERT_STATUSES",
    "VEHICLE_BRAND_CATALOGS",
    "VehicleType",
]

"""Pydantic schemas for alerts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from dealer_aml.db.enums import AlertSeverity, AlertStatus
from dealer_aml.schemas.metadata import AlertMetadata
from dealer_aml.services.period_service import localize

RESOURCE_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class AlertCreate(BaseModel):
    """Request to create an alert. Idempotent on idempotency_key."""
    alert_rule_id: str = Field(..., min_length=1, max_length=64, pattern=RESOURCE_ID_PATTERN)
    client_id: UUID
    severity: AlertSeverity
    idempotency_key: str = Field(..., min_length=1, max_length=255)
    context_hash: str = Field(..., min_length=1, max_length=255)
    metadata: AlertMetadata = Field(default_factory=AlertMetadata)
    transaction_id: UUID | None = None
    submission_deadline: datetime | None = None
    is_manual: bool = False
    notes: str | None = Field(None, max_length=1000)

    @field_validator("submission_deadline")
    @classmethod
    def localize_deadline(cls, v: datetime | None) -> datetime | None:
        """Offset-less deadlines are SAT local time."""
        return localize(v)


class AlertTransition(BaseModel):
    """Request to move an alert through its lifecycle (partial)."""
    status: AlertStatus | None = None
    notes: str | None = Field(None, max_length=1000)
    reviewed_by: str | None = Field(None, max_length=100)
    file_generated_at: datetime | None = None
    submitted_at: datetime | None = None
    sat_acknowledgment_receipt: str | None = Field(None, max_length=500)
    sat_folio_number: str | None = Field(None, max_length=100)
    cancelled_by: str | None = Field(None, max_length=100)
    cancellation_reason: str | None = Field(None, max_length=1000)

    @field_validator("file_generated_at", "submitted_at")
    @classmethod
    def localize_timestamps(cls, v: datetime | None) -> datetime | None:
        return localize(v)


class AlertCancel(BaseModel):
    """Request to cancel an alert."""
    cancelled_by: str = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1, max_length=1000)


class AlertFilters(BaseModel):
    """Query filters for listing alerts."""
    alert_rule_id: str | None = None
    client_id: UUID | None = None
    status: AlertStatus | None = None
    severity: AlertSeverity | None = None
    is_overdue: bool | None = None
    is_manual: bool | None = None
    notice_id: UUID | None = None


class AlertRead(BaseModel):
    """Full alert response."""
    id: UUID
    organization_id: UUID
    alert_rule_id: str
    client_id: UUID
    status: AlertStatus
    severity: AlertSeverity
    idempotency_key: str
    context_hash: str
    metadata: dict = Field(validation_alias="alert_metadata")
    transaction_id: UUID | None
    is_manual: bool

    submission_deadline: datetime | None
    file_generated_at: datetime | None
    submitted_at: datetime | None
    sat_file_url: str | None
    sat_acknowledgment_receipt: str | None
    sat_folio_number: str | None
    is_overdue: bool

    notes: str | None
    reviewed_at: datetime | None
    reviewed_by: str | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None

    notice_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class AlertListResponse(BaseModel):
    items: list[AlertRead]
    total: int
    page: int
    per_page: int
    pages: int


class SweepResponse(BaseModel):
    flipped: int

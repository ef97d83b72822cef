"""Pydantic schemas for notices (SAT filings)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from dealer_aml.db.enums import NoticeStatus
from dealer_aml.services.period_service import localize


class NoticeCreate(BaseModel):
    """Request to create a notice for the 17-17 period labelled year/month."""
    name: str = Field(..., min_length=1, max_length=200)
    year: int = Field(..., ge=2020, le=2100)
    month: int = Field(..., ge=1, le=12)
    notes: str | None = Field(None, max_length=1000)


class NoticeUpdate(BaseModel):
    """Request to update a notice (partial)."""
    name: str | None = Field(None, min_length=1, max_length=200)
    notes: str | None = Field(None, max_length=1000)
    sat_folio_number: str | None = Field(None, max_length=100)


class NoticeSubmit(BaseModel):
    sat_folio_number: str | None = Field(None, max_length=100)


class NoticeAcknowledge(BaseModel):
    sat_folio_number: str = Field(..., min_length=1, max_length=100)


class NoticeFilters(BaseModel):
    status: NoticeStatus | None = None
    year: int | None = Field(None, ge=2020, le=2100)
    period_start: datetime | None = None
    period_end: datetime | None = None

    @field_validator("period_start", "period_end")
    @classmethod
    def localize_bounds(cls, v: datetime | None) -> datetime | None:
        return localize(v)


class NoticeRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    status: NoticeStatus
    period_start: datetime
    period_end: datetime
    reported_month: str
    record_count: int
    xml_file_key: str | None
    xml_file_url: str | None
    file_size: int | None
    file_checksum: str | None
    generated_at: datetime | None
    submitted_at: datetime | None
    sat_folio_number: str | None
    created_by: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RuleCount(BaseModel):
    rule_id: str
    rule_name: str
    count: int


class AlertSummary(BaseModel):
    total: int
    by_severity: dict[str, int]
    by_status: dict[str, int]
    by_rule: list[RuleCount]


class NoticeDetail(NoticeRead):
    alert_summary: AlertSummary


class NoticeListResponse(BaseModel):
    items: list[NoticeRead]
    total: int
    page: int
    per_page: int
    pages: int


class NoticePreview(BaseModel):
    total: int
    by_severity: dict[str, int]
    by_status: dict[str, int]
    period_start: datetime
    period_end: datetime
    reported_month: str
    display_name: str
    submission_deadline: datetime


class AvailableMonth(BaseModel):
    year: int
    month: int
    display_name: str
    has_pending_notice: bool
    has_submitted_notice: bool
    notice_count: int


class GeneratedDocumentRead(BaseModel):
    notice_id: UUID
    key: str
    url: str | None
    size: int
    checksum: str
    record_count: int


class NoticeDownload(BaseModel):
    file_key: str
    file_url: str | None
    file_size: int | None
    format: str = "xml"

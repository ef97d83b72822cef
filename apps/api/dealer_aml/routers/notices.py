"""Notice (SAT filing) API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dealer_aml.core.deps import get_db, get_document_store, get_org_id
from dealer_aml.core.exceptions import ComplianceError
from dealer_aml.db.enums import NoticeStatus
from dealer_aml.schemas.notice import (
    AlertSummary,
    AvailableMonth,
    GeneratedDocumentRead,
    NoticeAcknowledge,
    NoticeCreate,
    NoticeDetail,
    NoticeDownload,
    NoticeFilters,
    NoticeListResponse,
    NoticePreview,
    NoticeRead,
    NoticeSubmit,
    NoticeUpdate,
)
from dealer_aml.services import notice_service
from dealer_aml.services.document_store import DocumentStore
from dealer_aml.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter()


@router.get("", response_model=NoticeListResponse)
def list_notices(
    status_filter: NoticeStatus | None = Query(None, alias="status"),
    year: int | None = Query(None, ge=2020, le=2100),
    period_start: datetime | None = None,
    period_end: datetime | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    filters = NoticeFilters(
        status=status_filter, year=year, period_start=period_start, period_end=period_end,
    )
    items, total = notice_service.list_notices(db, org_id, filters, pagination)
    return NoticeListResponse(
        items=[NoticeRead.model_validate(n) for n in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination),
    )


@router.get("/preview", response_model=NoticePreview)
def preview_notice(
    year: int = Query(..., ge=2020, le=2100),
    month: int = Query(..., ge=1, le=12),
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Alerts a notice for the period would claim right now."""
    try:
        return notice_service.preview(db, org_id, year, month)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/available-months", response_model=list[AvailableMonth])
def available_months(
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    return notice_service.available_months(db, org_id)


@router.get("/{notice_id}", response_model=NoticeDetail)
def get_notice(
    notice_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Notice with a breakdown of its member alerts."""
    try:
        summary = notice_service.get_notice_summary(db, org_id, notice_id)
        notice = notice_service.get_notice(db, org_id, notice_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    read = NoticeRead.model_validate(notice)
    return NoticeDetail(**read.model_dump(), alert_summary=AlertSummary(**summary))


@router.post("", response_model=NoticeRead, status_code=status.HTTP_201_CREATED)
def create_notice(
    data: NoticeCreate,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Create a DRAFT notice for the period and claim its alerts."""
    try:
        return notice_service.create_notice(db, org_id, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{notice_id}", response_model=NoticeRead)
def update_notice(
    notice_id: UUID,
    data: NoticeUpdate,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return notice_service.patch_notice(db, org_id, notice_id, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{notice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notice(
    notice_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Delete a DRAFT notice, releasing its alerts."""
    try:
        notice_service.delete_notice(db, org_id, notice_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{notice_id}/generate", response_model=GeneratedDocumentRead)
def generate_notice(
    notice_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
):
    try:
        document = notice_service.generate_notice(db, org_id, notice_id, store)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return GeneratedDocumentRead(
        notice_id=document.notice_id,
        key=document.key,
        url=document.url,
        size=document.size,
        checksum=document.checksum,
        record_count=document.record_count,
    )


@router.get("/{notice_id}/download", response_model=NoticeDownload)
def download_notice(
    notice_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return notice_service.get_download_info(db, org_id, notice_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{notice_id}/submit", response_model=NoticeRead)
def submit_notice(
    notice_id: UUID,
    data: NoticeSubmit,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return notice_service.submit_notice(db, org_id, notice_id, data.sat_folio_number)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{notice_id}/acknowledge", response_model=NoticeRead)
def acknowledge_notice(
    notice_id: UUID,
    data: NoticeAcknowledge,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return notice_service.acknowledge_notice(db, org_id, notice_id, data.sat_folio_number)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

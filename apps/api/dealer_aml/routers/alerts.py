"""Alert API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from dealer_aml.core.deps import get_db, get_document_store, get_org_id
from dealer_aml.core.exceptions import ComplianceError
from dealer_aml.db.enums import AlertSeverity, AlertStatus
from dealer_aml.schemas.alert import (
    AlertCancel,
    AlertCreate,
    AlertFilters,
    AlertListResponse,
    AlertRead,
    AlertTransition,
    SweepResponse,
)
from dealer_aml.services import alert_file_service, alert_service
from dealer_aml.services.document_store import DocumentStore
from dealer_aml.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter()


@router.get("", response_model=AlertListResponse)
def list_alerts(
    alert_rule_id: str | None = None,
    client_id: UUID | None = None,
    status_filter: AlertStatus | None = Query(None, alias="status"),
    severity: AlertSeverity | None = None,
    is_overdue: bool | None = None,
    is_manual: bool | None = None,
    notice_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """List alerts (newest first). Runs the overdue sweep first."""
    filters = AlertFilters(
        alert_rule_id=alert_rule_id,
        client_id=client_id,
        status=status_filter,
        severity=severity,
        is_overdue=is_overdue,
        is_manual=is_manual,
        notice_id=notice_id,
    )
    items, total = alert_service.list_alerts(db, org_id, filters, pagination)
    return AlertListResponse(
        items=[AlertRead.model_validate(a) for a in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination),
    )


@router.post("/sweep-overdue", response_model=SweepResponse)
def sweep_overdue(
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Flip past-deadline alerts to OVERDUE."""
    return SweepResponse(flipped=alert_service.sweep_overdue(db, org_id))


@router.get("/{alert_id}", response_model=AlertRead)
def get_alert(
    alert_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return alert_service.get_alert(db, org_id, alert_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", response_model=AlertRead, status_code=status.HTTP_201_CREATED)
def create_alert(
    data: AlertCreate,
    response: Response,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """
    Create an alert.

    Idempotent on idempotency_key: a replay returns the stored alert with 200.
    """
    try:
        alert, created = alert_service.create_alert(db, org_id, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    if not created:
        response.status_code = status.HTTP_200_OK
    return alert


@router.patch("/{alert_id}", response_model=AlertRead)
def update_alert(
    alert_id: UUID,
    data: AlertTransition,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Transition status and/or record review fields."""
    fields = data.model_dump(exclude_unset=True)
    new_status = fields.pop("status", None)
    try:
        return alert_service.transition_alert(db, org_id, alert_id, new_status, **fields)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{alert_id}/cancel", response_model=AlertRead)
def cancel_alert(
    alert_id: UUID,
    data: AlertCancel,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    try:
        return alert_service.cancel_alert(db, org_id, alert_id, data.cancelled_by, data.reason)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{alert_id}/generate-file", response_model=AlertRead)
def generate_alert_file(
    alert_id: UUID,
    org_id: UUID = Depends(get_org_id),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
):
    """Render and store a standalone SAT file for one alert."""
    try:
        alert, _ = alert_file_service.generate_alert_file(db, org_id, alert_id, store)
        return alert
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

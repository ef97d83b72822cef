"""
Alert lifecycle service.

Creation is idempotent on (organization, idempotency_key). Status changes
are conditional updates keyed on the status the caller saw, so two
concurrent transitions can never both win. "Overdue" is materialized
lazily by sweep_overdue, which every read path runs first.
"""
import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, case, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dealer_aml.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from dealer_aml.core.structured_logging import build_log_context
from dealer_aml.db.enums import TERMINAL_ALERT_STATUSES, AlertStatus
from dealer_aml.db.models import Alert
from dealer_aml.schemas.alert import AlertCreate, AlertFilters
from dealer_aml.schemas.metadata import AlertMetadata
from dealer_aml.services import alert_rule_service, period_service
from dealer_aml.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)

_TERMINAL_VALUES = tuple(s.value for s in TERMINAL_ALERT_STATUSES)
_SWEEP_EXCLUDED = _TERMINAL_VALUES + (AlertStatus.OVERDUE.value,)
_FILE_GENERATED_SOURCES = (AlertStatus.DETECTED.value, AlertStatus.OVERDUE.value)


class AlertNotFoundError(NotFoundError):
    """Alert not found in the organization."""


class ManualOnlyRuleError(ConflictError):
    """Automatic detection tried to populate a manual-only rule."""


class AlertTransitionError(InvalidStateError):
    """Transition not allowed from the alert's current status."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Derived state
# =============================================================================

def compute_is_overdue(status: str, deadline: datetime | None, now: datetime) -> bool:
    """The one rule for is_overdue: deadline passed and not submitted or cancelled."""
    if deadline is None or status in _TERMINAL_VALUES:
        return False
    return now > deadline


def _open_alert_overdue_expression(now: datetime):
    """SQL form of compute_is_overdue for rows already known to be open."""
    return case(
        (
            and_(
                Alert.submission_deadline.is_not(None),
                Alert.submission_deadline < now,
            ),
            True,
        ),
        else_=False,
    )


def resolve_default_deadline(alert: Alert) -> datetime:
    """
    Default deadline when the caller supplied none.

    Applied when the alert is claimed into a notice, never at creation.
    """
    return period_service.default_deadline_for(alert.created_at)


def apply_default_deadlines(db: Session, org_id: UUID, notice_id: UUID, deadline: datetime) -> int:
    """Stamp deadline on claimed alerts that have none. Caller commits."""
    now = _now()
    return db.query(Alert).filter(
        Alert.organization_id == org_id,
        Alert.notice_id == notice_id,
        Alert.submission_deadline.is_(None),
    ).update(
        {
            Alert.submission_deadline: deadline,
            Alert.is_overdue: case(
                (Alert.status.not_in(_TERMINAL_VALUES), deadline < now),
                else_=False,
            ),
            Alert.updated_at: now,
        },
        synchronize_session=False,
    )


# =============================================================================
# Overdue sweep
# =============================================================================

def sweep_overdue(db: Session, org_id: UUID, now: datetime | None = None) -> int:
    """
    Flip every past-deadline, still-open alert to OVERDUE.

    A single conditional update, so concurrent sweeps flip each row once.
    Never raises: a failed sweep is logged and reads carry on.
    """
    now = now or _now()
    try:
        flipped = db.query(Alert).filter(
            Alert.organization_id == org_id,
            Alert.submission_deadline.is_not(None),
            Alert.submission_deadline < now,
            Alert.status.not_in(_SWEEP_EXCLUDED),
        ).update(
            {
                Alert.status: AlertStatus.OVERDUE.value,
                Alert.is_overdue: True,
                Alert.updated_at: now,
            },
            synchronize_session=False,
        )
        if flipped:
            db.commit()
            logger.info("Overdue sweep flipped alerts", extra=build_log_context(org_id=org_id, count=flipped))
        return flipped
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Overdue sweep failed", extra=build_log_context(org_id=org_id))
        return 0


# =============================================================================
# Reads
# =============================================================================

def _find_by_key(db: Session, org_id: UUID, idempotency_key: str) -> Alert | None:
    return db.scalar(
        select(Alert).where(
            Alert.organization_id == org_id,
            Alert.idempotency_key == idempotency_key,
        )
    )


def _get(db: Session, org_id: UUID, alert_id: UUID) -> Alert:
    alert = db.scalar(
        select(Alert).where(Alert.id == alert_id, Alert.organization_id == org_id)
    )
    if not alert:
        raise AlertNotFoundError(f"Alert {alert_id} not found")
    return alert


def get_alert(db: Session, org_id: UUID, alert_id: UUID) -> Alert:
    """Get a single alert scoped to org (runs the overdue sweep first)."""
    sweep_overdue(db, org_id)
    return _get(db, org_id, alert_id)


def _filtered_query(db: Session, org_id: UUID, filters: AlertFilters | None):
    query = db.query(Alert).filter(Alert.organization_id == org_id)
    if not filters:
        return query
    if filters.alert_rule_id:
        query = query.filter(Alert.alert_rule_id == filters.alert_rule_id)
    if filters.client_id:
        query = query.filter(Alert.client_id == filters.client_id)
    if filters.status:
        query = query.filter(Alert.status == filters.status.value)
    if filters.severity:
        query = query.filter(Alert.severity == filters.severity.value)
    if filters.is_overdue is not None:
        query = query.filter(Alert.is_overdue.is_(filters.is_overdue))
    if filters.is_manual is not None:
        query = query.filter(Alert.is_manual.is_(filters.is_manual))
    if filters.notice_id:
        query = query.filter(Alert.notice_id == filters.notice_id)
    return query


def list_alerts(
    db: Session,
    org_id: UUID,
    filters: AlertFilters | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Alert], int]:
    """List alerts newest first. Returns (items, total)."""
    sweep_overdue(db, org_id)
    pagination = pagination or PaginationParams()
    query = _filtered_query(db, org_id, filters)
    total = query.count()
    items = (
        query.order_by(Alert.created_at.desc(), Alert.id)
        .offset(pagination.offset)
        .limit(pagination.per_page)
        .all()
    )
    return items, total


def count_alerts(db: Session, org_id: UUID, filters: AlertFilters | None = None) -> int:
    sweep_overdue(db, org_id)
    return _filtered_query(db, org_id, filters).count()


# =============================================================================
# Create
# =============================================================================

def create_alert(db: Session, org_id: UUID, data: AlertCreate) -> tuple[Alert, bool]:
    """
    Create an alert, or return the existing one for the same idempotency key.

    Returns (alert, created). A replay returns the stored alert unchanged.
    """
    existing = _find_by_key(db, org_id, data.idempotency_key)
    if existing:
        logger.debug(
            "Alert create replayed",
            extra=build_log_context(org_id=org_id, alert_id=existing.id, rule_id=existing.alert_rule_id),
        )
        return existing, False

    rule = alert_rule_service.get_rule(db, data.alert_rule_id)
    if not rule or not rule.active:
        raise alert_rule_service.AlertRuleNotFoundError(
            f"Alert rule {data.alert_rule_id} not found or inactive"
        )
    if rule.is_manual_only and not data.is_manual:
        raise ManualOnlyRuleError(
            f"Alert rule {rule.id} is manual-only and cannot be populated automatically"
        )

    now = _now()
    alert = Alert(
        organization_id=org_id,
        alert_rule_id=rule.id,
        client_id=data.client_id,
        status=AlertStatus.DETECTED.value,
        severity=data.severity.value,
        idempotency_key=data.idempotency_key,
        context_hash=data.context_hash,
        alert_metadata=data.metadata.to_payload(),
        transaction_id=data.transaction_id,
        is_manual=data.is_manual,
        submission_deadline=data.submission_deadline,
        is_overdue=compute_is_overdue(AlertStatus.DETECTED.value, data.submission_deadline, now),
        notes=data.notes,
        created_at=now,
        updated_at=now,
    )
    try:
        with db.begin_nested():
            db.add(alert)
    except IntegrityError:
        # Lost a race with a concurrent create for the same key.
        existing = _find_by_key(db, org_id, data.idempotency_key)
        if existing:
            return existing, False
        raise
    db.commit()
    db.refresh(alert)
    logger.info(
        "Alert created",
        extra=build_log_context(org_id=org_id, alert_id=alert.id, rule_id=alert.alert_rule_id),
    )
    return alert, True


def alert_metadata(alert: Alert) -> AlertMetadata:
    return AlertMetadata.model_validate(alert.alert_metadata or {})


# =============================================================================
# Transitions
# =============================================================================

def _status_changes(
    alert: Alert,
    new_status: AlertStatus,
    now: datetime,
    file_generated_at: datetime | None,
    submitted_at: datetime | None,
    cancelled_by: str | None,
    cancellation_reason: str | None,
) -> dict:
    current = alert.status
    if current in _TERMINAL_VALUES:
        raise AlertTransitionError(f"Alert {alert.id} is {current} and cannot change status")

    if new_status == AlertStatus.FILE_GENERATED:
        if current not in _FILE_GENERATED_SOURCES:
            raise AlertTransitionError(f"Cannot mark alert {alert.id} FILE_GENERATED from {current}")
        return {"file_generated_at": file_generated_at or now}

    if new_status == AlertStatus.SUBMITTED:
        return {"submitted_at": submitted_at or now}

    if new_status == AlertStatus.CANCELLED:
        if not cancelled_by:
            raise ValidationError("cancelled_by is required to cancel an alert")
        return {
            "cancelled_at": now,
            "cancelled_by": cancelled_by,
            "cancellation_reason": cancellation_reason,
        }

    if new_status == AlertStatus.OVERDUE:
        deadline = alert.submission_deadline
        if deadline is None or deadline >= now:
            raise AlertTransitionError(f"Alert {alert.id} deadline has not passed")
        return {}

    raise AlertTransitionError(f"Cannot move alert {alert.id} from {current} to {new_status.value}")


def transition_alert(
    db: Session,
    org_id: UUID,
    alert_id: UUID,
    status: AlertStatus | None = None,
    *,
    notes: str | None = None,
    reviewed_by: str | None = None,
    file_generated_at: datetime | None = None,
    submitted_at: datetime | None = None,
    sat_acknowledgment_receipt: str | None = None,
    sat_folio_number: str | None = None,
    sat_file_url: str | None = None,
    cancelled_by: str | None = None,
    cancellation_reason: str | None = None,
) -> Alert:
    """
    Move an alert to a new status and/or record review fields.

    Setting reviewed_by stamps reviewed_at whatever the status.
    is_overdue is always recomputed, never taken from the caller.
    """
    alert = _get(db, org_id, alert_id)
    now = _now()
    prior_status = alert.status

    values: dict = {}
    final_status = prior_status
    if status is not None and status.value != prior_status:
        values.update(_status_changes(
            alert, status, now, file_generated_at, submitted_at, cancelled_by, cancellation_reason,
        ))
        final_status = status.value
        values["status"] = final_status
    elif status is not None and prior_status in _TERMINAL_VALUES:
        raise AlertTransitionError(f"Alert {alert.id} is already {prior_status}")

    if notes is not None:
        values["notes"] = notes
    if reviewed_by is not None:
        values["reviewed_by"] = reviewed_by
        values["reviewed_at"] = now
    if sat_acknowledgment_receipt is not None:
        values["sat_acknowledgment_receipt"] = sat_acknowledgment_receipt
    if sat_folio_number is not None:
        values["sat_folio_number"] = sat_folio_number
    if sat_file_url is not None:
        values["sat_file_url"] = sat_file_url

    values["is_overdue"] = compute_is_overdue(final_status, alert.submission_deadline, now)
    values["updated_at"] = now

    updated = db.query(Alert).filter(
        Alert.id == alert.id,
        Alert.organization_id == org_id,
        Alert.status == prior_status,
    ).update(
        {getattr(Alert, key): value for key, value in values.items()},
        synchronize_session=False,
    )
    if not updated:
        db.rollback()
        raise AlertTransitionError(f"Alert {alert_id} changed status concurrently; retry")
    db.commit()
    db.refresh(alert)

    if final_status != prior_status:
        logger.info(
            "Alert transitioned",
            extra=build_log_context(org_id=org_id, alert_id=alert.id, status=final_status),
        )
    return alert


def cancel_alert(
    db: Session,
    org_id: UUID,
    alert_id: UUID,
    cancelled_by: str,
    reason: str | None = None,
) -> Alert:
    return transition_alert(
        db,
        org_id,
        alert_id,
        AlertStatus.CANCELLED,
        cancelled_by=cancelled_by,
        cancellation_reason=reason,
    )


# =============================================================================
# Bulk transitions driven by notices
# =============================================================================

def mark_notice_alerts_generated(db: Session, org_id: UUID, notice_id: UUID, now: datetime) -> int:
    """Open member alerts become FILE_GENERATED. Caller commits."""
    return db.query(Alert).filter(
        Alert.organization_id == org_id,
        Alert.notice_id == notice_id,
        Alert.status.not_in(_TERMINAL_VALUES),
    ).update(
        {
            Alert.status: AlertStatus.FILE_GENERATED.value,
            Alert.file_generated_at: now,
            Alert.is_overdue: _open_alert_overdue_expression(now),
            Alert.updated_at: now,
        },
        synchronize_session=False,
    )


def mark_notice_alerts_submitted(
    db: Session,
    org_id: UUID,
    notice_id: UUID,
    now: datetime,
    folio: str | None = None,
) -> int:
    """
    Open member alerts become SUBMITTED. Caller commits.

    Alerts already SUBMITTED keep their submitted_at; the folio still goes
    on every non-cancelled member.
    """
    flipped = db.query(Alert).filter(
        Alert.organization_id == org_id,
        Alert.notice_id == notice_id,
        Alert.status.not_in(_TERMINAL_VALUES),
    ).update(
        {
            Alert.status: AlertStatus.SUBMITTED.value,
            Alert.submitted_at: now,
            Alert.is_overdue: False,
            Alert.updated_at: now,
        },
        synchronize_session=False,
    )
    if folio:
        db.query(Alert).filter(
            Alert.organization_id == org_id,
            Alert.notice_id == notice_id,
            Alert.status != AlertStatus.CANCELLED.value,
        ).update(
            {Alert.sat_folio_number: folio, Alert.updated_at: now},
            synchronize_session=False,
        )
    return flipped


def set_notice_alerts_folio(db: Session, org_id: UUID, notice_id: UUID, folio: str, now: datetime) -> int:
    """Folio goes on every member alert; statuses are untouched. Caller commits."""
    return db.query(Alert).filter(
        Alert.organization_id == org_id,
        Alert.notice_id == notice_id,
    ).update(
        {Alert.sat_folio_number: folio, Alert.updated_at: now},
        synchronize_session=False,
    )

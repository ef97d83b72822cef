"""
Notice (SAT filing) service.

A notice bundles every alert of one 17-17 period. Alerts are claimed with
a single conditional bulk update (notice_id IS NULL), so two notices can
never count the same alert. Each status change is a conditional update on
the expected prior status: DRAFT -> GENERATED -> SUBMITTED -> ACKNOWLEDGED.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealer_aml.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from dealer_aml.core.structured_logging import build_log_context
from dealer_aml.db.enums import (
    CLAIMABLE_EXCLUDED_STATUSES,
    FILED_NOTICE_STATUSES,
    PENDING_NOTICE_STATUSES,
    AlertStatus,
    NoticeStatus,
)
from dealer_aml.db.models import Alert, AlertRule, Notice
from dealer_aml.schemas.notice import NoticeCreate, NoticeFilters, NoticeUpdate
from dealer_aml.services import alert_service, period_service, sat_mapping_service, sat_xml_service
from dealer_aml.services.document_store import XML_CONTENT_TYPE, DocumentStore, notice_file_key
from dealer_aml.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)

_DOWNLOADABLE_STATUSES = (
    NoticeStatus.GENERATED.value,
    NoticeStatus.SUBMITTED.value,
    NoticeStatus.ACKNOWLEDGED.value,
)


class NoticeNotFoundError(NotFoundError):
    """Notice not found in the organization."""


class PendingNoticeExistsError(ConflictError):
    """A DRAFT or GENERATED notice already covers the period."""


class NoticeStateError(InvalidStateError):
    """Operation not allowed in the notice's current status."""


class EmptyNoticeError(ValidationError):
    """Notice has no reportable alerts."""


@dataclass(frozen=True)
class GeneratedDocument:
    notice_id: UUID
    key: str
    url: str | None
    size: int
    checksum: str
    record_count: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _claimable_filter(org_id: UUID, period: period_service.SatPeriod):
    return (
        Alert.organization_id == org_id,
        Alert.created_at >= period.start,
        Alert.created_at <= period.end,
        Alert.status.not_in(CLAIMABLE_EXCLUDED_STATUSES),
        Alert.notice_id.is_(None),
    )


def _period_of(notice: Notice) -> tuple[int, int]:
    return int(notice.reported_month[:4]), int(notice.reported_month[4:])


# =============================================================================
# Reads
# =============================================================================

def get_notice(db: Session, org_id: UUID, notice_id: UUID) -> Notice:
    notice = db.scalar(
        select(Notice).where(Notice.id == notice_id, Notice.organization_id == org_id)
    )
    if not notice:
        raise NoticeNotFoundError(f"Notice {notice_id} not found")
    return notice


def has_pending_notice(db: Session, org_id: UUID, reported_month: str) -> bool:
    return db.scalar(
        select(Notice.id).where(
            Notice.organization_id == org_id,
            Notice.reported_month == reported_month,
            Notice.status.in_(PENDING_NOTICE_STATUSES),
        ).limit(1)
    ) is not None


def list_notices(
    db: Session,
    org_id: UUID,
    filters: NoticeFilters | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Notice], int]:
    """List notices newest period first. Returns (items, total)."""
    pagination = pagination or PaginationParams()
    query = db.query(Notice).filter(Notice.organization_id == org_id)
    if filters:
        if filters.status:
            query = query.filter(Notice.status == filters.status.value)
        if filters.year:
            query = query.filter(Notice.reported_month.like(f"{filters.year}%"))
        if filters.period_start:
            query = query.filter(Notice.period_end >= filters.period_start)
        if filters.period_end:
            query = query.filter(Notice.period_start <= filters.period_end)
    total = query.count()
    items = (
        query.order_by(Notice.reported_month.desc(), Notice.created_at.desc())
        .offset(pagination.offset)
        .limit(pagination.per_page)
        .all()
    )
    return items, total


def _count_by(db: Session, column, *criteria) -> dict[str, int]:
    rows = db.execute(select(column, func.count(Alert.id)).where(*criteria).group_by(column)).all()
    return {key: count for key, count in rows}


def get_notice_summary(db: Session, org_id: UUID, notice_id: UUID) -> dict:
    """Member alerts broken down by severity, status and rule."""
    alert_service.sweep_overdue(db, org_id)
    notice = get_notice(db, org_id, notice_id)
    members = (Alert.organization_id == org_id, Alert.notice_id == notice.id)

    by_rule_rows = db.execute(
        select(Alert.alert_rule_id, AlertRule.name, func.count(Alert.id))
        .join(AlertRule, Alert.alert_rule_id == AlertRule.id)
        .where(*members)
        .group_by(Alert.alert_rule_id, AlertRule.name)
        .order_by(func.count(Alert.id).desc(), Alert.alert_rule_id)
    ).all()
    by_status = _count_by(db, Alert.status, *members)
    return {
        "total": sum(by_status.values()),
        "by_severity": _count_by(db, Alert.severity, *members),
        "by_status": by_status,
        "by_rule": [
            {"rule_id": rule_id, "rule_name": name, "count": count}
            for rule_id, name, count in by_rule_rows
        ],
    }


def preview(db: Session, org_id: UUID, year: int, month: int) -> dict:
    """What a notice for (year, month) would claim right now. No writes."""
    period = period_service.period_for(year, month)
    criteria = _claimable_filter(org_id, period)
    by_status = _count_by(db, Alert.status, *criteria)
    return {
        "total": sum(by_status.values()),
        "by_severity": _count_by(db, Alert.severity, *criteria),
        "by_status": by_status,
        "period_start": period.start,
        "period_end": period.end,
        "reported_month": period.reported_month,
        "display_name": period.display_name,
        "submission_deadline": period_service.deadline_for(year, month),
    }


def available_months(db: Session, org_id: UUID, now: datetime | None = None) -> list[dict]:
    """Candidate periods, each flagged with its existing notices."""
    candidates = period_service.candidate_months(now)
    labels = [period_service.reported_month_label(y, m) for y, m in candidates]
    rows = db.execute(
        select(Notice.reported_month, Notice.status, func.count(Notice.id))
        .where(Notice.organization_id == org_id, Notice.reported_month.in_(labels))
        .group_by(Notice.reported_month, Notice.status)
    ).all()
    counts: dict[str, dict[str, int]] = {}
    for reported_month, status, count in rows:
        counts.setdefault(reported_month, {})[status] = count

    months = []
    for (year, month), label in zip(candidates, labels):
        by_status = counts.get(label, {})
        months.append({
            "year": year,
            "month": month,
            "display_name": period_service.display_name(year, month),
            "has_pending_notice": any(by_status.get(s) for s in PENDING_NOTICE_STATUSES),
            "has_submitted_notice": any(by_status.get(s) for s in FILED_NOTICE_STATUSES),
            "notice_count": sum(by_status.values()),
        })
    return months


# =============================================================================
# Create and claim
# =============================================================================

def claim_alerts(db: Session, org_id: UUID, notice: Notice, period: period_service.SatPeriod) -> int:
    """Assign every unclaimed, open alert of the period to the notice. Caller commits."""
    return db.query(Alert).filter(*_claimable_filter(org_id, period)).update(
        {Alert.notice_id: notice.id, Alert.updated_at: _now()},
        synchronize_session=False,
    )


def create_notice(
    db: Session,
    org_id: UUID,
    data: NoticeCreate,
    created_by: str | None = None,
) -> Notice:
    """Create a DRAFT notice for the period and claim its alerts."""
    period = period_service.period_for(data.year, data.month)
    if has_pending_notice(db, org_id, period.reported_month):
        raise PendingNoticeExistsError(
            f"A pending notice already exists for {period.display_name}"
        )

    notice = Notice(
        organization_id=org_id,
        name=data.name.strip(),
        status=NoticeStatus.DRAFT.value,
        period_start=period.start,
        period_end=period.end,
        reported_month=period.reported_month,
        record_count=0,
        created_by=created_by,
        notes=data.notes,
    )
    try:
        db.add(notice)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise PendingNoticeExistsError(
            f"A pending notice already exists for {period.display_name}"
        )

    claimed = claim_alerts(db, org_id, notice, period)
    alert_service.apply_default_deadlines(
        db, org_id, notice.id, period_service.deadline_for(data.year, data.month)
    )
    notice.record_count = claimed
    db.commit()
    db.refresh(notice)
    logger.info(
        "Notice created",
        extra=build_log_context(
            org_id=org_id, notice_id=notice.id, reported_month=notice.reported_month, count=claimed,
        ),
    )
    return notice


def patch_notice(db: Session, org_id: UUID, notice_id: UUID, data: NoticeUpdate) -> Notice:
    notice = get_notice(db, org_id, notice_id)
    if data.name is not None:
        notice.name = data.name.strip()
    if data.notes is not None:
        notice.notes = data.notes
    if data.sat_folio_number is not None:
        notice.sat_folio_number = data.sat_folio_number
    db.commit()
    db.refresh(notice)
    return notice


# =============================================================================
# State transitions
# =============================================================================

def _advance(
    db: Session,
    org_id: UUID,
    notice: Notice,
    expected: NoticeStatus,
    values: dict,
) -> None:
    """Conditional status update. Caller commits."""
    updated = db.query(Notice).filter(
        Notice.id == notice.id,
        Notice.organization_id == org_id,
        Notice.status == expected.value,
    ).update(
        {getattr(Notice, key): value for key, value in values.items()},
        synchronize_session=False,
    )
    if not updated:
        db.rollback()
        raise NoticeStateError(f"Notice {notice.id} is no longer {expected.value}")


def generate_notice(db: Session, org_id: UUID, notice_id: UUID, store: DocumentStore) -> GeneratedDocument:
    """
    Render the notice file, store it and mark the notice GENERATED.

    Cancelled alerts stay attached to the notice but are not rendered.
    A failure before the final commit leaves the notice in DRAFT.
    """
    notice = get_notice(db, org_id, notice_id)
    if notice.status != NoticeStatus.DRAFT.value:
        raise NoticeStateError(f"Notice {notice_id} is {notice.status}; only DRAFT notices can be generated")

    alerts = list(db.scalars(
        select(Alert)
        .where(
            Alert.organization_id == org_id,
            Alert.notice_id == notice.id,
            Alert.status != AlertStatus.CANCELLED.value,
        )
        .order_by(Alert.created_at, Alert.id)
    ))
    if not alerts:
        raise EmptyNoticeError(f"Notice {notice_id} has no alerts to report")

    header = sat_mapping_service.build_header(db, org_id, notice.reported_month)
    records = sat_mapping_service.build_records(db, org_id, alerts)
    document = sat_xml_service.render_notice(header, records)

    key = notice_file_key(org_id, notice.id, notice.reported_month)
    stored = store.put(
        key,
        document,
        XML_CONTENT_TYPE,
        {"notice_id": str(notice.id), "reported_month": notice.reported_month},
    )

    now = _now()
    _advance(db, org_id, notice, NoticeStatus.DRAFT, {
        "status": NoticeStatus.GENERATED.value,
        "xml_file_key": stored.key,
        "xml_file_url": stored.url,
        "file_size": stored.size,
        "file_checksum": stored.checksum,
        "generated_at": now,
        "updated_at": now,
    })
    alert_service.mark_notice_alerts_generated(db, org_id, notice.id, now)
    db.commit()
    logger.info(
        "Notice generated",
        extra=build_log_context(
            org_id=org_id, notice_id=notice.id, reported_month=notice.reported_month, count=len(records),
        ),
    )
    return GeneratedDocument(
        notice_id=notice.id,
        key=stored.key,
        url=stored.url,
        size=stored.size,
        checksum=stored.checksum,
        record_count=len(records),
    )


def submit_notice(db: Session, org_id: UUID, notice_id: UUID, folio: str | None = None) -> Notice:
    """Mark a GENERATED notice SUBMITTED and submit its non-cancelled alerts."""
    notice = get_notice(db, org_id, notice_id)
    if notice.status == NoticeStatus.DRAFT.value:
        raise NoticeStateError(f"Notice {notice_id} must be generated before it is submitted")
    if notice.status != NoticeStatus.GENERATED.value:
        raise NoticeStateError(f"Notice {notice_id} is already {notice.status}")

    now = _now()
    values = {"status": NoticeStatus.SUBMITTED.value, "submitted_at": now, "updated_at": now}
    if folio:
        values["sat_folio_number"] = folio
    _advance(db, org_id, notice, NoticeStatus.GENERATED, values)
    submitted = alert_service.mark_notice_alerts_submitted(db, org_id, notice.id, now, folio)
    db.commit()
    db.refresh(notice)
    logger.info(
        "Notice submitted",
        extra=build_log_context(org_id=org_id, notice_id=notice.id, count=submitted),
    )
    return notice


def acknowledge_notice(db: Session, org_id: UUID, notice_id: UUID, folio: str) -> Notice:
    """Record the authority's folio on a SUBMITTED notice and all its alerts."""
    notice = get_notice(db, org_id, notice_id)
    if notice.status != NoticeStatus.SUBMITTED.value:
        raise NoticeStateError(
            f"Notice {notice_id} is {notice.status}; only SUBMITTED notices can be acknowledged"
        )

    now = _now()
    _advance(db, org_id, notice, NoticeStatus.SUBMITTED, {
        "status": NoticeStatus.ACKNOWLEDGED.value,
        "sat_folio_number": folio,
        "updated_at": now,
    })
    alert_service.set_notice_alerts_folio(db, org_id, notice.id, folio, now)
    db.commit()
    db.refresh(notice)
    logger.info("Notice acknowledged", extra=build_log_context(org_id=org_id, notice_id=notice.id))
    return notice


def delete_notice(db: Session, org_id: UUID, notice_id: UUID) -> None:
    """Release a DRAFT notice's alerts, then delete it."""
    notice = get_notice(db, org_id, notice_id)
    if notice.status != NoticeStatus.DRAFT.value:
        raise NoticeStateError(f"Notice {notice_id} is {notice.status}; only DRAFT notices can be deleted")

    released = db.query(Alert).filter(
        Alert.organization_id == org_id,
        Alert.notice_id == notice.id,
    ).update({Alert.notice_id: None, Alert.updated_at: _now()}, synchronize_session=False)

    deleted = db.query(Notice).filter(
        Notice.id == notice.id,
        Notice.organization_id == org_id,
        Notice.status == NoticeStatus.DRAFT.value,
    ).delete(synchronize_session="fetch")
    if not deleted:
        db.rollback()
        raise NoticeStateError(f"Notice {notice_id} is no longer DRAFT")
    db.commit()
    logger.info(
        "Notice deleted",
        extra=build_log_context(org_id=org_id, notice_id=notice_id, count=released),
    )


def get_download_info(db: Session, org_id: UUID, notice_id: UUID) -> dict:
    notice = get_notice(db, org_id, notice_id)
    if notice.status not in _DOWNLOADABLE_STATUSES or not notice.xml_file_key:
        raise NoticeStateError(f"Notice {notice_id} has not been generated yet")
    return {
        "file_key": notice.xml_file_key,
        "file_url": notice.xml_file_url,
        "file_size": notice.file_size,
        "format": "xml",
    }

"""Tests for alert creation, lifecycle transitions and the overdue sweep."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from dealer_aml.core.exceptions import ValidationError
from dealer_aml.db.enums import AlertSeverity, AlertStatus
from dealer_aml.schemas.alert import AlertCreate, AlertFilters
from dealer_aml.services import alert_rule_service, alert_service
from dealer_aml.utils.pagination import PaginationParams


def _past(days: int = 1) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def _future(days: int = 1) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


# =============================================================================
# Creation
# =============================================================================

def test_create_alert_is_idempotent(db, test_org, test_rule, test_client_record):
    """A replay with the same key returns the stored alert unchanged."""
    data = AlertCreate(
        alert_rule_id=test_rule.id,
        client_id=test_client_record.id,
        severity=AlertSeverity.HIGH,
        idempotency_key="tx-1:2501",
        context_hash="abc",
        metadata={"description": "first", "detector": "cash"},
    )
    alert, created = alert_service.create_alert(db, test_org.id, data)
    assert created is True
    assert alert.status == AlertStatus.DETECTED.value
    assert alert.alert_metadata == {"description": "first", "detector": "cash"}

    replay = data.model_copy(update={"context_hash": "different"})
    again, created_again = alert_service.create_alert(db, test_org.id, replay)

    assert created_again is False
    assert again.id == alert.id
    assert again.context_hash == "abc"
    assert alert_service.count_alerts(db, test_org.id) == 1


def test_same_key_in_other_org_creates_separate_alert(db, make_alert, test_org, other_org):
    first = make_alert(key="shared-key")
    second = make_alert(key="shared-key", org_id=other_org.id)

    assert first.id != second.id
    assert second.organization_id == other_org.id


def test_create_alert_rejects_unknown_or_inactive_rule(db, test_org, test_rule, test_client_record):
    data = AlertCreate(
        alert_rule_id="9999",
        client_id=test_client_record.id,
        severity=AlertSeverity.LOW,
        idempotency_key="k1",
        context_hash="h",
    )
    with pytest.raises(alert_rule_service.AlertRuleNotFoundError):
        alert_service.create_alert(db, test_org.id, data)

    test_rule.active = False
    db.commit()
    with pytest.raises(alert_rule_service.AlertRuleNotFoundError):
        alert_service.create_alert(
            db, test_org.id, data.model_copy(update={"alert_rule_id": test_rule.id})
        )


def test_manual_only_rule_requires_manual_flag(db, test_org, manual_rule, test_client_record):
    data = AlertCreate(
        alert_rule_id=manual_rule.id,
        client_id=test_client_record.id,
        severity=AlertSeverity.MEDIUM,
        idempotency_key="manual-1",
        context_hash="h",
    )
    with pytest.raises(alert_service.ManualOnlyRuleError):
        alert_service.create_alert(db, test_org.id, data)

    alert, created = alert_service.create_alert(
        db, test_org.id, data.model_copy(update={"is_manual": True})
    )
    assert created is True
    assert alert.is_manual is True


def test_create_with_past_deadline_is_overdue_flagged(db, make_alert):
    alert = make_alert(submission_deadline=_past())
    assert alert.is_overdue is True
    assert alert.status == AlertStatus.DETECTED.value


def test_date_only_deadline_is_read_as_sat_local_time(db, test_org, test_rule, test_client_record):
    data = AlertCreate(
        alert_rule_id=test_rule.id,
        client_id=test_client_record.id,
        severity=AlertSeverity.HIGH,
        idempotency_key="date-only",
        context_hash="h",
        submission_deadline="2024-01-20",
    )
    assert data.submission_deadline.tzinfo is not None

    alert, created = alert_service.create_alert(db, test_org.id, data)

    assert created is True
    assert alert.is_overdue is True
    assert alert.submission_deadline == datetime(2024, 1, 20, 6, tzinfo=timezone.utc)

    alert = alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.OVERDUE)
    assert alert.status == AlertStatus.OVERDUE.value


# =============================================================================
# Derived overdue state
# =============================================================================

def test_compute_is_overdue():
    now = datetime(2024, 2, 1, tzinfo=timezone.utc)
    earlier = now - timedelta(seconds=1)

    assert alert_service.compute_is_overdue("DETECTED", earlier, now) is True
    assert alert_service.compute_is_overdue("FILE_GENERATED", earlier, now) is True
    assert alert_service.compute_is_overdue("DETECTED", now, now) is False
    assert alert_service.compute_is_overdue("DETECTED", None, now) is False
    assert alert_service.compute_is_overdue("SUBMITTED", earlier, now) is False
    assert alert_service.compute_is_overdue("CANCELLED", earlier, now) is False


def test_sweep_flips_open_past_deadline_alerts(db, test_org, make_alert):
    late = make_alert(submission_deadline=_past())
    on_time = make_alert(submission_deadline=_future())
    no_deadline = make_alert()

    flipped = alert_service.sweep_overdue(db, test_org.id)
    assert flipped == 1

    for alert in (late, on_time, no_deadline):
        db.refresh(alert)
    assert late.status == AlertStatus.OVERDUE.value
    assert late.is_overdue is True
    assert on_time.status == AlertStatus.DETECTED.value
    assert no_deadline.status == AlertStatus.DETECTED.value

    # A second sweep finds nothing left to flip.
    assert alert_service.sweep_overdue(db, test_org.id) == 0


def test_sweep_never_touches_submitted_or_cancelled(db, test_org, make_alert):
    submitted = make_alert(submission_deadline=_future())
    alert_service.transition_alert(db, test_org.id, submitted.id, AlertStatus.SUBMITTED)
    cancelled = make_alert(submission_deadline=_future())
    alert_service.cancel_alert(db, test_org.id, cancelled.id, cancelled_by="officer", reason="duplicate")

    later = datetime.now(timezone.utc) + timedelta(days=30)
    assert alert_service.sweep_overdue(db, test_org.id, now=later) == 0

    db.refresh(submitted)
    db.refresh(cancelled)
    assert submitted.status == AlertStatus.SUBMITTED.value
    assert submitted.is_overdue is False
    assert cancelled.status == AlertStatus.CANCELLED.value
    assert cancelled.is_overdue is False


def test_sweep_is_scoped_to_org(db, test_org, other_org, make_alert):
    make_alert(submission_deadline=_past(), org_id=other_org.id)
    assert alert_service.sweep_overdue(db, test_org.id) == 0
    assert alert_service.sweep_overdue(db, other_org.id) == 1


def test_sweep_failure_is_swallowed(db, test_org, monkeypatch):
    """A failing sweep logs and returns 0 so reads still succeed."""
    def broken_query(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(db, "query", broken_query)
    assert alert_service.sweep_overdue(db, test_org.id) == 0


def test_reads_run_sweep_first(db, test_org, make_alert):
    alert = make_alert(submission_deadline=_past())
    fetched = alert_service.get_alert(db, test_org.id, alert.id)
    assert fetched.status == AlertStatus.OVERDUE.value


# =============================================================================
# Transitions
# =============================================================================

def test_file_generated_then_submitted(db, test_org, make_alert):
    alert = make_alert(submission_deadline=_future())

    generated = alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.FILE_GENERATED)
    assert generated.status == AlertStatus.FILE_GENERATED.value
    assert generated.file_generated_at is not None

    submitted = alert_service.transition_alert(
        db, test_org.id, alert.id, AlertStatus.SUBMITTED, sat_folio_number="F-1",
    )
    assert submitted.status == AlertStatus.SUBMITTED.value
    assert submitted.submitted_at is not None
    assert submitted.sat_folio_number == "F-1"
    assert submitted.is_overdue is False


def test_overdue_alert_can_still_be_file_generated(db, test_org, make_alert):
    alert = make_alert(submission_deadline=_past())
    alert_service.sweep_overdue(db, test_org.id)

    generated = alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.FILE_GENERATED)
    assert generated.status == AlertStatus.FILE_GENERATED.value
    assert generated.is_overdue is True


def test_repeating_current_status_is_noop_but_detected_is_unreachable(db, test_org, make_alert):
    alert = make_alert()
    alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.FILE_GENERATED)
    alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.FILE_GENERATED)

    with pytest.raises(alert_service.AlertTransitionError):
        alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.DETECTED)


@pytest.mark.parametrize("terminal", [AlertStatus.SUBMITTED, AlertStatus.CANCELLED])
def test_terminal_alerts_reject_status_changes(db, test_org, make_alert, terminal):
    alert = make_alert()
    if terminal == AlertStatus.SUBMITTED:
        alert_service.transition_alert(db, test_org.id, alert.id, terminal)
    else:
        alert_service.cancel_alert(db, test_org.id, alert.id, cancelled_by="officer")

    for target in (AlertStatus.DETECTED, AlertStatus.FILE_GENERATED, AlertStatus.SUBMITTED, AlertStatus.CANCELLED):
        with pytest.raises(alert_service.AlertTransitionError):
            alert_service.transition_alert(
                db, test_org.id, alert.id, target, cancelled_by="officer",
            )


def test_terminal_alerts_still_accept_review_notes(db, test_org, make_alert):
    alert = make_alert()
    alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.SUBMITTED)

    updated = alert_service.transition_alert(db, test_org.id, alert.id, notes="filed late", reviewed_by="ana")
    assert updated.notes == "filed late"
    assert updated.reviewed_by == "ana"
    assert updated.reviewed_at is not None
    assert updated.status == AlertStatus.SUBMITTED.value


def test_cancel_requires_actor(db, test_org, make_alert):
    alert = make_alert()
    with pytest.raises(ValidationError):
        alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.CANCELLED)

    cancelled = alert_service.cancel_alert(db, test_org.id, alert.id, cancelled_by="officer", reason="false positive")
    assert cancelled.status == AlertStatus.CANCELLED.value
    assert cancelled.cancelled_by == "officer"
    assert cancelled.cancellation_reason == "false positive"
    assert cancelled.cancelled_at is not None


def test_manual_overdue_requires_passed_deadline(db, test_org, make_alert):
    alert = make_alert(submission_deadline=_future())
    with pytest.raises(alert_service.AlertTransitionError):
        alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.OVERDUE)


def test_transition_from_stale_status_is_rejected(db, test_org, make_alert, monkeypatch):
    """The update is conditional on the status the caller read."""
    alert = make_alert()
    real_get = alert_service._get

    def stale_get(db_, org_id, alert_id):
        found = real_get(db_, org_id, alert_id)
        # Another writer cancels the alert between our read and our update.
        db_.execute(
            alert_service.Alert.__table__.update()
            .where(alert_service.Alert.id == alert_id)
            .values(status=AlertStatus.CANCELLED.value)
        )
        return found

    monkeypatch.setattr(alert_service, "_get", stale_get)
    with pytest.raises(alert_service.AlertTransitionError):
        alert_service.transition_alert(db, test_org.id, alert.id, AlertStatus.FILE_GENERATED)


def test_get_alert_from_other_org_is_not_found(db, other_org, make_alert):
    alert = make_alert()
    with pytest.raises(alert_service.AlertNotFoundError):
        alert_service.get_alert(db, other_org.id, alert.id)


# =============================================================================
# Listing
# =============================================================================

def test_list_alerts_filters_and_paginates(db, test_org, make_alert):
    high = [make_alert(severity=AlertSeverity.HIGH) for _ in range(3)]
    low = make_alert(severity=AlertSeverity.LOW)
    alert_service.cancel_alert(db, test_org.id, low.id, cancelled_by="officer")

    items, total = alert_service.list_alerts(
        db, test_org.id, AlertFilters(severity=AlertSeverity.HIGH), PaginationParams(page=1, per_page=2),
    )
    assert total == 3
    assert len(items) == 2
    assert {a.id for a in items} <= {a.id for a in high}

    cancelled, total = alert_service.list_alerts(db, test_org.id, AlertFilters(status=AlertStatus.CANCELLED))
    assert total == 1
    assert cancelled[0].id == low.id

    assert alert_service.count_alerts(db, test_org.id, AlertFilters(status=AlertStatus.DETECTED)) == 3
    assert alert_service.count_alerts(db, test_org.id) == 4


def test_list_filters_overdue_flag(db, test_org, make_alert):
    make_alert(submission_deadline=_past())
    make_alert(submission_deadline=_future())

    overdue, total = alert_service.list_alerts(db, test_org.id, AlertFilters(is_overdue=True))
    assert total == 1
    assert overdue[0].status == AlertStatus.OVERDUE.value

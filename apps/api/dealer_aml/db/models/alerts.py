"""Alert rule, rule configuration and alert models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealer_aml.db.base import Base
from dealer_aml.db.enums import AlertSeverity, AlertStatus
from dealer_aml.db.models.organizations import utcnow
from dealer_aml.db.types import JSONType


class AlertRule(Base):
    """
    A detection rule (global, shared by every organization).

    The primary key is the rule code (e.g. "2501", "AUTO_UMA").
    Manual-only rules may never be populated by automatic detection.
    """
    __tablename__ = "alert_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    severity: Mapped[str] = mapped_column(
        String(20), default=AlertSeverity.MEDIUM.value, nullable=False
    )
    rule_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_manual_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    activity_code: Mapped[str] = mapped_column(String(10), default="VEH", nullable=False)
    rule_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    configs: Mapped[list["AlertRuleConfig"]] = relationship(
        back_populates="alert_rule",
        cascade="all, delete-orphan",
    )


class AlertRuleConfig(Base):
    """Key/value configuration for a rule. Hardcoded rows are read-only."""

    __tablename__ = "alert_rule_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    alert_rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("alert_rules.id", ondelete="CASCADE"), nullable=False
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON string
    is_hardcoded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    alert_rule: Mapped["AlertRule"] = relationship(back_populates="configs")

    __table_args__ = (
        UniqueConstraint("alert_rule_id", "key", name="uq_alert_rule_configs_key"),
    )


class Alert(Base):
    """
    One suspicious-activity record requiring disclosure to the SAT.

    idempotency_key is the sole de-duplication key for creation.
    is_overdue is derived (see alert_service.compute_is_overdue) and
    persisted for query efficiency.
    """
    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    alert_rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("alert_rules.id", ondelete="RESTRICT"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AlertStatus.DETECTED.value, nullable=False
    )
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    context_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    alert_metadata: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # SAT submission tracking
    submission_deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    file_generated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sat_file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sat_acknowledgment_receipt: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sat_folio_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_overdue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Review and cancellation
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    notice_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("notices.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    alert_rule: Mapped["AlertRule"] = relationship()

    __table_args__ = (
        UniqueConstraint("organization_id", "idempotency_key", name="uq_alerts_idempotency_key"),
        Index("ix_alerts_org_status", "organization_id", "status"),
        Index("ix_alerts_org_created", "organization_id", "created_at"),
        Index("ix_alerts_notice", "notice_id"),
    )

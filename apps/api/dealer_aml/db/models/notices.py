"""Notice (aviso) model: one SAT filing covering a 17-17 period."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from dealer_aml.db.base import Base
from dealer_aml.db.enums import NoticeStatus
from dealer_aml.db.models.organizations import utcnow


class Notice(Base):
    """
    A regulatory filing bundling the alerts of one reporting period.

    record_count always equals the number of alerts pointing at the notice.
    At most one DRAFT/GENERATED notice may exist per organization and
    reported_month.
    """
    __tablename__ = "notices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=NoticeStatus.DRAFT.value, nullable=False
    )
    period_start: Mapped[datetime] = mapped_column(nullable=False)
    period_end: Mapped[datetime] = mapped_column(nullable=False)
    reported_month: Mapped[str] = mapped_column(String(6), nullable=False)  # YYYYMM
    record_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Rendered document
    xml_file_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    xml_file_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    file_checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)

    generated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sat_folio_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notices_org_month_status", "organization_id", "reported_month", "status"),
        # At most one DRAFT/GENERATED notice per organization and period.
        Index(
            "uq_notices_pending_month",
            "organization_id",
            "reported_month",
            unique=True,
            postgresql_where=text("status IN ('DRAFT', 'GENERATED')"),
            sqlite_where=text("status IN ('DRAFT', 'GENERATED')"),
        ),
    )

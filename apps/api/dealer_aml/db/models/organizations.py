"""Tenant models and per-organization filing configuration."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealer_aml.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    """
    A dealer (tenant) in the multi-tenant system.

    All alerts and notices belong to an organization
    and must be scoped by organization_id in all queries.
    """
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    settings: Mapped["OrganizationSettings | None"] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
        uselist=False,
    )


class OrganizationSettings(Base):
    """
    Filing identity of the obligated subject.

    Both keys are printed in every SAT document header; generation
    refuses to run without them.
    """
    __tablename__ = "organization_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    # clave_sujeto_obligado: the dealer's RFC
    obligated_subject_key: Mapped[str | None] = mapped_column(String(13), nullable=True)
    # clave_actividad: VEH for vehicle dealers
    activity_key: Mapped[str] = mapped_column(String(10), default="VEH", nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="settings")

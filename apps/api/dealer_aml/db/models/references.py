"""Reference data read by the filing pipeline.

Clients, transactions and catalogs are owned by other parts of the
platform; only the columns the SAT document needs are mapped here.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Date, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealer_aml.db.base import Base
from dealer_aml.db.models.organizations import utcnow
from dealer_aml.db.types import JSONType


class Client(Base):
    """A dealer's customer (individual, legal entity or trust)."""

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    person_type: Mapped[str] = mapped_column(String(20), nullable=False)
    rfc: Mapped[str | None] = mapped_column(String(13), nullable=True)

    # Individuals
    first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    second_last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    curp: Mapped[str | None] = mapped_column(String(18), nullable=True)
    economic_activity_code: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Legal entities and trusts
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    incorporation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    trust_identifier: Mapped[str | None] = mapped_column(String(40), nullable=True)

    # Trust representative (apoderado / delegado fiduciario)
    representative_first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    representative_last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    representative_second_last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    representative_birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    nationality: Mapped[str | None] = mapped_column(String(3), nullable=True)

    # Address
    country: Mapped[str] = mapped_column(String(3), default="MX", nullable=False)
    state_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    municipality: Mapped[str | None] = mapped_column(String(120), nullable=True)
    neighborhood: Mapped[str | None] = mapped_column(String(120), nullable=True)
    street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    external_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    internal_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    beneficial_owners: Mapped[list["BeneficialOwner"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="BeneficialOwner.created_at",
    )


class BeneficialOwner(Base):
    """Ultimate beneficial owner declared for a client."""

    __tablename__ = "beneficial_owners"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    person_type: Mapped[str] = mapped_column(String(20), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    second_last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(3), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    incorporation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    trust_identifier: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    client: Mapped["Client"] = relationship(back_populates="beneficial_owners")


class Transaction(Base):
    """A vehicle purchase or sale that may have triggered an alert."""

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    operation_date: Mapped[datetime] = mapped_column(nullable=False)
    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    branch_postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    vehicle_type: Mapped[str] = mapped_column(String(20), nullable=False)
    brand_id: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str] = mapped_column(String(120), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    serial_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    armor_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    engine_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    plates: Mapped[str | None] = mapped_column(String(20), nullable=True)
    registration_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    flag_country_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="MXN", nullable=False)
    payment_date: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    payment_methods: Mapped[list["TransactionPaymentMethod"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionPaymentMethod.position",
    )


class TransactionPaymentMethod(Base):
    """One settlement line of a transaction."""

    __tablename__ = "transaction_payment_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    method: Mapped[str] = mapped_column(String(80), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    transaction: Mapped["Transaction"] = relationship(back_populates="payment_methods")


class Catalog(Base):
    """A named reference catalog (currencies, countries, vehicle brands, ...)."""

    __tablename__ = "catalogs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    items: Mapped[list["CatalogItem"]] = relationship(
        back_populates="catalog",
        cascade="all, delete-orphan",
    )


class CatalogItem(Base):
    """
    One catalog entry.

    The SAT reference code lives in item_metadata["code"], not in a
    dedicated column.
    """
    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: uuid.uuid4().hex
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("catalogs.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    item_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    catalog: Mapped["Catalog"] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("catalog_id", "normalized_name", name="uq_catalog_items_name"),
    )

"""
Test configuration and fixtures.

Provides:
- Database session with savepoint (rollback after each test)
- Organization, rule, client and transaction fixtures
- In-memory document store
- HTTPX AsyncClient scoped to the test organization
"""
import os
import tempfile
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Generator

# Configure before any dealer_aml import reads settings.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="dealer-aml-tests-"))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from dealer_aml.core.deps import get_db, get_document_store
from dealer_aml.db.base import Base
from dealer_aml.db.enums import AlertSeverity, CatalogKey
from dealer_aml.db.models import (
    AlertRule,
    Catalog,
    CatalogItem,
    Client,
    Organization,
    OrganizationSettings,
    Transaction,
    TransactionPaymentMethod,
)
from dealer_aml.db.session import SessionLocal, engine
from dealer_aml.main import app
from dealer_aml.schemas.alert import AlertCreate
from dealer_aml.services import alert_service
from dealer_aml.services.document_store import StoredDocument, calculate_checksum


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def db_engine():
    return engine


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session with savepoint for test isolation.

    Service code calls commit(); each commit only releases a savepoint,
    and the outer transaction is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = SessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    """Create a test organization with SAT filing settings."""
    org = Organization(
        id=uuid.uuid4(),
        name="Autos del Norte",
        slug=f"test-org-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.flush()
    db.add(OrganizationSettings(
        organization_id=org.id,
        obligated_subject_key="ADN010101AB1",
        activity_key="VEH",
    ))
    db.commit()
    return org


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name="Other Dealer",
        slug=f"other-org-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.commit()
    return org


@pytest.fixture(scope="function")
def test_rule(db: Session) -> AlertRule:
    rule = AlertRule(
        id="2501",
        name="Cash payment above threshold",
        active=True,
        severity=AlertSeverity.HIGH.value,
        is_manual_only=False,
        rule_metadata={"sat_alert_code": "2501"},
    )
    db.add(rule)
    db.commit()
    return rule


@pytest.fixture(scope="function")
def manual_rule(db: Session) -> AlertRule:
    rule = AlertRule(
        id="MANUAL_REVIEW",
        name="Compliance officer report",
        active=True,
        severity=AlertSeverity.MEDIUM.value,
        is_manual_only=True,
    )
    db.add(rule)
    db.commit()
    return rule


@pytest.fixture(scope="function")
def test_catalogs(db: Session) -> dict[str, CatalogItem]:
    """Brand, currency, country and payment catalogs with one entry each."""
    def _catalog(key: CatalogKey, name: str, item_name: str, metadata: dict, item_id: str | None = None) -> CatalogItem:
        catalog = Catalog(key=key.value, name=name, active=True)
        db.add(catalog)
        db.flush()
        item = CatalogItem(
            id=item_id or uuid.uuid4().hex,
            catalog_id=catalog.id,
            name=item_name,
            normalized_name=item_name.lower(),
            active=True,
            item_metadata=metadata,
        )
        db.add(item)
        db.commit()
        return item

    return {
        "brand": _catalog(CatalogKey.TERRESTRIAL_VEHICLE_BRANDS, "Marcas terrestres", "Nissan", {"code": "NIS"}, item_id="nissan"),
        "currency": _catalog(CatalogKey.CURRENCIES, "Monedas", "Peso mexicano", {"code": "MXN", "sat_code": "3"}),
        "country": _catalog(CatalogKey.COUNTRIES, "Paises", "Mexico", {"code": "MX", "sat_code": "MX"}),
        "payment_form": _catalog(CatalogKey.PAYMENT_FORMS, "Formas de pago", "Contado", {"code": "CASH", "sat_code": "1"}),
        "payment_method": _catalog(CatalogKey.PAYMENT_METHODS, "Instrumentos", "Efectivo", {"code": "CASH", "sat_code": "1"}),
    }


@pytest.fixture(scope="function")
def test_client_record(db: Session, test_org: Organization) -> Client:
    client = Client(
        organization_id=test_org.id,
        person_type="physical",
        first_name="Juan",
        last_name="Pérez",
        second_last_name="López",
        birth_date=date(1985, 4, 12),
        rfc="PELJ850412AB1",
        nationality="MX",
        economic_activity_code="6120000",
        country="MX",
        neighborhood="Centro",
        street="Av. Juárez",
        external_number="100",
        postal_code="64000",
    )
    db.add(client)
    db.commit()
    return client


@pytest.fixture(scope="function")
def test_transaction(db: Session, test_org: Organization, test_client_record: Client) -> Transaction:
    transaction = Transaction(
        organization_id=test_org.id,
        client_id=test_client_record.id,
        operation_date=datetime(2024, 1, 10, 18, 0, tzinfo=timezone.utc),
        operation_type="sale",
        branch_postal_code="64010",
        vehicle_type="land",
        brand_id="nissan",
        model="Versa",
        year=2023,
        serial_number="3N1CN8AE0PL000001",
        plates="ABC1234",
        amount=Decimal("350000.00"),
        currency="MXN",
    )
    db.add(transaction)
    db.flush()
    db.add(TransactionPaymentMethod(
        transaction_id=transaction.id,
        position=0,
        method="CASH",
        amount=Decimal("350000.00"),
    ))
    db.commit()
    return transaction


@pytest.fixture(scope="function")
def make_alert(db: Session, test_org: Organization, test_rule: AlertRule, test_client_record: Client):
    """Factory: create an alert through the service, optionally back-dating created_at."""
    def _make(
        key: str | None = None,
        created_at: datetime | None = None,
        org_id: uuid.UUID | None = None,
        **overrides,
    ):
        data = {
            "alert_rule_id": test_rule.id,
            "client_id": test_client_record.id,
            "severity": AlertSeverity.HIGH,
            "idempotency_key": key or f"key-{uuid.uuid4().hex}",
            "context_hash": "ctx",
        }
        data.update(overrides)
        alert, _ = alert_service.create_alert(db, org_id or test_org.id, AlertCreate(**data))
        if created_at is not None:
            alert.created_at = created_at
            db.commit()
            db.refresh(alert)
        return alert

    return _make


# =============================================================================
# Document store
# =============================================================================

class InMemoryDocumentStore:
    """Keeps stored documents in a dict."""

    def __init__(self):
        self.documents: dict[str, bytes] = {}
        self.metadata: dict[str, dict] = {}

    def put(self, key, data, content_type="application/xml", metadata=None):
        self.documents[key] = data
        self.metadata[key] = dict(metadata or {})
        return StoredDocument(
            key=key,
            size=len(data),
            checksum=calculate_checksum(data),
            url=f"memory://{key}",
        )


@pytest.fixture(scope="function")
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    db: Session,
    test_org: Organization,
    document_store: InMemoryDocumentStore,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient scoped to test_org through the organization header."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_store] = lambda: document_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Organization-ID": str(test_org.id)},
    ) as c:
        yield c

    app.dependency_overrides.clear()

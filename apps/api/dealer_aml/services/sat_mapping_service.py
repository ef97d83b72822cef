"""
Maps stored alerts and their reference data onto SAT notice records.

Catalog lookups are batched per call. A catalog miss falls back to the
raw stored value; a missing client or transaction is an error.
"""
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from dealer_aml.core.exceptions import ValidationError
from dealer_aml.db.enums import VEHICLE_BRAND_CATALOGS, CatalogKey, OperationType, PersonType, VehicleType
from dealer_aml.db.models import Alert, AlertRule, Client, OrganizationSettings, Transaction
from dealer_aml.schemas.metadata import AlertMetadata, RuleMetadata
from dealer_aml.services import catalog_service
from dealer_aml.services.catalog_service import CatalogRecord
from dealer_aml.services.sat_xml_service import (
    Address,
    BeneficialOwner,
    OperationDetail,
    PersonIdentity,
    Representative,
    SatHeader,
    SatNoticeRecord,
    Settlement,
    Vehicle,
)

DOMESTIC_COUNTRY = "MX"
DEFAULT_PRIORITY = "1"
DEFAULT_ALERT_TYPE = "803"
DEFAULT_PAYMENT_FORM = "1"
DEFAULT_MONETARY_INSTRUMENT = "1"

PERSON_TYPE_CODES = {
    PersonType.PHYSICAL.value: "fisica",
    PersonType.MORAL.value: "moral",
    PersonType.TRUST.value: "fideicomiso",
}

VEHICLE_TYPE_CODES = {
    VehicleType.LAND.value: "terrestre",
    VehicleType.MARINE.value: "maritimo",
    VehicleType.AIR.value: "aereo",
}

OPERATION_TYPE_CODES = {
    OperationType.PURCHASE.value: "801",
    OperationType.SALE.value: "802",
}


class MissingReferenceDataError(ValidationError):
    """Client, transaction or filing settings needed for rendering are missing."""


# =============================================================================
# Header
# =============================================================================

def build_header(db: Session, org_id: UUID, reported_month: str) -> SatHeader:
    org_settings = db.scalar(
        select(OrganizationSettings).where(OrganizationSettings.organization_id == org_id)
    )
    if not org_settings or not org_settings.obligated_subject_key:
        raise MissingReferenceDataError(
            "Organization filing settings are missing the obligated subject key (RFC)"
        )
    return SatHeader(
        obligated_subject_key=org_settings.obligated_subject_key,
        activity_key=org_settings.activity_key or "VEH",
        reported_month=reported_month,
    )


# =============================================================================
# Code resolution rules
# =============================================================================

def operation_type_code(meta: AlertMetadata, rule_meta: RuleMetadata, transaction: Transaction) -> str:
    if meta.operation_type_code:
        return meta.operation_type_code
    if rule_meta.operation_type_code:
        return rule_meta.operation_type_code
    return OPERATION_TYPE_CODES.get(transaction.operation_type, OPERATION_TYPE_CODES["sale"])


def alert_type_code(meta: AlertMetadata, rule_meta: RuleMetadata, rule_id: str) -> str:
    if meta.alert_code:
        return meta.alert_code
    if rule_meta.sat_alert_code:
        return rule_meta.sat_alert_code
    if rule_id.isdigit():
        return rule_id
    return DEFAULT_ALERT_TYPE


def _code(records: dict[str, CatalogRecord], raw: str | None) -> str | None:
    if raw is None:
        return None
    record = records.get(raw)
    if record is None:
        return raw
    return record.sat_code or raw


# =============================================================================
# Record building
# =============================================================================

class _ResolvedCatalogs:
    """Batch-resolved catalog records for a set of transactions and clients."""

    def __init__(self, db: Session, clients: list[Client], transactions: list[Transaction]):
        brand_ids = {t.brand_id for t in transactions}
        flag_ids = {t.flag_country_id for t in transactions if t.flag_country_id}
        self.brands = catalog_service.resolve_by_ids(
            db, brand_ids, catalog_keys=list(VEHICLE_BRAND_CATALOGS.values())
        )
        self.flags = catalog_service.resolve_by_ids(db, flag_ids, catalog_keys=[CatalogKey.COUNTRIES])
        self.currencies = catalog_service.resolve_by_code(
            db, CatalogKey.CURRENCIES, {t.currency for t in transactions}
        )

        countries = set()
        for client in clients:
            countries.update(c for c in (client.nationality, client.country) if c)
            countries.update(o.nationality for o in client.beneficial_owners if o.nationality)
        self.countries = catalog_service.resolve_by_code(db, CatalogKey.COUNTRIES, countries)

        methods = {m.method for t in transactions for m in t.payment_methods}
        self.payment_forms = catalog_service.resolve_by_code(db, CatalogKey.PAYMENT_FORMS, methods)
        self.payment_methods = catalog_service.resolve_by_code(db, CatalogKey.PAYMENT_METHODS, methods)


def _person(client: Client, countries: dict[str, CatalogRecord]) -> PersonIdentity:
    person_type = PERSON_TYPE_CODES.get(client.person_type)
    if person_type is None:
        raise MissingReferenceDataError(f"Client {client.id} has unknown person type {client.person_type}")

    representative = None
    if person_type == "fideicomiso" and (client.representative_first_name or client.representative_last_name):
        representative = Representative(
            first_name=client.representative_first_name,
            last_name=client.representative_last_name,
            second_last_name=client.representative_second_last_name,
            birth_date=client.representative_birth_date,
        )

    return PersonIdentity(
        person_type=person_type,
        first_name=client.first_name,
        last_name=client.last_name,
        second_last_name=client.second_last_name,
        birth_date=client.birth_date,
        rfc=client.rfc,
        curp=client.curp,
        nationality=_code(countries, client.nationality),
        economic_activity=client.economic_activity_code if person_type == "fisica" else None,
        business_name=client.business_name,
        incorporation_date=client.incorporation_date,
        commercial_activity=client.economic_activity_code if person_type == "moral" else None,
        trust_identifier=client.trust_identifier,
        representative=representative,
    )


def _address(client: Client, countries: dict[str, CatalogRecord]) -> Address:
    domestic = (client.country or DOMESTIC_COUNTRY).upper() == DOMESTIC_COUNTRY
    return Address(
        address_type="nacional" if domestic else "extranjero",
        country=None if domestic else _code(countries, client.country),
        state=None if domestic else client.state_code,
        city=None if domestic else client.city,
        neighborhood=client.neighborhood,
        street=client.street,
        external_number=client.external_number,
        internal_number=client.internal_number,
        postal_code=client.postal_code,
    )


def _beneficial_owners(client: Client, countries: dict[str, CatalogRecord]) -> tuple[BeneficialOwner, ...]:
    owners = []
    for owner in client.beneficial_owners:
        person_type = PERSON_TYPE_CODES.get(owner.person_type)
        if person_type is None:
            continue
        owners.append(BeneficialOwner(
            person_type=person_type,
            first_name=owner.first_name,
            last_name=owner.last_name,
            second_last_name=owner.second_last_name,
            birth_date=owner.birth_date,
            nationality=_code(countries, owner.nationality),
            business_name=owner.business_name,
            incorporation_date=owner.incorporation_date,
            trust_identifier=owner.trust_identifier,
        ))
    return tuple(owners)


def _vehicle(transaction: Transaction, catalogs: _ResolvedCatalogs) -> Vehicle:
    vehicle_type = VEHICLE_TYPE_CODES.get(transaction.vehicle_type)
    if vehicle_type is None:
        raise MissingReferenceDataError(
            f"Transaction {transaction.id} has unknown vehicle type {transaction.vehicle_type}"
        )
    brand = catalogs.brands.get(transaction.brand_id)
    land = vehicle_type == "terrestre"
    flag = catalogs.flags.get(transaction.flag_country_id) if transaction.flag_country_id else None
    return Vehicle(
        vehicle_type=vehicle_type,
        brand=brand.name if brand else transaction.brand_id,
        model=transaction.model,
        year=transaction.year,
        vin=transaction.serial_number if land else None,
        repuve=transaction.registration_number if land else None,
        plates=transaction.plates if land else None,
        serial_number=None if land else (transaction.serial_number or transaction.engine_number),
        flag=None if land else ((flag.sat_code or flag.name) if flag else transaction.flag_country_id),
        registration=None if land else transaction.registration_number,
        armor_level=transaction.armor_level,
    )


def _settlements(
    transaction: Transaction,
    meta: AlertMetadata,
    catalogs: _ResolvedCatalogs,
) -> tuple[Settlement, ...]:
    payment_date = transaction.payment_date or transaction.operation_date
    currency = _code(catalogs.currencies, transaction.currency)
    lines = [(m.method, m.amount) for m in transaction.payment_methods]
    if not lines:
        lines = [(None, transaction.amount)]

    settlements = []
    for method, amount in lines:
        form = catalogs.payment_forms.get(method) if method else None
        instrument = catalogs.payment_methods.get(method) if method else None
        settlements.append(Settlement(
            payment_date=payment_date,
            payment_form=(form.sat_code if form else None) or DEFAULT_PAYMENT_FORM,
            monetary_instrument=(
                meta.monetary_instrument_code
                or (instrument.sat_code if instrument else None)
                or DEFAULT_MONETARY_INSTRUMENT
            ),
            currency=currency,
            amount=Decimal(amount),
        ))
    return tuple(settlements)


def _record(
    alert: Alert,
    client: Client,
    transaction: Transaction,
    catalogs: _ResolvedCatalogs,
) -> SatNoticeRecord:
    meta = AlertMetadata.model_validate(alert.alert_metadata or {})
    rule: AlertRule = alert.alert_rule
    rule_meta = RuleMetadata.model_validate(rule.rule_metadata or {})
    return SatNoticeRecord(
        reference=meta.notice_reference or str(alert.id),
        priority=meta.priority or DEFAULT_PRIORITY,
        alert_type=alert_type_code(meta, rule_meta, rule.id),
        person=_person(client, catalogs.countries),
        address=_address(client, catalogs.countries),
        beneficial_owners=_beneficial_owners(client, catalogs.countries),
        operation=OperationDetail(
            operation_date=transaction.operation_date,
            postal_code=transaction.branch_postal_code or client.postal_code or "",
            operation_type=operation_type_code(meta, rule_meta, transaction),
            vehicles=(_vehicle(transaction, catalogs),),
            settlements=_settlements(transaction, meta, catalogs),
        ),
    )


def build_records(db: Session, org_id: UUID, alerts: list[Alert]) -> list[SatNoticeRecord]:
    """Build one record per alert, in the order given."""
    missing_tx = [a.id for a in alerts if a.transaction_id is None]
    if missing_tx:
        raise MissingReferenceDataError(f"Alerts without a transaction: {', '.join(map(str, missing_tx))}")

    client_ids = {a.client_id for a in alerts}
    transaction_ids = {a.transaction_id for a in alerts}
    clients = {
        c.id: c
        for c in db.scalars(
            select(Client)
            .options(selectinload(Client.beneficial_owners))
            .where(Client.organization_id == org_id, Client.id.in_(client_ids))
        )
    }
    transactions = {
        t.id: t
        for t in db.scalars(
            select(Transaction)
            .options(selectinload(Transaction.payment_methods))
            .where(Transaction.organization_id == org_id, Transaction.id.in_(transaction_ids))
        )
    }

    for alert in alerts:
        if alert.client_id not in clients:
            raise MissingReferenceDataError(f"Client {alert.client_id} for alert {alert.id} not found")
        if alert.transaction_id not in transactions:
            raise MissingReferenceDataError(f"Transaction {alert.transaction_id} for alert {alert.id} not found")

    catalogs = _ResolvedCatalogs(db, list(clients.values()), list(transactions.values()))
    return [
        _record(alert, clients[alert.client_id], transactions[alert.transaction_id], catalogs)
        for alert in alerts
    ]


def build_record(db: Session, org_id: UUID, alert: Alert) -> SatNoticeRecord:
    return build_records(db, org_id, [alert])[0]

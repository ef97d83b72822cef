"""Tests for mapping stored alerts and reference data onto SAT records."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from dealer_aml.db.models import BeneficialOwner, Client, Transaction, TransactionPaymentMethod
from dealer_aml.schemas.metadata import AlertMetadata, RuleMetadata
from dealer_aml.services import sat_mapping_service


def test_build_header_reads_org_settings(db, test_org):
    header = sat_mapping_service.build_header(db, test_org.id, "202401")
    assert header.obligated_subject_key == "ADN010101AB1"
    assert header.activity_key == "VEH"
    assert header.reported_month == "202401"


def test_build_header_requires_rfc(db, other_org):
    with pytest.raises(sat_mapping_service.MissingReferenceDataError):
        sat_mapping_service.build_header(db, other_org.id, "202401")


def test_record_resolves_catalog_codes(db, test_org, test_catalogs, test_transaction, make_alert):
    alert = make_alert(transaction_id=test_transaction.id)
    record = sat_mapping_service.build_record(db, test_org.id, alert)

    assert record.reference == str(alert.id)
    assert record.priority == "1"
    assert record.alert_type == "2501"
    assert record.person.person_type == "fisica"
    assert record.person.nationality == "MX"
    assert record.address.address_type == "nacional"
    assert record.address.country is None

    operation = record.operation
    assert operation.operation_type == "802"
    assert operation.postal_code == "64010"
    vehicle = operation.vehicles[0]
    assert vehicle.vehicle_type == "terrestre"
    assert vehicle.brand == "Nissan"
    assert vehicle.vin == "3N1CN8AE0PL000001"
    assert vehicle.plates == "ABC1234"
    assert vehicle.serial_number is None

    settlement, = operation.settlements
    assert settlement.currency == "3"
    assert settlement.payment_form == "1"
    assert settlement.monetary_instrument == "1"
    assert settlement.amount == Decimal("350000.00")


def test_record_falls_back_to_raw_values_without_catalogs(db, test_org, test_transaction, make_alert):
    alert = make_alert(transaction_id=test_transaction.id)
    record = sat_mapping_service.build_record(db, test_org.id, alert)

    assert record.operation.vehicles[0].brand == "nissan"
    assert record.operation.settlements[0].currency == "MXN"
    assert record.operation.settlements[0].payment_form == sat_mapping_service.DEFAULT_PAYMENT_FORM


def test_alert_metadata_overrides(db, test_org, test_transaction, make_alert):
    alert = make_alert(
        transaction_id=test_transaction.id,
        metadata={
            "alert_code": "9999",
            "priority": "2",
            "notice_reference": "AV-2024-01",
            "operation_type_code": "801",
            "monetary_instrument_code": "5",
        },
    )
    record = sat_mapping_service.build_record(db, test_org.id, alert)

    assert record.alert_type == "9999"
    assert record.priority == "2"
    assert record.reference == "AV-2024-01"
    assert record.operation.operation_type == "801"
    assert record.operation.settlements[0].monetary_instrument == "5"


def test_alert_type_code_fallbacks():
    empty_meta, empty_rule = AlertMetadata(), RuleMetadata()
    assert sat_mapping_service.alert_type_code(empty_meta, RuleMetadata(sat_alert_code="7"), "AUTO") == "7"
    assert sat_mapping_service.alert_type_code(empty_meta, empty_rule, "2501") == "2501"
    assert sat_mapping_service.alert_type_code(empty_meta, empty_rule, "AUTO_UMA") == "803"


def test_one_settlement_per_payment_method(db, test_org, test_transaction, make_alert):
    db.add(TransactionPaymentMethod(
        transaction_id=test_transaction.id,
        position=1,
        method="TRANSFER",
        amount=Decimal("50000.00"),
    ))
    db.commit()
    alert = make_alert(transaction_id=test_transaction.id)

    settlements = sat_mapping_service.build_record(db, test_org.id, alert).operation.settlements
    assert [s.amount for s in settlements] == [Decimal("350000.00"), Decimal("50000.00")]


def test_without_payment_methods_uses_transaction_amount(db, test_org, test_client_record, make_alert):
    transaction = Transaction(
        organization_id=test_org.id,
        client_id=test_client_record.id,
        operation_date=datetime(2024, 1, 12, tzinfo=timezone.utc),
        operation_type="purchase",
        vehicle_type="land",
        brand_id="vw",
        model="Jetta",
        year=2020,
        amount=Decimal("210000.50"),
    )
    db.add(transaction)
    db.commit()
    alert = make_alert(transaction_id=transaction.id)

    record = sat_mapping_service.build_record(db, test_org.id, alert)
    settlement, = record.operation.settlements
    assert settlement.amount == Decimal("210000.50")
    assert record.operation.operation_type == "801"
    # Branch postal code missing: the client's is used.
    assert record.operation.postal_code == "64000"


def test_marine_vehicle_mapping(db, test_org, test_client_record, make_alert):
    transaction = Transaction(
        organization_id=test_org.id,
        client_id=test_client_record.id,
        operation_date=datetime(2024, 1, 12, tzinfo=timezone.utc),
        operation_type="sale",
        vehicle_type="marine",
        brand_id="yamaha",
        model="242X",
        year=2022,
        engine_number="ENG-1",
        registration_number="MAT-9",
        flag_country_id="mx-flag",
        plates="IGNORED",
        amount=Decimal("900000"),
    )
    db.add(transaction)
    db.commit()
    alert = make_alert(transaction_id=transaction.id)

    vehicle = sat_mapping_service.build_record(db, test_org.id, alert).operation.vehicles[0]
    assert vehicle.vehicle_type == "maritimo"
    assert vehicle.serial_number == "ENG-1"
    assert vehicle.registration == "MAT-9"
    assert vehicle.flag == "mx-flag"
    assert vehicle.plates is None
    assert vehicle.vin is None


def test_moral_client_with_foreign_address_and_owners(db, test_org, test_rule, make_alert):
    client = Client(
        organization_id=test_org.id,
        person_type="moral",
        business_name="Global Motors LLC",
        incorporation_date=date(2015, 3, 3),
        economic_activity_code="4361",
        nationality="US",
        country="US",
        state_code="TX",
        city="Houston",
        street="Main St",
        postal_code="77002",
    )
    client.beneficial_owners.append(BeneficialOwner(person_type="physical", first_name="Ann", last_name="Lee"))
    client.beneficial_owners.append(BeneficialOwner(person_type="unknown", first_name="Skip"))
    db.add(client)
    db.flush()
    transaction = Transaction(
        organization_id=test_org.id,
        client_id=client.id,
        operation_date=datetime(2024, 1, 12, tzinfo=timezone.utc),
        operation_type="sale",
        vehicle_type="land",
        brand_id="ford",
        model="F-150",
        year=2024,
        amount=Decimal("1000000"),
    )
    db.add(transaction)
    db.commit()
    alert = make_alert(client_id=client.id, transaction_id=transaction.id)

    record = sat_mapping_service.build_record(db, test_org.id, alert)
    assert record.person.person_type == "moral"
    assert record.person.commercial_activity == "4361"
    assert record.person.economic_activity is None
    assert record.address.address_type == "extranjero"
    assert record.address.country == "US"
    assert record.address.city == "Houston"
    assert [o.first_name for o in record.beneficial_owners] == ["Ann"]


def test_alert_without_transaction_is_rejected(db, test_org, make_alert):
    alert = make_alert()
    with pytest.raises(sat_mapping_service.MissingReferenceDataError):
        sat_mapping_service.build_record(db, test_org.id, alert)

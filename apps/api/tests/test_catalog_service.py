"""Tests for the catalog resolver."""

from dealer_aml.db.enums import CatalogKey
from dealer_aml.db.models import Catalog, CatalogItem
from dealer_aml.services import catalog_service


def _add_item(db, catalog_key: str, name: str, metadata: dict, active: bool = True) -> CatalogItem:
    catalog = db.query(Catalog).filter(Catalog.key == catalog_key).first()
    if catalog is None:
        catalog = Catalog(key=catalog_key, name=catalog_key, active=True)
        db.add(catalog)
        db.flush()
    item = CatalogItem(
        catalog_id=catalog.id,
        name=name,
        normalized_name=name.lower(),
        active=active,
        item_metadata=metadata,
    )
    db.add(item)
    db.commit()
    return item


def test_resolve_by_ids(db, test_catalogs):
    brand = test_catalogs["brand"]
    resolved = catalog_service.resolve_by_ids(db, [brand.id, "missing", None])

    assert list(resolved) == [brand.id]
    record = resolved[brand.id]
    assert record.name == "Nissan"
    assert record.code == "NIS"
    assert record.catalog_key == CatalogKey.TERRESTRIAL_VEHICLE_BRANDS.value


def test_resolve_by_ids_restricted_to_catalogs(db, test_catalogs):
    brand = test_catalogs["brand"]
    assert catalog_service.resolve_by_ids(db, [brand.id], catalog_keys=[CatalogKey.COUNTRIES]) == {}


def test_resolve_by_code_prefers_sat_code(db, test_catalogs):
    resolved = catalog_service.resolve_by_code(db, CatalogKey.CURRENCIES, ["MXN", "USD"])

    assert set(resolved) == {"MXN"}
    assert resolved["MXN"].sat_code == "3"


def test_sat_code_falls_back_to_code(db, test_catalogs):
    record = catalog_service.resolve_by_code(db, CatalogKey.TERRESTRIAL_VEHICLE_BRANDS, ["NIS"])["NIS"]
    assert record.sat_code == "NIS"


def test_inactive_items_hidden_unless_requested(db):
    _add_item(db, CatalogKey.CURRENCIES.value, "Dolar", {"code": "USD", "sat_code": "2"}, active=False)

    assert catalog_service.resolve_by_code(db, CatalogKey.CURRENCIES, ["USD"]) == {}
    found = catalog_service.resolve_by_code(db, CatalogKey.CURRENCIES, ["USD"], include_inactive=True)
    assert found["USD"].sat_code == "2"


def test_first_listed_catalog_wins_on_shared_code(db):
    _add_item(db, CatalogKey.MARITIME_VEHICLE_BRANDS.value, "Yamaha Marine", {"code": "YAM"})
    _add_item(db, CatalogKey.AIR_VEHICLE_BRANDS.value, "Yamaha Air", {"code": "YAM"})

    resolved = catalog_service.resolve_by_code_across_catalogs(
        db,
        [CatalogKey.AIR_VEHICLE_BRANDS, CatalogKey.MARITIME_VEHICLE_BRANDS],
        ["YAM"],
    )
    assert resolved["YAM"].name == "Yamaha Air"


def test_empty_input_skips_query(db):
    assert catalog_service.resolve_by_ids(db, []) == {}
    assert catalog_service.resolve_by_code(db, CatalogKey.CURRENCIES, ["", None]) == {}


def test_code_lookup_fetches_only_matching_rows(db, monkeypatch):
    for code in ("AR", "BR", "CL", "CO", "PE"):
        _add_item(db, CatalogKey.COUNTRIES.value, f"Pais {code}", {"code": code})
    _add_item(db, CatalogKey.COUNTRIES.value, "Sin codigo", {})

    built = []
    original = catalog_service._record

    def counting_record(item, key):
        built.append(item.name)
        return original(item, key)

    monkeypatch.setattr(catalog_service, "_record", counting_record)

    resolved = catalog_service.resolve_by_code(db, CatalogKey.COUNTRIES, ["BR", "PE", "ZZ"])

    assert set(resolved) == {"BR", "PE"}
    assert sorted(built) == ["Pais BR", "Pais PE"]

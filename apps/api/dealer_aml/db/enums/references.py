"""Enums for the reference data consumed when rendering filings."""

from enum import Enum


class PersonType(str, Enum):
    """Client person type as stored in the client registry."""

    PHYSICAL = "physical"
    MORAL = "moral"
    TRUST = "trust"


class VehicleType(str, Enum):
    """Vehicle kind of a transaction."""

    LAND = "land"
    MARINE = "marine"
    AIR = "air"


class OperationType(str, Enum):
    """Direction of a vehicle transaction."""

    PURCHASE = "purchase"
    SALE = "sale"


class CatalogKey(str, Enum):
    """Catalog keys the filing pipeline resolves against."""

    CURRENCIES = "currencies"
    COUNTRIES = "countries"
    PAYMENT_FORMS = "payment-forms"
    PAYMENT_METHODS = "payment-methods"
    TERRESTRIAL_VEHICLE_BRANDS = "terrestrial-vehicle-brands"
    MARITIME_VEHICLE_BRANDS = "maritime-vehicle-brands"
    AIR_VEHICLE_BRANDS = "air-vehicle-brands"


VEHICLE_BRAND_CATALOGS = {
    VehicleType.LAND: CatalogKey.TERRESTRIAL_VEHICLE_BRANDS,
    VehicleType.MARINE: CatalogKey.MARITIME_VEHICLE_BRANDS,
    VehicleType.AIR: CatalogKey.AIR_VEHICLE_BRANDS,
}

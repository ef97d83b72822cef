"""SQLAlchemy ORM models for tenants, alerts, notices and reference data."""

from dealer_aml.db.models.organizations import Organization, OrganizationSettings
from dealer_aml.db.models.alerts import Alert, AlertRule, AlertRuleConfig
from dealer_aml.db.models.notices import Notice
from dealer_aml.db.models.references import (
    BeneficialOwner,
    Catalog,
    CatalogItem,
    Client,
    Transaction,
    TransactionPaymentMethod,
)

__all__ = [
    "Alert",
    "AlertRule",
    "AlertRuleConfig",
    "BeneficialOwner",
    "Catalog",
    "CatalogItem",
    "Client",
    "Notice",
    "Organization",
    "OrganizationSettings",
    "Transaction",
    "TransactionPaymentMethod",
]

"""
Catalog resolver.

Batch lookups over the shared reference catalogs (currencies, countries,
vehicle brands, ...). A miss is never an error: the key is simply absent
from the returned map and callers fall back to the raw value.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from dealer_aml.db.models import Catalog, CatalogItem


@dataclass(frozen=True)
class CatalogRecord:
    """One resolved catalog entry."""

    id: str
    catalog_key: str
    name: str
    code: str | None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def sat_code(self) -> str | None:
        """Authority-specific code when the catalog carries one, else the generic code."""
        return self.metadata.get("sat_code") or self.code


def _record(item: CatalogItem, catalog_key: str) -> CatalogRecord:
    metadata = dict(item.item_metadata or {})
    code = metadata.get("code")
    return CatalogRecord(
        id=item.id,
        catalog_key=catalog_key,
        name=item.name,
        code=str(code) if code is not None else None,
        metadata=metadata,
    )


def _key_values(keys: Iterable[str]) -> list[str]:
    return [getattr(k, "value", k) for k in keys]


def _items_query(catalog_keys: list[str] | None, include_inactive: bool):
    stmt = select(CatalogItem, Catalog.key).join(Catalog, CatalogItem.catalog_id == Catalog.id)
    if catalog_keys:
        stmt = stmt.where(Catalog.key.in_(catalog_keys))
    if not include_inactive:
        stmt = stmt.where(CatalogItem.active.is_(True), Catalog.active.is_(True))
    return stmt


def resolve_by_ids(
    db: Session,
    ids: Iterable[str],
    catalog_keys: Iterable[str] | None = None,
    include_inactive: bool = False,
) -> dict[str, CatalogRecord]:
    """Resolve item ids to records, optionally restricted to some catalogs."""
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    keys = _key_values(catalog_keys) if catalog_keys else None
    stmt = _items_query(keys, include_inactive).where(CatalogItem.id.in_(wanted))
    return {item.id: _record(item, key) for item, key in db.execute(stmt).all()}


def resolve_by_code_across_catalogs(
    db: Session,
    catalog_keys: Iterable[str],
    codes: Iterable[str],
    include_inactive: bool = False,
) -> dict[str, CatalogRecord]:
    """
    Resolve reference codes to records across several catalogs.

    The code lives in the item's metadata as a string; only matching rows
    are fetched. The first catalog listed wins when two catalogs share a code.
    """
    wanted = {str(c) for c in codes if c is not None and str(c) != ""}
    if not wanted:
        return {}
    keys = _key_values(catalog_keys)
    stmt = (
        _items_query(keys, include_inactive)
        .where(CatalogItem.item_metadata["code"].as_string().in_(sorted(wanted)))
        .order_by(CatalogItem.name)
    )
    rows = db.execute(stmt).all()

    rank = {key: index for index, key in enumerate(keys)}
    resolved: dict[str, CatalogRecord] = {}
    for item, key in sorted(rows, key=lambda row: rank.get(row[1], len(rank))):
        record = _record(item, key)
        if record.code in wanted and record.code not in resolved:
            resolved[record.code] = record
    return resolved


def resolve_by_code(
    db: Session,
    catalog_key: str,
    codes: Iterable[str],
    include_inactive: bool = False,
) -> dict[str, CatalogRecord]:
    """Resolve reference codes within one catalog."""
    return resolve_by_code_across_catalogs(db, [catalog_key], codes, include_inactive)

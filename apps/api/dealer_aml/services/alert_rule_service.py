"""Alert rule catalog and per-rule configuration."""

import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealer_aml.core.exceptions import ConflictError, ImmutableError, NotFoundError, ValidationError
from dealer_aml.core.structured_logging import build_log_context
from dealer_aml.db.models import Alert, AlertRule, AlertRuleConfig
from dealer_aml.schemas.alert_rule import (
    AlertRuleConfigCreate,
    AlertRuleConfigUpdate,
    AlertRuleCreate,
    AlertRuleUpdate,
)
from dealer_aml.schemas.metadata import RuleMetadata

logger = logging.getLogger(__name__)


class AlertRuleNotFoundError(NotFoundError):
    """Rule not found (or not active where an active rule is required)."""


class DuplicateAlertRuleError(ConflictError):
    """Rule id already exists."""


class AlertRuleInUseError(ConflictError):
    """Rule is still referenced by alerts."""


class AlertRuleConfigNotFoundError(NotFoundError):
    """Config key not found for the rule."""


class DuplicateConfigKeyError(ConflictError):
    """Config key already exists for the rule."""


class HardcodedConfigError(ImmutableError):
    """Hardcoded config values cannot be changed."""


# =============================================================================
# Rules
# =============================================================================

def get_rule(db: Session, rule_id: str) -> AlertRule | None:
    return db.get(AlertRule, rule_id)


def require_rule(db: Session, rule_id: str) -> AlertRule:
    rule = get_rule(db, rule_id)
    if not rule:
        raise AlertRuleNotFoundError(f"Alert rule {rule_id} not found")
    return rule


def rule_metadata(rule: AlertRule) -> RuleMetadata:
    return RuleMetadata.model_validate(rule.rule_metadata or {})


def list_rules(
    db: Session,
    active: bool | None = None,
    is_manual_only: bool | None = None,
    search: str | None = None,
) -> list[AlertRule]:
    stmt = select(AlertRule)
    if active is not None:
        stmt = stmt.where(AlertRule.active.is_(active))
    if is_manual_only is not None:
        stmt = stmt.where(AlertRule.is_manual_only.is_(is_manual_only))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(AlertRule.name.ilike(pattern) | AlertRule.id.ilike(pattern))
    return list(db.scalars(stmt.order_by(AlertRule.id)))


def list_active_rules(db: Session, include_manual_only: bool = False) -> list[AlertRule]:
    """Rules that automatic detectors may evaluate."""
    return list_rules(db, active=True, is_manual_only=None if include_manual_only else False)


def create_rule(db: Session, data: AlertRuleCreate) -> AlertRule:
    if get_rule(db, data.id):
        raise DuplicateAlertRuleError(f"Alert rule {data.id} already exists")
    rule = AlertRule(
        id=data.id,
        name=data.name.strip(),
        description=data.description,
        active=data.active,
        severity=data.severity.value,
        rule_type=data.rule_type,
        is_manual_only=data.is_manual_only,
        activity_code=data.activity_code,
        rule_metadata=data.metadata.to_payload() if data.metadata else None,
    )
    try:
        db.add(rule)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateAlertRuleError(f"Alert rule {data.id} already exists")
    db.commit()
    db.refresh(rule)
    logger.info("Alert rule created", extra=build_log_context(rule_id=rule.id))
    return rule


def update_rule(db: Session, rule_id: str, data: AlertRuleUpdate) -> AlertRule:
    rule = require_rule(db, rule_id)
    fields = data.model_dump(exclude_unset=True)

    if "metadata" in fields:
        rule.rule_metadata = data.metadata.to_payload() if data.metadata else None
        fields.pop("metadata")
    if "severity" in fields:
        fields.pop("severity")
        if data.severity is not None:
            rule.severity = data.severity.value
    for key, value in fields.items():
        if value is None and key in ("name", "active", "is_manual_only", "activity_code"):
            continue
        setattr(rule, key, value.strip() if key == "name" else value)

    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule_id: str) -> None:
    """Delete a rule. Refused while any alert references it."""
    rule = require_rule(db, rule_id)
    in_use = db.scalar(select(Alert.id).where(Alert.alert_rule_id == rule_id).limit(1))
    if in_use is not None:
        raise AlertRuleInUseError(f"Alert rule {rule_id} is referenced by existing alerts")
    db.delete(rule)
    db.commit()
    logger.info("Alert rule deleted", extra=build_log_context(rule_id=rule_id))


# =============================================================================
# Rule configuration
# =============================================================================

def _check_json(value: str) -> None:
    try:
        json.loads(value)
    except ValueError:
        raise ValidationError("Config value must be a valid JSON string")


def list_configs(db: Session, rule_id: str) -> list[AlertRuleConfig]:
    require_rule(db, rule_id)
    stmt = (
        select(AlertRuleConfig)
        .where(AlertRuleConfig.alert_rule_id == rule_id)
        .order_by(AlertRuleConfig.key)
    )
    return list(db.scalars(stmt))


def get_config(db: Session, rule_id: str, key: str) -> AlertRuleConfig:
    config = db.scalar(
        select(AlertRuleConfig).where(
            AlertRuleConfig.alert_rule_id == rule_id,
            AlertRuleConfig.key == key,
        )
    )
    if not config:
        raise AlertRuleConfigNotFoundError(f"Config {key} not found for rule {rule_id}")
    return config


def get_config_value(db: Session, rule_id: str, key: str, default=None):
    """Decoded JSON value of a config key, or default when absent."""
    try:
        return json.loads(get_config(db, rule_id, key).value)
    except AlertRuleConfigNotFoundError:
        return default


def create_config(db: Session, rule_id: str, data: AlertRuleConfigCreate) -> AlertRuleConfig:
    require_rule(db, rule_id)
    _check_json(data.value)
    config = AlertRuleConfig(
        alert_rule_id=rule_id,
        key=data.key,
        value=data.value,
        is_hardcoded=data.is_hardcoded,
        description=data.description,
    )
    try:
        db.add(config)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateConfigKeyError(f"Config {data.key} already exists for rule {rule_id}")
    db.commit()
    db.refresh(config)
    return config


def update_config(db: Session, rule_id: str, key: str, data: AlertRuleConfigUpdate) -> AlertRuleConfig:
    config = get_config(db, rule_id, key)
    if config.is_hardcoded:
        raise HardcodedConfigError(f"Config {key} of rule {rule_id} is hardcoded and cannot be changed")
    if data.value is not None:
        _check_json(data.value)
        config.value = data.value
    if data.description is not None:
        config.description = data.description
    db.commit()
    db.refresh(config)
    return config


def delete_config(db: Session, rule_id: str, key: str) -> None:
    config = get_config(db, rule_id, key)
    if config.is_hardcoded:
        raise HardcodedConfigError(f"Config {key} of rule {rule_id} is hardcoded and cannot be deleted")
    db.delete(config)
    db.commit()

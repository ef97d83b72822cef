"""Tests for the alert rule catalog and rule configuration."""

import pytest

from dealer_aml.core.exceptions import ValidationError
from dealer_aml.db.enums import AlertSeverity
from dealer_aml.schemas.alert_rule import (
    AlertRuleConfigCreate,
    AlertRuleConfigUpdate,
    AlertRuleCreate,
    AlertRuleUpdate,
)
from dealer_aml.services import alert_rule_service


def test_create_and_read_rule_metadata(db):
    rule = alert_rule_service.create_rule(db, AlertRuleCreate(
        id="AUTO_UMA",
        name="  Operation above UMA threshold ",
        severity=AlertSeverity.CRITICAL,
        metadata={"sat_alert_code": "3001", "threshold_uma": 6420},
    ))

    assert rule.name == "Operation above UMA threshold"
    assert rule.severity == "CRITICAL"
    assert rule.rule_metadata == {"sat_alert_code": "3001", "threshold_uma": 6420}

    meta = alert_rule_service.rule_metadata(rule)
    assert meta.sat_alert_code == "3001"
    assert meta.extra == {"threshold_uma": 6420}


def test_create_duplicate_rule_conflicts(db, test_rule):
    with pytest.raises(alert_rule_service.DuplicateAlertRuleError):
        alert_rule_service.create_rule(db, AlertRuleCreate(id=test_rule.id, name="Again"))


def test_list_active_rules_excludes_manual_only_by_default(db, test_rule, manual_rule):
    ids = [r.id for r in alert_rule_service.list_active_rules(db)]
    assert test_rule.id in ids
    assert manual_rule.id not in ids

    ids = [r.id for r in alert_rule_service.list_active_rules(db, include_manual_only=True)]
    assert manual_rule.id in ids


def test_list_rules_search_and_active_filter(db, test_rule, manual_rule):
    alert_rule_service.update_rule(db, manual_rule.id, AlertRuleUpdate(active=False))

    found = alert_rule_service.list_rules(db, search="cash")
    assert [r.id for r in found] == [test_rule.id]

    inactive = alert_rule_service.list_rules(db, active=False)
    assert [r.id for r in inactive] == [manual_rule.id]


def test_update_rule_partial(db, test_rule):
    updated = alert_rule_service.update_rule(db, test_rule.id, AlertRuleUpdate(
        description="Cash over the legal limit",
        severity=AlertSeverity.CRITICAL,
    ))
    assert updated.description == "Cash over the legal limit"
    assert updated.severity == "CRITICAL"
    assert updated.name == "Cash payment above threshold"
    assert updated.rule_metadata == {"sat_alert_code": "2501"}


def test_delete_rule_refused_while_in_use(db, test_rule, make_alert):
    make_alert()
    with pytest.raises(alert_rule_service.AlertRuleInUseError):
        alert_rule_service.delete_rule(db, test_rule.id)


def test_delete_unused_rule(db, manual_rule):
    alert_rule_service.delete_rule(db, manual_rule.id)
    assert alert_rule_service.get_rule(db, manual_rule.id) is None

    with pytest.raises(alert_rule_service.AlertRuleNotFoundError):
        alert_rule_service.delete_rule(db, manual_rule.id)


# =============================================================================
# Configuration
# =============================================================================

def test_config_crud(db, test_rule):
    config = alert_rule_service.create_config(db, test_rule.id, AlertRuleConfigCreate(
        key="threshold_mxn",
        value="500000",
        description="Cash limit",
    ))
    assert config.is_hardcoded is False
    assert alert_rule_service.get_config_value(db, test_rule.id, "threshold_mxn") == 500000
    assert alert_rule_service.get_config_value(db, test_rule.id, "missing", default=1) == 1

    updated = alert_rule_service.update_config(
        db, test_rule.id, "threshold_mxn", AlertRuleConfigUpdate(value="[1, 2]")
    )
    assert updated.value == "[1, 2]"
    assert updated.description == "Cash limit"

    alert_rule_service.delete_config(db, test_rule.id, "threshold_mxn")
    assert alert_rule_service.list_configs(db, test_rule.id) == []


def test_config_value_must_be_json(db, test_rule):
    with pytest.raises(ValidationError):
        alert_rule_service.create_config(db, test_rule.id, AlertRuleConfigCreate(key="bad", value="{not json"))


def test_duplicate_config_key_conflicts(db, test_rule):
    alert_rule_service.create_config(db, test_rule.id, AlertRuleConfigCreate(key="k", value="1"))
    with pytest.raises(alert_rule_service.DuplicateConfigKeyError):
        alert_rule_service.create_config(db, test_rule.id, AlertRuleConfigCreate(key="k", value="2"))


def test_hardcoded_config_is_immutable(db, test_rule):
    alert_rule_service.create_config(db, test_rule.id, AlertRuleConfigCreate(
        key="uma_value", value="108.57", is_hardcoded=True,
    ))

    with pytest.raises(alert_rule_service.HardcodedConfigError):
        alert_rule_service.update_config(db, test_rule.id, "uma_value", AlertRuleConfigUpdate(value="1"))
    with pytest.raises(alert_rule_service.HardcodedConfigError):
        alert_rule_service.delete_config(db, test_rule.id, "uma_value")

    assert alert_rule_service.get_config(db, test_rule.id, "uma_value").value == "108.57"


def test_config_for_unknown_rule(db):
    with pytest.raises(alert_rule_service.AlertRuleNotFoundError):
        alert_rule_service.list_configs(db, "NOPE")
    with pytest.raises(alert_rule_service.AlertRuleConfigNotFoundError):
        alert_rule_service.get_config(db, "NOPE", "k")

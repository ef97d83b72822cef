"""Pydantic schemas for alert rules and rule configuration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from dealer_aml.db.enums import AlertSeverity
from dealer_aml.schemas.alert import RESOURCE_ID_PATTERN
from dealer_aml.schemas.metadata import RuleMetadata


class AlertRuleCreate(BaseModel):
    """Request to create an alert rule. id is the rule code."""
    id: str = Field(..., min_length=1, max_length=64, pattern=RESOURCE_ID_PATTERN)
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    active: bool = True
    severity: AlertSeverity = AlertSeverity.MEDIUM
    rule_type: str | None = Field(None, max_length=100)
    is_manual_only: bool = False
    activity_code: str = Field("VEH", min_length=1, max_length=10)
    metadata: RuleMetadata | None = None


class AlertRuleUpdate(BaseModel):
    """Request to update an alert rule (partial)."""
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    active: bool | None = None
    severity: AlertSeverity | None = None
    rule_type: str | None = Field(None, max_length=100)
    is_manual_only: bool | None = None
    activity_code: str | None = Field(None, min_length=1, max_length=10)
    metadata: RuleMetadata | None = None


class AlertRuleRead(BaseModel):
    id: str
    name: str
    description: str | None
    active: bool
    severity: AlertSeverity
    rule_type: str | None
    is_manual_only: bool
    activity_code: str
    metadata: dict | None = Field(None, validation_alias="rule_metadata")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class AlertRuleConfigCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1)  # JSON string
    is_hardcoded: bool = False
    description: str | None = Field(None, max_length=500)


class AlertRuleConfigUpdate(BaseModel):
    value: str | None = Field(None, min_length=1)
    description: str | None = Field(None, max_length=500)


class AlertRuleConfigRead(BaseModel):
    id: UUID
    alert_rule_id: str
    key: str
    value: str
    is_hardcoded: bool
    description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

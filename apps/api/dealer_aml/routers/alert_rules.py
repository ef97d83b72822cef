"""Alert rule and rule configuration API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dealer_aml.core.deps import get_db
from dealer_aml.core.exceptions import ComplianceError
from dealer_aml.schemas.alert_rule import (
    AlertRuleConfigCreate,
    AlertRuleConfigRead,
    AlertRuleConfigUpdate,
    AlertRuleCreate,
    AlertRuleRead,
    AlertRuleUpdate,
)
from dealer_aml.services import alert_rule_service

router = APIRouter()


# =============================================================================
# Rules
# =============================================================================


@router.get("", response_model=list[AlertRuleRead])
def list_rules(
    active: bool | None = None,
    is_manual_only: bool | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
):
    return alert_rule_service.list_rules(db, active=active, is_manual_only=is_manual_only, search=search)


@router.get("/active", response_model=list[AlertRuleRead])
def list_active_rules(
    include_manual_only: bool = False,
    db: Session = Depends(get_db),
):
    """Rules that automatic detectors may evaluate."""
    return alert_rule_service.list_active_rules(db, include_manual_only=include_manual_only)


@router.get("/{rule_id}", response_model=AlertRuleRead)
def get_rule(rule_id: str, db: Session = Depends(get_db)):
    try:
        return alert_rule_service.require_rule(db, rule_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", response_model=AlertRuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(data: AlertRuleCreate, db: Session = Depends(get_db)):
    try:
        return alert_rule_service.create_rule(db, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{rule_id}", response_model=AlertRuleRead)
def update_rule(rule_id: str, data: AlertRuleUpdate, db: Session = Depends(get_db)):
    try:
        return alert_rule_service.update_rule(db, rule_id, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: str, db: Session = Depends(get_db)):
    """Delete a rule. Refused while alerts reference it."""
    try:
        alert_rule_service.delete_rule(db, rule_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


# =============================================================================
# Rule configuration
# =============================================================================


@router.get("/{rule_id}/config", response_model=list[AlertRuleConfigRead])
def list_configs(rule_id: str, db: Session = Depends(get_db)):
    try:
        return alert_rule_service.list_configs(db, rule_id)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{rule_id}/config", response_model=AlertRuleConfigRead, status_code=status.HTTP_201_CREATED)
def create_config(rule_id: str, data: AlertRuleConfigCreate, db: Session = Depends(get_db)):
    try:
        return alert_rule_service.create_config(db, rule_id, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{rule_id}/config/{key}", response_model=AlertRuleConfigRead)
def update_config(rule_id: str, key: str, data: AlertRuleConfigUpdate, db: Session = Depends(get_db)):
    """Update a config value. Hardcoded keys answer 403."""
    try:
        return alert_rule_service.update_config(db, rule_id, key, data)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{rule_id}/config/{key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_config(rule_id: str, key: str, db: Session = Depends(get_db)):
    try:
        alert_rule_service.delete_config(db, rule_id, key)
    except ComplianceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

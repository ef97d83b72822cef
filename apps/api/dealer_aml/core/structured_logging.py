"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any


def build_log_context(
    *,
    org_id: object | None = None,
    alert_id: object | None = None,
    notice_id: object | None = None,
    rule_id: str | None = None,
    reported_month: str | None = None,
    status: str | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    Only identifiers, labels and counts go in here. Client names, RFCs and
    rendered documents never do.
    """
    context: dict[str, Any] = {}
    if org_id:
        context["org_id"] = str(org_id)
    if alert_id:
        context["alert_id"] = str(alert_id)
    if notice_id:
        context["notice_id"] = str(notice_id)
    if rule_id:
        context["rule_id"] = rule_id
    if reported_month:
        context["reported_month"] = reported_month
    if status:
        context["status"] = status
    if count is not None:
        context["count"] = count
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the API process and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

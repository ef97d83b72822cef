"""Standalone SAT file for a single alert."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from dealer_aml.core.structured_logging import build_log_context
from dealer_aml.db.enums import AlertStatus
from dealer_aml.db.models import Alert
from dealer_aml.services import alert_service, sat_mapping_service, sat_xml_service
from dealer_aml.services.document_store import XML_CONTENT_TYPE, DocumentStore, StoredDocument, alert_file_key

logger = logging.getLogger(__name__)


def generate_alert_file(
    db: Session,
    org_id: UUID,
    alert_id: UUID,
    store: DocumentStore,
) -> tuple[Alert, StoredDocument]:
    """
    Render one alert, store the file and move the alert to FILE_GENERATED.

    The lifecycle rules of alert_service apply: only DETECTED or OVERDUE
    alerts can take a file.
    """
    alert = alert_service.get_alert(db, org_id, alert_id)
    if alert.status not in (AlertStatus.DETECTED.value, AlertStatus.OVERDUE.value):
        raise alert_service.AlertTransitionError(
            f"Cannot generate a file for alert {alert_id} in status {alert.status}"
        )

    record = sat_mapping_service.build_record(db, org_id, alert)
    header = sat_mapping_service.build_header(
        db, org_id, sat_xml_service.format_month(record.operation.operation_date)
    )
    document = sat_xml_service.render_single(header, record)
    stored = store.put(
        alert_file_key(org_id, alert.id),
        document,
        XML_CONTENT_TYPE,
        {"alert_id": str(alert.id)},
    )

    alert = alert_service.transition_alert(
        db,
        org_id,
        alert.id,
        AlertStatus.FILE_GENERATED,
        sat_file_url=stored.url or stored.key,
    )
    logger.info(
        "Alert file generated",
        extra=build_log_context(org_id=org_id, alert_id=alert.id, count=stored.size),
    )
    return alert, stored

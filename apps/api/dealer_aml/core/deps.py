"""FastAPI dependencies for database access, tenant scope and document storage."""

from typing import Generator
from uuid import UUID

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from dealer_aml.db.session import SessionLocal
from dealer_aml.services.document_store import DocumentStore
from dealer_aml.services.document_store import get_document_store as _configured_store


ORG_HEADER = "X-Organization-ID"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_org_id(x_organization_id: str | None = Header(None, alias=ORG_HEADER)) -> UUID:
    """
    Organization scope of the request.

    Every service call takes the org id explicitly; this is the only
    place it is read from the request.
    """
    if not x_organization_id:
        raise HTTPException(status_code=400, detail=f"{ORG_HEADER} header is required")
    try:
        return UUID(x_organization_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{ORG_HEADER} must be a UUID")


def get_document_store() -> DocumentStore:
    return _configured_store()

"""
Document store for rendered SAT files.

Two backends, selected by STORAGE_BACKEND: the local filesystem (dev and
tests) and an S3-compatible bucket. Both return the same StoredDocument
receipt so callers never branch on the backend.
"""
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from dealer_aml.core.config import settings
from dealer_aml.services import storage_client

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "application/xml"


@dataclass(frozen=True)
class StoredDocument:
    """Receipt for a stored document."""

    key: str
    size: int
    checksum: str  # SHA-256 hex
    url: str | None = None


class DocumentStore(Protocol):
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = XML_CONTENT_TYPE,
        metadata: dict[str, str] | None = None,
    ) -> StoredDocument: ...


def calculate_checksum(data: bytes) -> str:
    """Calculate SHA-256 checksum of a payload."""
    return hashlib.sha256(data).hexdigest()


def notice_file_key(org_id: UUID, notice_id: UUID, reported_month: str) -> str:
    return f"notices/{org_id}/{notice_id}_{reported_month}.xml"


def alert_file_key(org_id: UUID, alert_id: UUID) -> str:
    return f"alerts/{org_id}/{alert_id}.xml"


class LocalDocumentStore:
    """Writes documents under a root directory, mirroring the key layout."""

    def __init__(self, root: str | None = None):
        self.root = root or settings.LOCAL_STORAGE_PATH

    def _path(self, key: str) -> str:
        path = os.path.normpath(os.path.join(self.root, key))
        if not path.startswith(os.path.normpath(self.root) + os.sep):
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = XML_CONTENT_TYPE,
        metadata: dict[str, str] | None = None,
    ) -> StoredDocument:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        stored = StoredDocument(
            key=key,
            size=len(data),
            checksum=calculate_checksum(data),
            url=f"file://{path}",
        )
        logger.info("Stored document locally", extra={"key": key, "size": stored.size})
        return stored

    def get(self, key: str) -> bytes:
        with open(self._path(key), "rb") as f:
            return f.read()


class S3DocumentStore:
    """Uploads documents to an S3-compatible bucket."""

    def __init__(self, bucket: str | None = None, client=None):
        self.bucket = bucket or settings.S3_BUCKET
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = storage_client.get_s3_client()
        return self._client

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = XML_CONTENT_TYPE,
        metadata: dict[str, str] | None = None,
    ) -> StoredDocument:
        checksum = calculate_checksum(data)
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata={**(metadata or {}), "sha256": checksum},
        )
        logger.info("Stored document in S3", extra={"key": key, "size": len(data)})
        return StoredDocument(
            key=key,
            size=len(data),
            checksum=checksum,
            url=storage_client.object_url(self.bucket, key),
        )

    def get(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        return response["Body"].read()


def get_document_store() -> DocumentStore:
    """Return the store for the configured backend."""
    if settings.STORAGE_BACKEND == "s3":
        return S3DocumentStore()
    return LocalDocumentStore()

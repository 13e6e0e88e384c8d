"""
Avatar object storage: Tencent COS through its S3-compatible API, plus an
in-memory store used when no bucket is configured (development, tests).
"""

from __future__ import annotations

import posixpath
import secrets
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import boto3
from botocore.config import Config
from fastapi import UploadFile

from core.config import Settings, settings
from core.errors import ValidationError
from core.logger import logger

AVATAR_PREFIX = "avatars/"
AVATAR_MAX_BYTES = 5 * 1024 * 1024


class StorageClient(Protocol):
    """The operations the API needs from object storage."""

    base_url: str

    def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Process-local store; objects vanish on restart."""

    base_url: str = "https://storage.local"
    objects: Dict[str, bytes] = field(default_factory=dict)

    def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
        self.objects[key] = body

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)


@dataclass
class CosStorageClient:
    """S3-compatible storage client for Tencent COS."""

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    base_url: str

    def __post_init__(self):
        # COS only accepts virtual-hosted style addressing
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)


def build_storage_client(config: Settings) -> StorageClient:
    if not config.cos_bucket:
        return InMemoryStorageClient()
    return CosStorageClient(
        bucket=config.cos_bucket,
        region=config.cos_region,
        endpoint=config.cos_endpoint,
        access_key_id=config.cos_secret_id,
        secret_access_key=config.cos_secret_key,
        base_url=config.storage_base_url,
    )


_storage_client: Optional[StorageClient] = None


def get_storage() -> StorageClient:
    """FastAPI dependency returning the process-wide storage client."""
    global _storage_client
    if _storage_client is None:
        _storage_client = build_storage_client(settings)
    return _storage_client


# ---------------------------------------------------------------------------
# Avatar helpers
# ---------------------------------------------------------------------------


async def read_avatar(upload: UploadFile) -> bytes:
    """
    Read an uploaded avatar, enforcing the image/* MIME family and the 5 MB
    cap.  Raises 400 before anything is written to storage.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError("Please upload an image file")

    # Read one byte past the cap so oversize files are detected without
    # buffering the whole body
    body = await upload.read(AVATAR_MAX_BYTES + 1)
    if len(body) > AVATAR_MAX_BYTES:
        raise ValidationError("Avatar must be 5 MB or smaller")
    if not body:
        raise ValidationError("Avatar file is empty")
    return body


def store_avatar(storage: StorageClient, filename: str, body: bytes, content_type: str) -> str:
    """Upload *body* under a random key and return its public URL."""
    extension = posixpath.splitext(filename or "")[1].lower()
    key = f"{AVATAR_PREFIX}{secrets.token_hex(16)}{extension}"
    storage.put_bytes(key, body, content_type)
    logger.info("Stored avatar object %s (%d bytes)", key, len(body))
    return f"{storage.base_url}/{key}"


def discard_avatar(storage: StorageClient, avatar_url: Optional[str]) -> None:
    """
    Best-effort removal of a stored avatar.  Failures are logged and never
    propagate: losing an orphaned image must not block the caller.
    """
    if not avatar_url:
        return
    name = avatar_url.rsplit("/", 1)[-1]
    if not name:
        return
    key = f"{AVATAR_PREFIX}{name}"
    try:
        storage.delete(key)
        logger.info("Deleted avatar object %s", key)
    except Exception:
        logger.exception("Failed to delete avatar object %s", key)

"""Amazon S3 access for uploaded memorial media.

Objects are stored privately; clients receive presigned GET URLs.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from typing import Any
from uuid import uuid4

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

LOGGER = logging.getLogger(__name__)
_EXTENSION_KEY = "remembrance_s3_client"
_DEFAULT_PRESIGNED_TTL = 300


class S3Error(RuntimeError):
    """Base exception for S3 helper failures."""


class S3ConfigurationError(S3Error):
    """Raised when required S3 configuration is missing."""


class S3UploadError(S3Error):
    """Raised when uploading bytes to S3 fails."""


class S3PresignError(S3Error):
    """Raised when a presigned URL cannot be produced."""


def upload_bytes(
    payload: bytes,
    *,
    content_type: str,
    filename_hint: str | None = None,
    metadata: dict[str, Any] | None = None,
    object_key: str | None = None,
) -> str:
    """Store ``payload`` and return the object key it was written under."""
    if not isinstance(payload, (bytes, bytearray)) or not payload:
        raise ValueError("payload must be non-empty bytes")
    key = build_object_key(filename_hint, content_type, object_key=object_key)
    bucket = _get_bucket_name()
    params: dict[str, Any] = {
        "Bucket": bucket,
        "Key": key,
        "Body": bytes(payload),
        "ContentType": content_type or "application/octet-stream",
    }
    if metadata:
        params["Metadata"] = {
            str(k): str(v) for k, v in metadata.items() if v is not None
        }

    try:
        _get_client().put_object(**params)
    except (BotoCoreError, ClientError) as exc:
        raise S3UploadError(f"Failed to upload object {key!r}: {exc}") from exc

    LOGGER.debug("Uploaded %s bytes to s3://%s/%s", len(payload), bucket, key)
    return key


def generate_presigned_get_url(key: str, *, expires_in: int | None = None) -> str:
    """Return a time-limited GET URL for ``key``."""
    if not key:
        raise ValueError("key must be provided")
    bucket = _get_bucket_name()
    try:
        return _get_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key.lstrip("/")},
            ExpiresIn=_resolve_presigned_ttl(expires_in),
            HttpMethod="GET",
        )
    except (BotoCoreError, ClientError) as exc:
        raise S3PresignError(f"Failed to presign object {key!r}: {exc}") from exc


def build_object_key(
    filename_hint: str | None, content_type: str, *, object_key: str | None = None
) -> str:
    if object_key:
        return object_key.lstrip("/")
    extension = _resolve_extension(filename_hint, content_type)
    return f"{_get_bucket_prefix()}{uuid4().hex}{extension}"


def _resolve_extension(filename_hint: str | None, content_type: str) -> str:
    if filename_hint:
        suffix = Path(filename_hint).suffix
        if suffix:
            return suffix.lower()

    guessed = mimetypes.guess_extension(content_type or "")
    if guessed == ".jpe":
        return ".jpg"
    return guessed.lower() if guessed else ""


def _resolve_presigned_ttl(override: int | None) -> int:
    if override is not None and override > 0:
        return int(override)
    try:
        configured = int(current_app.config.get("S3_PRESIGNED_TTL", 0))
    except (TypeError, ValueError):
        configured = 0
    return configured if configured > 0 else _DEFAULT_PRESIGNED_TTL


def _get_client() -> BaseClient:
    client = current_app.extensions.get(_EXTENSION_KEY)
    if client:
        return client

    client_kwargs: dict[str, Any] = {}
    region = current_app.config.get("AWS_REGION") or os.getenv("AWS_REGION")
    if region:
        client_kwargs["region_name"] = str(region)
    endpoint_url = current_app.config.get("S3_ENDPOINT_URL") or os.getenv(
        "S3_ENDPOINT_URL"
    )
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url

    client = boto3.client("s3", **client_kwargs)
    current_app.extensions[_EXTENSION_KEY] = client
    return client


def _get_bucket_prefix() -> str:
    prefix = str(current_app.config.get("S3_BUCKET_PREFIX") or "").strip()
    prefix = prefix.replace("\\", "/").lstrip("/")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def _get_bucket_name() -> str:
    bucket = current_app.config.get("S3_BUCKET_NAME") or os.getenv("S3_BUCKET_NAME")
    if not bucket:
        raise S3ConfigurationError("S3 bucket name is not configured")
    return str(bucket)

"""Validation and storage of media uploaded ahead of a memorial request."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

import pillow_heif
from flask import current_app
from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..errors import UpstreamError, ValidationError
from . import s3

pillow_heif.register_heif_opener()

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MediaUpload:
    """Where an uploaded file ended up."""

    key: str
    url: str
    filename: str
    content_type: str
    size: int


def store_media_upload(
    storage: FileStorage,
    *,
    logger: Optional[logging.Logger] = None,
) -> MediaUpload:
    """Validate ``storage`` and push it to S3, returning a signed URL.

    Images must decode; audio, video and documents are stored as uploaded.
    Storage failures are fatal to the upload.
    """
    log = logger or LOGGER
    filename = secure_filename(storage.filename or "") or "upload"
    extension = media_extension(filename)
    allowed = set(current_app.config.get("ALLOWED_EXTENSIONS", ()))
    if allowed and extension not in allowed:
        raise ValidationError.for_field("file", "File has an unsupported format.")

    storage.stream.seek(0)
    payload = storage.read()
    if not payload:
        raise ValidationError.for_field("file", "Uploaded file is empty.")

    size_cap = int(current_app.config.get("MAX_MEDIA_UPLOAD_BYTES") or 0)
    if size_cap > 0 and len(payload) > size_cap:
        raise ValidationError.for_field(
            "file",
            f"File exceeds the {size_cap / (1024 * 1024):.0f} MB upload limit.",
        )

    if extension in set(current_app.config.get("IMAGE_EXTENSIONS", ())):
        _ensure_decodable_image(payload, filename)

    content_type = storage.mimetype or "application/octet-stream"
    try:
        key = s3.upload_bytes(
            payload,
            content_type=content_type,
            filename_hint=filename,
            metadata={"original-filename": filename},
        )
        url = s3.generate_presigned_get_url(key)
    except s3.S3ConfigurationError as exc:
        log.error("S3 configuration missing; cannot store media uploads")
        raise UpstreamError("Media storage is not configured") from exc
    except s3.S3Error as exc:
        log.warning("Failed to store media upload %s", filename, exc_info=True)
        raise UpstreamError("Failed to store the uploaded file") from exc

    log.info("Stored media upload %s (%s bytes) at %s", filename, len(payload), key)
    return MediaUpload(
        key=key,
        url=url,
        filename=filename,
        content_type=content_type,
        size=len(payload),
    )


def media_extension(filename: str) -> str:
    return PurePath(filename).suffix.lstrip(".").lower()


def _ensure_decodable_image(payload: bytes, filename: str) -> None:
    try:
        with Image.open(io.BytesIO(payload)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise ValidationError.for_field(
            "file", f"{filename} is not a readable image."
        ) from None

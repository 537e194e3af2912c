"""Publishing approved memorial requests as public memorial pages."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SlugAllocationError,
    ValidationError,
)
from ..extensions import db
from ..models import LocationVisibility, Memorial, MemorialRequest, RequestStatus
from . import lifecycle, slugs
from .memorial_requests import get_request

LOGGER = logging.getLogger(__name__)

DEFAULT_PUBLISH_ATTEMPTS = 5

MEMORIAL_FIELDS = (
    "full_name",
    "birth_date",
    "death_date",
    "story_text",
    "photos",
    "video_link",
    "audio_narration_link",
    "latitude",
    "longitude",
    "location_visibility",
)
EDITABLE_FIELDS = MEMORIAL_FIELDS + ("published_status",)
MAP_VISIBILITIES = (LocationVisibility.EXACT.value, LocationVisibility.APPROXIMATE.value)


def publish_memorial(
    request_id: str,
    fields: Mapping[str, Any],
    *,
    public_url: str | None = None,
    logger: Optional[logging.Logger] = None,
) -> Memorial:
    """Create the public memorial for an approved request.

    The memorial insert and the request's move to ``published`` commit
    together. When another publication claims the same slug first, the whole
    unit is rolled back and retried with the next free slug.
    """
    log = logger or LOGGER
    explicit_slug = slugs.validate_slug(public_url) if public_url else None
    values = _memorial_values(fields, require_all=True)

    attempts = _configured_publish_attempts()
    for attempt in range(1, attempts + 1):
        try:
            memorial = _publish_once(request_id, values, explicit_slug)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            conflict = _describe_conflict(exc)
            if conflict == "request_id":
                raise ConflictError(
                    f"Memorial request {request_id} already has a memorial"
                ) from exc
            if conflict != "public_url":
                raise
            if explicit_slug:
                raise ConflictError(
                    f"Public URL {explicit_slug!r} is already in use"
                ) from exc
            log.warning(
                "Slug collision while publishing request %s (attempt %s/%s)",
                request_id,
                attempt,
                attempts,
            )
            continue
        except Exception:
            db.session.rollback()
            raise

        log.info(
            "Published memorial %s at %s from request %s",
            memorial.id,
            memorial.public_url,
            request_id,
        )
        return memorial

    raise SlugAllocationError()


def _publish_once(
    request_id: str,
    values: dict[str, Any],
    explicit_slug: str | None,
) -> Memorial:
    memorial_request = get_request(request_id)
    if memorial_request.request_status != RequestStatus.APPROVED.value:
        raise InvalidTransitionError(
            memorial_request.request_status,
            RequestStatus.PUBLISHED.value,
            "Only approved requests can be published",
        )

    if explicit_slug:
        if slugs.slug_exists(explicit_slug):
            raise ConflictError(f"Public URL {explicit_slug!r} is already in use")
        slug = explicit_slug
    else:
        slug = slugs.generate_public_url(values["full_name"], values.get("birth_date"))

    memorial = Memorial(
        **values,
        request_id=memorial_request.id,
        public_url=slug,
        qr_code_url=slugs.build_qr_code_url(slug),
        published_status=True,
    )
    db.session.add(memorial)
    db.session.flush()

    _mark_request_published(memorial_request)
    return memorial


def _mark_request_published(memorial_request: MemorialRequest) -> None:
    lifecycle.transition(
        memorial_request, RequestStatus.PUBLISHED.value, via_publication=True
    )
    db.session.flush()


def update_memorial(
    memorial_id: str,
    changes: Mapping[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
) -> Memorial:
    """Apply the supplied field changes; omitted fields stay untouched."""
    log = logger or LOGGER
    memorial = get_memorial(memorial_id)
    values = _memorial_values(changes, require_all=False)
    if "published_status" in changes:
        if not isinstance(changes["published_status"], bool):
            raise ValidationError.for_field(
                "published_status", "Published status must be true or false."
            )
        values["published_status"] = changes["published_status"]

    for field, value in values.items():
        setattr(memorial, field, value)
    memorial.qr_code_url = slugs.build_qr_code_url(memorial.public_url)
    memorial.updated_at = datetime.now(UTC)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info(
        "Updated memorial %s (%s); published=%s",
        memorial.id,
        ", ".join(sorted(values)) or "no fields",
        memorial.published_status,
    )
    return memorial


def soft_delete_memorial(
    memorial_id: str, *, logger: Optional[logging.Logger] = None
) -> Memorial:
    """Retire a memorial from public view. Rows are never physically removed."""
    log = logger or LOGGER
    memorial = get_memorial(memorial_id)
    memorial.published_status = False
    memorial.updated_at = datetime.now(UTC)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info("Soft deleted memorial %s", memorial.id)
    return memorial


def get_memorial(memorial_id: str) -> Memorial:
    """Admin lookup; includes soft-deleted memorials."""
    memorial = db.session.get(Memorial, memorial_id)
    if memorial is None:
        raise NotFoundError("Memorial not found")
    return memorial


def get_public_memorial(memorial_id: str) -> Memorial:
    memorial = db.session.scalars(
        db.select(Memorial).where(
            Memorial.id == memorial_id, Memorial.published_status.is_(True)
        )
    ).first()
    if memorial is None:
        raise NotFoundError("Memorial not found")
    return memorial


def get_memorial_by_slug(slug: str) -> Memorial:
    memorial = db.session.scalars(
        db.select(Memorial).where(
            Memorial.public_url == slug, Memorial.published_status.is_(True)
        )
    ).first()
    if memorial is None:
        raise NotFoundError("Memorial not found")
    return memorial


def list_map_memorials() -> list[Memorial]:
    """Published memorials whose location may be shown on the public map."""
    query = (
        db.select(Memorial)
        .where(
            Memorial.published_status.is_(True),
            Memorial.location_visibility.in_(MAP_VISIBILITIES),
        )
        .order_by(Memorial.created_at.desc())
    )
    return list(db.session.scalars(query))


def regenerate_qr_codes(*, logger: Optional[logging.Logger] = None) -> int:
    """Recompute every stored QR reference from its public URL."""
    log = logger or LOGGER
    updated = 0
    for memorial in db.session.scalars(db.select(Memorial).order_by(Memorial.created_at)):
        qr_code_url = slugs.build_qr_code_url(memorial.public_url)
        if memorial.qr_code_url != qr_code_url:
            memorial.qr_code_url = qr_code_url
            updated += 1
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info("Regenerated QR code URLs for %s memorials", updated)
    return updated


def _memorial_values(fields: Mapping[str, Any], *, require_all: bool) -> dict[str, Any]:
    values = {name: fields[name] for name in MEMORIAL_FIELDS if name in fields}

    errors: dict[str, list[str]] = {}
    for name in ("full_name", "story_text"):
        if name in values or require_all:
            if not str(values.get(name) or "").strip():
                errors[name] = ["This field is required."]
            else:
                values[name] = str(values[name]).strip()

    visibility = values.get("location_visibility")
    if visibility is None and require_all:
        values["location_visibility"] = LocationVisibility.EXACT.value
    elif visibility is None and "location_visibility" in values:
        errors["location_visibility"] = ["Location visibility cannot be empty."]
    elif visibility is not None and visibility not in {
        item.value for item in LocationVisibility
    }:
        errors["location_visibility"] = [f"Unknown location visibility {visibility!r}"]

    if "photos" in values:
        values["photos"] = [str(url) for url in values["photos"] or [] if url]
    elif require_all:
        values["photos"] = []

    for name in ("video_link", "audio_narration_link"):
        if name in values:
            values[name] = str(values[name] or "").strip() or None

    if errors:
        raise ValidationError("Invalid memorial fields", fields=errors)
    return values


def _describe_conflict(exc: IntegrityError) -> str | None:
    message = str(getattr(exc, "orig", exc))
    if "public_url" in message:
        return "public_url"
    if "request_id" in message:
        return "request_id"
    return None


def _configured_publish_attempts() -> int:
    try:
        value = int(
            current_app.config.get("PUBLISH_MAX_ATTEMPTS", DEFAULT_PUBLISH_ATTEMPTS)
        )
    except (TypeError, ValueError):
        value = DEFAULT_PUBLISH_ATTEMPTS
    return value if value > 0 else DEFAULT_PUBLISH_ATTEMPTS

"""Public identifiers for published memorials."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, Optional
from urllib.parse import urlencode

from flask import current_app

from ..errors import SlugAllocationError, ValidationError
from ..extensions import db
from ..models import Memorial

LOGGER = logging.getLogger(__name__)

FALLBACK_SLUG = "memorial"
DEFAULT_MAX_ATTEMPTS = 1000

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-+")
_VALID_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def generate_slug(name: str) -> str:
    """Turn a display name into a lowercase, hyphenated slug."""
    slug = _WHITESPACE.sub("-", (name or "").lower())
    slug = _DISALLOWED.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-") or FALLBACK_SLUG


def slug_exists(slug: str) -> bool:
    """True when any memorial, live or soft-deleted, already owns ``slug``."""
    query = db.select(Memorial.id).where(Memorial.public_url == slug).limit(1)
    return db.session.execute(query).first() is not None


def generate_public_url(
    full_name: str,
    birth_date: date | None = None,
    *,
    exists: Callable[[str], bool] | None = None,
    max_attempts: int | None = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    """Return the first unused slug for ``full_name``.

    Candidates are ``<base>``, ``<base>-2``, ``<base>-3`` and so on, where the
    base carries the birth year when one is known.
    """
    log = logger or LOGGER
    check = exists or slug_exists
    limit = max_attempts or _configured_max_attempts()

    base = generate_slug(full_name)
    if birth_date is not None:
        base = f"{base}-{birth_date.year}"

    candidate = base
    for attempt in range(1, limit + 1):
        if attempt > 1:
            candidate = f"{base}-{attempt}"
        if not check(candidate):
            if attempt > 1:
                log.debug("Slug %s taken, allocated %s", base, candidate)
            return candidate

    log.error("Exhausted %s slug candidates for base %s", limit, base)
    raise SlugAllocationError()


def validate_slug(slug: str) -> str:
    """Check an admin-supplied slug is already in normalized form."""
    value = (slug or "").strip()
    if not _VALID_SLUG.match(value):
        raise ValidationError.for_field(
            "public_url",
            "Public URL may only contain lowercase letters, digits and single hyphens",
        )
    return value


def build_universal_link(slug: str) -> str:
    """Link printed in QR codes; resolves to the app or the web fallback."""
    base = str(current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    return f"{base}/go?{urlencode({'m': slug})}"


def build_qr_code_url(slug: str) -> str:
    """Rendering-service URL for the QR image of ``slug``."""
    config = current_app.config
    service = str(config.get("QR_SERVICE_URL")).rstrip("?")
    size = int(config.get("QR_SIZE", 500))
    query = urlencode({"size": f"{size}x{size}", "data": build_universal_link(slug)})
    return f"{service}?{query}"


def _configured_max_attempts() -> int:
    try:
        value = int(current_app.config.get("SLUG_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))
    except (TypeError, ValueError):
        value = DEFAULT_MAX_ATTEMPTS
    return value if value > 0 else DEFAULT_MAX_ATTEMPTS

"""Service helpers for managing memorial request records."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import DiscountType, MemorialRequest, RequestStatus
from . import pricing

LOGGER = logging.getLogger(__name__)


def create_request(
    *,
    requester_name: str,
    requester_email: str,
    loved_one_name: str,
    story_notes: str,
    tier_selected: str,
    birth_date: date | None = None,
    death_date: date | None = None,
    media_uploads: Iterable[str] = (),
    location_info: Optional[str] = None,
    latitude: float | None = None,
    longitude: float | None = None,
    country: Optional[str] = None,
    preservation_addon: bool = False,
    preservation_billing_cycle: Optional[str] = None,
    discount_requested: bool = False,
    discount_type: Optional[str] = None,
    documentation_upload: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> MemorialRequest:
    """Price and persist a new memorial request in the ``submitted`` state."""
    log = logger or LOGGER

    required = {
        "requester_name": requester_name,
        "requester_email": requester_email,
        "loved_one_name": loved_one_name,
        "story_notes": story_notes,
    }
    missing = {
        field: ["This field is required."]
        for field, value in required.items()
        if not isinstance(value, str) or not value.strip()
    }
    if missing:
        raise ValidationError("Missing required fields", fields=missing)

    if discount_type and discount_type not in {item.value for item in DiscountType}:
        raise ValidationError.for_field(
            "discount_type", f"Unknown discount type {discount_type!r}"
        )

    payment_amount = pricing.compute_price(
        tier_selected,
        preservation_addon=preservation_addon,
        billing_cycle=preservation_billing_cycle,
        discount_requested=discount_requested,
    )

    memorial_request = MemorialRequest(
        requester_name=requester_name.strip(),
        requester_email=requester_email.strip(),
        loved_one_name=loved_one_name.strip(),
        birth_date=birth_date,
        death_date=death_date,
        story_notes=story_notes.strip(),
        media_uploads=[str(url) for url in media_uploads if url],
        location_info=(location_info or "").strip() or None,
        latitude=latitude,
        longitude=longitude,
        country=(country or "").strip() or None,
        tier_selected=tier_selected,
        preservation_addon=bool(preservation_addon),
        preservation_billing_cycle=(
            preservation_billing_cycle if preservation_addon else None
        ),
        discount_requested=bool(discount_requested),
        discount_type=discount_type or None,
        documentation_upload=(documentation_upload or "").strip() or None,
        payment_amount=payment_amount,
        request_status=RequestStatus.SUBMITTED.value,
    )
    db.session.add(memorial_request)
    db.session.commit()
    log.info(
        "Created memorial request %s for %s (tier=%s, amount=%s)",
        memorial_request.id,
        memorial_request.loved_one_name,
        memorial_request.tier_selected,
        memorial_request.payment_amount,
    )
    return memorial_request


def get_request(request_id: str) -> MemorialRequest:
    memorial_request = db.session.get(MemorialRequest, request_id)
    if memorial_request is None:
        raise NotFoundError("Memorial request not found")
    return memorial_request


def list_requests(
    *,
    status: str | None = None,
    discount_requested: bool | None = None,
) -> list[MemorialRequest]:
    """Return requests for admin triage, newest first."""
    query = db.select(MemorialRequest).order_by(MemorialRequest.created_at.desc())

    if status:
        if status not in {item.value for item in RequestStatus}:
            raise ValidationError.for_field("status", f"Unknown request status {status!r}")
        query = query.where(MemorialRequest.request_status == status)
    if discount_requested is not None:
        query = query.where(MemorialRequest.discount_requested.is_(discount_requested))

    return list(db.session.scalars(query))


def request_stats() -> dict[str, int]:
    """Count requests per status, plus an overall total."""
    rows = db.session.execute(
        db.select(MemorialRequest.request_status, func.count(MemorialRequest.id))
        .group_by(MemorialRequest.request_status)
    ).all()
    counts = {status.value: 0 for status in RequestStatus}
    for status, count in rows:
        counts[status] = count
    counts["total"] = sum(count for _, count in rows)
    return counts

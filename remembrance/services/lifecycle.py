"""Status transitions for memorial requests.

Admin transitions::

    submitted    -> under_review, rejected
    under_review -> approved, rejected
    approved     -> published   (publication workflow only)

``published`` and ``rejected`` are terminal. Payment callbacks use their own
entry point, :func:`record_payment_result`, which only moves requests that
have not yet been approved.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InvalidTransitionError, ValidationError
from ..extensions import db
from ..models import MemorialRequest, PaymentStatus, RequestStatus
from .memorial_requests import get_request

LOGGER = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    RequestStatus.SUBMITTED.value: frozenset(
        {RequestStatus.UNDER_REVIEW.value, RequestStatus.REJECTED.value}
    ),
    RequestStatus.UNDER_REVIEW.value: frozenset(
        {RequestStatus.APPROVED.value, RequestStatus.REJECTED.value}
    ),
    RequestStatus.APPROVED.value: frozenset({RequestStatus.PUBLISHED.value}),
    RequestStatus.PUBLISHED.value: frozenset(),
    RequestStatus.REJECTED.value: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Statuses a payment callback may still move between.
PAYMENT_MUTABLE_STATES = frozenset(
    {RequestStatus.SUBMITTED.value, RequestStatus.UNDER_REVIEW.value}
)

PAYMENT_RESULTS = frozenset(
    {PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value}
)


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def transition(
    memorial_request: MemorialRequest,
    new_status: str,
    *,
    admin_notes: str | None = None,
    expected_version: int | None = None,
    via_publication: bool = False,
    logger: Optional[logging.Logger] = None,
) -> MemorialRequest:
    """Apply an admin status change to ``memorial_request`` without committing."""
    log = logger or LOGGER
    target = _coerce_status(new_status)
    current = memorial_request.request_status

    if expected_version is not None and expected_version != memorial_request.version:
        raise ConflictError(
            f"Memorial request {memorial_request.id} was modified by someone else "
            f"(version {memorial_request.version}, expected {expected_version})"
        )

    if target == RequestStatus.PUBLISHED.value and not via_publication:
        raise InvalidTransitionError(
            current,
            target,
            "Requests are published by creating their memorial, not by a status update",
        )

    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)

    memorial_request.request_status = target
    if admin_notes is not None:
        memorial_request.admin_notes = admin_notes.strip() or None
    memorial_request.updated_at = datetime.now(UTC)
    log.info(
        "Memorial request %s moved from %s to %s", memorial_request.id, current, target
    )
    return memorial_request


def update_status(
    request_id: str,
    new_status: str,
    *,
    admin_notes: str | None = None,
    expected_version: int | None = None,
    logger: Optional[logging.Logger] = None,
) -> MemorialRequest:
    """Load, transition and commit a request status change."""
    memorial_request = get_request(request_id)
    try:
        transition(
            memorial_request,
            new_status,
            admin_notes=admin_notes,
            expected_version=expected_version,
            logger=logger,
        )
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            f"Memorial request {request_id} was modified concurrently; reload and retry"
        ) from exc
    except Exception:
        db.session.rollback()
        raise
    return memorial_request


def record_payment_result(
    request_id: str,
    payment_status: str,
    payment_reference: str | None = None,
    *,
    logger: Optional[logging.Logger] = None,
) -> MemorialRequest:
    """Store a payment outcome and cascade it onto the request status.

    A completed payment sends the request to review; any other outcome puts
    it back to ``submitted``. Requests that are already approved, published or
    rejected keep their status.
    """
    log = logger or LOGGER
    if payment_status not in PAYMENT_RESULTS:
        raise ValidationError.for_field(
            "payment_status", "Payment status must be 'completed' or 'failed'"
        )

    memorial_request = get_request(request_id)
    memorial_request.payment_status = payment_status
    if payment_reference:
        memorial_request.payment_reference = payment_reference.strip()

    current = memorial_request.request_status
    if current in PAYMENT_MUTABLE_STATES:
        memorial_request.request_status = (
            RequestStatus.UNDER_REVIEW.value
            if payment_status == PaymentStatus.COMPLETED.value
            else RequestStatus.SUBMITTED.value
        )
    else:
        log.warning(
            "Payment %s recorded for memorial request %s in status %s; status left unchanged",
            payment_status,
            request_id,
            current,
        )
    memorial_request.updated_at = datetime.now(UTC)

    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            f"Memorial request {request_id} was modified concurrently; retry the callback"
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    log.info(
        "Processed payment for memorial request %s: payment=%s status=%s",
        request_id,
        payment_status,
        memorial_request.request_status,
    )
    return memorial_request


def _coerce_status(value: str) -> str:
    try:
        return RequestStatus(str(value)).value
    except ValueError:
        raise ValidationError.for_field(
            "request_status", f"Unknown request status {value!r}"
        ) from None

"""Database models for the memorial request service."""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import event, inspect
from sqlalchemy.orm import column_property

from .extensions import db


class Tier(str, enum.Enum):
    MARKED = "tier_1_marked"
    REMEMBERED = "tier_2_remembered"
    ENDURING = "tier_3_enduring"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DiscountType(str, enum.Enum):
    MILITARY = "military"
    FIRST_RESPONDER = "first_responder"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"


class LocationVisibility(str, enum.Enum):
    EXACT = "exact"
    APPROXIMATE = "approximate"
    HIDDEN = "hidden"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid4())


def _isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class PaymentAmountLockedError(RuntimeError):
    """Raised when code tries to rewrite the price of an existing request."""


class MemorialRequest(db.Model):
    __tablename__ = "memorial_requests"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    requester_name = db.Column(db.String(200), nullable=False)
    requester_email = db.Column(db.String(320), nullable=False)
    loved_one_name = db.Column(db.String(200), nullable=False)
    birth_date = db.Column(db.Date)
    death_date = db.Column(db.Date)
    story_notes = db.Column(db.Text, nullable=False)
    media_uploads = db.Column(db.JSON, default=list, nullable=False)
    location_info = db.Column(db.Text)
    latitude = db.Column(db.Numeric(10, 8, asdecimal=False))
    longitude = db.Column(db.Numeric(11, 8, asdecimal=False))
    country = db.Column(db.String(120))
    tier_selected = db.Column(db.String(32), nullable=False)
    preservation_addon = db.Column(db.Boolean, default=False, nullable=False)
    preservation_billing_cycle = db.Column(db.String(16))
    discount_requested = db.Column(db.Boolean, default=False, nullable=False)
    discount_type = db.Column(db.String(32))
    documentation_upload = db.Column(db.Text)
    # Old value is loaded on assignment so the update guard can compare.
    payment_amount = column_property(
        db.Column(db.Integer, nullable=False), active_history=True
    )
    payment_status = db.Column(
        db.String(16), default=PaymentStatus.PENDING.value, nullable=False
    )
    payment_reference = db.Column(db.String(255))
    request_status = db.Column(
        db.String(16),
        default=RequestStatus.SUBMITTED.value,
        nullable=False,
        index=True,
    )
    admin_notes = db.Column(db.Text)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    memorial = db.relationship(
        "Memorial",
        back_populates="source_request",
        uselist=False,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "requester_name": self.requester_name,
            "requester_email": self.requester_email,
            "loved_one_name": self.loved_one_name,
            "birth_date": _isoformat(self.birth_date),
            "death_date": _isoformat(self.death_date),
            "story_notes": self.story_notes,
            "media_uploads": list(self.media_uploads or []),
            "location_info": self.location_info,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "country": self.country,
            "tier_selected": self.tier_selected,
            "preservation_addon": self.preservation_addon,
            "preservation_billing_cycle": self.preservation_billing_cycle,
            "discount_requested": self.discount_requested,
            "discount_type": self.discount_type,
            "documentation_upload": self.documentation_upload,
            "payment_amount": self.payment_amount,
            "payment_status": self.payment_status,
            "payment_reference": self.payment_reference,
            "request_status": self.request_status,
            "admin_notes": self.admin_notes,
            "version": self.version,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


@event.listens_for(MemorialRequest, "before_update")
def _guard_payment_amount(mapper, connection, target: MemorialRequest) -> None:
    # The price is computed once at submission; edits must never re-bill.
    history = inspect(target).attrs.payment_amount.history
    if history.deleted and history.added and history.deleted != history.added:
        raise PaymentAmountLockedError(
            f"payment_amount of memorial request {target.id} cannot change"
        )


class Memorial(db.Model):
    __tablename__ = "memorials"
    __table_args__ = (
        db.UniqueConstraint("public_url", name="uq_memorials_public_url"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    request_id = db.Column(
        db.String(36),
        db.ForeignKey("memorial_requests.id", ondelete="SET NULL"),
        unique=True,
    )
    full_name = db.Column(db.String(200), nullable=False)
    birth_date = db.Column(db.Date)
    death_date = db.Column(db.Date)
    story_text = db.Column(db.Text, nullable=False)
    photos = db.Column(db.JSON, default=list, nullable=False)
    video_link = db.Column(db.Text)
    audio_narration_link = db.Column(db.Text)
    latitude = db.Column(db.Numeric(10, 8, asdecimal=False))
    longitude = db.Column(db.Numeric(11, 8, asdecimal=False))
    location_visibility = db.Column(
        db.String(16),
        default=LocationVisibility.EXACT.value,
        nullable=False,
    )
    qr_code_url = db.Column(db.Text, nullable=False)
    public_url = db.Column(db.String(255), nullable=False)
    published_status = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    source_request = db.relationship("MemorialRequest", back_populates="memorial")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "full_name": self.full_name,
            "birth_date": _isoformat(self.birth_date),
            "death_date": _isoformat(self.death_date),
            "story_text": self.story_text,
            "photos": list(self.photos or []),
            "video_link": self.video_link,
            "audio_narration_link": self.audio_narration_link,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_visibility": self.location_visibility,
            "qr_code_url": self.qr_code_url,
            "public_url": self.public_url,
            "published_status": self.published_status,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }

    def to_map_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_visibility": self.location_visibility,
            "public_url": self.public_url,
        }

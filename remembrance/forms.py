"""WTForms definitions used to validate API payloads."""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired
from werkzeug.datastructures import FileStorage, ImmutableMultiDict
from wtforms import (
    BooleanField,
    DateField,
    Field,
    FloatField,
    IntegerField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Length,
    NumberRange,
    Optional,
    ValidationError,
)

from .models import (
    BillingCycle,
    DiscountType,
    LocationVisibility,
    PaymentStatus,
    RequestStatus,
    Tier,
)


def _values(enum_cls) -> list[str]:
    return [item.value for item in enum_cls]


def json_formdata(payload: Mapping[str, Any] | None) -> ImmutableMultiDict:
    """Wrap a decoded JSON body so WTForms can process it; nulls count as absent."""
    return ImmutableMultiDict(
        {key: value for key, value in (payload or {}).items() if value is not None}
    )


class StringListField(Field):
    """Ordered list of non-empty strings, e.g. media URLs."""

    def __init__(self, label=None, validators=None, **kwargs):
        kwargs.setdefault("default", list)
        super().__init__(label, validators, **kwargs)

    def process_formdata(self, valuelist):
        cleaned: list[str] = []
        for value in valuelist:
            if not isinstance(value, str):
                raise ValueError("Each entry must be a string.")
            if value.strip():
                cleaned.append(value.strip())
        self.data = cleaned

    def _value(self) -> str:
        return ",".join(self.data or [])


class _JsonTextMixin:
    """Reject decoded JSON numbers, booleans and objects for text fields."""

    def process_formdata(self, valuelist):
        if valuelist and not isinstance(valuelist[0], str):
            raise ValueError("Must be a string.")
        super().process_formdata(valuelist)


class JsonStringField(_JsonTextMixin, StringField):
    pass


class JsonTextAreaField(_JsonTextMixin, TextAreaField):
    pass


class ApiForm(FlaskForm):
    """Base form for JSON endpoints; API clients carry no CSRF token."""

    class Meta:
        csrf = False


class MemorialRequestForm(ApiForm):
    requester_name = JsonStringField(
        "Your Name", validators=[DataRequired(), Length(max=200)]
    )
    requester_email = JsonStringField(
        "Your Email", validators=[DataRequired(), Length(max=320)]
    )
    loved_one_name = JsonStringField(
        "Loved One's Name", validators=[DataRequired(), Length(max=200)]
    )
    birth_date = DateField("Birth Date", validators=[Optional()])
    death_date = DateField("Death Date", validators=[Optional()])
    story_notes = JsonTextAreaField("Story", validators=[DataRequired()])
    media_uploads = StringListField("Media")
    location_info = JsonStringField("Location", validators=[Optional(), Length(max=500)])
    latitude = FloatField("Latitude", validators=[Optional(), NumberRange(-90, 90)])
    longitude = FloatField(
        "Longitude", validators=[Optional(), NumberRange(-180, 180)]
    )
    country = JsonStringField("Country", validators=[Optional(), Length(max=120)])
    tier_selected = JsonStringField(
        "Tier",
        validators=[
            DataRequired(),
            AnyOf(_values(Tier), message="Choose one of the available tiers."),
        ],
    )
    preservation_addon = BooleanField("Preservation Add-on")
    preservation_billing_cycle = JsonStringField(
        "Billing Cycle",
        validators=[
            Optional(),
            AnyOf(_values(BillingCycle), message="Billing cycle must be monthly or yearly."),
        ],
    )
    discount_requested = BooleanField("Request Discount")
    discount_type = JsonStringField(
        "Discount Type",
        validators=[Optional(), AnyOf(_values(DiscountType))],
    )
    documentation_upload = JsonStringField("Documentation", validators=[Optional()])

    def validate(self, extra_validators=None) -> bool:
        valid = super().validate(extra_validators=extra_validators)
        if self.preservation_addon.data and not self.preservation_billing_cycle.data:
            self.preservation_billing_cycle.errors = [
                *self.preservation_billing_cycle.errors,
                "A billing cycle is required when the preservation add-on is selected.",
            ]
            valid = False
        return valid


class PaymentResultForm(ApiForm):
    payment_status = JsonStringField(
        "Payment Status",
        validators=[
            DataRequired(),
            AnyOf(
                [PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value],
                message="Payment status must be completed or failed.",
            ),
        ],
    )
    payment_reference = JsonStringField(
        "Payment Reference", validators=[Optional(), Length(max=255)]
    )


class StatusUpdateForm(ApiForm):
    request_status = JsonStringField(
        "Request Status",
        validators=[DataRequired(), AnyOf(_values(RequestStatus))],
    )
    admin_notes = JsonTextAreaField("Admin Notes", validators=[Optional()])
    version = IntegerField("Version", validators=[Optional()])


class _MemorialFieldsMixin:
    birth_date = DateField("Birth Date", validators=[Optional()])
    death_date = DateField("Death Date", validators=[Optional()])
    photos = StringListField("Photos")
    video_link = JsonStringField("Video Link", validators=[Optional()])
    audio_narration_link = JsonStringField("Audio Narration Link", validators=[Optional()])
    latitude = FloatField("Latitude", validators=[Optional(), NumberRange(-90, 90)])
    longitude = FloatField(
        "Longitude", validators=[Optional(), NumberRange(-180, 180)]
    )
    location_visibility = JsonStringField(
        "Location Visibility",
        validators=[Optional(), AnyOf(_values(LocationVisibility))],
    )


class PublishMemorialForm(_MemorialFieldsMixin, ApiForm):
    request_id = JsonStringField("Request", validators=[DataRequired()])
    full_name = JsonStringField("Full Name", validators=[DataRequired(), Length(max=200)])
    story_text = JsonTextAreaField("Story", validators=[DataRequired()])
    public_url = JsonStringField("Public URL", validators=[Optional(), Length(max=255)])


class MemorialUpdateForm(_MemorialFieldsMixin, ApiForm):
    full_name = JsonStringField("Full Name", validators=[Optional(), Length(max=200)])
    story_text = JsonTextAreaField("Story", validators=[Optional()])
    published_status = BooleanField("Published")


class MediaUploadForm(ApiForm):
    file = FileField("Media File", validators=[FileRequired()])

    def validate_file(self, field: FileField) -> None:
        allowed = set(current_app.config.get("ALLOWED_EXTENSIONS", ()))
        storage = field.data
        if not isinstance(storage, FileStorage):
            return
        filename = storage.filename or ""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if allowed and ext not in allowed:
            raise ValidationError("File has an unsupported format.")

"""HTTP routes for the memorial request service."""

from __future__ import annotations

from typing import Any, Mapping

from flask import (
    Blueprint,
    current_app,
    jsonify,
    redirect,
    request,
)
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import NotFound

from .auth import require_admin
from .errors import NotFoundError, ValidationError
from .extensions import db
from .forms import (
    MediaUploadForm,
    MemorialRequestForm,
    MemorialUpdateForm,
    PaymentResultForm,
    PublishMemorialForm,
    StatusUpdateForm,
    json_formdata,
)
from .services import (
    lifecycle,
    memorial_requests,
    notifications,
    publication,
    storage,
)

main_bp = Blueprint("main", __name__)


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _validated(form_cls, payload: Mapping[str, Any]):
    form = form_cls(formdata=json_formdata(payload))
    if not form.validate():
        raise ValidationError("Invalid request payload", fields=form.errors)
    return form


def _parse_bool_arg(name: str) -> bool | None:
    raw_value = request.args.get(name)
    if raw_value is None or raw_value == "":
        return None
    lowered = raw_value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValidationError.for_field(name, f"{name} must be 'true' or 'false'")


@main_bp.route("/api/memorial-requests", methods=["POST"])
def create_memorial_request():
    form = _validated(MemorialRequestForm, _json_body())
    current_app.logger.info(
        "Creating memorial request for %s (tier=%s, addon=%s, discount=%s)",
        form.loved_one_name.data,
        form.tier_selected.data,
        form.preservation_addon.data,
        form.discount_requested.data,
    )
    memorial_request = memorial_requests.create_request(
        requester_name=form.requester_name.data,
        requester_email=form.requester_email.data,
        loved_one_name=form.loved_one_name.data,
        birth_date=form.birth_date.data,
        death_date=form.death_date.data,
        story_notes=form.story_notes.data,
        media_uploads=form.media_uploads.data,
        location_info=form.location_info.data,
        latitude=form.latitude.data,
        longitude=form.longitude.data,
        country=form.country.data,
        tier_selected=form.tier_selected.data,
        preservation_addon=form.preservation_addon.data,
        preservation_billing_cycle=form.preservation_billing_cycle.data or None,
        discount_requested=form.discount_requested.data,
        discount_type=form.discount_type.data or None,
        documentation_upload=form.documentation_upload.data,
        logger=current_app.logger,
    )

    notifications.notify_request_created(memorial_request)

    return (
        jsonify(
            {
                "id": memorial_request.id,
                "payment_amount": memorial_request.payment_amount,
                "request_status": memorial_request.request_status,
                "created_at": memorial_request.created_at.isoformat(),
            }
        ),
        201,
    )


@main_bp.route("/api/memorial-requests/<request_id>/payment", methods=["POST"])
def record_payment(request_id: str):
    form = _validated(PaymentResultForm, _json_body())
    memorial_request = lifecycle.record_payment_result(
        request_id,
        form.payment_status.data,
        form.payment_reference.data or None,
        logger=current_app.logger,
    )
    return jsonify(
        {"success": True, "request_status": memorial_request.request_status}
    )


@main_bp.route("/api/upload/media", methods=["POST"])
def upload_media():
    form = MediaUploadForm()
    if not form.validate_on_submit():
        raise ValidationError("Invalid upload", fields=form.errors)
    upload = storage.store_media_upload(form.file.data, logger=current_app.logger)
    return jsonify({"url": upload.url, "key": upload.key, "filename": upload.filename})


@main_bp.route("/api/admin/memorial-requests", methods=["GET"])
@require_admin
def admin_list_requests():
    items = memorial_requests.list_requests(
        status=request.args.get("status") or None,
        discount_requested=_parse_bool_arg("discount_requested"),
    )
    current_app.logger.info("Listing %s memorial requests for admin", len(items))
    return jsonify([item.to_dict() for item in items])


@main_bp.route("/api/admin/memorial-requests/stats", methods=["GET"])
@require_admin
def admin_request_stats():
    return jsonify(memorial_requests.request_stats())


@main_bp.route("/api/admin/memorial-requests/<request_id>", methods=["GET"])
@require_admin
def admin_get_request(request_id: str):
    return jsonify(memorial_requests.get_request(request_id).to_dict())


@main_bp.route("/api/admin/memorial-requests/<request_id>", methods=["PUT"])
@require_admin
def admin_update_request_status(request_id: str):
    form = _validated(StatusUpdateForm, _json_body())
    memorial_request = lifecycle.update_status(
        request_id,
        form.request_status.data,
        admin_notes=form.admin_notes.data,
        expected_version=form.version.data,
        logger=current_app.logger,
    )
    return jsonify(memorial_request.to_dict())


@main_bp.route("/api/admin/memorials", methods=["POST"])
@require_admin
def admin_publish_memorial():
    payload = _json_body()
    form = _validated(PublishMemorialForm, payload)
    fields = {
        name: form[name].data
        for name in publication.MEMORIAL_FIELDS
        if name in payload or name in ("full_name", "story_text")
    }
    memorial = publication.publish_memorial(
        form.request_id.data,
        fields,
        public_url=form.public_url.data or None,
        logger=current_app.logger,
    )
    return jsonify(memorial.to_dict()), 201


@main_bp.route("/api/admin/memorials/<memorial_id>", methods=["PUT"])
@require_admin
def admin_update_memorial(memorial_id: str):
    payload = _json_body()
    form = _validated(MemorialUpdateForm, payload)
    changes = {
        name: form[name].data
        for name in publication.EDITABLE_FIELDS
        if name in payload
    }
    if "published_status" in payload:
        changes["published_status"] = payload["published_status"]
    memorial = publication.update_memorial(
        memorial_id, changes, logger=current_app.logger
    )
    return jsonify(memorial.to_dict())


@main_bp.route("/api/admin/memorials/<memorial_id>", methods=["DELETE"])
@require_admin
def admin_delete_memorial(memorial_id: str):
    publication.soft_delete_memorial(memorial_id, logger=current_app.logger)
    return jsonify({"success": True})


@main_bp.route("/api/memorials/map", methods=["GET"])
def memorials_map():
    items = publication.list_map_memorials()
    return jsonify([item.to_map_dict() for item in items])


@main_bp.route("/api/memorials/resolve/<slug>", methods=["GET"])
@main_bp.route("/api/memorials/by-url/<slug>", methods=["GET"])
def memorial_by_slug(slug: str):
    return jsonify(publication.get_memorial_by_slug(slug).to_dict())


@main_bp.route("/api/memorials/<memorial_id>", methods=["GET"])
def memorial_detail(memorial_id: str):
    return jsonify(publication.get_public_memorial(memorial_id).to_dict())


@main_bp.route("/go", methods=["GET"])
def universal_link():
    """Entry point encoded in QR codes: ``/go?m=<slug>``."""
    web_base = str(current_app.config.get("MEMORIAL_WEB_BASE_URL") or "").rstrip("/")
    slug = (request.args.get("m") or "").strip()
    if not slug:
        return redirect(f"{web_base}/", code=302)
    try:
        memorial = publication.get_memorial_by_slug(slug)
    except NotFoundError:
        raise NotFound("Memorial not found") from None
    return redirect(f"{web_base}/memorial/{memorial.public_url}", code=302)


@main_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return jsonify({"status": "degraded", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"})

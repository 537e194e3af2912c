"""Notification helpers for new memorial requests.

Delivery is fire-and-forget: the request handler hands the rendered email to
a background thread and returns immediately. Failures are logged and never
reach the caller.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

import requests
from flask import Flask, current_app, render_template

from ..errors import UpstreamError
from ..models import MemorialRequest

LOGGER = logging.getLogger(__name__)
_TEMPLATE = "emails/memorial_request_created.html"


def notify_request_created(
    memorial_request: MemorialRequest,
    *,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Email the operators about a freshly persisted memorial request."""
    log = logger or LOGGER
    try:
        config = current_app.config
        recipient = config.get("NOTIFICATION_RECIPIENT")
        if not recipient:
            log.info(
                "No notification recipient configured; skipping email for request %s",
                memorial_request.id,
            )
            return

        subject = f"New Memorial Request for {memorial_request.loved_one_name}"
        html_body = render_template(
            _TEMPLATE, memorial_request=_snapshot(memorial_request)
        )
        app = current_app._get_current_object()

        if config.get("NOTIFICATIONS_ASYNC", True):
            worker = threading.Thread(
                target=_deliver_in_context,
                args=(app, memorial_request.id, recipient, subject, html_body, log),
                name=f"notify-{memorial_request.id}",
                daemon=True,
            )
            worker.start()
        else:
            _deliver(memorial_request.id, recipient, subject, html_body, log)
    except Exception:
        log.exception(
            "Error preparing notification for memorial request %s (continuing anyway)",
            getattr(memorial_request, "id", None),
        )


def send_email(to: str, subject: str, html_body: str) -> None:
    """Send one email through the configured HTTP email API."""
    config = current_app.config
    api_key = config.get("EMAIL_API_KEY")
    if not api_key:
        LOGGER.info("EMAIL_API_KEY not configured; email %r not sent", subject)
        return

    try:
        response = requests.post(
            config.get("EMAIL_API_URL"),
            json={
                "from": config.get("NOTIFICATION_SENDER"),
                "to": [to],
                "subject": subject,
                "html": html_body,
            },
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=10,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise UpstreamError(f"Email delivery failed: {exc}") from exc


def _deliver_in_context(
    app: Flask,
    request_id: str,
    recipient: str,
    subject: str,
    html_body: str,
    log: logging.Logger,
) -> None:
    with app.app_context():
        _deliver(request_id, recipient, subject, html_body, log)


def _deliver(
    request_id: str,
    recipient: str,
    subject: str,
    html_body: str,
    log: logging.Logger,
) -> None:
    config = current_app.config
    attempts = max(int(config.get("NOTIFICATION_MAX_ATTEMPTS", 1)), 1)
    backoff = float(config.get("NOTIFICATION_RETRY_BACKOFF_SECONDS", 0) or 0)

    for attempt in range(1, attempts + 1):
        try:
            send_email(recipient, subject, html_body)
        except UpstreamError as exc:
            if attempt >= attempts:
                log.error(
                    "Failed to send notification for memorial request %s after %s attempt(s): %s",
                    request_id,
                    attempt,
                    exc,
                )
                return
            delay = backoff * (2 ** (attempt - 1))
            log.warning(
                "Notification for memorial request %s failed (attempt %s/%s); retrying in %.1fs",
                request_id,
                attempt,
                attempts,
                delay,
            )
            if delay > 0:
                time.sleep(delay)
        except Exception:
            log.exception(
                "Unexpected error sending notification for memorial request %s",
                request_id,
            )
            return
        else:
            log.info(
                "Notification for memorial request %s sent to %s", request_id, recipient
            )
            return


def _snapshot(memorial_request: MemorialRequest) -> dict[str, Any]:
    payload = memorial_request.to_dict()
    location_parts: list[str] = []
    if payload["latitude"] is not None and payload["longitude"] is not None:
        location_parts.append(f"GPS: {payload['latitude']}, {payload['longitude']}")
    if payload["location_info"]:
        location_parts.append(f"Cemetery: {payload['location_info']}")
    payload["location_summary"] = " | ".join(location_parts) or "Not provided"
    payload["story_lines"] = (payload["story_notes"] or "").splitlines()
    return payload

"""Pytest fixtures for the memorial request service."""

from __future__ import annotations

import base64
import os
import sys
import tempfile
from typing import Any, Callable, Generator, Iterator

import pytest
from flask import Flask

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from remembrance import create_app  # noqa: E402
from remembrance.extensions import db as _db  # noqa: E402
from remembrance.models import MemorialRequest, RequestStatus  # noqa: E402
from remembrance.services import memorial_requests  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _configure_test_database_uri() -> Generator[None, None, None]:
    """Ensure tests use a dedicated SQLite database file."""
    fd, path = tempfile.mkstemp(prefix="remembrance-test-", suffix=".db")
    os.close(fd)
    os.environ["DATABASE_URL_TEST"] = f"sqlite:///{path}"

    try:
        yield
    finally:
        try:
            os.remove(path)
        except OSError:
            pass


@pytest.fixture()
def app() -> Iterator[Flask]:
    application = create_app("testing")
    with application.app_context():
        _db.create_all()
    try:
        yield application
    finally:
        with application.app_context():
            _db.session.remove()
            _db.drop_all()


@pytest.fixture()
def db_session(app):
    """Provide a database session bound to the test app."""
    return _db.session


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    token = base64.b64encode(b"admin:secret123").decode("ascii")
    return {"Authorization": f"Basic {token}"}


@pytest.fixture()
def make_request(app) -> Callable[..., MemorialRequest]:
    """Create a persisted request, optionally forced into ``status``."""

    def _make(status: str | None = None, **overrides: Any) -> MemorialRequest:
        fields: dict[str, Any] = {
            "requester_name": "Jane Doe",
            "requester_email": "jane@example.com",
            "loved_one_name": "John Doe",
            "story_notes": "He loved the sea.",
            "tier_selected": "tier_1_marked",
        }
        fields.update(overrides)
        memorial_request = memorial_requests.create_request(**fields)
        if status and status != RequestStatus.SUBMITTED.value:
            memorial_request.request_status = status
            _db.session.commit()
        return memorial_request

    return _make

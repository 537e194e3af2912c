"""Tests for public URL slugs and QR links."""

from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlsplit

import pytest

from remembrance.errors import SlugAllocationError, ValidationError
from remembrance.extensions import db
from remembrance.models import Memorial
from remembrance.services import slugs


@pytest.mark.parametrize(
    "name, expected",
    [
        ("John Doe", "john-doe"),
        ("  Mary-Jane   O'Brien ", "mary-jane-obrien"),
        ("José Álvarez", "jos-lvarez"),
        ("A -- B", "a-b"),
        ("!!!", "memorial"),
        ("", "memorial"),
    ],
)
def test_generate_slug(name, expected):
    assert slugs.generate_slug(name) == expected


def test_generate_public_url_includes_birth_year(app):
    with app.app_context():
        assert slugs.generate_public_url("John Doe", date(1945, 3, 2)) == "john-doe-1945"
        assert slugs.generate_public_url("John Doe") == "john-doe"


def test_generate_public_url_skips_taken_candidates(app):
    taken = {"john-doe", "john-doe-2"}
    with app.app_context():
        slug = slugs.generate_public_url("John Doe", exists=taken.__contains__)
    assert slug == "john-doe-3"


def test_generate_public_url_checks_stored_memorials(app, db_session):
    with app.app_context():
        db_session.add(
            Memorial(
                full_name="John Doe",
                story_text="Story",
                public_url="john-doe",
                qr_code_url="https://qr.example/john-doe",
                published_status=False,
            )
        )
        db_session.commit()

        # Soft-deleted memorials keep their slug.
        assert slugs.slug_exists("john-doe") is True
        assert slugs.generate_public_url("John Doe") == "john-doe-2"


def test_generate_public_url_gives_up_after_bound(app):
    with app.app_context():
        with pytest.raises(SlugAllocationError):
            slugs.generate_public_url(
                "John Doe", exists=lambda _: True, max_attempts=3
            )


def test_validate_slug_accepts_normalized_values():
    assert slugs.validate_slug("john-doe-1945") == "john-doe-1945"


@pytest.mark.parametrize("value", ["John-Doe", "john--doe", "-john", "john doe", ""])
def test_validate_slug_rejects_malformed_values(value):
    with pytest.raises(ValidationError) as excinfo:
        slugs.validate_slug(value)
    assert "public_url" in excinfo.value.fields


def test_build_qr_code_url_encodes_universal_link(app):
    with app.app_context():
        app.config["QR_SERVICE_URL"] = "https://qr.example/create"
        url = slugs.build_qr_code_url("john-doe")

    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://qr.example/create"
    query = parse_qs(parts.query)
    assert query["size"] == ["500x500"]
    assert query["data"] == ["https://memorials.test/go?m=john-doe"]


def test_universal_link_ignores_trailing_slash(app):
    with app.app_context():
        app.config["PUBLIC_BASE_URL"] = "https://example.org/"
        assert slugs.build_universal_link("a-b") == "https://example.org/go?m=a-b"


def test_slug_exists_false_for_unknown(app):
    with app.app_context():
        assert slugs.slug_exists("nobody") is False
        assert db.session.query(Memorial).count() == 0

"""Configuration helpers for the memorial request service."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Type

_BASE_DIR = Path(__file__).resolve().parent.parent


def _coerce_positive_int(
    raw_value: str | None,
    *,
    fallback: int,
    minimum: int = 1,
    maximum: int | None = None,
) -> int:
    """Best-effort conversion of an environment value into a bounded integer."""

    if raw_value is None:
        return fallback

    try:
        parsed = int(raw_value)
    except (TypeError, ValueError):
        return fallback

    if parsed < minimum:
        return minimum

    if maximum is not None and parsed > maximum:
        return maximum

    return parsed


def _coerce_bool(raw_value: str | None, *, fallback: bool) -> bool:
    if raw_value is None:
        return fallback
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_database_uri(
    env_name: str = "DATABASE_URL", *, default: str | None = None
) -> str:
    url = os.getenv(env_name)
    if not url:
        if default is not None:
            return default
        return f"sqlite:///{_BASE_DIR / 'remembrance.db'}"

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    scheme, sep, remainder = url.partition("://")
    if scheme == "postgresql" and sep:
        url = f"postgresql+psycopg://{remainder}"

    return url


def _build_engine_options(uri: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True}
    if not uri.startswith("sqlite"):
        options["pool_recycle"] = int(os.getenv("SQLALCHEMY_POOL_RECYCLE", 300))
        options["pool_timeout"] = int(os.getenv("SQLALCHEMY_POOL_TIMEOUT", 30))
    return options


class BaseConfig:
    """Default configuration shared by all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = _resolve_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _build_engine_options(SQLALCHEMY_DATABASE_URI)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    MAX_CONTENT_LENGTH = int(
        os.getenv("MAX_CONTENT_LENGTH", 110 * 1024 * 1024)
    )  # 110MB, leaves room for multipart overhead on video uploads
    MAX_MEDIA_UPLOAD_BYTES = int(
        os.getenv("MAX_MEDIA_UPLOAD_BYTES", 100 * 1024 * 1024)
    )  # 100MB
    ALLOWED_EXTENSIONS = tuple(
        ext.strip().lower()
        for ext in os.getenv(
            "ALLOWED_EXTENSIONS",
            "jpg,jpeg,png,webp,heic,heif,gif,mp4,mov,m4v,webm,mp3,m4a,wav,aac,pdf",
        ).split(",")
        if ext.strip()
    )
    IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "heic", "heif", "gif")

    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

    AWS_REGION = os.getenv("AWS_REGION")
    S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME")
    S3_BUCKET_PREFIX = os.getenv("S3_BUCKET_PREFIX", "uploads/memorials/")
    S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")
    S3_PRESIGNED_TTL = _coerce_positive_int(
        os.getenv("S3_PRESIGNED_TTL"), fallback=7 * 24 * 3600, maximum=7 * 24 * 3600
    )

    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")
    MEMORIAL_WEB_BASE_URL = os.getenv("MEMORIAL_WEB_BASE_URL") or PUBLIC_BASE_URL
    QR_SERVICE_URL = os.getenv(
        "QR_SERVICE_URL", "https://api.qrserver.com/v1/create-qr-code/"
    )
    QR_SIZE = _coerce_positive_int(
        os.getenv("QR_SIZE"), fallback=500, minimum=100, maximum=1000
    )
    SLUG_MAX_ATTEMPTS = _coerce_positive_int(
        os.getenv("SLUG_MAX_ATTEMPTS"), fallback=1000
    )
    PUBLISH_MAX_ATTEMPTS = _coerce_positive_int(
        os.getenv("PUBLISH_MAX_ATTEMPTS"), fallback=5, maximum=50
    )

    EMAIL_API_URL = os.getenv("EMAIL_API_URL", "https://api.resend.com/emails")
    EMAIL_API_KEY = os.getenv("EMAIL_API_KEY")
    NOTIFICATION_SENDER = os.getenv(
        "NOTIFICATION_SENDER", "Memorial Requests <noreply@example.com>"
    )
    NOTIFICATION_RECIPIENT = os.getenv("NOTIFICATION_RECIPIENT")
    NOTIFICATIONS_ASYNC = _coerce_bool(os.getenv("NOTIFICATIONS_ASYNC"), fallback=True)
    NOTIFICATION_MAX_ATTEMPTS = _coerce_positive_int(
        os.getenv("NOTIFICATION_MAX_ATTEMPTS"), fallback=1, maximum=10
    )
    NOTIFICATION_RETRY_BACKOFF_SECONDS = float(
        os.getenv("NOTIFICATION_RETRY_BACKOFF_SECONDS", 2.0)
    )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _resolve_database_uri(
        "DATABASE_URL_TEST", default="sqlite:///:memory:"
    )
    SQLALCHEMY_ENGINE_OPTIONS = _build_engine_options(SQLALCHEMY_DATABASE_URI)
    PUBLIC_BASE_URL = "https://memorials.test"
    MEMORIAL_WEB_BASE_URL = "https://memorials.test"
    NOTIFICATIONS_ASYNC = False
    NOTIFICATION_RETRY_BACKOFF_SECONDS = 0.0
    EMAIL_API_KEY = None
    ADMIN_USERNAME = "admin"
    ADMIN_PASSWORD = "secret123"
    ADMIN_API_TOKEN = None


class ProductionConfig(BaseConfig):
    PREFERRED_URL_SCHEME = "https"


_CONFIG_MAP: dict[str | None, Type[BaseConfig]] = {
    None: BaseConfig,
    "default": BaseConfig,
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None) -> Type[BaseConfig]:
    """Pick a configuration object based on the provided name."""
    key = (name or os.getenv("FLASK_ENV") or "default").lower()
    return _CONFIG_MAP.get(key, BaseConfig)

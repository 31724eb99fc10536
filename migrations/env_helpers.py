"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without triggering
alembic.context at import time.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

_DRIVER_SCHEME = "postgresql+psycopg2://"


def _normalize_scheme(url: str) -> str:
    """Map postgres:// and postgresql:// onto the psycopg2 SQLAlchemy driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return _DRIVER_SCHEME + url[len(prefix):]
    return url


def _inject_password(url: str, password: str) -> str:
    """Fill in ``password`` when the URL carries a user but no password."""
    parsed = urlparse(url)
    if parsed.password or not parsed.hostname:
        return url
    netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def get_database_url() -> str:
    """SQLAlchemy URL for migrations, derived from DATABASE_URL.

    DB_PASSWORD is injected when DATABASE_URL has no password of its own.

    Raises:
        RuntimeError: If DATABASE_URL is unset or is not a URL.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        raise RuntimeError("DATABASE_URL must be a URL (postgresql://...)")

    url = _normalize_scheme(url)
    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password:
        url = _inject_password(url, db_password)
    return url

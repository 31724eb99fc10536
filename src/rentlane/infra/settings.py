"""Service settings loaded from environment variables.

All values have development defaults so the API and the test suite run
without any configuration. Tests build ``Settings`` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal
from zoneinfo import ZoneInfo

AuditBackend = Literal["memory", "postgres"]

DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        clock_url: Clock source endpoint returning ``{iso, timestamp}``.
        clock_cache_ttl_seconds: How long a fetched server instant may be reused.
        clock_timeout_seconds: Upper bound on a single clock fetch.
        platform_timezone: IANA name of the reference timezone for calendar dates
                           and check-in/out times.
        min_stay_days: Minimum bookable segment length.
        payout_delay_hours: Holdback between checkout and "paid".
        audit_backend: Where settlement audit entries are stored.
        audit_max_entries: Cap for the in-memory store (0 = unbounded).
    """

    clock_url: str = "http://localhost:8000/now"
    clock_cache_ttl_seconds: float = 60.0
    clock_timeout_seconds: float = 5.0
    platform_timezone: str = DEFAULT_TIMEZONE
    min_stay_days: int = 7
    payout_delay_hours: float = 0.0
    audit_backend: AuditBackend = "memory"
    audit_max_entries: int = 500

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.platform_timezone)

    @property
    def payout_delay(self) -> timedelta:
        return timedelta(hours=self.payout_delay_hours)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def get_settings() -> Settings:
    """Build settings from the current environment.

    Raises:
        RuntimeError: If a numeric variable is malformed or AUDIT_BACKEND is unknown.
    """
    audit_backend = os.environ.get("AUDIT_BACKEND", "memory").strip().lower()
    if audit_backend not in ("memory", "postgres"):
        raise RuntimeError(f"Unknown AUDIT_BACKEND: {audit_backend}")

    return Settings(
        clock_url=os.environ.get("CLOCK_URL", Settings.clock_url),
        clock_cache_ttl_seconds=_env_float("CLOCK_CACHE_TTL_SECONDS", 60.0),
        clock_timeout_seconds=_env_float("CLOCK_TIMEOUT_SECONDS", 5.0),
        platform_timezone=os.environ.get("PLATFORM_TIMEZONE", DEFAULT_TIMEZONE),
        min_stay_days=_env_int("MIN_STAY_DAYS", 7),
        payout_delay_hours=_env_float("PAYOUT_DELAY_HOURS", 0.0),
        audit_backend=audit_backend,  # type: ignore[arg-type]
        audit_max_entries=_env_int("AUDIT_MAX_ENTRIES", 500),
    )

"""Server-anchored clock for settlement decisions.

Fetches the current instant from the clock source endpoint
(``GET /now`` -> ``{"iso": ..., "timestamp": <ms>}``) so that a tampered
device clock can never influence a settlement status.

A fetched instant is reused for ``ttl_seconds``, advanced by locally elapsed
monotonic time. Past the TTL a fresh fetch is mandatory. On failure there is
no fallback to local time: ``ClockUnavailable`` is raised and callers must
abort the dependent flow.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

import requests

from rentlane.infra.time import from_epoch_ms
from rentlane.observability.logging import get_logger

logger = get_logger(__name__)

FetchFn = Callable[[str, float], dict[str, Any]]


class ClockUnavailable(Exception):
    """Raised when server time cannot be obtained or is not trustworthy."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Server time unavailable: {reason}")


@dataclass(frozen=True)
class _CachedInstant:
    server_ms: float
    fetched_at: float  # monotonic seconds


def _fetch_clock_payload(url: str, timeout: float) -> dict[str, Any]:
    """GET the clock source and return its JSON body."""
    resp = requests.get(url, timeout=timeout, headers={"Cache-Control": "no-store"})
    resp.raise_for_status()
    return resp.json()


class ServerClock:
    """Clock provider with a short-lived cache.

    Instances are injected where needed (app factory, tests); there is no
    module-level singleton. Concurrent callers may both miss the cache and
    fetch; the cache slot is replaced as a whole, last writer wins.
    """

    def __init__(
        self,
        url: str,
        *,
        ttl_seconds: float = 60.0,
        timeout_seconds: float = 5.0,
        fetch: FetchFn | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._url = url
        self._ttl = ttl_seconds
        self._timeout = timeout_seconds
        self._fetch = fetch or _fetch_clock_payload
        self._monotonic = monotonic
        self._cached: _CachedInstant | None = None

    @property
    def url(self) -> str:
        return self._url

    def now(self) -> datetime:
        """Current server instant (aware, UTC).

        Raises:
            ClockUnavailable: If the cache is stale and the fetch fails.
        """
        cached = self._cached
        local_now = self._monotonic()
        if cached is not None:
            elapsed = local_now - cached.fetched_at
            if 0 <= elapsed < self._ttl:
                return from_epoch_ms(cached.server_ms) + timedelta(seconds=elapsed)

        return self._refresh(local_now)

    def now_fresh(self) -> datetime:
        """Ignore the cache and fetch server time (raises on failure)."""
        self.invalidate()
        return self._refresh(self._monotonic())

    def invalidate(self) -> None:
        self._cached = None

    def _refresh(self, local_now: float) -> datetime:
        try:
            payload = self._fetch(self._url, self._timeout)
        except requests.RequestException as e:
            self._cached = None
            logger.error(
                "server time fetch failed",
                extra={"extra_fields": {"url": self._url, "error": str(e)}},
            )
            raise ClockUnavailable("fetch failed") from e
        except ValueError as e:
            # requests raises a ValueError subclass for undecodable JSON
            self._cached = None
            logger.error(
                "server time response is not JSON",
                extra={"extra_fields": {"url": self._url, "error": str(e)}},
            )
            raise ClockUnavailable("invalid response") from e

        timestamp = _parse_timestamp(payload)
        if timestamp is None:
            self._cached = None
            logger.error(
                "server time response has no finite timestamp",
                extra={"extra_fields": {"url": self._url}},
            )
            raise ClockUnavailable("invalid timestamp")

        try:
            instant = from_epoch_ms(timestamp)
        except OverflowError as e:
            self._cached = None
            raise ClockUnavailable("timestamp out of range") from e

        self._cached = _CachedInstant(server_ms=timestamp, fetched_at=local_now)
        logger.debug(
            "server time refreshed",
            extra={"extra_fields": {"timestamp": timestamp}},
        )
        return instant


def _parse_timestamp(payload: Any) -> float | None:
    """Extract a finite millisecond timestamp from the clock payload."""
    if not isinstance(payload, dict):
        return None
    raw = payload.get("timestamp")
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value

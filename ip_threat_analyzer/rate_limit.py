"""Rate limit header parsing.

AbuseIPDB answers every check with `X-RateLimit-*` headers, and a 429 adds
`Retry-After`. We normalize both into `RateLimitInfo` so the threat client can
compute how long to back off.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int | None = None
    remaining: int | None = None
    reset_at: datetime | None = None  # UTC
    retry_after_ms: int | None = None
    raw: dict[str, str] = field(default_factory=dict)


def headers_to_dict(headers: Any) -> dict[str, str]:
    """Coerce urllib's `email.message.Message` (or any mapping) to a plain dict."""
    out: dict[str, str] = {}
    if headers is None:
        return out
    try:
        items = headers.items()
    except AttributeError:
        return out
    for k, v in items:
        if k is None:
            continue
        out[str(k)] = str(v)
    return out


def _as_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _header_map(headers: Mapping[str, str]) -> dict[str, tuple[str, str]]:
    """Lowercase->(original_key, value) mapping for case-insensitive lookups."""
    return {str(k).lower(): (str(k), str(v)) for k, v in headers.items() if k is not None}


def _parse_retry_after(raw_val: str, *, now: datetime) -> int | None:
    raw_val = raw_val.strip()

    # delta-seconds
    seconds = _as_int(raw_val)
    if seconds is not None:
        return max(seconds, 0) * 1000

    # HTTP-date
    try:
        dt = parsedate_to_datetime(raw_val)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(max(0.0, (dt.astimezone(timezone.utc) - now).total_seconds()) * 1000)


def parse_rate_limit_info(
    headers: Mapping[str, str] | None,
    *,
    now: datetime | None = None,
) -> RateLimitInfo | None:
    """Parse rate limit info from HTTP headers.

    Returns None when no rate-limit related header is present.
    """

    if not headers:
        return None
    if now is None:
        now = datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    ci = _header_map(headers)
    raw = {
        ok: v
        for lk, (ok, v) in ci.items()
        if lk == "retry-after" or lk.startswith("x-ratelimit-")
    }
    if not raw:
        return None

    limit = _as_int(ci["x-ratelimit-limit"][1]) if "x-ratelimit-limit" in ci else None
    remaining = _as_int(ci["x-ratelimit-remaining"][1]) if "x-ratelimit-remaining" in ci else None

    reset_at: datetime | None = None
    reset_val = _as_int(ci["x-ratelimit-reset"][1]) if "x-ratelimit-reset" in ci else None
    if reset_val is not None:
        # Heuristic: big numbers are epoch timestamps, small ones delta-seconds.
        if reset_val >= 1_000_000_000:
            reset_at = datetime.fromtimestamp(reset_val, tz=timezone.utc)
        else:
            reset_at = now + timedelta(seconds=max(reset_val, 0))

    retry_after_ms = None
    if "retry-after" in ci:
        retry_after_ms = _parse_retry_after(ci["retry-after"][1], now=now)

    return RateLimitInfo(
        limit=limit,
        remaining=remaining,
        reset_at=reset_at,
        retry_after_ms=retry_after_ms,
        raw=raw,
    )


def backoff_seconds(
    info: RateLimitInfo | None, *, default_seconds: int, grace_seconds: int
) -> float:
    """Seconds to wait after a 429: server-advised delay (or default) plus grace."""
    if info is not None and info.retry_after_ms is not None:
        wait = info.retry_after_ms / 1000.0
    else:
        wait = float(default_seconds)
    return wait + grace_seconds

"""Output helpers (summary statistics, status severity, exit codes)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import Any

_STATUS_ORDER = ["safe", "suspicious", "malicious", "error"]

STATUS_EMOJI = {
    "safe": "✅",
    "suspicious": "⚠️",
    "malicious": "🔴",
    "error": "❌",
}


def status_level(s: str) -> int:
    try:
        return _STATUS_ORDER.index(s)
    except ValueError:
        return _STATUS_ORDER.index("error")


def worst_status(a: str, b: str) -> str:
    return a if status_level(a) >= status_level(b) else b


def threat_stats(results: list[dict[str, Any]]) -> dict[str, int]:
    """Dashboard counters; errors are reported as `unknown`."""
    counts = Counter(str(r.get("status") or "error") for r in results)
    stats = {
        "total": len(results),
        "safe": counts.get("safe", 0),
        "suspicious": counts.get("suspicious", 0),
        "malicious": counts.get("malicious", 0),
    }
    stats["unknown"] = stats["total"] - stats["safe"] - stats["suspicious"] - stats["malicious"]
    return stats


def count_by(results: list[dict[str, Any]], key: str) -> list[tuple[str, int]]:
    """Distribution of a result field (e.g. location, threatType), most common first."""
    counts = Counter(str(r.get(key) or "Unknown") for r in results)
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def exit_code_from_results(results: list[dict[str, Any]], *, fail_on: str | None) -> int:
    """0 = ok, 1 = some result at/above `fail_on`, 2 = errors present otherwise."""
    worst = "safe"
    for r in results:
        worst = worst_status(worst, str(r.get("status") or "error"))

    if fail_on is not None and status_level(worst) >= status_level(fail_on):
        return 1
    return 0 if worst != "error" else 2


THREAT_LEVELS = ("low", "medium", "high", "critical", "unknown")


def threat_level_distribution(results: list[dict[str, Any]]) -> list[tuple[str, int]]:
    """Count per threat level, every level listed (lowest first) even when zero."""
    counts = Counter(str(r.get("threatLevel") or "unknown") for r in results)
    out = [(level, counts.pop(level, 0)) for level in THREAT_LEVELS]
    out.extend(sorted(counts.items()))
    return out


def filter_results(
    results: list[dict[str, Any]],
    *,
    statuses: Iterable[str] | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    """Keep results matching any of `statuses` and containing `search`.

    The search is a case-insensitive substring match over ip, location, isp
    and threatType. Order is preserved.
    """
    wanted = set(statuses) if statuses else None
    needle = (search or "").strip().lower()

    out = []
    for r in results:
        if wanted is not None and r.get("status") not in wanted:
            continue
        if needle and not any(
            needle in str(r.get(key) or "").lower() for key in ("ip", "location", "isp", "threatType")
        ):
            continue
        out.append(r)
    return out

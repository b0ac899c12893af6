"""Markdown report formatter for ip-threat-analyzer.

This is a presentation-only layer (derived from AnalysisResult dicts).
"""

from __future__ import annotations

import re
from typing import Any

from .output import count_by, threat_level_distribution, threat_stats, worst_status


def _md_code(value: Any) -> str:
    """Render an inline code span, handling backticks safely."""
    if value is None:
        return "-"
    s = str(value)
    ticks = 0
    for m in re.finditer(r"`+", s):
        ticks = max(ticks, len(m.group(0)))
    delim = "`" * (ticks + 1)
    if s.startswith(" ") or s.endswith(" "):
        return f"{delim} {s} {delim}"
    return f"{delim}{s}{delim}"


def _cell(value: Any) -> str:
    """Escape text for use in a Markdown table cell."""
    if value is None:
        return "-"
    s = str(value).replace("\r", "").replace("\n", " ")
    # Tables use '|' as a delimiter.
    return s.replace("|", "\\|")


def to_markdown_batch(results: list[dict[str, Any]]) -> str:
    """Render a batch report to Markdown, including a summary at the end."""
    out: list[str] = []
    out.append("# IP Threat Analysis Report")
    out.append("")
    out.append("## Results")
    out.append("")

    rows = [r for r in results if isinstance(r, dict)]

    out.append("| IP | Status | Threat level | Threat type | Location | ISP | Confidence | Reputation |")
    out.append("| --- | --- | --- | --- | --- | --- | --- | --- |")
    for r in rows:
        out.append(
            f"| {_md_code(_cell(r.get('ip')))} | {_md_code(_cell(r.get('status')))} "
            f"| {_cell(r.get('threatLevel'))} | {_cell(r.get('threatType'))} "
            f"| {_cell(r.get('location'))} | {_cell(r.get('isp'))} "
            f"| {_cell(r.get('confidence'))}% | {_cell(r.get('reputation'))}/100 |"
        )

    stats = threat_stats(rows)
    worst = "safe"
    for r in rows:
        worst = worst_status(worst, str(r.get("status") or "error"))

    out.append("")
    out.append("## Summary")
    out.append("")
    out.append(f"- Total: {_md_code(stats['total'])}")
    out.append(f"- Worst status: {_md_code(worst if rows else '-')}")
    out.append(f"- Safe: {stats['safe']}")
    out.append(f"- Suspicious: {stats['suspicious']}")
    out.append(f"- Malicious: {stats['malicious']}")
    out.append(f"- Unknown: {stats['unknown']}")

    out.append("")
    out.append("### Threat levels")
    out.append("")
    for level, n in threat_level_distribution(rows):
        out.append(f"- {_cell(level.title())}: {n}")

    threat_types = [(t, n) for t, n in count_by(rows, "threatType") if t != "none"]
    if threat_types:
        out.append("")
        out.append("### Threat types")
        out.append("")
        for threat_type, n in threat_types:
            out.append(f"- {_cell(threat_type)}: {n}")

    out.append("")
    return "\n".join(out)

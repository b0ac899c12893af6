"""Simple standalone HTML report rendering."""

from __future__ import annotations

from html import escape
from typing import Any

from .output import count_by, threat_level_distribution, threat_stats


def _badge(status: str) -> str:
    colors = {
        "safe": "#16a34a",
        "suspicious": "#ca8a04",
        "malicious": "#dc2626",
        "error": "#6b7280",
    }
    c = colors.get(status, "#6b7280")
    return f'<span style="background:{c};color:white;padding:3px 8px;border-radius:12px;font-size:12px">{escape(status.upper())}</span>'


def to_html_batch(results: list[dict[str, Any]]) -> str:
    rows = []
    for r in results:
        rows.append(
            "<tr>"
            f"<td>{escape(str(r.get('ip', '')))}</td>"
            f"<td>{_badge(str(r.get('status', 'error')))}</td>"
            f"<td>{escape(str(r.get('threatLevel', '')))}</td>"
            f"<td>{escape(str(r.get('threatType', '')))}</td>"
            f"<td>{escape(str(r.get('location', '')))}</td>"
            f"<td>{escape(str(r.get('isp', '')))}</td>"
            f"<td>{escape(str(r.get('confidence', 0)))}%</td>"
            f"<td>{escape(str(r.get('reputation', 0)))}/100</td>"
            "</tr>"
        )

    stats = threat_stats(results)
    summary = " &nbsp; ".join(
        f"<b>{escape(k.title())}:</b> {v}" for k, v in stats.items()
    )
    levels = "".join(
        f"<tr><td>{escape(level.title())}</td><td>{n}</td></tr>" for level, n in threat_level_distribution(results)
    )
    locations = "".join(
        f"<li>{escape(loc)}: {n}</li>" for loc, n in count_by(results, "location")[:10]
    )

    return f"""<!doctype html><html><head><meta charset='utf-8'><title>IP Threat Analysis Report</title>
<style>body{{font-family:system-ui;max-width:1100px;margin:24px auto;padding:0 12px}}table{{width:100%;border-collapse:collapse}}td,th{{border:1px solid #ddd;padding:8px;text-align:left}}th{{background:#f3f4f6}}</style>
</head><body>
<h1>IP Threat Analysis Report</h1>
<p>{summary}</p>
<table><thead><tr><th>IP</th><th>Status</th><th>Threat level</th><th>Threat type</th><th>Location</th><th>ISP</th><th>Confidence</th><th>Reputation</th></tr></thead><tbody>{"".join(rows)}</tbody></table>
<h3>Threat levels</h3>
<table><thead><tr><th>Threat level</th><th>Count</th></tr></thead><tbody>{levels}</tbody></table>
<h3>Top locations</h3>
<ul>{locations}</ul>
</body></html>"""

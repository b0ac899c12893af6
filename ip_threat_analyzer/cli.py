#!/usr/bin/env python3
"""
IP Threat Analyzer - CLI entry point
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from typing import Any

from .analyzer import IpAnalyzer
from .config import AnalyzerConfig, ConfigError, parse_ttl
from .html_report import to_html_batch
from .markdown import to_markdown_batch
from .normalize import is_ipv4, iter_ips_from_file
from .models import STATUSES
from .output import STATUS_EMOJI, count_by, exit_code_from_results, filter_results, threat_stats

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Enrich IPv4 addresses with geo-location and AbuseIPDB threat reputation"
    )
    parser.add_argument("ips", nargs="*", help="IPv4 addresses to analyze (optional if using --file)")
    parser.add_argument("--file", "-f", help="File with IPs to analyze (one per line)", default=None)
    parser.add_argument(
        "--format",
        choices=["pretty", "json", "ndjson", "markdown", "html"],
        default="pretty",
        help="Output format (default: pretty)",
    )
    parser.add_argument(
        "--fail-on",
        choices=["suspicious", "malicious", "error"],
        default=None,
        help="Exit non-zero when any IP is at or above this status (useful for CI)",
    )
    parser.add_argument(
        "--status",
        action="append",
        choices=list(STATUSES),
        default=None,
        help="Only show results with this status (repeatable, e.g. --status malicious)",
    )
    parser.add_argument(
        "--search", default=None, help="Only show results whose IP, location, ISP or threat type contains TEXT"
    )
    parser.add_argument("--db", help="Path of the sqlite cache (default: $IP_THREAT_DB_PATH)", default=None)
    parser.add_argument(
        "--cache-ttl", default=None, help="Threat data freshness window (e.g. 3600, 10m, 24h). Default: 24h"
    )
    parser.add_argument(
        "--timeout", "-t", type=int, default=None, help="Timeout per lookup in seconds (default: 10)"
    )
    parser.add_argument(
        "--workers", "-w", type=int, default=None, help="Parallel workers (default: 1, sequential)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log cache and lookup activity")
    return parser


def config_from_args(args: argparse.Namespace) -> AnalyzerConfig:
    config = AnalyzerConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.cache_ttl:
        overrides["threat_ttl_seconds"] = parse_ttl(args.cache_ttl)
    if args.timeout is not None:
        overrides["timeout"] = max(1, args.timeout)
    if args.workers is not None:
        overrides["max_workers"] = max(1, args.workers)
    return replace(config, **overrides) if overrides else config


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.ips and not args.file:
        parser.error("Either IP addresses or --file is required")

    ips: list[str] = []
    for value in args.ips:
        if is_ipv4(value):
            ips.append(value.strip())
        else:
            logger.warning("Skipping invalid IPv4 address: %s", value)
    if args.file:
        ips.extend(iter_ips_from_file(args.file))

    if not ips:
        parser.error("No valid IPv4 addresses found")

    try:
        config = config_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    analyzer = IpAnalyzer.from_config(config)
    payload = [r.to_dict() for r in analyzer.analyze(ips)]
    # Filters narrow what is shown; the exit code still reflects every IP.
    shown = filter_results(payload, statuses=args.status, search=args.search)

    if args.format == "json":
        print(json.dumps(shown, indent=2, ensure_ascii=False))
    elif args.format == "ndjson":
        for r in shown:
            print(json.dumps(r, ensure_ascii=False))
    elif args.format == "markdown":
        print(to_markdown_batch(shown))
    elif args.format == "html":
        print(to_html_batch(shown))
    else:
        print_batch_results(shown)

    raise SystemExit(exit_code_from_results(payload, fail_on=args.fail_on))


def print_batch_results(results: list[dict[str, Any]]) -> None:
    """Print batch results in human-readable format."""
    stats = threat_stats(results)

    print("\n🔍 IP Threat Analysis Report")
    print(f"{'=' * 60}")
    print(f"Total IPs: {stats['total']}")

    print("\n📊 Summary:")
    for status, key in (
        ("safe", "safe"),
        ("suspicious", "suspicious"),
        ("malicious", "malicious"),
        ("error", "unknown"),
    ):
        print(f"  {STATUS_EMOJI[status]} {key}: {stats[key]}")

    threat_types = [(t, n) for t, n in count_by(results, "threatType") if t != "none"]
    if threat_types:
        print("\n🏷️  Threat types:")
        for threat_type, n in threat_types:
            print(f"  • {threat_type}: {n}")

    print(f"\n{'=' * 60}")
    print("📋 Results:")
    print(f"{'-' * 60}")

    for r in results:
        status = str(r.get("status", "error"))
        emoji = STATUS_EMOJI.get(status, "❓")
        print(
            f"{emoji} {r.get('ip', '?'):<15} {status.upper():<10} "
            f"{r.get('threatLevel', '-'):<8} {r.get('threatType', '-')}"
        )
        if status != "error":
            print(
                f"   📍 {r.get('location')}  |  {r.get('isp')}  |  "
                f"confidence {r.get('confidence')}%  |  reputation {r.get('reputation')}/100"
            )


if __name__ == "__main__":
    main()

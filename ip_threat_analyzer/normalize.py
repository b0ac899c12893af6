"""IP list parsing.

Upload files are plain text, one IPv4 address per line. Lines that are not a
dotted-quad address are skipped; order and duplicates are preserved.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

IPV4_RE = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)


def is_ipv4(value: str) -> bool:
    return bool(IPV4_RE.match(value.strip()))


def iter_ips(lines: Iterable[str]) -> Iterator[str]:
    """Yield valid IPv4 addresses from lines; skips blanks and `#` comments."""
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if is_ipv4(line):
            yield line


def parse_ip_lines(text: str) -> list[str]:
    return list(iter_ips(text.splitlines()))


def iter_ips_from_file(filepath: str) -> Iterator[str]:
    """Yield IPs from a file (streaming)."""
    with open(filepath, encoding="utf-8") as f:
        yield from iter_ips(f)

"""IP Threat Analyzer - geo-location and threat reputation for IPv4 lists."""

from .analyzer import IpAnalyzer, analyze_ips
from .classifier import classify
from .config import AnalyzerConfig
from .freshness import decide

__version__ = "1.0.0"
__all__ = [
    "AnalyzerConfig",
    "IpAnalyzer",
    "analyze_ips",
    "classify",
    "decide",
]

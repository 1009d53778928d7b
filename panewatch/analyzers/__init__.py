"""Panewatch dialect analyzers."""

from panewatch.analyzers.agent import AgentAnalyzer
from panewatch.analyzers.base import DialectAnalyzer
from panewatch.analyzers.registry import ANALYZERS, create_analyzer, resolve_dialect
from panewatch.analyzers.shell import ShellAnalyzer

__all__ = [
    "ANALYZERS",
    "AgentAnalyzer",
    "DialectAnalyzer",
    "ShellAnalyzer",
    "create_analyzer",
    "resolve_dialect",
]

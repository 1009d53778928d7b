"""Dialect selection: which analyzer handles which session."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from panewatch.analyzers.agent import AgentAnalyzer
from panewatch.analyzers.base import DialectAnalyzer
from panewatch.analyzers.shell import ShellAnalyzer
from panewatch.constants import (
    AGENT_DIALECT,
    DEFAULT_AI_AGENT_IDS,
    DEFAULT_DIALECT,
    MAX_RECENT_FILE_CHANGES,
    SHELL_DIALECT,
)
from panewatch.logger import get_logger

ANALYZERS: dict[str, type[DialectAnalyzer]] = {
    SHELL_DIALECT: ShellAnalyzer,
    AGENT_DIALECT: AgentAnalyzer,
}


def resolve_dialect(agent_id: Optional[str], ai_agent_ids: Iterable[str] = DEFAULT_AI_AGENT_IDS) -> str:
    """Returns the dialect key for a session's agent id.

    Known AI agent ids select the AI-agent dialect; anything else,
    including no agent at all, is a shell.
    """
    if agent_id and agent_id in set(ai_agent_ids):
        return AGENT_DIALECT
    return SHELL_DIALECT


def create_analyzer(
    dialect: str,
    max_recent_file_changes: int = MAX_RECENT_FILE_CHANGES,
    clock: Optional[Callable[[], float]] = None,
) -> DialectAnalyzer:
    """Creates a fresh analyzer for a dialect.

    Unknown dialect keys fall back to the default dialect.
    """
    analyzer_class = ANALYZERS.get(dialect)
    if analyzer_class is None:
        get_logger().debug(f"Unknown dialect '{dialect}', using '{DEFAULT_DIALECT}'")
        analyzer_class = ANALYZERS[DEFAULT_DIALECT]
    return analyzer_class(max_recent_file_changes=max_recent_file_changes, clock=clock)

"""Analyzer for AI coding agent CLIs (Claude Code and similar)."""

from typing import Optional

from panewatch.analyzers.base import DialectAnalyzer
from panewatch.constants import AGENT_DIALECT, MAX_TASK_SUMMARY_CHARS, MIN_TASK_SUMMARY_CHARS
from panewatch.patterns import AGENT_RULES, is_valid_agent_path, strip_ansi


class AgentAnalyzer(DialectAnalyzer):
    """Classifies AI-agent CLI output.

    Agent CLIs paint with ANSI colors, so escape sequences are stripped
    before any rule runs. Task summaries come from first-person lead
    sentences ("I'll ...", "Let me ...", "Task: ...").
    """

    dialect = AGENT_DIALECT
    rules = AGENT_RULES

    def normalize(self, content: str) -> str:
        return strip_ansi(content)

    def is_valid_path(self, candidate: Optional[str]) -> bool:
        return is_valid_agent_path(candidate)

    def accept_task_summary(self, text: str) -> Optional[str]:
        summary = text[:MAX_TASK_SUMMARY_CHARS]
        # Short captures are mostly noise ("I'll do it.")
        if len(summary) > MIN_TASK_SUMMARY_CHARS:
            return summary
        return None

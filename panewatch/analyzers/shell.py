"""Analyzer for interactive shells (bash, zsh, PowerShell, cmd)."""

from typing import Optional

from panewatch.analyzers.base import DialectAnalyzer
from panewatch.constants import MAX_SHELL_COMMAND_CHARS, SHELL_DIALECT
from panewatch.patterns import SHELL_RULES, is_valid_shell_path


class ShellAnalyzer(DialectAnalyzer):
    """Classifies plain shell output.

    The task summary is the command typed after the last detected prompt,
    and a returning prompt clears any stored error.
    """

    dialect = SHELL_DIALECT
    rules = SHELL_RULES

    def is_valid_path(self, candidate: Optional[str]) -> bool:
        return is_valid_shell_path(candidate)

    def accept_task_summary(self, text: str) -> Optional[str]:
        if 0 < len(text) < MAX_SHELL_COMMAND_CHARS:
            return text
        return None

    def on_prompt(self) -> None:
        self._error_message = None

"""Base class for dialect analyzers."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Optional

from panewatch.constants import MAX_ERROR_MESSAGE_CHARS, MAX_RECENT_FILE_CHANGES
from panewatch.logger import get_logger
from panewatch.models import ActivityState, AnalysisResult, FileChange
from panewatch.patterns import Category, PatternRule, RuleSet, extract_file_changes

# Classification order: the first category with a match decides the state
STATE_PRIORITY: tuple[tuple[Category, ActivityState], ...] = (
    (Category.ERROR, ActivityState.ERROR),
    (Category.WAITING_FOR_INPUT, ActivityState.WAITING_FOR_INPUT),
    (Category.WORKING, ActivityState.WORKING),
    (Category.COMPLETE, ActivityState.IDLE),
    (Category.IDLE, ActivityState.IDLE),
)


class DialectAnalyzer(ABC):
    """Incremental classifier for one session's output in one dialect.

    analyze() receives the cumulative output seen so far and only looks at
    the part it has not analyzed yet. State (current activity, error text,
    task summary, recent file changes) is owned by the instance; create one
    analyzer per session.
    """

    dialect: str = "base"
    rules: RuleSet = RuleSet("empty", [])

    def __init__(
        self,
        max_recent_file_changes: int = MAX_RECENT_FILE_CHANGES,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._clock = clock or time.time
        self._max_recent_file_changes = max_recent_file_changes
        self._analyzed_length = 0
        self._state = ActivityState.IDLE
        self._error_message: Optional[str] = None
        self._task_summary: Optional[str] = None
        self._recent_file_changes: deque[FileChange] = deque(maxlen=max_recent_file_changes)
        self.logger = get_logger()

    @abstractmethod
    def is_valid_path(self, candidate: Optional[str]) -> bool:
        """Returns True if an extracted path should be kept."""
        pass

    @abstractmethod
    def accept_task_summary(self, text: str) -> Optional[str]:
        """Returns the task summary to store for captured text, or None to reject it."""
        pass

    def normalize(self, content: str) -> str:
        """Prepares new content for matching."""
        return content

    def on_prompt(self) -> None:
        """Called when an idle prompt is detected."""
        pass

    def analyze(self, output: str) -> AnalysisResult:
        """Classifies the not-yet-analyzed tail of the cumulative output.

        Repeated calls with the same output are no-ops. If the output is
        shorter than what was already analyzed, the stream is considered
        restarted and the whole output is analyzed again.

        Args:
            output: Everything the session has printed so far

        Returns:
            What was detected in the new content (empty if nothing new)
        """
        if not isinstance(output, str):
            raise TypeError(f"output must be str, not {type(output).__name__}")

        result = AnalysisResult()

        if len(output) < self._analyzed_length:
            self.logger.warn(
                f"{self.dialect} output shrank from {self._analyzed_length} to {len(output)} chars, "
                "analyzing from the start"
            )
            self._analyzed_length = 0

        new_content = output[self._analyzed_length:]
        if not new_content.strip():
            return result
        self._analyzed_length = len(output)

        content = self.normalize(new_content)
        self._classify(content, result)
        self._extract_task_summary(content, result)
        self._extract_file_changes(content, result)
        return result

    def _classify(self, content: str, result: AnalysisResult) -> None:
        for category, state in STATE_PRIORITY:
            found = self.rules.first_match(category, content)
            if found is None:
                continue

            entry, match = found
            if category == Category.ERROR:
                self._error_message = self._error_line(entry, content, match.group(0))
                result.error_message = self._error_message
            elif category == Category.IDLE:
                self.on_prompt()

            self._state = state
            result.activity_state = state
            return

    def _error_line(self, entry: PatternRule, content: str, fallback: str) -> str:
        """Returns the first line matched by an error rule, trimmed and truncated."""
        for line in content.splitlines():
            if entry.pattern.search(line):
                return line.strip()[:MAX_ERROR_MESSAGE_CHARS]
        return fallback.strip()[:MAX_ERROR_MESSAGE_CHARS]

    def _extract_task_summary(self, content: str, result: AnalysisResult) -> None:
        for entry in self.rules.for_category(Category.TASK_SUMMARY):
            match = entry.pattern.search(content)
            if not match:
                continue
            summary = self.accept_task_summary(entry.extract(match))
            if summary:
                self._task_summary = summary
                result.task_summary = summary
                return

    def _extract_file_changes(self, content: str, result: AnalysisResult) -> None:
        changes = extract_file_changes(
            content,
            self.rules,
            self.is_valid_path,
            timestamp=int(self._clock() * 1000),
        )
        if changes:
            self._recent_file_changes.extend(changes)
            result.file_changes = changes

    def discard_prefix(self, length: int) -> None:
        """Forgets the first `length` characters of the analyzed output.

        Used by callers that keep a rolling buffer: after dropping a prefix
        from the buffer, the same amount is subtracted from the analyzed
        length so the next call still sees only the new tail.
        """
        self._analyzed_length = max(0, self._analyzed_length - length)

    def get_current_state(self) -> ActivityState:
        return self._state

    def get_task_summary(self) -> Optional[str]:
        return self._task_summary

    def get_recent_file_changes(self) -> list[FileChange]:
        """Returns a copy of the recent file changes, oldest first."""
        return list(self._recent_file_changes)

    def get_error_message(self) -> Optional[str]:
        return self._error_message

    def clear_error(self) -> None:
        """Clears the stored error; an error state falls back to idle."""
        self._error_message = None
        if self._state == ActivityState.ERROR:
            self._state = ActivityState.IDLE

    def reset(self) -> None:
        """Returns the analyzer to its initial state."""
        self._analyzed_length = 0
        self._state = ActivityState.IDLE
        self._error_message = None
        self._task_summary = None
        self._recent_file_changes.clear()

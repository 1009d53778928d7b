"""Formatted logging for Panewatch with timestamps and colors."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from panewatch.models import ActivityEvent, ActivityState

SEVERITY_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
}

STATE_STYLES = {
    "idle": "dim",
    "working": "blue",
    "waiting_for_input": "yellow bold",
    "error": "red bold",
}


class Logger:
    """Formatted logger with timestamps for the terminal."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console(stderr=True)
        self.verbose = verbose
        self._quiet = False

    def set_quiet(self, active: bool) -> None:
        """Enable/disable quiet mode (only events and errors are printed)."""
        self._quiet = active

    def set_verbose(self, active: bool) -> None:
        """Enable/disable debug output."""
        self.verbose = active

    def _timestamp(self) -> str:
        """Returns the formatted timestamp [HH:MM:SS]."""
        return datetime.now().strftime("[%H:%M:%S]")

    def _log(self, message: str, style: str = "") -> None:
        """Logs a message with timestamp."""
        if self._quiet:
            return
        text = Text()
        text.append(self._timestamp(), style="dim")
        text.append(" ")
        text.append(message, style=style)
        self.console.print(text)

    def debug(self, message: str) -> None:
        """Logs a debug message (verbose mode only)."""
        if self.verbose:
            self._log(message, style="dim")

    def info(self, message: str) -> None:
        """Logs an info message."""
        self._log(message)

    def success(self, message: str) -> None:
        """Logs a success message."""
        self._log(message, style="green")

    def warn(self, message: str) -> None:
        """Logs a warning message."""
        self._log(message, style="yellow")

    def error(self, message: str) -> None:
        """Logs an error message (displayed even in quiet mode)."""
        text = Text()
        text.append(self._timestamp(), style="dim")
        text.append(" ")
        text.append(message, style="red bold")
        self.console.print(text)

    def activity_event(self, event: ActivityEvent) -> None:
        """Logs an activity event, colored by severity."""
        text = Text()
        text.append(self._timestamp(), style="dim")
        text.append(" ")
        text.append(f"[{event.session_id}] ", style="magenta")
        text.append(event.title, style=SEVERITY_STYLES.get(event.severity.value, ""))
        if event.details:
            text.append(f" - {event.details}", style="dim")
        self.console.print(text)

    def state_change(self, session_id: str, state: ActivityState) -> None:
        """Logs a session activity state transition."""
        text = Text()
        text.append(self._timestamp(), style="dim")
        text.append(" ")
        text.append(f"[{session_id}] ", style="magenta")
        text.append("→ ", style="bold")
        text.append(state.value, style=STATE_STYLES.get(state.value, ""))
        self.console.print(text)


# Global instance
_logger: Optional[Logger] = None


def get_logger() -> Logger:
    """Returns the global logger instance."""
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger


def set_logger(logger: Logger) -> None:
    """Sets the global logger instance."""
    global _logger
    _logger = logger

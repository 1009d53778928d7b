"""In-memory activity feed fed by the activity parser."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from panewatch.activity import ActivityParser
from panewatch.config import PanewatchConfig
from panewatch.logger import get_logger
from panewatch.models import ActivityEvent, ActivitySeverity, ActivityType, SessionContext


@dataclass
class ActivityFilter:
    """Query over the feed.

    Empty lists and None bounds match everything. Timestamps are epoch
    millis, both bounds inclusive.
    """

    session_ids: list[str] = field(default_factory=list)
    types: list[ActivityType] = field(default_factory=list)
    severities: list[ActivitySeverity] = field(default_factory=list)
    from_timestamp: Optional[int] = None
    to_timestamp: Optional[int] = None
    offset: int = 0
    limit: Optional[int] = None

    def matches(self, event: ActivityEvent) -> bool:
        if self.session_ids and event.session_id not in self.session_ids:
            return False
        if self.types and event.type not in self.types:
            return False
        if self.severities and event.severity not in self.severities:
            return False
        if self.from_timestamp is not None and event.timestamp < self.from_timestamp:
            return False
        if self.to_timestamp is not None and event.timestamp > self.to_timestamp:
            return False
        return True


class ActivityFeed:
    """Collects activity events of all sessions, oldest first.

    Memory is capped at feed.max_events; the oldest events are dropped
    first. cleanup() removes events older than feed.max_event_age.
    """

    def __init__(
        self,
        parser: Optional[ActivityParser] = None,
        config: Optional[PanewatchConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or PanewatchConfig()
        self._clock = clock or time.time
        self.parser = parser or ActivityParser(config=self.config, clock=self._clock)
        self._lock = threading.Lock()
        self._events: list[ActivityEvent] = []
        self.logger = get_logger()

    def handle_output(
        self,
        output: str,
        context: Union[SessionContext, Mapping[str, Any]],
    ) -> list[ActivityEvent]:
        """Parses a session's cumulative output and stores the new events."""
        events = self.parser.parse_output(output, context)
        self.add_events(events)
        return events

    def handle_terminated(self, session_id: str) -> None:
        self.parser.end_session(session_id)

    def add_events(self, events: Iterable[ActivityEvent]) -> None:
        with self._lock:
            self._events.extend(events)
            overflow = len(self._events) - self.config.feed.max_events
            if overflow > 0:
                del self._events[:overflow]

    def get_events(self, query: Optional[ActivityFilter] = None) -> list[ActivityEvent]:
        """Returns matching events, newest first, paginated."""
        query = query or ActivityFilter()
        with self._lock:
            matching = [event for event in self._events if query.matches(event)]

        # Stable: equal timestamps keep newest-inserted first after the reverse
        matching.reverse()
        matching.sort(key=lambda event: event.timestamp, reverse=True)

        limit = query.limit or self.config.feed.default_limit
        start = max(query.offset, 0)
        return matching[start:start + limit]

    def clear_events(self, session_id: Optional[str] = None) -> None:
        with self._lock:
            if session_id is None:
                self._events.clear()
            else:
                self._events = [event for event in self._events if event.session_id != session_id]

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drops events older than the configured maximum age.

        Returns:
            Number of events removed
        """
        now = self._clock() if now is None else now
        cutoff = int((now - self.config.feed.max_event_age) * 1000)
        with self._lock:
            before = len(self._events)
            self._events = [event for event in self._events if event.timestamp > cutoff]
            removed = before - len(self._events)
        if removed:
            self.logger.debug(f"Removed {removed} expired activity events")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

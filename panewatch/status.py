"""Live per-session status built from output chunks and hook signals."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from panewatch.analyzers import DialectAnalyzer, create_analyzer, resolve_dialect
from panewatch.config import PanewatchConfig
from panewatch.logger import get_logger
from panewatch.models import ActivityState, AgentStatus, StateSource


@dataclass
class _SessionTracker:
    """Mutable tracking state of one registered session."""

    session_id: str
    agent_id: Optional[str]
    analyzer: DialectAnalyzer
    status: AgentStatus
    buffer: str = ""
    last_output_time: float = 0.0
    hook_active: bool = False
    last_hook_state_time: float = 0.0


class StatusTracker:
    """Keeps an AgentStatus per session.

    Pattern analysis of the output is the fallback source of truth; hook
    signals from the agent are authoritative and shadow pattern results for
    a short while after they arrive. Working sessions that stay silent past
    the inactivity timeout fall back to idle when check_inactivity() runs.

    Thread-safe. on_status_change is called outside the lock with a copy
    of the changed status.
    """

    def __init__(
        self,
        config: Optional[PanewatchConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        on_status_change: Optional[Callable[[AgentStatus], None]] = None,
    ):
        self.config = config or PanewatchConfig()
        self._clock = clock or time.time
        self._on_status_change = on_status_change
        self._lock = threading.Lock()
        self._trackers: dict[str, _SessionTracker] = {}
        self.logger = get_logger()

    def _now_ms(self, now: Optional[float] = None) -> int:
        return int((self._clock() if now is None else now) * 1000)

    def register_session(self, session_id: str, agent_id: Optional[str] = None, hook_enabled: bool = False) -> None:
        """Starts tracking a session, replacing any previous tracker for the id."""
        if not isinstance(session_id, str) or not session_id:
            raise ValueError("session_id must be a non-empty string")

        dialect = resolve_dialect(agent_id, self.config.dialects.ai_agents)
        analyzer = create_analyzer(
            dialect,
            max_recent_file_changes=self.config.analyzer.max_recent_file_changes,
            clock=self._clock,
        )
        now = self._clock()
        tracker = _SessionTracker(
            session_id=session_id,
            agent_id=agent_id,
            analyzer=analyzer,
            status=AgentStatus(
                session_id=session_id,
                last_activity_timestamp=self._now_ms(now),
                hook_available=hook_enabled,
            ),
            last_output_time=now,
            hook_active=hook_enabled,
        )
        with self._lock:
            self._trackers[session_id] = tracker
        self.logger.debug(f"[{session_id}] tracking status as {dialect}")

    def unregister_session(self, session_id: str) -> None:
        with self._lock:
            self._trackers.pop(session_id, None)

    def handle_output(self, session_id: str, data: str) -> Optional[AgentStatus]:
        """Appends an output chunk to the session buffer and re-analyzes it.

        Args:
            session_id: Registered session id
            data: New output chunk (not the cumulative output)

        Returns:
            A copy of the status if it changed, None otherwise
        """
        changed: Optional[AgentStatus] = None

        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is None:
                return None

            now = self._clock()
            tracker.last_output_time = now

            tracker.buffer += data
            overflow = len(tracker.buffer) - self.config.tracker.buffer_size
            if overflow > 0:
                tracker.buffer = tracker.buffer[overflow:]
                tracker.analyzer.discard_prefix(overflow)

            hook_is_fresh = (
                tracker.hook_active
                and now - tracker.last_hook_state_time < self.config.tracker.hook_freshness
            )

            result = tracker.analyzer.analyze(tracker.buffer)
            status = tracker.status
            status_changed = False

            if result.activity_state is not None and not hook_is_fresh:
                if status.activity_state != result.activity_state:
                    status.activity_state = result.activity_state
                    status.state_source = StateSource.PATTERN
                    status.last_activity_timestamp = self._now_ms(now)
                    status_changed = True

            if result.task_summary is not None:
                status.task_summary = result.task_summary
                status_changed = True

            if result.file_changes:
                status.recent_file_changes = tracker.analyzer.get_recent_file_changes()
                status_changed = True

            if result.error_message is not None:
                status.error_message = result.error_message
                status_changed = True

            if status_changed:
                changed = self._snapshot(status)

        return self._notify(changed)

    def handle_hook_state(
        self,
        session_id: str,
        state: ActivityState,
        timestamp: Optional[float] = None,
    ) -> Optional[AgentStatus]:
        """Applies an authoritative state reported by an agent hook.

        Args:
            session_id: Registered session id
            state: Reported activity state
            timestamp: When the hook fired (epoch seconds), defaults to now
        """
        changed: Optional[AgentStatus] = None
        state = ActivityState(state)

        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is None:
                return None

            when = self._clock() if timestamp is None else timestamp
            tracker.hook_active = True
            tracker.last_hook_state_time = when
            status = tracker.status
            status.hook_available = True

            if status.activity_state != state:
                status.activity_state = state
                status.state_source = StateSource.HOOK
                status.last_activity_timestamp = self._now_ms(when)
                if state != ActivityState.ERROR:
                    status.error_message = None
                    tracker.analyzer.clear_error()
                changed = self._snapshot(status)

        return self._notify(changed)

    def set_activity_state(
        self,
        session_id: str,
        state: ActivityState,
        source: StateSource = StateSource.PATTERN,
    ) -> Optional[AgentStatus]:
        """Overrides the state of a session (e.g. when the user sends input)."""
        changed: Optional[AgentStatus] = None
        state = ActivityState(state)

        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is None:
                return None

            status = tracker.status
            status.activity_state = state
            status.state_source = StateSource(source)
            status.last_activity_timestamp = self._now_ms()
            if state != ActivityState.ERROR:
                status.error_message = None
                tracker.analyzer.clear_error()
            changed = self._snapshot(status)

        return self._notify(changed)

    def set_hook_active(self, session_id: str, active: bool) -> None:
        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is not None:
                tracker.hook_active = active
                tracker.status.hook_available = active

    def is_hook_active(self, session_id: str) -> bool:
        with self._lock:
            tracker = self._trackers.get(session_id)
            return tracker.hook_active if tracker else False

    def check_inactivity(self, now: Optional[float] = None) -> list[AgentStatus]:
        """Moves working sessions that went silent back to idle.

        The timeout is shorter for sessions with active hooks.

        Returns:
            Copies of the statuses that changed
        """
        now = self._clock() if now is None else now
        changed: list[AgentStatus] = []

        with self._lock:
            for tracker in self._trackers.values():
                status = tracker.status
                if status.activity_state != ActivityState.WORKING:
                    continue
                timeout = (
                    self.config.tracker.inactivity_timeout_with_hooks
                    if tracker.hook_active
                    else self.config.tracker.inactivity_timeout_without_hooks
                )
                if now - tracker.last_output_time < timeout:
                    continue
                status.activity_state = ActivityState.IDLE
                status.state_source = StateSource.TIMEOUT
                status.last_activity_timestamp = self._now_ms(now)
                changed.append(self._snapshot(status))

        for status in changed:
            self._notify(status)
        return changed

    def get_status(self, session_id: str) -> Optional[AgentStatus]:
        with self._lock:
            tracker = self._trackers.get(session_id)
            return self._snapshot(tracker.status) if tracker else None

    def get_all_statuses(self) -> list[AgentStatus]:
        with self._lock:
            return [self._snapshot(tracker.status) for tracker in self._trackers.values()]

    @staticmethod
    def _snapshot(status: AgentStatus) -> AgentStatus:
        return replace(status, recent_file_changes=list(status.recent_file_changes))

    def _notify(self, status: Optional[AgentStatus]) -> Optional[AgentStatus]:
        if status is not None and self._on_status_change is not None:
            self._on_status_change(status)
        return status

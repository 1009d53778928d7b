"""Activity parser: turns cumulative session output into activity feed events.

The parser keeps, per session, how many characters it already consumed and
which fingerprints it already emitted. Every call only looks at the unseen
tail of the output and never emits the same detection twice for a session.
"""

from __future__ import annotations

import re
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from panewatch.analyzers import DialectAnalyzer, create_analyzer, resolve_dialect
from panewatch.config import PanewatchConfig
from panewatch.constants import MAX_EVENT_TITLE_CHARS
from panewatch.logger import get_logger
from panewatch.models import (
    ActivityEvent,
    ActivitySeverity,
    ActivityType,
    FileChangeType,
    SessionContext,
)
from panewatch.patterns import (
    EVENT_RULES,
    Category,
    PatternRule,
    RuleSet,
    extract_file_changes,
    file_basename,
    is_valid_agent_path,
    strip_ansi,
)

FILE_EVENT_SHAPES: dict[FileChangeType, tuple[ActivityType, ActivitySeverity, str]] = {
    FileChangeType.CREATED: (ActivityType.FILE_CREATED, ActivitySeverity.SUCCESS, "created"),
    FileChangeType.MODIFIED: (ActivityType.FILE_MODIFIED, ActivitySeverity.INFO, "modified"),
    FileChangeType.DELETED: (ActivityType.FILE_DELETED, ActivitySeverity.WARNING, "deleted"),
}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Detection:
    """A single match in new content, before dedup and materialization."""

    type: ActivityType
    severity: ActivitySeverity
    title: str
    position: int = 0
    details: Optional[str] = None
    file_path: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        """Normalized key identifying this detection within a session."""
        parts = (self.type.value, self.title, self.details or "", self.file_path or "")
        return "|".join(_WHITESPACE.sub(" ", part).strip() for part in parts)


class FingerprintCache:
    """Per-session set of already emitted fingerprints.

    Unbounded by default. With max_per_session set, the least recently
    seen fingerprints of a session are evicted first.
    """

    def __init__(self, max_per_session: Optional[int] = None):
        self.max_per_session = max_per_session
        self._entries: dict[str, OrderedDict[str, None]] = {}

    def contains(self, session_id: str, fingerprint: str) -> bool:
        entries = self._entries.get(session_id)
        if entries is None or fingerprint not in entries:
            return False
        entries.move_to_end(fingerprint)
        return True

    def add(self, session_id: str, fingerprint: str) -> None:
        entries = self._entries.setdefault(session_id, OrderedDict())
        entries[fingerprint] = None
        entries.move_to_end(fingerprint)
        if self.max_per_session is None:
            return
        while len(entries) > self.max_per_session:
            evicted, _ = entries.popitem(last=False)
            get_logger().debug(f"[{session_id}] evicted fingerprint {evicted!r}")

    def size(self, session_id: Optional[str] = None) -> int:
        if session_id is not None:
            return len(self._entries.get(session_id, ()))
        return sum(len(entries) for entries in self._entries.values())

    def drop_session(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class SessionState:
    """Incremental state of one observed session."""

    session_id: str
    dialect: str
    analyzer: DialectAnalyzer
    offset: int = 0


class SessionRegistry:
    """Sessions observed by a parser, keyed by session id.

    Entries are created on first use and removed when the session ends.
    """

    def __init__(self, factory: Callable[[SessionContext], SessionState]):
        self._factory = factory
        self._sessions: dict[str, SessionState] = {}

    def get_or_create(self, context: SessionContext) -> SessionState:
        state = self._sessions.get(context.session_id)
        if state is None:
            state = self._factory(context)
            self._sessions[context.session_id] = state
        return state

    def get(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    def reset_offset(self, session_id: str) -> None:
        state = self._sessions.get(session_id)
        if state is not None:
            state.offset = 0

    def remove(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class ActivityParser:
    """Extracts de-duplicated activity events from session output.

    Each call receives the cumulative output of a session. Output is
    classified against a fixed event rule table; the session's dialect
    analyzer is fed alongside so its live status stays current.
    """

    def __init__(
        self,
        config: Optional[PanewatchConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        rules: RuleSet = EVENT_RULES,
    ):
        self.config = config or PanewatchConfig()
        self.rules = rules
        self._clock = clock or time.time
        self._sessions = SessionRegistry(self._create_session)
        self._fingerprints = FingerprintCache(self.config.parser.max_fingerprints_per_session)
        self.logger = get_logger()

    def _new_analyzer(self, dialect: str) -> DialectAnalyzer:
        return create_analyzer(
            dialect,
            max_recent_file_changes=self.config.analyzer.max_recent_file_changes,
            clock=self._clock,
        )

    def _create_session(self, context: SessionContext) -> SessionState:
        dialect = resolve_dialect(context.agent_id, self.config.dialects.ai_agents)
        self.logger.debug(f"[{context.session_id}] observing as {dialect} (agent: {context.agent_id})")
        return SessionState(session_id=context.session_id, dialect=dialect, analyzer=self._new_analyzer(dialect))

    def _refresh_dialect(self, session: SessionState, context: SessionContext) -> None:
        """Switches the analyzer when a later call names an agent of another dialect."""
        if context.agent_id is None:
            return
        dialect = resolve_dialect(context.agent_id, self.config.dialects.ai_agents)
        if dialect == session.dialect:
            return
        self.logger.debug(f"[{session.session_id}] switching from {session.dialect} to {dialect} (agent: {context.agent_id})")
        session.dialect = dialect
        session.analyzer = self._new_analyzer(dialect)

    def parse_output(
        self,
        output: str,
        context: Union[SessionContext, Mapping[str, Any]],
    ) -> list[ActivityEvent]:
        """Returns the events found in the part of output not seen before.

        Args:
            output: Everything the session has printed so far
            context: Session id plus optional agent id, name and icon

        Returns:
            New events: errors and warnings in source order, then
            completions and commits, then created, modified and deleted files.
        """
        if not isinstance(output, str):
            raise TypeError(f"output must be str, not {type(output).__name__}")
        if not isinstance(context, SessionContext):
            context = SessionContext.from_dict(context)

        session = self._sessions.get_or_create(context)
        self._refresh_dialect(session, context)

        if len(output) < session.offset:
            self.logger.warn(
                f"[{context.session_id}] output shrank from {session.offset} to {len(output)} chars, "
                "parsing from the start"
            )
            session.offset = 0

        new_content = output[session.offset:]
        if not new_content.strip():
            return []

        session.analyzer.analyze(output)

        timestamp = int(self._clock() * 1000)
        events: list[ActivityEvent] = []
        for detection in self.detect(strip_ansi(new_content)):
            fingerprint = detection.fingerprint
            if self._fingerprints.contains(context.session_id, fingerprint):
                continue
            self._fingerprints.add(context.session_id, fingerprint)
            events.append(self._create_event(detection, context, timestamp))

        session.offset = len(output)
        return events

    def detect(self, content: str) -> list[Detection]:
        """Runs the full rule battery over content, without dedup."""
        problems = self._detect_problems(content)
        outcomes = self._detect_outcomes(content)
        files = self._detect_files(content)
        return problems + outcomes + files

    def _detect_problems(self, content: str) -> list[Detection]:
        detections: list[Detection] = []
        for entry in self.rules.for_category(Category.ERROR):
            for match in entry.pattern.finditer(content):
                detections.append(self._error_detection(entry, match))
        for entry in self.rules.for_category(Category.WARNING):
            for match in entry.pattern.finditer(content):
                detections.append(Detection(
                    type=ActivityType.WARNING,
                    severity=ActivitySeverity.WARNING,
                    title="Warning",
                    details=entry.extract(match),
                    position=match.start(),
                ))
        # Stable: errors stay ahead of warnings found at the same position
        detections.sort(key=lambda detection: detection.position)
        return detections

    def _error_detection(self, entry: PatternRule, match: re.Match) -> Detection:
        message = entry.extract(match)
        title = f"Error {entry.code_prefix}{match.group(1)}" if entry.code_prefix else "Error"
        details = f"{entry.tool}: {message}" if entry.tool else message
        return Detection(
            type=ActivityType.ERROR,
            severity=ActivitySeverity.ERROR,
            title=title,
            details=details,
            position=match.start(),
        )

    def _detect_outcomes(self, content: str) -> list[Detection]:
        detections: list[Detection] = []
        for entry in self.rules.for_category(Category.COMPLETE):
            for match in entry.pattern.finditer(content):
                task = entry.extract(match) or "Task completed"
                detections.append(Detection(
                    type=ActivityType.TASK_COMPLETED,
                    severity=ActivitySeverity.SUCCESS,
                    title=task[:MAX_EVENT_TITLE_CHARS],
                    position=match.start(),
                ))
        for entry in self.rules.for_category(Category.GIT_COMMIT):
            for match in entry.pattern.finditer(content):
                detections.append(Detection(
                    type=ActivityType.GIT_COMMIT,
                    severity=ActivitySeverity.SUCCESS,
                    title=f"Commit {match.group('sha')}",
                    details=f"{match.group('branch')}: {entry.extract(match)}",
                    position=match.start(),
                ))
        if self.config.parser.emit_commands:
            for entry in self.rules.for_category(Category.COMMAND):
                for match in entry.pattern.finditer(content):
                    detections.append(Detection(
                        type=ActivityType.COMMAND_EXECUTED,
                        severity=ActivitySeverity.INFO,
                        title="Command executed",
                        details=entry.extract(match),
                        position=match.start(),
                    ))
        detections.sort(key=lambda detection: detection.position)
        return detections

    def _detect_files(self, content: str) -> list[Detection]:
        detections: list[Detection] = []
        for change in extract_file_changes(content, self.rules, is_valid_agent_path, timestamp=0):
            activity_type, severity, verb = FILE_EVENT_SHAPES[change.type]
            detections.append(Detection(
                type=activity_type,
                severity=severity,
                title=f"File {verb}: {file_basename(change.path)}",
                file_path=change.path,
            ))
        return detections

    def _create_event(self, detection: Detection, context: SessionContext, timestamp: int) -> ActivityEvent:
        return ActivityEvent(
            id=str(uuid.uuid4()),
            session_id=context.session_id,
            agent_id=context.agent_id,
            agent_name=context.agent_name,
            agent_icon=context.agent_icon,
            type=detection.type,
            severity=detection.severity,
            timestamp=timestamp,
            title=detection.title,
            details=detection.details,
            file_path=detection.file_path,
        )

    def get_analyzer(self, session_id: str) -> Optional[DialectAnalyzer]:
        """Returns the live-status analyzer of a session, if observed."""
        state = self._sessions.get(session_id)
        return state.analyzer if state else None

    def get_offset(self, session_id: str) -> int:
        state = self._sessions.get(session_id)
        return state.offset if state else 0

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> list[str]:
        return self._sessions.session_ids()

    def reset_session(self, session_id: str) -> None:
        """Forgets the consumed offset of a session but keeps its fingerprints."""
        self._sessions.reset_offset(session_id)

    def end_session(self, session_id: str) -> None:
        """Drops everything kept for a session that has terminated."""
        self._sessions.remove(session_id)
        self._fingerprints.drop_session(session_id)

    def reset(self) -> None:
        """Clears all sessions and the whole dedup cache."""
        self._sessions.clear()
        self._fingerprints.clear()

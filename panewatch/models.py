"""Data model shared by the analyzers, the activity parser and the stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class ActivityState(str, Enum):
    """Live classification of a session."""

    IDLE = "idle"
    WORKING = "working"
    WAITING_FOR_INPUT = "waiting_for_input"
    ERROR = "error"


class FileChangeType(str, Enum):
    """Kinds of file change detected in output."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class ActivityType(str, Enum):
    """Types of activity event surfaced to the feed."""

    FILE_CREATED = "file_created"
    FILE_MODIFIED = "file_modified"
    FILE_DELETED = "file_deleted"
    ERROR = "error"
    WARNING = "warning"
    TASK_COMPLETED = "task_completed"
    COMMAND_EXECUTED = "command_executed"
    GIT_COMMIT = "git_commit"


class ActivitySeverity(str, Enum):
    """Severity of an activity event."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class StateSource(str, Enum):
    """Where a status's activity state came from."""

    HOOK = "hook"
    PATTERN = "pattern"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class FileChange:
    """A file change detected in output."""

    path: str
    type: FileChangeType
    timestamp: int  # epoch millis

    def to_dict(self) -> dict:
        return {"path": self.path, "type": self.type.value, "timestamp": self.timestamp}


@dataclass
class AnalysisResult:
    """What a single analyze() call found in the new content.

    Fields left as None (or an empty list) were not detected in this call.
    """

    activity_state: Optional[ActivityState] = None
    task_summary: Optional[str] = None
    file_changes: list[FileChange] = field(default_factory=list)
    error_message: Optional[str] = None


@dataclass(frozen=True)
class SessionContext:
    """Identifies the session an output stream belongs to.

    agent_id selects the dialect; agent_id, agent_name and agent_icon are
    copied verbatim onto every event.
    """

    session_id: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    agent_icon: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.session_id, str) or not self.session_id:
            raise ValueError("session_id must be a non-empty string")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionContext":
        """Creates a context from a dict with snake_case or camelCase keys."""
        return cls(
            session_id=data.get("session_id", data.get("sessionId", "")),
            agent_id=data.get("agent_id", data.get("agentId")),
            agent_name=data.get("agent_name", data.get("agentName")),
            agent_icon=data.get("agent_icon", data.get("agentIcon")),
        )


@dataclass(frozen=True)
class ActivityEvent:
    """A uniquely identified, timestamped activity feed entry."""

    id: str
    session_id: str
    type: ActivityType
    severity: ActivitySeverity
    timestamp: int  # epoch millis
    title: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    agent_icon: Optional[str] = None
    details: Optional[str] = None
    file_path: Optional[str] = None

    def to_dict(self) -> dict:
        """Converts the event to the feed wire shape (camelCase, no empty optionals)."""
        data = {
            "id": self.id,
            "sessionId": self.session_id,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "agentIcon": self.agent_icon,
            "type": self.type.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "title": self.title,
            "details": self.details,
            "filePath": self.file_path,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass
class AgentStatus:
    """Live status of one session, as shown by the UI."""

    session_id: str
    activity_state: ActivityState = ActivityState.IDLE
    last_activity_timestamp: int = 0
    task_summary: Optional[str] = None
    recent_file_changes: list[FileChange] = field(default_factory=list)
    error_message: Optional[str] = None
    state_source: StateSource = StateSource.PATTERN
    hook_available: bool = False

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "activityState": self.activity_state.value,
            "lastActivityTimestamp": self.last_activity_timestamp,
            "taskSummary": self.task_summary,
            "recentFileChanges": [change.to_dict() for change in self.recent_file_changes],
            "errorMessage": self.error_message,
            "stateSource": self.state_source.value,
            "hookAvailable": self.hook_available,
        }

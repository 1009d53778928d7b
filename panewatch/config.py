"""Panewatch configuration management."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from panewatch.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_AI_AGENT_IDS,
    DEFAULT_MAX_FINGERPRINTS,
    FEED_DEFAULT_LIMIT,
    FEED_MAX_EVENT_AGE_SECONDS,
    FEED_MAX_EVENTS,
    HOOK_STATE_FRESHNESS,
    INACTIVITY_TIMEOUT_WITH_HOOKS,
    INACTIVITY_TIMEOUT_WITHOUT_HOOKS,
    MAX_RECENT_FILE_CHANGES,
    TRACKER_BUFFER_SIZE_CHARS,
)
from panewatch.logger import get_logger


def validate_agent_ids(value) -> list[str]:
    """Validate and return the AI agent id list, or the defaults.

    Args:
        value: The ai_agents value from config

    Returns:
        The validated list, or the default ids if invalid
    """
    if isinstance(value, list) and value and all(isinstance(item, str) and item for item in value):
        return list(value)
    logger = get_logger()
    logger.warn(f"Invalid ai_agents {value!r} - falling back to {list(DEFAULT_AI_AGENT_IDS)}")
    return list(DEFAULT_AI_AGENT_IDS)


def validate_positive_int(value, default: Optional[int], name: str) -> Optional[int]:
    """Validate an optional positive integer, or return the default."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    logger = get_logger()
    logger.warn(f"Invalid {name} {value!r} - falling back to {default}")
    return default


@dataclass
class DialectConfig:
    """Which agent ids speak the AI-agent dialect.

    Sessions whose agent id is not listed are analyzed as shells.
    """

    ai_agents: list[str] = field(default_factory=lambda: list(DEFAULT_AI_AGENT_IDS))


@dataclass
class ParserConfig:
    """Activity parser settings.

    max_fingerprints_per_session = None keeps every dedup fingerprint for
    the lifetime of the session. A positive value evicts the least recently
    seen fingerprints, which means very old identical output can fire again.
    """

    max_fingerprints_per_session: Optional[int] = DEFAULT_MAX_FINGERPRINTS
    emit_commands: bool = False


@dataclass
class AnalyzerConfig:
    """Dialect analyzer settings."""

    max_recent_file_changes: int = MAX_RECENT_FILE_CHANGES


@dataclass
class TrackerConfig:
    """Status tracker settings (seconds, buffer in characters)."""

    buffer_size: int = TRACKER_BUFFER_SIZE_CHARS
    inactivity_timeout_with_hooks: float = INACTIVITY_TIMEOUT_WITH_HOOKS
    inactivity_timeout_without_hooks: float = INACTIVITY_TIMEOUT_WITHOUT_HOOKS
    hook_freshness: float = HOOK_STATE_FRESHNESS


@dataclass
class FeedConfig:
    """Activity feed settings."""

    max_events: int = FEED_MAX_EVENTS
    max_event_age: int = FEED_MAX_EVENT_AGE_SECONDS  # 7 days
    default_limit: int = FEED_DEFAULT_LIMIT


@dataclass
class PanewatchConfig:
    """Complete configuration."""

    dialects: DialectConfig = field(default_factory=DialectConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "PanewatchConfig":
        """Creates a config from a dictionary."""
        dialects_data = data.get("dialects") or {}
        parser_data = data.get("parser") or {}
        analyzer_data = data.get("analyzer") or {}
        tracker_data = data.get("tracker") or {}
        feed_data = data.get("feed") or {}

        dialects = DialectConfig(
            ai_agents=validate_agent_ids(dialects_data.get("ai_agents", list(DEFAULT_AI_AGENT_IDS))),
        )

        parser = ParserConfig(
            max_fingerprints_per_session=validate_positive_int(
                parser_data.get("max_fingerprints_per_session", DEFAULT_MAX_FINGERPRINTS),
                DEFAULT_MAX_FINGERPRINTS,
                "max_fingerprints_per_session",
            ),
            emit_commands=bool(parser_data.get("emit_commands", False)),
        )

        analyzer = AnalyzerConfig(
            max_recent_file_changes=validate_positive_int(
                analyzer_data.get("max_recent_file_changes", MAX_RECENT_FILE_CHANGES),
                MAX_RECENT_FILE_CHANGES,
                "max_recent_file_changes",
            ) or MAX_RECENT_FILE_CHANGES,
        )

        tracker = TrackerConfig(
            buffer_size=tracker_data.get("buffer_size", TRACKER_BUFFER_SIZE_CHARS),
            inactivity_timeout_with_hooks=tracker_data.get(
                "inactivity_timeout_with_hooks", INACTIVITY_TIMEOUT_WITH_HOOKS
            ),
            inactivity_timeout_without_hooks=tracker_data.get(
                "inactivity_timeout_without_hooks", INACTIVITY_TIMEOUT_WITHOUT_HOOKS
            ),
            hook_freshness=tracker_data.get("hook_freshness", HOOK_STATE_FRESHNESS),
        )

        feed = FeedConfig(
            max_events=feed_data.get("max_events", FEED_MAX_EVENTS),
            max_event_age=feed_data.get("max_event_age", FEED_MAX_EVENT_AGE_SECONDS),
            default_limit=feed_data.get("default_limit", FEED_DEFAULT_LIMIT),
        )

        return cls(
            dialects=dialects,
            parser=parser,
            analyzer=analyzer,
            tracker=tracker,
            feed=feed,
        )

    def to_dict(self) -> dict:
        """Converts the config to a dictionary."""
        return {
            "dialects": {
                "ai_agents": list(self.dialects.ai_agents),
            },
            "parser": {
                "max_fingerprints_per_session": self.parser.max_fingerprints_per_session,
                "emit_commands": self.parser.emit_commands,
            },
            "analyzer": {
                "max_recent_file_changes": self.analyzer.max_recent_file_changes,
            },
            "tracker": {
                "buffer_size": self.tracker.buffer_size,
                "inactivity_timeout_with_hooks": self.tracker.inactivity_timeout_with_hooks,
                "inactivity_timeout_without_hooks": self.tracker.inactivity_timeout_without_hooks,
                "hook_freshness": self.tracker.hook_freshness,
            },
            "feed": {
                "max_events": self.feed.max_events,
                "max_event_age": self.feed.max_event_age,
                "default_limit": self.feed.default_limit,
            },
        }


def get_config_path(project_path: Path) -> Path:
    """Returns the config file path: <project>/.panewatch/config.yaml"""
    return project_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(project_path: Path) -> PanewatchConfig:
    """Loads the configuration from .panewatch/config.yaml."""
    config_path = get_config_path(project_path)

    if not config_path.exists():
        return PanewatchConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return PanewatchConfig.from_dict(data)


def save_config(project_path: Path, config: PanewatchConfig) -> Path:
    """Saves the configuration to .panewatch/config.yaml and returns its path."""
    config_path = get_config_path(project_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    return config_path

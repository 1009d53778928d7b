"""Centralized constants for Panewatch.

This module contains all magic numbers and default values used throughout
the Panewatch codebase to improve maintainability and discoverability.
"""

# =============================================================================
# DIALECTS
# =============================================================================

SHELL_DIALECT = "shell"
AGENT_DIALECT = "ai_agent"
DEFAULT_DIALECT = SHELL_DIALECT

# Agent ids whose sessions speak the AI-agent dialect
DEFAULT_AI_AGENT_IDS = ("claude-code", "cursor", "aider")

# =============================================================================
# ANALYZER LIMITS
# =============================================================================

MAX_RECENT_FILE_CHANGES = 20  # Ring capacity, oldest evicted first
MAX_ERROR_MESSAGE_CHARS = 200  # Error line truncation
MAX_TASK_SUMMARY_CHARS = 100  # AI-agent summary truncation
MIN_TASK_SUMMARY_CHARS = 10  # AI-agent summary must be longer than this
MAX_SHELL_COMMAND_CHARS = 100  # Shell command must be shorter than this

# Path validation - minimum candidate length per dialect
SHELL_MIN_PATH_LENGTH = 2
AGENT_MIN_PATH_LENGTH = 3

# =============================================================================
# ACTIVITY PARSER
# =============================================================================

MAX_EVENT_TITLE_CHARS = 100  # Completion titles are truncated to this
DEFAULT_MAX_FINGERPRINTS = None  # None = unbounded dedup cache per session

# =============================================================================
# STATUS TRACKER (seconds unless stated)
# =============================================================================

TRACKER_BUFFER_SIZE_CHARS = 20 * 1024  # Rolling output buffer per session
INACTIVITY_TIMEOUT_WITH_HOOKS = 1.5  # Hooks are authoritative, shorter wait
INACTIVITY_TIMEOUT_WITHOUT_HOOKS = 3.0  # Pattern matching only, longer wait
HOOK_STATE_FRESHNESS = 1.0  # Pattern state ignored this long after a hook state

# =============================================================================
# ACTIVITY FEED
# =============================================================================

FEED_MAX_EVENTS = 500  # Events kept in memory
FEED_MAX_EVENT_AGE_SECONDS = 7 * 24 * 60 * 60  # 7 days
FEED_DEFAULT_LIMIT = 100  # Page size when a filter sets no limit

# =============================================================================
# CLI
# =============================================================================

CONFIG_DIR_NAME = ".panewatch"
CONFIG_FILE_NAME = "config.yaml"
DEFAULT_CHUNK_LINES = 1  # Lines appended per replay step

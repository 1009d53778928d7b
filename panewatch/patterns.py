"""Pattern rule sets, path validation and file-change extraction.

Each dialect is described by data: an ordered table of
(category, pattern, capture group) rules. Within a category, rules are
tried in table order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from panewatch.constants import AGENT_MIN_PATH_LENGTH, SHELL_MIN_PATH_LENGTH
from panewatch.models import FileChange, FileChangeType

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")
URL_SCHEME_PATTERN = re.compile(r"^[a-z]+://", re.IGNORECASE)
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+")


class Category(str, Enum):
    """What a rule detects."""

    ERROR = "error"
    WAITING_FOR_INPUT = "waiting_for_input"
    WORKING = "working"
    COMPLETE = "complete"
    IDLE = "idle"
    TASK_SUMMARY = "task_summary"
    FILE_CREATED = "file_created"
    FILE_MODIFIED = "file_modified"
    FILE_DELETED = "file_deleted"
    WARNING = "warning"
    GIT_COMMIT = "git_commit"
    COMMAND = "command"


# Extraction order for file changes: created wins ties
FILE_CATEGORIES: tuple[tuple[Category, FileChangeType], ...] = (
    (Category.FILE_CREATED, FileChangeType.CREATED),
    (Category.FILE_MODIFIED, FileChangeType.MODIFIED),
    (Category.FILE_DELETED, FileChangeType.DELETED),
)


@dataclass(frozen=True)
class PatternRule:
    """A single match rule.

    Attributes:
        category: What the rule detects.
        pattern: Compiled regex.
        group: Capture group holding the extracted text (0 = whole match).
        tool: Tool name prefixed to extracted error details ("npm", "git").
        code_prefix: When set, group 1 holds a diagnostic code shown as
            "Error {code_prefix}{code}".
    """

    category: Category
    pattern: re.Pattern
    group: int = 0
    tool: Optional[str] = None
    code_prefix: Optional[str] = None

    def extract(self, match: re.Match) -> str:
        return (match.group(self.group) or "").strip()


def rule(category: Category, regex: str, flags: int = 0, group: int = 0, **options) -> PatternRule:
    """Compiles a rule table entry."""
    return PatternRule(category, re.compile(regex, flags), group, **options)


class RuleSet:
    """Ordered pattern rules for one dialect, grouped by category."""

    def __init__(self, name: str, rules: Iterable[PatternRule]):
        self.name = name
        self.rules = tuple(rules)
        self._by_category: dict[Category, tuple[PatternRule, ...]] = {}
        for entry in self.rules:
            self._by_category[entry.category] = self._by_category.get(entry.category, ()) + (entry,)

    def for_category(self, category: Category) -> tuple[PatternRule, ...]:
        return self._by_category.get(category, ())

    def first_match(self, category: Category, text: str) -> Optional[tuple[PatternRule, re.Match]]:
        """Returns the first rule of a category matching text, in table order."""
        for entry in self.for_category(category):
            match = entry.pattern.search(text)
            if match:
                return entry, match
        return None


# =============================================================================
# SHELL DIALECT
# =============================================================================

SHELL_RULES = RuleSet("shell", [
    rule(Category.ERROR, r"^error:", re.I | re.M),
    rule(Category.ERROR, r"FAILED", re.I),
    rule(Category.ERROR, r"^Exception:", re.I | re.M),
    rule(Category.ERROR, r"CommandNotFoundException", re.I),
    rule(Category.ERROR, r"command not found", re.I),
    rule(Category.ERROR, r"'[^']+' is not recognized", re.I),
    rule(Category.ERROR, r"Access is denied", re.I),
    rule(Category.ERROR, r"Permission denied", re.I),
    rule(Category.ERROR, r"ENOENT", re.I),
    rule(Category.ERROR, r"EACCES", re.I),
    rule(Category.ERROR, r"npm ERR!", re.I),
    rule(Category.ERROR, r"fatal:", re.I),

    rule(Category.WAITING_FOR_INPUT, r"\(Y/N\)", re.I),
    rule(Category.WAITING_FOR_INPUT, r"\[Y/n\]", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Press any key", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Continue\?", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Enter password", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Password:", re.I),
    rule(Category.WAITING_FOR_INPUT, r"username:", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Confirm:", re.I),

    rule(Category.WORKING, r"^\s*(?:Running|Installing|Building|Compiling|Downloading|Uploading|Processing)", re.I | re.M),
    rule(Category.WORKING, r"^\.\.\.", re.M),  # Progress dots
    rule(Category.WORKING, r"\[\s*\d+%\s*\]"),  # [ 42% ]
    rule(Category.WORKING, r"[|\\/-]\s*$"),  # Spinner glyph at the very end

    rule(Category.COMPLETE, r"Done\.?$", re.I | re.M),
    rule(Category.COMPLETE, r"Completed\.?$", re.I | re.M),
    rule(Category.COMPLETE, r"Successfully", re.I),
    rule(Category.COMPLETE, r"Build succeeded", re.I),
    rule(Category.COMPLETE, r"All tests passed", re.I),
    rule(Category.COMPLETE, r"up to date", re.I),

    # PowerShell
    rule(Category.IDLE, r"PS\s+[A-Z]:\\[^>]*>\s*$", re.M),
    rule(Category.IDLE, r"PS>\s*$", re.M),
    rule(Category.IDLE, r">>>\s*$", re.M),
    # bash / zsh
    rule(Category.IDLE, r"\$\s*$", re.M),
    rule(Category.IDLE, r"❯\s*$", re.M),
    rule(Category.IDLE, r"➜\s*$", re.M),
    rule(Category.IDLE, r"#\s*$", re.M),
    # cmd.exe
    rule(Category.IDLE, r"[A-Z]:\\[^>]*>\s*$", re.M),
    rule(Category.IDLE, r">\s*$", re.M),

    rule(Category.TASK_SUMMARY, r"(?:PS\s+[^>]*>|[A-Z]:\\[^>]*>|\$|❯|➜|#)[ \t]*(.+)", group=1),

    rule(Category.FILE_CREATED, r"\b(?:New-Item|touch|mkdir|echo\s+.*>)\s+['\"]?([^\s'\"]+)", re.I, group=1),
    rule(Category.FILE_CREATED, r"\b(?:created|wrote to)\s+['\"]?([^\s'\"]+)", re.I, group=1),
    rule(Category.FILE_MODIFIED, r"\b(?:Set-Content|Add-Content)\s+['\"]?([^\s'\"]+)", re.I, group=1),
    rule(Category.FILE_DELETED, r"\b(?:Remove-Item|rm|del)\s+(?:-[a-z]+\s+)*['\"]?([^\s'\"]+)", re.I, group=1),
    rule(Category.FILE_DELETED, r"\b(?:deleted|removed)\s+['\"]?([^\s'\"]+)", re.I, group=1),
])


# =============================================================================
# AI-AGENT DIALECT
# =============================================================================

AGENT_RULES = RuleSet("ai_agent", [
    rule(Category.ERROR, r"^Error:", re.I | re.M),
    rule(Category.ERROR, r"^Failed:", re.I | re.M),
    rule(Category.ERROR, r"^Exception:", re.I | re.M),
    rule(Category.ERROR, r"^Traceback \(most recent call last\)", re.M),
    rule(Category.ERROR, r"Error occurred", re.I),
    rule(Category.ERROR, r"Command failed", re.I),
    rule(Category.ERROR, r"Permission denied", re.I),
    rule(Category.ERROR, r"ENOENT", re.I),
    rule(Category.ERROR, r"EACCES", re.I),
    rule(Category.ERROR, r"FATAL:", re.I),
    rule(Category.ERROR, r"panic:", re.I),

    rule(Category.WAITING_FOR_INPUT, r"\(y\)es\s*/\s*\(n\)o", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Continue\?\s*\[Y/n\]", re.I),
    rule(Category.WAITING_FOR_INPUT, r"\[Y/n\]", re.I),
    rule(Category.WAITING_FOR_INPUT, r"waiting for (?:your )?(?:input|response)", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Press Enter to continue", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Do you want to\s+(?:continue|proceed)", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Would you like to\s+(?:continue|proceed)", re.I),
    rule(Category.WAITING_FOR_INPUT, r"Approve this (?:action|change|edit)", re.I),
    rule(Category.WAITING_FOR_INPUT, r"^Allow\?", re.I | re.M),

    rule(Category.WORKING, r"^╭─ .*─╮$", re.M),  # Tool box top
    rule(Category.WORKING, r"^│ .*│$", re.M),  # Tool box body
    rule(Category.WORKING, r"^(?:Thinking|Processing|Reading|Writing|Running|Searching|Analyzing|Fetching)", re.I),
    rule(Category.WORKING, r"^(?:Glob|Grep|Read|Edit|Write|Bash|WebFetch|WebSearch|Task|NotebookEdit)\s", re.I),
    rule(Category.WORKING, r"Tool use:", re.I),
    rule(Category.WORKING, r"\[\d+/\d+\]"),  # [1/5]
    rule(Category.WORKING, r"^[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏]", re.M),  # Braille spinner
    rule(Category.WORKING, r"Executing.*\.{3}$", re.I | re.M),
    rule(Category.WORKING, r"^Calling function", re.I),

    rule(Category.COMPLETE, r"^Done\.?$", re.I | re.M),
    rule(Category.COMPLETE, r"^Completed\.?$", re.I | re.M),
    rule(Category.COMPLETE, r"^Task completed", re.I),
    rule(Category.COMPLETE, r"^Finished", re.I),
    rule(Category.COMPLETE, r"successfully completed", re.I),
    rule(Category.COMPLETE, r"^╰─.*─╯$", re.M),  # Tool box bottom

    rule(Category.IDLE, r"^>\s*$", re.M),
    rule(Category.IDLE, r"^\$\s*$", re.M),
    rule(Category.IDLE, r"^claude>\s*$", re.M),
    rule(Category.IDLE, r"^❯\s*$", re.M),
    rule(Category.IDLE, r"^\?\s*$", re.M),
    rule(Category.IDLE, r"^claude-code>\s*$", re.M),
    rule(Category.IDLE, r"Human:\s*$", re.M),

    rule(Category.TASK_SUMMARY, r"^(?:I'll|I will|Let me|I'm going to)\s+(.+?)(?:\.|$)", re.I | re.M, group=1),
    rule(Category.TASK_SUMMARY, r"^(?:Working on|Starting|Beginning)\s+(.+?)(?:\.|$)", re.I | re.M, group=1),
    rule(Category.TASK_SUMMARY, r"^(?:Task|Goal):\s*(.+?)(?:\.|$)", re.I | re.M, group=1),

    rule(Category.FILE_CREATED, r"(?:Created|Wrote|Writing)\s+(?:file:?\s+)?['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_CREATED, r"(?:Creating|New file:?)\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_MODIFIED, r"(?:Edited|Modified|Updated|Updating)\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_MODIFIED, r"(?:Edit|Write)\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_DELETED, r"(?:Deleted|Removed|Removing)\s+(?:file:?\s+)?['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
])


# =============================================================================
# ACTIVITY FEED EVENTS (all dialects)
# =============================================================================

EVENT_RULES = RuleSet("events", [
    rule(Category.ERROR, r"error TS(\d+):\s*(.+)", re.I, group=2, code_prefix="TS"),
    rule(Category.ERROR, r"^(?:Error|TypeError|ReferenceError|SyntaxError):\s*(.+)", re.I | re.M, group=1),
    rule(Category.ERROR, r"^ERROR:\s*(.+)", re.I | re.M, group=1),
    rule(Category.ERROR, r"npm ERR!\s*(.+)", re.I, group=1, tool="npm"),
    rule(Category.ERROR, r"fatal:\s*(.+)", re.I, group=1, tool="git"),

    rule(Category.WARNING, r"(?:warning|warn):\s*(.+)", re.I, group=1),
    rule(Category.WARNING, r"\bWARN\s+(.+)", group=1),

    rule(Category.COMPLETE, r"(?:Task completed|Done|Completed|Finished):\s*['\"]?(.+?)['\"]?$", re.I | re.M, group=1),
    rule(Category.COMPLETE, r"^✓\s+(.+)", re.M, group=1),
    rule(Category.COMPLETE, r"Successfully\s+(.+)", re.I, group=1),

    # [main abc1234] subject, optionally (root-commit); branch may be "detached HEAD"
    rule(
        Category.GIT_COMMIT,
        r"^\[(?P<branch>detached HEAD|[^\s\[\]]+)(?:\s+\(root-commit\))?\s+(?P<sha>[0-9a-f]{7,40})\]\s+(.+)$",
        re.M,
        group=3,
    ),

    rule(Category.COMMAND, r"^(?:Running|Executing):\s*(.+)", re.I | re.M, group=1),
    rule(Category.COMMAND, r"^\$\s+(.+)", re.M, group=1),

    rule(Category.FILE_CREATED, r"(?:Created|Wrote|Writing to)\s+(?:file:?\s+)?['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_CREATED, r"(?:New file:?|Creating)\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_CREATED, r"File created successfully at:\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(Category.FILE_MODIFIED, r"(?:Edited|Modified|Updated|Updating|Edit)\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
    rule(
        Category.FILE_MODIFIED,
        r"The file\s+['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)['\"]?\s+has been (?:updated|edited|modified)",
        re.I,
        group=1,
    ),
    rule(Category.FILE_DELETED, r"(?:Deleted|Removed|Removing)\s+(?:file:?\s+)?['\"]?([^\s'\"]+\.[a-zA-Z0-9]+)", re.I, group=1),
])


# =============================================================================
# HELPERS
# =============================================================================


def strip_ansi(text: str) -> str:
    """Removes ESC [ ... letter control sequences (colors, cursor moves)."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


def is_valid_file_path(
    candidate: Optional[str],
    min_length: int = AGENT_MIN_PATH_LENGTH,
    reject_versions: bool = True,
) -> bool:
    """Filters out common false positives for extracted file paths.

    Rejects empty or too-short candidates, URLs, command-line flags and,
    when reject_versions is set, tokens starting like a version number.

    Args:
        candidate: The extracted path
        min_length: Shortest accepted path (2 for shell, 3 for AI agents)
        reject_versions: Whether "1.2.3"-like tokens are rejected

    Returns:
        True if the candidate looks like a real file path
    """
    if not candidate or len(candidate) < min_length:
        return False
    if candidate.startswith("http://") or candidate.startswith("https://"):
        return False
    if URL_SCHEME_PATTERN.match(candidate):
        return False
    if candidate.startswith("-"):
        return False
    if reject_versions and VERSION_PATTERN.match(candidate):
        return False
    return True


def is_valid_shell_path(candidate: Optional[str]) -> bool:
    return is_valid_file_path(candidate, min_length=SHELL_MIN_PATH_LENGTH, reject_versions=False)


def is_valid_agent_path(candidate: Optional[str]) -> bool:
    return is_valid_file_path(candidate, min_length=AGENT_MIN_PATH_LENGTH, reject_versions=True)


def extract_file_changes(
    content: str,
    rules: RuleSet,
    is_valid: Callable[[Optional[str]], bool],
    timestamp: int,
) -> list[FileChange]:
    """Extracts created, modified then deleted files from content.

    Every match of every rule is considered. Created matches are always
    recorded; modified and deleted matches are skipped when their path is
    already part of the result.
    """
    changes: list[FileChange] = []
    seen_paths: set[str] = set()

    for category, change_type in FILE_CATEGORIES:
        for entry in rules.for_category(category):
            for match in entry.pattern.finditer(content):
                path = match.group(entry.group)
                if not is_valid(path):
                    continue
                if change_type != FileChangeType.CREATED and path in seen_paths:
                    continue
                changes.append(FileChange(path=path, type=change_type, timestamp=timestamp))
                seen_paths.add(path)

    return changes


def file_basename(file_path: str) -> str:
    """Returns the final path segment (handles both separators)."""
    parts = file_path.replace("\\", "/").split("/")
    return parts[-1] or file_path

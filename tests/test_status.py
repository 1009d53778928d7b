"""Tests pour le module status."""

import threading

import pytest

from panewatch.analyzers import AgentAnalyzer, ShellAnalyzer
from panewatch.config import PanewatchConfig
from panewatch.models import ActivityState, FileChangeType, StateSource
from panewatch.status import StatusTracker


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def changes():
    return []


@pytest.fixture
def tracker(clock, changes):
    tracker = StatusTracker(clock=clock, on_status_change=changes.append)
    tracker.register_session("shell-1")
    tracker.register_session("agent-1", agent_id="claude-code")
    return tracker


class TestRegistration:
    """Tests pour l'enregistrement des sessions."""

    def test_initial_status(self, tracker):
        status = tracker.get_status("shell-1")
        assert status.session_id == "shell-1"
        assert status.activity_state == ActivityState.IDLE
        assert status.state_source == StateSource.PATTERN
        assert status.last_activity_timestamp == 1000000
        assert status.hook_available is False

    def test_dialect_by_agent(self, tracker):
        assert isinstance(tracker._trackers["shell-1"].analyzer, ShellAnalyzer)
        assert isinstance(tracker._trackers["agent-1"].analyzer, AgentAnalyzer)

    def test_hook_enabled(self, tracker):
        tracker.register_session("hooked", agent_id="claude-code", hook_enabled=True)
        assert tracker.is_hook_active("hooked") is True
        assert tracker.get_status("hooked").hook_available is True

    def test_unregister(self, tracker):
        tracker.unregister_session("shell-1")
        assert tracker.get_status("shell-1") is None
        assert [s.session_id for s in tracker.get_all_statuses()] == ["agent-1"]

    def test_empty_session_id(self, tracker):
        with pytest.raises(ValueError):
            tracker.register_session("")

    def test_unknown_session_ignored(self, tracker, changes):
        """Tests that every operation on an unknown session is a no-op."""
        assert tracker.handle_output("missing", "Error: x\n") is None
        assert tracker.handle_hook_state("missing", ActivityState.WORKING) is None
        assert tracker.set_activity_state("missing", ActivityState.IDLE) is None
        tracker.set_hook_active("missing", True)
        assert tracker.is_hook_active("missing") is False
        assert changes == []


class TestHandleOutput:
    """Tests for pattern-based status updates."""

    def test_working(self, tracker, changes):
        status = tracker.handle_output("shell-1", "Installing packages...\n")
        assert status.activity_state == ActivityState.WORKING
        assert status.state_source == StateSource.PATTERN
        assert changes == [status]

    def test_chunks_accumulate(self, tracker):
        """Tests that chunks are appended and only new content is analyzed."""
        tracker.handle_output("agent-1", "Thinking about it\n")
        assert tracker.get_status("agent-1").activity_state == ActivityState.WORKING

        tracker.handle_output("agent-1", "Error: tests failed\n")
        status = tracker.get_status("agent-1")
        assert status.activity_state == ActivityState.ERROR
        assert status.error_message == "Error: tests failed"

    def test_file_changes(self, tracker):
        tracker.handle_output("agent-1", "Created src/app.py\n")
        changes = tracker.get_status("agent-1").recent_file_changes
        assert [(c.type, c.path) for c in changes] == [(FileChangeType.CREATED, "src/app.py")]

    def test_no_change_no_callback(self, tracker, changes):
        assert tracker.handle_output("shell-1", "plain text\n") is None
        assert changes == []

    def test_rolling_buffer(self, clock):
        """Tests that trimming the buffer keeps the analyzed tail aligned."""
        config = PanewatchConfig()
        config.tracker.buffer_size = 20
        tracker = StatusTracker(config=config, clock=clock)
        tracker.register_session("s")

        tracker.handle_output("s", "x" * 30)
        assert len(tracker._trackers["s"].buffer) == 20

        status = tracker.handle_output("s", "npm ERR! oops\n")
        assert status.activity_state == ActivityState.ERROR
        assert status.error_message == "npm ERR! oops"

    def test_returned_status_is_a_copy(self, tracker):
        tracker.handle_output("agent-1", "Created src/app.py\n")
        status = tracker.get_status("agent-1")
        status.recent_file_changes.clear()
        status.activity_state = ActivityState.ERROR
        fresh = tracker.get_status("agent-1")
        assert len(fresh.recent_file_changes) == 1
        assert fresh.activity_state != ActivityState.ERROR


class TestHookState:
    """Tests for authoritative hook states."""

    def test_hook_state_applied(self, tracker, clock):
        status = tracker.handle_hook_state("agent-1", ActivityState.WAITING_FOR_INPUT)
        assert status.activity_state == ActivityState.WAITING_FOR_INPUT
        assert status.state_source == StateSource.HOOK
        assert status.hook_available is True
        assert tracker.is_hook_active("agent-1")

    def test_hook_state_accepts_string(self, tracker):
        status = tracker.handle_hook_state("agent-1", "working")
        assert status.activity_state == ActivityState.WORKING

    def test_fresh_hook_shadows_patterns(self, tracker, clock):
        """Tests that pattern results do not override a recent hook state."""
        tracker.handle_hook_state("agent-1", ActivityState.WAITING_FOR_INPUT)
        clock.advance(0.5)
        tracker.handle_output("agent-1", "Thinking about it\n")
        assert tracker.get_status("agent-1").activity_state == ActivityState.WAITING_FOR_INPUT

    def test_stale_hook_lets_patterns_through(self, tracker, clock):
        tracker.handle_hook_state("agent-1", ActivityState.WAITING_FOR_INPUT)
        clock.advance(2.0)
        status = tracker.handle_output("agent-1", "Thinking about it\n")
        assert status.activity_state == ActivityState.WORKING
        assert status.state_source == StateSource.PATTERN

    def test_non_error_hook_clears_error(self, tracker):
        tracker.handle_output("agent-1", "Error: boom\n")
        status = tracker.handle_hook_state("agent-1", ActivityState.IDLE)
        assert status.error_message is None
        assert tracker._trackers["agent-1"].analyzer.get_error_message() is None

    def test_same_state_is_not_a_change(self, tracker, changes):
        tracker.handle_hook_state("agent-1", ActivityState.WORKING)
        assert tracker.handle_hook_state("agent-1", ActivityState.WORKING) is None
        assert len(changes) == 1

    def test_set_hook_active(self, tracker):
        tracker.set_hook_active("shell-1", True)
        assert tracker.is_hook_active("shell-1")
        assert tracker.get_status("shell-1").hook_available is True


class TestSetActivityState:
    """Tests for manual state overrides."""

    def test_override(self, tracker, clock):
        clock.advance(5)
        status = tracker.set_activity_state("shell-1", ActivityState.WORKING, StateSource.HOOK)
        assert status.activity_state == ActivityState.WORKING
        assert status.state_source == StateSource.HOOK
        assert status.last_activity_timestamp == 1005000

    def test_error_state_keeps_message(self, tracker):
        tracker.handle_output("shell-1", "fatal: not a git repository\n")
        status = tracker.set_activity_state("shell-1", ActivityState.ERROR)
        assert status.error_message == "fatal: not a git repository"

    def test_non_error_clears_message(self, tracker):
        tracker.handle_output("shell-1", "fatal: not a git repository\n")
        status = tracker.set_activity_state("shell-1", ActivityState.IDLE)
        assert status.error_message is None


class TestInactivity:
    """Tests pour check_inactivity()."""

    def test_working_session_times_out(self, tracker, clock, changes):
        tracker.handle_output("shell-1", "Installing packages...\n")
        clock.advance(3.5)
        timed_out = tracker.check_inactivity()
        assert [s.session_id for s in timed_out] == ["shell-1"]
        assert timed_out[0].activity_state == ActivityState.IDLE
        assert timed_out[0].state_source == StateSource.TIMEOUT
        assert changes[-1] == timed_out[0]

    def test_not_yet_timed_out(self, tracker, clock):
        tracker.handle_output("shell-1", "Installing packages...\n")
        clock.advance(2.0)
        assert tracker.check_inactivity() == []
        assert tracker.get_status("shell-1").activity_state == ActivityState.WORKING

    def test_shorter_timeout_with_hooks(self, tracker, clock):
        tracker.set_hook_active("shell-1", True)
        tracker.handle_output("shell-1", "Installing packages...\n")
        assert tracker.check_inactivity(now=clock.now + 1.6)[0].session_id == "shell-1"

    def test_only_working_sessions(self, tracker, clock):
        tracker.handle_output("shell-1", "Permission denied\n")
        clock.advance(60)
        assert tracker.check_inactivity() == []


class TestConcurrency:
    """Tests that the tracker can be fed from several threads."""

    def test_parallel_output(self, clock):
        tracker = StatusTracker(clock=clock)
        session_ids = [f"s{index}" for index in range(8)]
        for session_id in session_ids:
            tracker.register_session(session_id, agent_id="claude-code")

        def feed(session_id):
            for index in range(50):
                tracker.handle_output(session_id, f"Created file{index}.py\n")

        threads = [threading.Thread(target=feed, args=(sid,)) for sid in session_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for status in tracker.get_all_statuses():
            assert len(status.recent_file_changes) == 20
            assert status.recent_file_changes[-1].path == "file49.py"

    def test_callback_may_call_back_into_tracker(self, clock):
        """Tests that callbacks run outside the lock."""
        seen = []

        def on_change(status):
            seen.append(tracker.get_status(status.session_id))

        tracker = StatusTracker(clock=clock, on_status_change=on_change)
        tracker.register_session("s")
        tracker.handle_output("s", "Installing packages...\n")
        assert seen[0].activity_state == ActivityState.WORKING

"""Unit tests for MessageFailureTracker."""

from courier.runtime.retry_tracker import MessageFailureTracker


class TestMessageFailureTracker:
    def test_first_failure_returns_1(self):
        tracker = MessageFailureTracker(max_failures=3)
        failures, exceeded = tracker.record_failure("msg1")
        assert failures == 1
        assert exceeded is False

    def test_reaches_max_failures(self):
        tracker = MessageFailureTracker(max_failures=2)
        tracker.record_failure("msg1")
        failures, exceeded = tracker.record_failure("msg1")
        assert failures == 2
        assert exceeded is True

    def test_dropped_message_is_forgotten(self):
        """Reaching the limit clears the entry so the tracker stays bounded."""
        tracker = MessageFailureTracker(max_failures=1)
        tracker.record_failure("msg1")
        assert len(tracker) == 0
        assert tracker.failures("msg1") == 0

    def test_per_call_limit_overrides_default(self):
        tracker = MessageFailureTracker(max_failures=5)
        _, exceeded = tracker.record_failure("msg1", max_failures=1)
        assert exceeded is True

    def test_mark_success_clears_failures(self):
        tracker = MessageFailureTracker(max_failures=3)
        tracker.record_failure("msg1")
        tracker.record_failure("msg1")
        tracker.mark_success("msg1")
        assert tracker.failures("msg1") == 0
        failures, _ = tracker.record_failure("msg1")
        assert failures == 1

    def test_messages_tracked_separately(self):
        tracker = MessageFailureTracker(max_failures=2)
        tracker.record_failure("msg1")
        tracker.record_failure("msg2")

        assert tracker.failures("msg1") == 1
        assert tracker.failures("msg2") == 1
        assert len(tracker) == 2

    def test_max_failures_property(self):
        assert MessageFailureTracker(max_failures=5).max_failures == 5

"""Tests for CorrelationTracker."""

import pytest

from courier.core.errors import CorrelationExpired, DuplicateCorrelationToken
from courier.runtime.correlation import CorrelationTracker
from tests.conftest import make_message


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock) -> CorrelationTracker:
    return CorrelationTracker(clock=clock)


class TestRegister:
    def test_register_tracks_token(self, tracker):
        tracker.register("tok", ttl=5)

        assert "tok" in tracker
        assert len(tracker) == 1

    def test_duplicate_outstanding_token(self, tracker):
        tracker.register("tok", ttl=5)

        with pytest.raises(DuplicateCorrelationToken):
            tracker.register("tok", ttl=5)

    def test_token_reusable_after_resolve(self, tracker):
        tracker.register("tok", ttl=5)
        tracker.resolve("tok", make_message())

        tracker.register("tok", ttl=5)


class TestResolve:
    async def test_resolve_completes_handle(self, tracker):
        handle = tracker.register("tok", ttl=5)
        response = make_message(body="answer")

        assert tracker.resolve("tok", response) is True

        assert handle.done is True
        assert await handle.wait() is response
        assert "tok" not in tracker

    def test_resolve_unknown_token(self, tracker):
        assert tracker.resolve("missing", make_message()) is False

    def test_second_response_not_matched(self, tracker):
        tracker.register("tok", ttl=5)
        tracker.resolve("tok", make_message())

        assert tracker.resolve("tok", make_message()) is False


class TestExpiry:
    async def test_sweep_expires_past_ttl(self, tracker, clock):
        handle = tracker.register("tok", ttl=5)
        tracker.register("later", ttl=60)
        clock.now += 10

        expired = tracker.expire_sweep()

        assert expired == ["tok"]
        assert "later" in tracker
        with pytest.raises(CorrelationExpired):
            await handle.wait()

    def test_response_after_expiry_not_matched(self, tracker, clock):
        tracker.register("tok", ttl=5)
        clock.now += 10
        tracker.expire_sweep()

        assert tracker.resolve("tok", make_message()) is False

    def test_sweep_with_explicit_now(self, tracker):
        tracker.register("tok", ttl=5)

        assert tracker.expire_sweep(now=104.0) == []
        assert tracker.expire_sweep(now=105.0) == ["tok"]

    async def test_cancel_expires_handle(self, tracker):
        handle = tracker.register("tok", ttl=5)

        assert tracker.cancel("tok") is True
        assert tracker.cancel("tok") is False
        with pytest.raises(CorrelationExpired):
            await handle.wait()

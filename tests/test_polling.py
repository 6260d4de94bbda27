"""Unit tests for poll_immediate()."""

import pytest

from elasticache_reconciler.aws.exceptions import PollTimeoutError
from elasticache_reconciler.polling import poll_immediate


class FakeClock:
    """Clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestPollImmediate:
    """Test bounded polling."""

    def test_returns_immediately_without_sleeping(self, clock):
        result = poll_immediate(lambda: ["rg-1"], interval=5, timeout=300, clock=clock, sleep=clock.sleep)

        assert result == ["rg-1"]
        assert clock.sleeps == []

    def test_empty_list_is_a_result(self, clock):
        assert poll_immediate(lambda: [], interval=5, timeout=300, clock=clock, sleep=clock.sleep) == []

    def test_errors_mean_not_ready(self, clock):
        attempts = iter([RuntimeError("InvalidClientTokenId"), RuntimeError("InvalidClientTokenId"), "ok"])

        def condition():
            value = next(attempts)
            if isinstance(value, Exception):
                raise value
            return value

        result = poll_immediate(condition, interval=5, timeout=300, clock=clock, sleep=clock.sleep)

        assert result == "ok"
        assert clock.sleeps == [5, 5]

    def test_none_means_not_ready(self, clock):
        attempts = iter([None, None, None, 42])

        result = poll_immediate(lambda: next(attempts), interval=5, timeout=300, clock=clock, sleep=clock.sleep)

        assert result == 42
        assert clock.now == 15

    def test_gives_up_after_deadline(self, clock):
        def condition():
            raise RuntimeError("still propagating")

        with pytest.raises(PollTimeoutError) as exc_info:
            poll_immediate(
                condition, interval=5, timeout=300, operation="describe_replication_groups",
                clock=clock, sleep=clock.sleep,
            )

        # one immediate attempt, then one per interval up to and including the deadline
        assert len(clock.sleeps) == 60
        assert clock.now == 300
        assert exc_info.value.timeout == 300
        assert "describe_replication_groups" in str(exc_info.value)
        assert isinstance(exc_info.value.original_error, RuntimeError)

    def test_last_sleep_is_clipped_to_deadline(self, clock):
        with pytest.raises(PollTimeoutError):
            poll_immediate(lambda: None, interval=4, timeout=10, clock=clock, sleep=clock.sleep)

        assert clock.sleeps == [4, 4, 2]

    def test_zero_timeout_tries_once(self, clock):
        calls = []

        with pytest.raises(PollTimeoutError):
            poll_immediate(lambda: calls.append(1), interval=5, timeout=0, clock=clock, sleep=clock.sleep)

        assert calls == [1]
        assert clock.sleeps == []

    def test_caller_deadline_cuts_poll_short(self, clock):
        with pytest.raises(PollTimeoutError) as exc_info:
            poll_immediate(lambda: None, interval=5, timeout=300, clock=clock, sleep=clock.sleep, deadline=12)

        assert clock.sleeps == [5, 5, 2]
        assert exc_info.value.timeout == 12

    def test_deadline_later_than_timeout_is_ignored(self, clock):
        with pytest.raises(PollTimeoutError):
            poll_immediate(lambda: None, interval=5, timeout=10, clock=clock, sleep=clock.sleep, deadline=1000)

        assert clock.now == 10

    def test_passed_deadline_tries_once(self, clock):
        clock.now = 50.0
        calls = []

        with pytest.raises(PollTimeoutError):
            poll_immediate(lambda: calls.append(1), interval=5, timeout=300, clock=clock, sleep=clock.sleep, deadline=40)

        assert calls == [1]
        assert clock.sleeps == []

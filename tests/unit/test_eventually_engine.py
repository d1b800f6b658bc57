"""Tests for the synchronous eventual assertion engine."""

import pytest

from efkcheck.eventually import (
    ConditionTimeoutError,
    FatalProbeError,
    RetryPolicy,
    Success,
    TimedOut,
    assert_eventually,
    await_condition,
    contains_any,
    is_true,
)

pytestmark = pytest.mark.unit

ONE_SECOND_POLICY = RetryPolicy(
    initial_delay=0, retry_interval=1, max_retry_interval=1, timeout=5
)


def run(probe, condition, policy, clock, **kwargs):
    return await_condition(
        probe, condition, policy, clock=clock, sleep=clock.sleep, **kwargs
    )


class TestAwaitCondition:
    """Tests for await_condition outcomes and timing."""

    def test_first_check_success(self, clock, probe_factory):
        """Test that a condition true on first check returns without sleeping."""
        probe = probe_factory(True)

        outcome = run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert isinstance(outcome, Success)
        assert outcome.value is True
        assert outcome.attempts == 1
        assert probe.calls == 1
        assert clock.sleeps == []

    def test_first_check_success_only_sleeps_initial_delay(self, clock, probe_factory):
        """Test that only the initial delay is slept before an immediate match."""
        probe = probe_factory(True)
        policy = RetryPolicy(initial_delay=2, retry_interval=1, timeout=5)

        outcome = run(probe, is_true(), policy, clock)

        assert outcome.succeeded
        assert clock.sleeps == [2]
        assert probe.calls == 1

    def test_success_on_fourth_invocation(self, clock, probe_factory):
        """Test false,false,false,true succeeds after 4 calls and ~3 seconds."""
        probe = probe_factory(False, False, False, True)

        outcome = run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert isinstance(outcome, Success)
        assert outcome.attempts == 4
        assert probe.calls == 4
        assert outcome.elapsed == pytest.approx(3.0)
        assert clock.sleeps == [1, 1, 1]

    def test_always_false_times_out(self, clock, probe_factory):
        """Test that a never-true condition times out between 5 and 6 seconds."""
        probe = probe_factory(False)

        outcome = run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert isinstance(outcome, TimedOut)
        assert 5 <= outcome.elapsed < 6
        assert outcome.last_value is False
        assert outcome.attempts == probe.calls == 6

    @pytest.mark.parametrize("k", [1, 2, 5])
    def test_transition_at_iteration_k(self, clock, probe_factory, k):
        """Test that a false->true transition after k misses takes exactly k+1 calls."""
        probe = probe_factory(*([False] * k + [True]))
        policy = RetryPolicy(retry_interval=1, timeout=100)

        outcome = run(probe, is_true(), policy, clock)

        assert outcome.succeeded
        assert probe.calls == k + 1
        assert outcome.attempts == k + 1

    def test_max_retry_interval_bounds_spacing(self, clock, probe_factory):
        """Test that the sleep never exceeds max_retry_interval."""
        probe = probe_factory(False)
        policy = RetryPolicy(retry_interval=30, max_retry_interval=2, timeout=10)

        outcome = run(probe, is_true(), policy, clock)

        assert isinstance(outcome, TimedOut)
        assert clock.sleeps and all(s <= 2 for s in clock.sleeps)
        spacing = [b - a for a, b in zip(probe.call_times, probe.call_times[1:])]
        assert max(spacing) <= 2
        assert probe.calls == 6

    def test_timeout_shorter_than_retry_interval(self, clock, probe_factory):
        """Test that the probe runs at least once and the deadline is honoured."""
        probe = probe_factory(False)
        policy = RetryPolicy(retry_interval=10, timeout=3)

        outcome = run(probe, is_true(), policy, clock)

        assert isinstance(outcome, TimedOut)
        assert probe.calls >= 1
        assert outcome.elapsed <= 3
        assert clock.sleeps == [3]

    def test_transient_error_does_not_stop_loop(self, clock, probe_factory):
        """Test that a probe error is treated as a non-matching observation."""
        probe = probe_factory(ConnectionError("connection refused"), True)

        outcome = run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert outcome.succeeded
        assert outcome.attempts == 2
        assert clock.sleeps == [1]

    def test_transient_error_is_last_observation(self, clock, probe_factory):
        """Test that the last transient error is reported on timeout."""
        error = ConnectionError("connection refused")
        probe = probe_factory(error)

        outcome = run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert isinstance(outcome, TimedOut)
        assert outcome.last_value is error

    def test_empty_container_is_a_value_not_an_error(self, clock, probe_factory):
        """Test that an empty result is passed to the condition, not treated as error."""
        probe = probe_factory([], ["Started DefaultCacheServer"])
        seen = []

        def condition(value):
            seen.append(value)
            return bool(value)

        outcome = run(probe, condition, ONE_SECOND_POLICY, clock)

        assert outcome.value == ["Started DefaultCacheServer"]
        assert seen == [[], ["Started DefaultCacheServer"]]

    def test_fatal_error_propagates(self, clock, probe_factory):
        """Test that FatalProbeError aborts polling immediately."""
        probe = probe_factory(FatalProbeError("chart install failed"), True)

        with pytest.raises(FatalProbeError, match="chart install failed"):
            run(probe, is_true(), ONE_SECOND_POLICY, clock)

        assert probe.calls == 1
        assert clock.sleeps == []

    def test_extra_fatal_types(self, clock, probe_factory):
        """Test that caller-supplied fatal types propagate."""
        probe = probe_factory(FileNotFoundError("kubectl"), True)

        with pytest.raises(FileNotFoundError):
            run(probe, is_true(), ONE_SECOND_POLICY, clock, fatal=(FileNotFoundError,))

        assert probe.calls == 1

    def test_keyword_or_condition_matches(self, clock, probe_factory):
        """Test OR semantics over keywords against observed log lines."""
        probe = probe_factory({"... Role=OracleCoherenceK8sCoherenceClusterProbe ..."})
        condition = contains_any(
            "Role=myrole", "Role=OracleCoherenceK8sCoherenceClusterProbe"
        )

        outcome = run(probe, condition, ONE_SECOND_POLICY, clock)

        assert outcome.succeeded
        assert outcome.attempts == 1

    def test_real_clock_times_out(self):
        """Test the default clock and sleep with a tiny policy."""
        policy = RetryPolicy(retry_interval=0.01, timeout=0.05)

        outcome = await_condition(lambda: False, is_true(), policy)

        assert isinstance(outcome, TimedOut)
        assert outcome.elapsed >= 0.05
        assert outcome.attempts >= 2


class TestInitialDelayBudget:
    """Tests for whether the initial delay counts toward the timeout."""

    def test_initial_delay_outside_timeout_by_default(self, clock, probe_factory):
        """Test that the timeout clock starts after the initial delay."""
        probe = probe_factory(False)
        policy = RetryPolicy(initial_delay=10, retry_interval=1, timeout=5)

        outcome = run(probe, is_true(), policy, clock)

        assert isinstance(outcome, TimedOut)
        assert outcome.elapsed == pytest.approx(5)
        assert clock.now == pytest.approx(115)
        assert clock.sleeps[0] == 10

    def test_initial_delay_inside_timeout(self, clock, probe_factory):
        """Test that the initial delay consumes budget when configured."""
        probe = probe_factory(False)
        policy = RetryPolicy(
            initial_delay=3,
            retry_interval=1,
            timeout=5,
            initial_delay_counts_toward_timeout=True,
        )

        outcome = run(probe, is_true(), policy, clock)

        assert isinstance(outcome, TimedOut)
        assert outcome.attempts == 3
        assert outcome.elapsed == pytest.approx(5)
        assert clock.now == pytest.approx(105)

    def test_initial_delay_exceeding_timeout_still_probes_once(
        self, clock, probe_factory
    ):
        """Test that at least one attempt happens even if the delay used the budget."""
        probe = probe_factory(False)
        policy = RetryPolicy(
            initial_delay=10,
            retry_interval=1,
            timeout=5,
            initial_delay_counts_toward_timeout=True,
        )

        outcome = run(probe, is_true(), policy, clock)

        assert isinstance(outcome, TimedOut)
        assert probe.calls == 1
        assert outcome.elapsed == pytest.approx(10)


class TestAssertEventually:
    """Tests for assert_eventually failure reporting."""

    def test_returns_matching_value(self, clock, probe_factory):
        """Test that the matching probe value is returned."""
        probe = probe_factory(["starting"], ["starting", "Role=myrole"])

        value = assert_eventually(
            probe,
            contains_any("Role=myrole"),
            ONE_SECOND_POLICY,
            clock=clock,
            sleep=clock.sleep,
        )

        assert value == ["starting", "Role=myrole"]

    def test_timeout_raises_assertion_error_with_context(self, clock, probe_factory):
        """Test that the failure message names the timeout and last value."""
        probe = probe_factory(["starting"])

        with pytest.raises(ConditionTimeoutError) as exc_info:
            assert_eventually(
                probe,
                contains_any("Role=myrole"),
                ONE_SECOND_POLICY,
                description="No log record for release efk-coh",
                clock=clock,
                sleep=clock.sleep,
            )

        error = exc_info.value
        assert isinstance(error, AssertionError)
        message = str(error)
        assert message.startswith("No log record for release efk-coh")
        assert "within 5s" in message
        assert "contains any of ['Role=myrole']" in message
        assert "['starting']" in message
        assert isinstance(error.outcome, TimedOut)
        assert error.outcome.attempts == 6

    def test_timeout_message_renders_exception(self, clock, probe_factory):
        """Test that a transient error is rendered by type and message."""
        probe = probe_factory(ConnectionError("connection refused"))

        with pytest.raises(ConditionTimeoutError, match="ConnectionError: connection refused"):
            assert_eventually(
                probe, is_true(), ONE_SECOND_POLICY, clock=clock, sleep=clock.sleep
            )

    def test_timeout_message_truncates_large_values(self, clock, probe_factory):
        """Test that huge observations are truncated in the message."""
        probe = probe_factory("x" * 5000)

        with pytest.raises(ConditionTimeoutError) as exc_info:
            assert_eventually(
                probe, is_true(), ONE_SECOND_POLICY, clock=clock, sleep=clock.sleep
            )

        assert str(exc_info.value).endswith("...")
        assert len(str(exc_info.value)) < 1000

    def test_plain_function_condition_described_by_name(self, clock, probe_factory):
        """Test that plain functions are described by their name."""

        def has_cloud_index(lines):
            return any("cloud" in line for line in lines)

        with pytest.raises(ConditionTimeoutError, match="has_cloud_index"):
            assert_eventually(
                probe_factory([]),
                has_cloud_index,
                ONE_SECOND_POLICY,
                clock=clock,
                sleep=clock.sleep,
            )

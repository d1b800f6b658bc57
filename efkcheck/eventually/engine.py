"""
EventualAssertion engine.

Polls a probe (a zero-argument read against an eventually consistent system)
until a condition holds or the retry policy's timeout elapses:

- ``await_condition`` / ``await_condition_async`` return an outcome value
  (``Success`` or ``TimedOut``) and never raise on timeout.
- ``assert_eventually`` / ``assert_eventually_async`` turn a ``TimedOut``
  into a ``ConditionTimeoutError`` carrying the timeout and last observation.

Probe exceptions are treated as non-matching observations unless they are
``FatalProbeError`` subclasses or one of the extra ``fatal`` types.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Iterable, Optional, Tuple, Type

from efkcheck.logging_config import configure_module_logging
from .conditions import describe
from .exceptions import ConditionTimeoutError, FatalProbeError
from .models import AssertionOutcome, RetryPolicy, Success, TimedOut

logger = configure_module_logging("eventually")

DEFAULT_POLICY = RetryPolicy()

# Longest rendering of a last observation in a timeout message
MAX_OBSERVATION_CHARS = 500


def _fatal_types(fatal: Iterable[Type[BaseException]]) -> Tuple[type, ...]:
    return (FatalProbeError,) + tuple(fatal)


def _remaining(policy: RetryPolicy, start: float, clock: Callable[[], float]):
    elapsed = clock() - start
    return elapsed, policy.timeout - elapsed


def await_condition(
    probe: Callable[[], Any],
    condition: Callable[[Any], bool],
    policy: Optional[RetryPolicy] = None,
    fatal: Iterable[Type[BaseException]] = (),
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> AssertionOutcome:
    """
    Poll ``probe`` until ``condition(result)`` holds or the policy times out.

    Args:
        probe: Zero-argument callable producing the observed value
        condition: Predicate over the observed value
        policy: Retry policy (default: ``RetryPolicy()``)
        fatal: Extra exception types that abort polling immediately
        clock: Monotonic clock in seconds
        sleep: Blocking sleep function

    Returns:
        Success(value, elapsed, attempts) or TimedOut(last, elapsed, attempts)

    Raises:
        FatalProbeError: Or any ``fatal`` type raised by the probe
    """
    policy = policy or DEFAULT_POLICY
    fatal_types = _fatal_types(fatal)

    start = clock()
    if policy.initial_delay > 0:
        sleep(policy.initial_delay)
    if not policy.initial_delay_counts_toward_timeout:
        start = clock()

    attempts = 0
    last = None
    while True:
        attempts += 1
        try:
            value = probe()
        except fatal_types:
            raise
        except Exception as e:
            logger.debug(f"Attempt {attempts}: probe raised {e!r}")
            last = e
        else:
            if condition(value):
                elapsed = clock() - start
                logger.debug(f"Attempt {attempts}: condition met after {elapsed:.1f}s")
                return Success(value, elapsed, attempts)
            logger.debug(f"Attempt {attempts}: condition not met")
            last = value

        elapsed, remaining = _remaining(policy, start, clock)
        if remaining <= 0:
            logger.warning(
                f"Condition {describe(condition)} not met within "
                f"{policy.timeout:g}s ({attempts} attempts)"
            )
            return TimedOut(last, elapsed, attempts)

        sleep(min(policy.sleep_interval, remaining))


async def await_condition_async(
    probe: Callable[[], Any],
    condition: Callable[[Any], bool],
    policy: Optional[RetryPolicy] = None,
    fatal: Iterable[Type[BaseException]] = (),
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Any] = asyncio.sleep,
) -> AssertionOutcome:
    """
    Coroutine version of ``await_condition``.

    The probe may be a plain callable or return an awaitable; ``sleep`` must
    be a coroutine function. Independent calls can be gathered on one loop.
    """
    policy = policy or DEFAULT_POLICY
    fatal_types = _fatal_types(fatal)

    start = clock()
    if policy.initial_delay > 0:
        await sleep(policy.initial_delay)
    if not policy.initial_delay_counts_toward_timeout:
        start = clock()

    attempts = 0
    last = None
    while True:
        attempts += 1
        try:
            value = probe()
            if inspect.isawaitable(value):
                value = await value
        except fatal_types:
            raise
        except Exception as e:
            logger.debug(f"Attempt {attempts}: probe raised {e!r}")
            last = e
        else:
            if condition(value):
                elapsed = clock() - start
                logger.debug(f"Attempt {attempts}: condition met after {elapsed:.1f}s")
                return Success(value, elapsed, attempts)
            logger.debug(f"Attempt {attempts}: condition not met")
            last = value

        elapsed, remaining = _remaining(policy, start, clock)
        if remaining <= 0:
            logger.warning(
                f"Condition {describe(condition)} not met within "
                f"{policy.timeout:g}s ({attempts} attempts)"
            )
            return TimedOut(last, elapsed, attempts)

        await sleep(min(policy.sleep_interval, remaining))


def _render_observation(value: Any) -> str:
    if isinstance(value, BaseException):
        text = f"{type(value).__name__}: {value}"
    else:
        text = repr(value)
    if len(text) > MAX_OBSERVATION_CHARS:
        text = text[:MAX_OBSERVATION_CHARS] + "..."
    return text


def timeout_message(
    outcome: TimedOut,
    condition: Callable[[Any], bool],
    policy: RetryPolicy,
    description: Optional[str] = None,
) -> str:
    """Build the failure message for a timed out assertion."""
    return (
        f"{description or 'Eventual assertion failed'}: expected value "
        f"{describe(condition)} within {policy.timeout:g}s "
        f"({outcome.attempts} attempts, {outcome.elapsed:.1f}s elapsed); "
        f"last observed: {_render_observation(outcome.last_value)}"
    )


def _raise_on_timeout(outcome, condition, policy, description):
    if isinstance(outcome, TimedOut):
        raise ConditionTimeoutError(
            timeout_message(outcome, condition, policy, description), outcome
        )
    return outcome.value


def assert_eventually(
    probe: Callable[[], Any],
    condition: Callable[[Any], bool],
    policy: Optional[RetryPolicy] = None,
    description: Optional[str] = None,
    **kwargs,
) -> Any:
    """
    Assert that ``condition(probe())`` eventually holds.

    Accepts the same keyword arguments as ``await_condition``.

    Returns:
        The probe value that satisfied the condition

    Raises:
        ConditionTimeoutError: If the policy timeout elapsed first
    """
    policy = policy or DEFAULT_POLICY
    outcome = await_condition(probe, condition, policy, **kwargs)
    return _raise_on_timeout(outcome, condition, policy, description)


async def assert_eventually_async(
    probe: Callable[[], Any],
    condition: Callable[[Any], bool],
    policy: Optional[RetryPolicy] = None,
    description: Optional[str] = None,
    **kwargs,
) -> Any:
    """Coroutine version of ``assert_eventually``."""
    policy = policy or DEFAULT_POLICY
    outcome = await await_condition_async(probe, condition, policy, **kwargs)
    return _raise_on_timeout(outcome, condition, policy, description)

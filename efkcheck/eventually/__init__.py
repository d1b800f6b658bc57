"""Eventual assertions: poll a probe until a condition holds or time runs out."""

from .conditions import (
    Condition,
    all_of,
    any_of,
    contains_all,
    contains_any,
    describe,
    equal_to,
    has_size,
    is_true,
    not_none,
)
from .engine import (
    assert_eventually,
    assert_eventually_async,
    await_condition,
    await_condition_async,
    timeout_message,
)
from .exceptions import ConditionTimeoutError, EventuallyError, FatalProbeError
from .models import AssertionOutcome, RetryPolicy, Success, TimedOut

__all__ = [
    "AssertionOutcome",
    "Condition",
    "ConditionTimeoutError",
    "EventuallyError",
    "FatalProbeError",
    "RetryPolicy",
    "Success",
    "TimedOut",
    "all_of",
    "any_of",
    "assert_eventually",
    "assert_eventually_async",
    "await_condition",
    "await_condition_async",
    "contains_all",
    "contains_any",
    "describe",
    "equal_to",
    "has_size",
    "is_true",
    "not_none",
    "timeout_message",
]

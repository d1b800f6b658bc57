from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Timing parameters for a polling loop (all durations in seconds)"""

    initial_delay: float = Field(default=0.0, ge=0)
    retry_interval: float = Field(default=1.0, gt=0)
    max_retry_interval: Optional[float] = Field(default=None, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    initial_delay_counts_toward_timeout: bool = False

    @model_validator(mode="after")
    def default_ceiling(self):
        if self.max_retry_interval is None:
            self.max_retry_interval = self.retry_interval
        return self

    @property
    def sleep_interval(self) -> float:
        """Interval slept between attempts, capped by max_retry_interval"""
        return min(self.retry_interval, self.max_retry_interval)


@dataclass(frozen=True)
class Success(Generic[T]):
    """Terminal outcome: the condition held for ``value``.

    Attributes:
        value: Probe result that satisfied the condition.
        elapsed: Seconds since the timeout clock started.
        attempts: Number of probe invocations.
    """

    value: T
    elapsed: float
    attempts: int

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class TimedOut:
    """Terminal outcome: the deadline passed without the condition holding.

    Attributes:
        last_value: Last probe result, or the last transient exception the
            probe raised.
        elapsed: Seconds since the timeout clock started.
        attempts: Number of probe invocations.
    """

    last_value: Any
    elapsed: float
    attempts: int

    @property
    def succeeded(self) -> bool:
        return False


AssertionOutcome = Union[Success, TimedOut]

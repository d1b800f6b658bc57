"""
Eventual assertion exceptions

Separates probe failures that must abort a polling loop from the timeout
raised by the assertion helpers.
"""


class EventuallyError(Exception):
    """Base exception for eventual assertions"""

    pass


class FatalProbeError(EventuallyError):
    """Probe failure that must not be retried"""

    pass


class ConditionTimeoutError(EventuallyError, AssertionError):
    """Condition was not satisfied before the policy timeout"""

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome

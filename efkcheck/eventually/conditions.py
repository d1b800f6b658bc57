"""Composable conditions for eventual assertions.

A condition is any ``value -> bool`` callable. The helpers here wrap a
predicate with a description so that timeout messages can say what was
being waited for, e.g. ``contains any of ['Role=myrole', 'Role=ProbeX']``.
"""

from typing import Any, Callable, Iterable, Sized


class Condition:
    """Predicate with a human-readable description."""

    def __init__(self, predicate: Callable[[Any], bool], description: str):
        self.predicate = predicate
        self.description = description

    def __call__(self, value: Any) -> bool:
        return bool(self.predicate(value))

    def __repr__(self) -> str:
        return self.description


def describe(condition: Callable[[Any], bool]) -> str:
    """Best-effort description of any condition callable."""
    description = getattr(condition, "description", None)
    if description:
        return description
    return getattr(condition, "__name__", repr(condition))


def _as_lines(value: Any) -> Iterable[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def is_true() -> Condition:
    return Condition(lambda value: value is True, "is true")


def equal_to(expected: Any) -> Condition:
    return Condition(lambda value: value == expected, f"equal to {expected!r}")


def not_none() -> Condition:
    return Condition(lambda value: value is not None, "not none")


def has_size(expected: int) -> Condition:
    def _check(value: Sized) -> bool:
        return value is not None and len(value) == expected

    return Condition(_check, f"has size {expected}")


def contains_any(*keywords: str) -> Condition:
    """True if any keyword appears in the text (or any line of it)."""
    if not keywords:
        raise ValueError("contains_any requires at least one keyword")

    def _check(value: Any) -> bool:
        return any(k in line for line in _as_lines(value) for k in keywords)

    return Condition(_check, f"contains any of {list(keywords)!r}")


def contains_all(*keywords: str) -> Condition:
    """True if every keyword appears somewhere in the text.

    Keywords may be satisfied by different lines.
    """
    if not keywords:
        raise ValueError("contains_all requires at least one keyword")

    def _check(value: Any) -> bool:
        lines = list(_as_lines(value))
        return all(any(k in line for line in lines) for k in keywords)

    return Condition(_check, f"contains all of {list(keywords)!r}")


def all_of(*conditions: Callable[[Any], bool]) -> Condition:
    return Condition(
        lambda value: all(c(value) for c in conditions),
        "(" + " and ".join(describe(c) for c in conditions) + ")",
    )


def any_of(*conditions: Callable[[Any], bool]) -> Condition:
    return Condition(
        lambda value: any(c(value) for c in conditions),
        "(" + " or ".join(describe(c) for c in conditions) + ")",
    )

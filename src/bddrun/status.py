"""Outcome codes shared by every execution level and the rule for aggregating them."""

from enum import IntEnum
from typing import Iterable

__all__ = ["Outcome", "aggregate", "exit_code"]


class Outcome(IntEnum):
    """Outcome of a step, scenario, feature or suite, ordered by ascending severity."""

    PASSED = 0
    """Everything executed and succeeded."""

    SKIPPED = 1
    """Not executed because an earlier step failed or was not runnable."""

    PENDING = 2
    """The step implementation signalled that it is not implemented yet."""

    UNDEFINED = 3
    """No step definition matches the step text."""

    FAILED = 4
    """The step implementation (or a hook) raised an error."""

    def __str__(self):
        return self.name.lower()

    @property
    def poisons_scenario(self) -> bool:
        """True if every later step of the same scenario must be skipped."""
        return self >= Outcome.PENDING


def aggregate(outcomes: Iterable[Outcome]) -> Outcome:
    """Aggregates child outcomes into the parent outcome.

    The parent takes the most severe child outcome. A parent without children passed.

    Args:
        outcomes (Iterable[Outcome]): Outcomes of the children, in any order.

    Returns:
        Outcome: The maximum-severity outcome, or PASSED for no children.

    Examples:
        >>> aggregate([Outcome.PASSED, Outcome.SKIPPED, Outcome.FAILED])
        <Outcome.FAILED: 4>
        >>> aggregate([])
        <Outcome.PASSED: 0>
    """
    return max(outcomes, default=Outcome.PASSED)


_EXIT_CODES = {
    Outcome.PASSED: 0,
    Outcome.SKIPPED: 0,
    Outcome.PENDING: 2,
    Outcome.UNDEFINED: 3,
    Outcome.FAILED: 4,
}


def exit_code(outcome: Outcome) -> int:
    """Maps the final suite outcome to the process exit code.

    Args:
        outcome (Outcome): The aggregated suite outcome.

    Returns:
        int: 0 for passed (or skipped-only) suites, 2 pending, 3 undefined, 4 failed.
    """
    return _EXIT_CODES[outcome]

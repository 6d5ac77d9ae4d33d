"""Contract between the step tester and the step definition matcher."""

from typing import Any, Optional, Protocol

from .model import Step

__all__ = ["Definition", "Matcher", "make_snippet"]


class Definition(Protocol):
    """An executable step definition resolved for one step."""

    location: str

    def invoke(self, context: Any, step: Step) -> None:
        """Runs the definition.

        Returning normally means the step passed. Raising ``StepPending`` or
        ``NotImplementedError`` means it is pending. Any other exception fails the step.
        """


class Matcher(Protocol):
    def match(self, step: Step) -> Optional[Definition]:
        """Resolves the step to a definition.

        Returns:
            Optional[Definition]: The definition, or None if no definition matches.

        Raises:
            AmbiguousStepError: If more than one definition matches.
        """


def make_snippet(step: Step) -> str:
    """Synthesizes a step implementation skeleton for an undefined step.

    Args:
        step (Step): The undefined step.

    Returns:
        str: Python source the user can paste into a step module.
    """
    text = step.text.replace("\\", "\\\\").replace('"', '\\"')
    keyword = step.keyword.strip() or step.step_type.title()
    return (
        f'@{step.step_type}(u"{text}")\n'
        "def step_impl(context):\n"
        f'    raise NotImplementedError(u"STEP: {keyword} {text}")\n'
    )

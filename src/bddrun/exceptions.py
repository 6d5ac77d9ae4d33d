from typing import Any, Optional, Sequence


class BddRunError(Exception):
    """Base exception for all test execution infrastructure errors."""


class HookRegistrationError(BddRunError):
    """Raised when a hook registration is invalid for its event kind."""


class TagFilterError(HookRegistrationError):
    """Raised when a tag filter expression cannot be parsed."""


class DispatchError(BddRunError):
    """Raised when the event dispatcher is used outside of its contract."""

    partial_result: Optional[Any] = None
    """Result of the step, scenario or feature that was running when the error stopped it."""


class ReentrantPublishError(DispatchError):
    """Raised when a listener publishes an event of the kind it is handling."""


class SubscriptionClosedError(DispatchError):
    """Raised when a listener subscribes after the suite run has started."""


class ListenerError(DispatchError):
    """Raised when an event listener fails and the run is configured to abort."""

    def __init__(self, event_kind, listener, error: BaseException):
        self.event_kind = event_kind
        self.listener = listener
        self.error = error
        super().__init__(f"Listener {listener!r} failed while handling {event_kind}: {error!r}")


class AmbiguousStepError(BddRunError):
    """Raised by a matcher when more than one step definition matches a step."""

    def __init__(self, step_text: str, candidates: Sequence[str]):
        self.step_text = step_text
        self.candidates = tuple(candidates)
        listed = ", ".join(self.candidates)
        super().__init__(f"Ambiguous step definition for {step_text!r}, candidates: {listed}")


class ContextReleasedError(BddRunError):
    """Raised when an execution context is used after its scenario finished."""


class StepPending(Exception):
    """Raised by a step implementation to signal that it is not implemented yet."""

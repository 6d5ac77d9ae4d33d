"""Lifecycle events and the synchronous publish/subscribe dispatcher.

The dispatcher is a pure routing mechanism: it knows nothing about hooks, tags or
outcomes. Statistics collectors, formatters and hook shims subscribe to it as
independent listeners.

Constraint: a listener must not publish an event of the kind it is currently
handling. The dispatcher rejects such a publication with a ReentrantPublishError.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .context import ExecutionContext
from .exceptions import ReentrantPublishError, SubscriptionClosedError
from .model import Feature, RunnableScenario, Step
from .status import Outcome
from .types import Listener

__all__ = [
    "EventKind",
    "Event",
    "SuiteEvent",
    "FeatureEvent",
    "ScenarioEvent",
    "StepEvent",
    "EventDispatcher",
]


class EventKind(Enum):
    BEFORE_SUITE = "before_suite"
    AFTER_SUITE = "after_suite"
    BEFORE_FEATURE = "before_feature"
    AFTER_FEATURE = "after_feature"
    BEFORE_SCENARIO = "before_scenario"
    AFTER_SCENARIO = "after_scenario"
    BEFORE_STEP = "before_step"
    AFTER_STEP = "after_step"

    def __str__(self):
        return self.value

    @property
    def is_before(self) -> bool:
        return self.value.startswith("before_")

    @property
    def level(self) -> str:
        """The execution level the event belongs to ('suite', 'feature', 'scenario' or 'step')."""
        return self.value.split("_", 1)[1]


@dataclass(frozen=True)
class Event:
    kind: EventKind


@dataclass(frozen=True)
class SuiteEvent(Event):
    features: Tuple[Feature, ...] = ()
    outcome: Optional[Outcome] = None
    result: Optional[object] = None
    is_completed: Optional[bool] = None
    """Set on AFTER_SUITE only. False if the run was interrupted."""


@dataclass(frozen=True)
class FeatureEvent(Event):
    feature: Feature
    outcome: Optional[Outcome] = None
    result: Optional[object] = None


@dataclass(frozen=True)
class ScenarioEvent(Event):
    feature: Feature
    scenario: RunnableScenario
    context: ExecutionContext
    iteration: Optional[int] = None
    """Example row index for outline rows, None for plain scenarios."""

    outcome: Optional[Outcome] = None
    result: Optional[object] = None
    is_skipped: Optional[bool] = None

    @property
    def is_outline_row(self) -> bool:
        return self.iteration is not None


@dataclass(frozen=True)
class StepEvent(Event):
    feature: Feature
    scenario: RunnableScenario
    step: Step
    context: ExecutionContext
    outcome: Optional[Outcome] = None
    exception: Optional[BaseException] = None
    snippet: Optional[str] = None
    definition: Optional[object] = None


ErrorHandler = Callable[[Listener, Event, Exception], None]


class EventDispatcher:
    """
    Process-wide publish/subscribe bus delivering events synchronously in
    registration order.

    Listener exceptions propagate to the publisher, which decides whether they are
    fatal to the run.
    """

    def __init__(self):
        self._listeners: Dict[EventKind, List[Listener]] = {kind: [] for kind in EventKind}
        self._publishing: Set[EventKind] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, kind: EventKind, listener: Listener) -> None:
        """Registers a listener for one event kind.

        Args:
            kind (EventKind): Event kind to listen for.
            listener (Listener): Callable invoked with each published event of that kind.

        Raises:
            SubscriptionClosedError: If the suite run has already started.
        """
        if self._closed:
            raise SubscriptionClosedError(f"Cannot subscribe {listener!r} to {kind}: the run has started.")
        self._listeners[kind].append(listener)

    def subscribe_all(self, listener: Listener) -> None:
        """Registers a listener for every event kind."""
        for kind in EventKind:
            self.subscribe(kind, listener)

    def listeners(self, kind: EventKind) -> Tuple[Listener, ...]:
        return tuple(self._listeners[kind])

    def close(self) -> None:
        """Stops accepting new subscriptions."""
        self._closed = True

    def publish(self, event: Event, on_error: Optional[ErrorHandler] = None) -> None:
        """Delivers the event to every listener registered for its kind, in registration order.

        Args:
            event (Event): The event to deliver. The same value is passed to every listener.
            on_error (Optional[ErrorHandler]): Called as ``on_error(listener, event, error)`` when a
                listener raises, after which delivery continues with the next listener. The handler
                may raise to stop delivery. Without a handler the listener error propagates.

        Raises:
            ReentrantPublishError: If a listener of this kind publishes another event of the same kind.
        """
        kind = event.kind
        if kind in self._publishing:
            raise ReentrantPublishError(f"Re-entrant publication of {kind} from one of its own listeners.")

        self._publishing.add(kind)
        try:
            for listener in self._listeners[kind]:
                if on_error is None:
                    listener(event)
                    continue
                try:
                    listener(event)
                except ReentrantPublishError:
                    raise
                except Exception as e:  # pylint: disable=broad-except
                    on_error(listener, event, e)
        finally:
            self._publishing.discard(kind)

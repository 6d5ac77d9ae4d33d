from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from bddrun.events import Event, EventDispatcher, EventKind
from bddrun.exceptions import AmbiguousStepError, StepPending
from bddrun.model import Background, Feature, Scenario, ScenarioDefinition, Step, make_tags


def get_project_root_dir() -> Path:
    return Path(__file__).parents[1].absolute()


# --- Step implementations ---


def passing_step(context) -> None:  # pylint: disable=unused-argument
    pass


def failing_step(context) -> None:  # pylint: disable=unused-argument
    raise AssertionError("expected failure")


def pending_step(context) -> None:  # pylint: disable=unused-argument
    raise StepPending("not implemented yet")


# --- Matcher ---


class FakeDefinition:
    """A step definition wrapping a plain callable taking the context."""

    def __init__(self, func: Callable, location: str):
        self.func = func
        self.location = location

    def __repr__(self):
        return f"<FakeDefinition {self.location}>"

    def invoke(self, context, step: Step) -> None:  # pylint: disable=unused-argument
        self.func(context)


class FakeMatcher:
    """Matches steps by their exact text and records every match request."""

    def __init__(self, definitions: Optional[Dict[str, Callable]] = None):
        self.definitions: Dict[str, List[FakeDefinition]] = {}
        self.requests: List[str] = []
        for text, func in (definitions or {}).items():
            self.define(text, func)

    def define(self, text: str, func: Callable = passing_step) -> None:
        candidates = self.definitions.setdefault(text, [])
        candidates.append(FakeDefinition(func, f"steps.py:{len(candidates) + 1}"))

    def match(self, step: Step) -> Optional[FakeDefinition]:
        self.requests.append(step.text)
        candidates = self.definitions.get(step.text, [])
        if len(candidates) > 1:
            raise AmbiguousStepError(step.text, [candidate.location for candidate in candidates])
        return candidates[0] if candidates else None


# --- Listener ---


class EventRecorder:
    """A listener keeping every event it receives, in delivery order."""

    def __init__(self):
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def subscribe(self, dispatcher: EventDispatcher) -> "EventRecorder":
        dispatcher.subscribe_all(self)
        return self

    def kinds(self) -> List[EventKind]:
        return [event.kind for event in self.events]

    def of_kind(self, kind: EventKind) -> List[Event]:
        return [event for event in self.events if event.kind is kind]


# --- Syntax node builders ---


def make_step(text: str, keyword: str = "Given") -> Step:
    step_type = keyword.strip().lower()
    if step_type not in ("given", "when", "then"):
        step_type = "step"
    return Step(keyword=keyword, text=text, step_type=step_type)


def make_scenario(name: str, texts: Sequence[str], tags: Iterable[str] = ()) -> Scenario:
    return Scenario(name=name, steps=tuple(make_step(text) for text in texts), tags=make_tags(tags))


def make_feature(
    name: str,
    scenarios: Sequence[ScenarioDefinition],
    tags: Iterable[str] = (),
    background: Sequence[str] = (),
) -> Feature:
    return Feature(
        name=name,
        scenarios=tuple(scenarios),
        tags=make_tags(tags),
        background=Background(tuple(make_step(text) for text in background)) if background else None,
        filename=f"{name.lower().replace(' ', '_')}.feature",
    )

from collections import Counter
from typing import Dict, List, Optional, Tuple

from .events import EventDispatcher, EventKind, FeatureEvent, ScenarioEvent, StepEvent, SuiteEvent
from .status import Outcome

__all__ = ["SummaryReporter"]

LEVELS = ("feature", "scenario", "step")


class SummaryReporter:
    """
    A listener collecting run statistics: outcome counts per level, the failures and
    the snippets of undefined steps.
    """

    def __init__(self):
        self.counts: Dict[str, Counter] = {level: Counter() for level in LEVELS}
        self.failures: List[Tuple[str, str]] = []
        self.snippets: List[str] = []
        self.is_completed: Optional[bool] = None
        self.duration: float = 0.0

    def subscribe(self, dispatcher: EventDispatcher) -> None:
        """Registers the reporter's handlers on the dispatcher."""
        dispatcher.subscribe(EventKind.AFTER_STEP, self.step)
        dispatcher.subscribe(EventKind.AFTER_SCENARIO, self.scenario)
        dispatcher.subscribe(EventKind.AFTER_FEATURE, self.feature)
        dispatcher.subscribe(EventKind.AFTER_SUITE, self.suite)

    def step(self, event: StepEvent):
        """Called after a step was processed.

        Args:
            event (StepEvent): AFTER_STEP event.
        """
        self.counts["step"][event.outcome] += 1

        if event.outcome is Outcome.UNDEFINED and event.snippet and event.snippet not in self.snippets:
            self.snippets.append(event.snippet)

        if event.outcome is Outcome.FAILED:
            location = f"{event.feature.filename}:{event.step.line}"
            self.failures.append((location, f"{event.step}: {event.exception!r}"))

    def scenario(self, event: ScenarioEvent):
        self.counts["scenario"][event.outcome] += 1

    def feature(self, event: FeatureEvent):
        self.counts["feature"][event.outcome] += 1

    def suite(self, event: SuiteEvent):
        """Called after all features are processed."""
        self.is_completed = event.is_completed
        self.duration = getattr(event.result, "duration", 0.0)

    def render(self) -> str:
        """Renders the collected statistics as plain text.

        Returns:
            str: One line per level, then failures and undefined-step snippets.
        """
        lines = []
        for level in LEVELS:
            counts = self.counts[level]
            parts = [f"{counts[outcome]} {outcome!s}" for outcome in Outcome if counts[outcome]]
            lines.append(f"{sum(counts.values())} {level}s ({', '.join(parts) or 'none'})")

        if self.is_completed is False:
            lines.append("Run interrupted before completion.")
        lines.append(f"Took {self.duration:.3f}s")

        if self.failures:
            lines.append("")
            lines.append("Failing steps:")
            lines.extend(f"  {location}  {message}" for location, message in self.failures)

        if self.snippets:
            lines.append("")
            lines.append("You can implement the undefined steps with these snippets:")
            lines.append("")
            lines.extend(self.snippets)

        return "\n".join(lines)

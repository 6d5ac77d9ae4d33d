"""Result values summarizing each execution level."""

from dataclasses import dataclass, field
from typing import List, Optional

from .model import Feature, RunnableScenario, Step
from .status import Outcome, aggregate

__all__ = ["StepResult", "ScenarioResult", "FeatureResult", "SuiteResult"]


@dataclass
class StepResult:
    step: Step
    outcome: Outcome
    exception: Optional[BaseException] = None
    snippet: Optional[str] = None
    definition: Optional[object] = None
    duration: float = 0.0


@dataclass
class ScenarioResult:
    """Result of a plain scenario or of one outline example row."""

    scenario: RunnableScenario
    iteration: Optional[int] = None
    """Example row index for outline rows, None for plain scenarios."""

    steps: List[StepResult] = field(default_factory=list)
    hook_error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def outcome(self) -> Outcome:
        if self.hook_error is not None:
            return Outcome.FAILED
        return aggregate(step.outcome for step in self.steps)

    @property
    def is_skipped(self) -> bool:
        """True if at least one step was skipped."""
        return any(step.outcome is Outcome.SKIPPED for step in self.steps)

    @property
    def is_outline_row(self) -> bool:
        return self.iteration is not None


@dataclass
class FeatureResult:
    feature: Feature
    scenarios: List[ScenarioResult] = field(default_factory=list)
    hook_error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def outcome(self) -> Outcome:
        if self.hook_error is not None:
            return Outcome.FAILED
        return aggregate(scenario.outcome for scenario in self.scenarios)

    @property
    def has_skipped(self) -> bool:
        return any(scenario.is_skipped for scenario in self.scenarios)


@dataclass
class SuiteResult:
    features: List[FeatureResult] = field(default_factory=list)
    is_completed: bool = False
    hook_error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def outcome(self) -> Outcome:
        if self.hook_error is not None:
            return Outcome.FAILED
        return aggregate(feature.outcome for feature in self.features)

    @property
    def has_skipped(self) -> bool:
        return any(feature.has_skipped for feature in self.features)

"""Event-driven execution core for behavior-driven test suites."""

from .context import ExecutionContext
from .events import EventDispatcher, EventKind, FeatureEvent, ScenarioEvent, StepEvent, SuiteEvent
from .exceptions import StepPending
from .hooks import HookRegistration, HookRegistry, HookScope, TagFilter, hook
from .model import Background, ExampleRow, Feature, Scenario, ScenarioOutline, Step
from .results import FeatureResult, ScenarioResult, StepResult, SuiteResult
from .runner import SuiteRunner, run_suite
from .status import Outcome, aggregate, exit_code
from .testers import ListenerPolicy, RunnerOptions

__all__ = [
    "Background",
    "EventDispatcher",
    "EventKind",
    "ExampleRow",
    "ExecutionContext",
    "Feature",
    "FeatureEvent",
    "FeatureResult",
    "HookRegistration",
    "HookRegistry",
    "HookScope",
    "ListenerPolicy",
    "Outcome",
    "RunnerOptions",
    "Scenario",
    "ScenarioEvent",
    "ScenarioOutline",
    "ScenarioResult",
    "Step",
    "StepEvent",
    "StepPending",
    "StepResult",
    "SuiteEvent",
    "SuiteResult",
    "SuiteRunner",
    "TagFilter",
    "aggregate",
    "exit_code",
    "hook",
    "run_suite",
]

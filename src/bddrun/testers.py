"""Step, scenario and feature testers.

Each tester wraps its children with before/after transitions: matching hooks run
first, then the event is published to the dispatcher listeners. Outcomes flow upwards
by max-severity aggregation, failures inside a step never propagate as exceptions.
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, FrozenSet, Optional

from .context import ExecutionContext
from .events import Event, EventDispatcher, EventKind, FeatureEvent, ScenarioEvent, StepEvent
from .exceptions import AmbiguousStepError, DispatchError, ListenerError, StepPending
from .hooks import HookRegistry
from .matching import Matcher, make_snippet
from .model import Feature, RunnableScenario, ScenarioOutline, Step
from .results import FeatureResult, ScenarioResult, StepResult
from .status import Outcome
from .types import Listener

__all__ = ["ListenerPolicy", "RunnerOptions", "Runtime", "StepTester", "ScenarioTester", "FeatureTester"]

logger = logging.getLogger(__name__)


class ListenerPolicy(Enum):
    ABORT = "abort"
    """A failing listener stops the run. AFTER_SUITE still fires."""

    LOG = "log"
    """A failing listener is logged and delivery continues."""


@dataclass(frozen=True)
class RunnerOptions:
    stop_on_failure: bool = False
    """Abort the run after the first failed, undefined or pending scenario. The run only counts
    as incomplete if scenarios or features were left over."""

    listener_errors: ListenerPolicy = ListenerPolicy.ABORT


class Runtime:
    """
    Collaborators and run-wide state shared by the testers: the dispatcher, the hook
    registry, the step matcher, the options and the interrupt flag.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        hooks: HookRegistry,
        matcher: Matcher,
        options: Optional[RunnerOptions] = None,
        context_parent: Optional[Any] = None,
    ):
        """Initialize the runtime.

        Args:
            dispatcher (EventDispatcher): Dispatcher the events are published to.
            hooks (HookRegistry): Hooks resolved ahead of the run.
            matcher (Matcher): Step definition matcher.
            options (Optional[RunnerOptions]): Run options, defaults apply if omitted.
            context_parent (Optional[Any]): Namespace every ExecutionContext falls back to.
        """
        self.dispatcher = dispatcher
        self.hooks = hooks
        self.matcher = matcher
        self.options = options or RunnerOptions()
        self.context_parent = context_parent
        self.aborted = False
        self.interrupted = False

    def abort(self) -> None:
        """Requests the run to stop at the next feature or scenario boundary."""
        if not self.aborted:
            logger.info("Run abort requested")
        self.aborted = True

    def check_interrupt(self) -> bool:
        """Called at a boundary with work left to do. Returns True if that work must be left out."""
        if self.aborted:
            self.interrupted = True
        return self.aborted

    def make_context(self) -> ExecutionContext:
        return ExecutionContext(parent=self.context_parent)

    def publish(self, event: Event) -> None:
        """Publishes the event applying the listener failure policy.

        Raises:
            ListenerError: If a listener failed and the policy is ABORT.
        """
        if self.options.listener_errors is ListenerPolicy.LOG:
            self.dispatcher.publish(event, on_error=self._log_listener_error)
        else:
            self.dispatcher.publish(event, on_error=self._raise_listener_error)

    def publish_result(self, event: Event, result: Any) -> None:
        """Publishes an after event, handing the finished result to the caller if delivery fails."""
        try:
            self.publish(event)
        except DispatchError as e:
            e.partial_result = result
            raise

    def run_hooks(
        self, kind: EventKind, tags: FrozenSet[str], event: Event, context: Optional[ExecutionContext] = None
    ) -> Optional[BaseException]:
        """Invokes every hook matching the transition.

        All matching hooks run even if one of them fails.

        Args:
            kind (EventKind): Kind of the transition.
            tags (FrozenSet[str]): Tags of the current feature or scenario.
            event (Event): Event handed over to the hooks.
            context (Optional[ExecutionContext]): Running scenario's context, for instance hooks.

        Returns:
            Optional[BaseException]: The first hook error, or None if all hooks succeeded.
        """
        first_error = None
        for registration in self.hooks.hooks_for(kind, tags):
            try:
                registration.invoke(event, context)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning("Hook %r failed during %s: %r", registration.describe(), kind, e, exc_info=True)
                if first_error is None:
                    first_error = e
        return first_error

    @staticmethod
    def _log_listener_error(listener: Listener, event: Event, error: Exception) -> None:
        logger.error("Listener %r failed while handling %s", listener, event.kind, exc_info=error)

    @staticmethod
    def _raise_listener_error(listener: Listener, event: Event, error: Exception) -> None:
        raise ListenerError(event.kind, listener, error) from error


class StepTester:
    """Executes one step and reports its outcome."""

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    def run_step(
        self,
        step: Step,
        context: ExecutionContext,
        feature: Feature,
        scenario: RunnableScenario,
        tags: FrozenSet[str],
        skip: bool = False,
    ) -> StepResult:
        """Runs one step inside the given scenario.

        Args:
            step (Step): The step to run.
            context (ExecutionContext): The running scenario's context.
            feature (Feature): Feature the scenario belongs to.
            scenario (RunnableScenario): Scenario or outline row being executed.
            tags (FrozenSet[str]): Effective tags of the scenario (feature tags included).
            skip (bool): If True the step is reported as skipped without being matched.

        Returns:
            StepResult: Outcome of the step.
        """
        runtime = self.runtime
        started = time.perf_counter()
        before_event = StepEvent(EventKind.BEFORE_STEP, feature, scenario, step, context)

        if skip:
            runtime.publish(before_event)
            result = StepResult(step, Outcome.SKIPPED)
            runtime.publish_result(self._after_event(before_event, result), result)
            logger.debug("Step %r skipped", str(step))
            return result

        hook_error = runtime.run_hooks(EventKind.BEFORE_STEP, tags, before_event, context)
        runtime.publish(before_event)

        if hook_error is None:
            result = self.execute(step, context)
        else:
            result = StepResult(step, Outcome.FAILED, exception=hook_error)

        after_event = self._after_event(before_event, result)
        hook_error = runtime.run_hooks(EventKind.AFTER_STEP, tags, after_event, context)
        if hook_error is not None:
            result.outcome = Outcome.FAILED
            if result.exception is None:
                result.exception = hook_error
            after_event = self._after_event(before_event, result)

        result.duration = time.perf_counter() - started
        logger.debug("Step %r %s", str(step), result.outcome)
        runtime.publish_result(after_event, result)
        return result

    def execute(self, step: Step, context: ExecutionContext) -> StepResult:
        """Resolves and invokes the step definition, capturing the outcome.

        Args:
            step (Step): The step to execute.
            context (ExecutionContext): Context passed to the definition.

        Returns:
            StepResult: PASSED, PENDING, UNDEFINED or FAILED result.
        """
        try:
            definition = self.runtime.matcher.match(step)
        except AmbiguousStepError as e:
            return StepResult(step, Outcome.FAILED, exception=e)

        if definition is None:
            return StepResult(step, Outcome.UNDEFINED, snippet=make_snippet(step))

        try:
            definition.invoke(context, step)
        except (StepPending, NotImplementedError) as e:
            return StepResult(step, Outcome.PENDING, exception=e, definition=definition)
        except Exception as e:  # pylint: disable=broad-except
            return StepResult(step, Outcome.FAILED, exception=e, definition=definition)

        return StepResult(step, Outcome.PASSED, definition=definition)

    @staticmethod
    def _after_event(before_event: StepEvent, result: StepResult) -> StepEvent:
        return replace(
            before_event,
            kind=EventKind.AFTER_STEP,
            outcome=result.outcome,
            exception=result.exception,
            snippet=result.snippet,
            definition=result.definition,
        )


class ScenarioTester:
    """Executes one scenario or one outline example row in its own context."""

    def __init__(self, runtime: Runtime, step_tester: Optional[StepTester] = None):
        self.runtime = runtime
        self.step_tester = step_tester or StepTester(runtime)

    def run_scenario(
        self, feature: Feature, scenario: RunnableScenario, iteration: Optional[int] = None
    ) -> ScenarioResult:
        """Runs the background steps and then the scenario steps.

        Once a step is failed, undefined or pending, every later step is skipped.

        Args:
            feature (Feature): Feature the scenario belongs to.
            scenario (RunnableScenario): Scenario or outline row to run.
            iteration (Optional[int]): Example row index for outline rows.

        Returns:
            ScenarioResult: The aggregated result.
        """
        runtime = self.runtime
        tags = feature.tags | scenario.tags
        started = time.perf_counter()
        context = runtime.make_context()
        result = ScenarioResult(scenario, iteration)
        logger.info("Scenario %r started", scenario.name)

        try:
            before_event = ScenarioEvent(EventKind.BEFORE_SCENARIO, feature, scenario, context, iteration)
            result.hook_error = runtime.run_hooks(EventKind.BEFORE_SCENARIO, tags, before_event, context)
            runtime.publish(before_event)

            steps = feature.background.steps if feature.background is not None else ()
            skip = result.hook_error is not None
            for step in steps + scenario.steps:
                step_result = self.step_tester.run_step(step, context, feature, scenario, tags, skip=skip)
                result.steps.append(step_result)
                if step_result.outcome.poisons_scenario:
                    skip = True

            after_event = self._after_event(before_event, result)
            hook_error = runtime.run_hooks(EventKind.AFTER_SCENARIO, tags, after_event, context)
            if hook_error is not None and result.hook_error is None:
                result.hook_error = hook_error
                after_event = self._after_event(before_event, result)

            result.duration = time.perf_counter() - started
            logger.info("Scenario %r %s", scenario.name, result.outcome)
            runtime.publish(after_event)
        except DispatchError as e:
            # The steps run so far stay part of the result handed to the caller.
            if isinstance(e.partial_result, StepResult):
                result.steps.append(e.partial_result)
            result.duration = time.perf_counter() - started
            e.partial_result = result
            raise
        finally:
            context.release()

        return result

    @staticmethod
    def _after_event(before_event: ScenarioEvent, result: ScenarioResult) -> ScenarioEvent:
        return replace(
            before_event,
            kind=EventKind.AFTER_SCENARIO,
            outcome=result.outcome,
            result=result,
            is_skipped=result.is_skipped,
        )


class FeatureTester:
    """Executes the scenarios and outline rows of one feature."""

    def __init__(self, runtime: Runtime, scenario_tester: Optional[ScenarioTester] = None):
        self.runtime = runtime
        self.scenario_tester = scenario_tester or ScenarioTester(runtime)

    def run_feature(self, feature: Feature) -> FeatureResult:
        """Runs the feature's scenarios in declaration order.

        Outline rows run in table order with iteration indices starting at 0. No execution
        context exists at this level, feature hooks are static.

        Args:
            feature (Feature): The feature to run.

        Returns:
            FeatureResult: The aggregated result, covering only what ran if the run was aborted.
        """
        runtime = self.runtime
        started = time.perf_counter()
        result = FeatureResult(feature)
        logger.info("Feature %r started", feature.name)

        try:
            before_event = FeatureEvent(EventKind.BEFORE_FEATURE, feature)
            result.hook_error = runtime.run_hooks(EventKind.BEFORE_FEATURE, feature.tags, before_event)
            runtime.publish(before_event)

            if result.hook_error is None:
                for definition in feature.scenarios:
                    if runtime.check_interrupt():
                        break
                    if isinstance(definition, ScenarioOutline):
                        for index, row in enumerate(definition.rows):
                            if runtime.check_interrupt():
                                break
                            result.scenarios.append(self._run(feature, row, index))
                    else:
                        result.scenarios.append(self._run(feature, definition, None))

            after_event = FeatureEvent(EventKind.AFTER_FEATURE, feature, result.outcome, result)
            hook_error = runtime.run_hooks(EventKind.AFTER_FEATURE, feature.tags, after_event)
            if hook_error is not None and result.hook_error is None:
                result.hook_error = hook_error
                after_event = FeatureEvent(EventKind.AFTER_FEATURE, feature, result.outcome, result)

            result.duration = time.perf_counter() - started
            logger.info("Feature %r %s", feature.name, result.outcome)
            runtime.publish(after_event)
        except DispatchError as e:
            if isinstance(e.partial_result, ScenarioResult):
                result.scenarios.append(e.partial_result)
            result.duration = time.perf_counter() - started
            e.partial_result = result
            raise

        return result

    def _run(self, feature: Feature, scenario: RunnableScenario, iteration: Optional[int]) -> ScenarioResult:
        result = self.scenario_tester.run_scenario(feature, scenario, iteration)
        if self.runtime.options.stop_on_failure and result.outcome.poisons_scenario:
            self.runtime.abort()
        return result

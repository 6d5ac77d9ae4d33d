"""Top-level suite driver and the ``run_suite`` entry point."""

import logging
import time
from typing import Any, Iterable, Optional, Tuple

from .events import EventDispatcher, EventKind, SuiteEvent
from .exceptions import DispatchError
from .hooks import HookRegistration, HookRegistry
from .matching import Matcher
from .model import Feature
from .results import FeatureResult, SuiteResult
from .status import exit_code
from .testers import FeatureTester, RunnerOptions, Runtime
from .types import Listener

__all__ = ["SuiteRunner", "run_suite"]

logger = logging.getLogger(__name__)


class SuiteRunner:
    """
    Runs a sequence of features between one BEFORE_SUITE and one AFTER_SUITE event.

    Listener failures abort the run by default (see ``RunnerOptions.listener_errors``).
    Whenever a dispatch error stops the run, AFTER_SUITE still fires with
    ``is_completed=False`` and the results gathered so far, then the error is raised to
    the caller.
    """

    def __init__(
        self,
        hooks: Iterable[HookRegistration],
        matcher: Matcher,
        dispatcher: Optional[EventDispatcher] = None,
        options: Optional[RunnerOptions] = None,
        context_parent: Optional[Any] = None,
    ):
        """Initialize the runner.

        Args:
            hooks (Iterable[HookRegistration]): Hook registrations resolved ahead of the run.
            matcher (Matcher): Step definition matcher.
            dispatcher (Optional[EventDispatcher]): Dispatcher with the listeners subscribed.
            options (Optional[RunnerOptions]): Run options.
            context_parent (Optional[Any]): Namespace every ExecutionContext falls back to.
        """
        self.dispatcher = dispatcher or EventDispatcher()
        self.runtime = Runtime(self.dispatcher, HookRegistry(hooks), matcher, options, context_parent)
        self.feature_tester = FeatureTester(self.runtime)

    @property
    def aborted(self) -> bool:
        return self.runtime.aborted

    def abort(self) -> None:
        """Interrupts the run at the next feature or scenario boundary.

        A step already executing runs to completion.
        """
        self.runtime.abort()

    def run(self, features: Iterable[Feature]) -> Tuple[SuiteResult, int]:
        """Runs the features in the order supplied.

        Args:
            features (Iterable[Feature]): Parsed features.

        Returns:
            Tuple[SuiteResult, int]: The suite result and the exit code derived from its outcome.

        Raises:
            ListenerError: If a listener failed and the listener policy is ABORT.
            ReentrantPublishError: If a listener published the kind of event it was handling.
        """
        runtime = self.runtime
        features = tuple(features)
        self.dispatcher.close()

        started = time.perf_counter()
        result = SuiteResult()
        dispatch_error: Optional[DispatchError] = None
        logger.info("Suite started with %d feature(s)", len(features))

        before_event = SuiteEvent(EventKind.BEFORE_SUITE, features)
        try:
            result.hook_error = runtime.run_hooks(EventKind.BEFORE_SUITE, frozenset(), before_event)
            runtime.publish(before_event)

            if result.hook_error is None:
                for feature in features:
                    if runtime.check_interrupt():
                        break
                    result.features.append(self.feature_tester.run_feature(feature))
                result.is_completed = not runtime.interrupted
        except DispatchError as e:
            logger.error("Aborting the run: %s", e)
            if isinstance(e.partial_result, FeatureResult):
                result.features.append(e.partial_result)
            dispatch_error = e
            result.is_completed = False

        result.duration = time.perf_counter() - started
        after_event = self._after_event(features, result)
        hook_error = runtime.run_hooks(EventKind.AFTER_SUITE, frozenset(), after_event)
        if hook_error is not None and result.hook_error is None:
            result.hook_error = hook_error
            after_event = self._after_event(features, result)

        logger.info("Suite %s (completed: %s)", result.outcome, result.is_completed)
        runtime.publish(after_event)

        if dispatch_error is not None:
            raise dispatch_error

        return result, exit_code(result.outcome)

    @staticmethod
    def _after_event(features: Tuple[Feature, ...], result: SuiteResult) -> SuiteEvent:
        return SuiteEvent(EventKind.AFTER_SUITE, features, result.outcome, result, result.is_completed)


def run_suite(
    features: Iterable[Feature],
    hook_registrations: Iterable[HookRegistration],
    listeners: Iterable[Tuple[EventKind, Listener]],
    matcher: Matcher,
    options: Optional[RunnerOptions] = None,
    context_parent: Optional[Any] = None,
) -> Tuple[SuiteResult, int]:
    """Runs a suite of features.

    Args:
        features (Iterable[Feature]): Parsed features, in execution order.
        hook_registrations (Iterable[HookRegistration]): Resolved hooks.
        listeners (Iterable[Tuple[EventKind, Listener]]): ``(kind, listener)`` pairs, subscribed in order.
        matcher (Matcher): Step definition matcher.
        options (Optional[RunnerOptions]): Run options.
        context_parent (Optional[Any]): Namespace every ExecutionContext falls back to.

    Returns:
        Tuple[SuiteResult, int]: The suite result and the exit code.
    """
    dispatcher = EventDispatcher()
    for kind, listener in listeners:
        dispatcher.subscribe(kind, listener)

    runner = SuiteRunner(hook_registrations, matcher, dispatcher, options, context_parent)
    return runner.run(features)

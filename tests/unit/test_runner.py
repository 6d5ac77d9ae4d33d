import logging

import pytest

from bddrun.events import EventDispatcher, EventKind
from bddrun.exceptions import ListenerError, ReentrantPublishError, SubscriptionClosedError
from bddrun.hooks import HookRegistration, HookScope
from bddrun.model import ScenarioOutline
from bddrun.runner import SuiteRunner, run_suite
from bddrun.status import Outcome
from bddrun.testers import ListenerPolicy, RunnerOptions
from support import EventRecorder, FakeMatcher, make_feature, make_scenario, make_step


class TestRunSuite:
    """End-to-end tests of the suite driver against in-memory features."""

    def test_failing_scenario(self, matcher: FakeMatcher):
        """Test a feature with a passing scenario and a scenario failing on its first step."""
        recorder = EventRecorder()
        feature = make_feature(
            "Checkout",
            [
                make_scenario("Pays", ["a passing step", "a passing step"]),
                make_scenario("Declined", ["a failing step", "a passing step"]),
            ],
        )

        result, code = run_suite([feature], [], [(kind, recorder) for kind in EventKind], matcher)

        first, second = result.features[0].scenarios
        assert [step.outcome for step in first.steps] == [Outcome.PASSED, Outcome.PASSED]
        assert [step.outcome for step in second.steps] == [Outcome.FAILED, Outcome.SKIPPED]
        assert result.features[0].outcome is Outcome.FAILED
        assert result.outcome is Outcome.FAILED
        assert code == 4
        assert result.is_completed
        assert result.features[0].has_skipped
        assert result.has_skipped

        after_scenarios = recorder.of_kind(EventKind.AFTER_SCENARIO)
        assert [event.is_skipped for event in after_scenarios] == [False, True]
        assert after_scenarios[1].outcome is Outcome.FAILED

    def test_outline_with_three_rows(self, matcher: FakeMatcher):
        recorder = EventRecorder()
        outline = ScenarioOutline.expand("Row", [make_step("a passing step")], [{}, {}, {}])

        result, code = run_suite(
            [make_feature("Outline", [outline])], [], [(kind, recorder) for kind in EventKind], matcher
        )

        assert code == 0
        assert [event.iteration for event in recorder.of_kind(EventKind.BEFORE_SCENARIO)] == [0, 1, 2]
        assert [event.iteration for event in recorder.of_kind(EventKind.AFTER_SCENARIO)] == [0, 1, 2]
        assert len(recorder.of_kind(EventKind.BEFORE_FEATURE)) == 1
        assert len(recorder.of_kind(EventKind.AFTER_FEATURE)) == 1
        assert len(result.features[0].scenarios) == 3
        assert not result.features[0].has_skipped
        assert not result.has_skipped

    def test_event_order(self, matcher: FakeMatcher):
        recorder = EventRecorder()
        feature = make_feature("Feature", [make_scenario("Scenario", ["a passing step"])])

        run_suite([feature], [], [(kind, recorder) for kind in EventKind], matcher)

        assert recorder.kinds() == [
            EventKind.BEFORE_SUITE,
            EventKind.BEFORE_FEATURE,
            EventKind.BEFORE_SCENARIO,
            EventKind.BEFORE_STEP,
            EventKind.AFTER_STEP,
            EventKind.AFTER_SCENARIO,
            EventKind.AFTER_FEATURE,
            EventKind.AFTER_SUITE,
        ]

    @pytest.mark.parametrize(
        "steps, expected_code",
        [
            (["a passing step"], 0),
            (["a pending step"], 2),
            (["an unknown step"], 3),
            (["a failing step"], 4),
        ],
    )
    def test_exit_code(self, matcher: FakeMatcher, steps, expected_code: int):
        feature = make_feature("Feature", [make_scenario("Scenario", steps)])

        assert run_suite([feature], [], [], matcher)[1] == expected_code

    def test_empty_suite(self, matcher: FakeMatcher):
        result, code = run_suite([], [], [], matcher)

        assert result.outcome is Outcome.PASSED
        assert result.is_completed
        assert code == 0

    def test_hooks_of_every_level(self, matcher: FakeMatcher):
        calls = []
        hooks = [
            HookRegistration.create(EventKind.BEFORE_SUITE, lambda event: calls.append("before_suite")),
            HookRegistration.create(EventKind.BEFORE_FEATURE, lambda event: calls.append("before_feature")),
            HookRegistration.create(
                EventKind.BEFORE_SCENARIO,
                lambda context, event: calls.append("before_scenario"),
                scope=HookScope.INSTANCE,
            ),
            HookRegistration.create(
                EventKind.AFTER_STEP, lambda context, event: calls.append("after_step"), scope=HookScope.INSTANCE
            ),
            HookRegistration.create(EventKind.AFTER_FEATURE, lambda event: calls.append("after_feature")),
            HookRegistration.create(EventKind.AFTER_SUITE, lambda event: calls.append("after_suite")),
        ]
        feature = make_feature("Feature", [make_scenario("Scenario", ["a passing step"])])

        run_suite([feature], hooks, [], matcher)

        assert calls == [
            "before_suite",
            "before_feature",
            "before_scenario",
            "after_step",
            "after_feature",
            "after_suite",
        ]


class TestSuiteRunner:
    """Unit tests for interrupts, hook failures and listener failures at suite level."""

    def features(self, count: int):
        scenario = make_scenario("Scenario", ["a passing step"])
        return [make_feature(f"Feature {index}", [scenario]) for index in range(count)]

    def test_interrupt_after_first_feature(self, dispatcher: EventDispatcher, recorder: EventRecorder, matcher):
        """Test that an interrupt between features still closes the suite with a single AfterSuite."""
        runner = SuiteRunner([], matcher, dispatcher)
        dispatcher.subscribe(EventKind.AFTER_FEATURE, lambda event: runner.abort())

        result, code = runner.run(self.features(3))

        assert len(recorder.of_kind(EventKind.BEFORE_SUITE)) == 1
        after_suite = recorder.of_kind(EventKind.AFTER_SUITE)
        assert len(after_suite) == 1
        assert after_suite[0].is_completed is False
        assert not result.is_completed
        assert [feature.feature.name for feature in result.features] == ["Feature 0"]
        assert result.outcome is Outcome.PASSED and code == 0
        assert runner.aborted

    def test_interrupt_outcome_covers_executed_features(self, matcher: FakeMatcher):
        matcher.define("abort the run", lambda context: runner.abort())
        runner = SuiteRunner([], matcher)
        features = [
            make_feature("Pending", [make_scenario("Scenario", ["a pending step", "abort the run"])]),
            make_feature("Aborting", [make_scenario("Scenario", ["abort the run"])]),
            make_feature("Failing", [make_scenario("Scenario", ["a failing step"])]),
        ]

        result, code = runner.run(features)

        assert [feature.feature.name for feature in result.features] == ["Pending", "Aborting"]
        assert result.outcome is Outcome.PENDING and code == 2

    def test_subscription_closed_during_run(self, dispatcher: EventDispatcher, matcher: FakeMatcher):
        errors = []

        def subscribe_late(event):
            try:
                dispatcher.subscribe(EventKind.AFTER_SUITE, print)
            except SubscriptionClosedError as e:
                errors.append(e)

        dispatcher.subscribe(EventKind.BEFORE_SUITE, subscribe_late)

        SuiteRunner([], matcher, dispatcher).run([])

        assert len(errors) == 1

    def test_before_suite_hook_failure(self, dispatcher: EventDispatcher, recorder: EventRecorder, matcher):
        def broken(event):
            raise RuntimeError("setup failed")

        hooks = [HookRegistration.create(EventKind.BEFORE_SUITE, broken)]

        result, code = SuiteRunner(hooks, matcher, dispatcher).run(self.features(2))

        assert not result.features
        assert not result.is_completed
        assert result.outcome is Outcome.FAILED and code == 4
        assert recorder.kinds() == [EventKind.BEFORE_SUITE, EventKind.AFTER_SUITE]

    def test_after_suite_hook_failure(self, matcher: FakeMatcher):
        def broken(event):
            raise RuntimeError("teardown failed")

        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, broken)]

        result, code = SuiteRunner(hooks, matcher).run(self.features(1))

        assert result.is_completed
        assert str(result.hook_error) == "teardown failed"
        assert code == 4

    def test_listener_failure_aborts(self, dispatcher: EventDispatcher, recorder: EventRecorder, matcher):
        """Test that a failing listener stops the run but AfterSuite still fires."""
        error = RuntimeError("listener failed")
        after_suite_hook = []

        def broken(event):
            raise error

        dispatcher.subscribe(EventKind.AFTER_SCENARIO, broken)
        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, after_suite_hook.append)]

        with pytest.raises(ListenerError) as exc_info:
            SuiteRunner(hooks, matcher, dispatcher).run(self.features(2))

        assert exc_info.value.error is error
        assert exc_info.value.event_kind is EventKind.AFTER_SCENARIO
        assert exc_info.value.__cause__ is error
        assert len(recorder.of_kind(EventKind.BEFORE_FEATURE)) == 1, "The run continued after the listener failure."
        assert len(after_suite_hook) == 1
        after_suite = recorder.of_kind(EventKind.AFTER_SUITE)
        assert len(after_suite) == 1 and after_suite[0].is_completed is False

    def test_listener_failure_logged(self, dispatcher: EventDispatcher, recorder: EventRecorder, matcher, caplog):
        def broken(event):
            raise RuntimeError("listener failed")

        dispatcher.subscribe(EventKind.AFTER_STEP, broken)
        options = RunnerOptions(listener_errors=ListenerPolicy.LOG)

        with caplog.at_level(logging.ERROR, logger="bddrun.testers"):
            result, code = SuiteRunner([], matcher, dispatcher, options).run(self.features(2))

        assert result.is_completed and code == 0
        assert len(recorder.of_kind(EventKind.AFTER_STEP)) == 2, "Delivery stopped at the failing listener."
        assert caplog.text.count("failed while handling after_step") == 2

    def test_listener_failure_keeps_executed_feature(self, dispatcher: EventDispatcher, matcher: FakeMatcher):
        """Test that AfterSuite reports the outcome of a feature whose AfterFeature listener failed."""
        after_suite_hook = []

        def broken(event):
            raise RuntimeError("listener failed")

        dispatcher.subscribe(EventKind.AFTER_FEATURE, broken)
        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, after_suite_hook.append)]
        feature = make_feature("Feature", [make_scenario("Scenario", ["a failing step"])])

        with pytest.raises(ListenerError):
            SuiteRunner(hooks, matcher, dispatcher).run([feature])

        (event,) = after_suite_hook
        assert event.outcome is Outcome.FAILED
        assert [feature_result.feature.name for feature_result in event.result.features] == ["Feature"]
        assert event.is_completed is False

    def test_listener_failure_keeps_executed_steps(self, dispatcher: EventDispatcher, matcher: FakeMatcher):
        after_suite_hook = []

        def broken(event):
            raise RuntimeError("listener failed")

        dispatcher.subscribe(EventKind.AFTER_STEP, broken)
        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, after_suite_hook.append)]
        feature = make_feature("Feature", [make_scenario("Scenario", ["a failing step", "a passing step"])])

        with pytest.raises(ListenerError):
            SuiteRunner(hooks, matcher, dispatcher).run([feature])

        (event,) = after_suite_hook
        (scenario,) = event.result.features[0].scenarios
        assert [step.outcome for step in scenario.steps] == [Outcome.FAILED]
        assert event.outcome is Outcome.FAILED

    def test_closed_subscription_logged(self, dispatcher: EventDispatcher, recorder: EventRecorder, matcher, caplog):
        """Test that a listener subscribing mid-run is logged under the log policy and the run goes on."""
        after_suite_hook = []
        dispatcher.subscribe(EventKind.BEFORE_FEATURE, lambda event: dispatcher.subscribe(EventKind.AFTER_STEP, print))
        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, after_suite_hook.append)]
        options = RunnerOptions(listener_errors=ListenerPolicy.LOG)

        with caplog.at_level(logging.ERROR, logger="bddrun.testers"):
            result, code = SuiteRunner(hooks, matcher, dispatcher, options).run(self.features(2))

        assert result.is_completed and code == 0
        assert len(after_suite_hook) == 1
        assert len(recorder.of_kind(EventKind.AFTER_FEATURE)) == 2
        assert caplog.text.count("failed while handling before_feature") == 2

    def test_reentrant_publication_still_closes_suite(self, dispatcher: EventDispatcher, matcher: FakeMatcher):
        after_suite_hook = []
        dispatcher.subscribe(EventKind.BEFORE_SCENARIO, dispatcher.publish)
        hooks = [HookRegistration.create(EventKind.AFTER_SUITE, after_suite_hook.append)]
        options = RunnerOptions(listener_errors=ListenerPolicy.LOG)

        with pytest.raises(ReentrantPublishError):
            SuiteRunner(hooks, matcher, dispatcher, options).run(self.features(2))

        (event,) = after_suite_hook
        assert event.is_completed is False
        assert len(event.result.features) == 1

    def test_stop_on_failure_in_last_scenario(self, matcher: FakeMatcher):
        """Test that stopping after the very last scenario still counts as a completed run."""
        features = [
            make_feature("First", [make_scenario("Scenario", ["a passing step"])]),
            make_feature("Last", [make_scenario("Scenario", ["a failing step"])]),
        ]
        runner = SuiteRunner([], matcher, options=RunnerOptions(stop_on_failure=True))

        result, code = runner.run(features)

        assert runner.aborted
        assert result.is_completed
        assert code == 4

    def test_stop_on_failure_with_remaining_work(self, matcher: FakeMatcher):
        features = [
            make_feature("First", [make_scenario("Scenario", ["a failing step"])]),
            make_feature("Last", [make_scenario("Scenario", ["a passing step"])]),
        ]
        runner = SuiteRunner([], matcher, options=RunnerOptions(stop_on_failure=True))

        result, code = runner.run(features)

        assert not result.is_completed
        assert [feature.feature.name for feature in result.features] == ["First"]
        assert code == 4

import signal
import sys
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

from behave import __version__ as behave_version
from behave.exception import ConfigError
from behave.step_registry import AmbiguousStep

from .bddrun_behave.configuration import Configuration
from .bddrun_behave.loader import (
    SuiteContext,
    StepRegistryMatcher,
    iter_feature_files,
    load_features,
    load_hooks,
    load_step_definitions,
    select_scenarios,
)
from .constants import EXIT_INTERRUPTED, EXIT_USAGE_ERROR, VERSION
from .exceptions import BddRunError
from .model import Feature
from .reporter import SummaryReporter
from .runner import SuiteRunner

__all__ = ["main", "run_bddrun"]


def handle_utility_functions(config: Configuration) -> Optional[int]:
    """
    Checks for CLI flags that trigger utility actions instead of running tests.
    Returns an exit code (int) if an action was performed, otherwise None.
    """
    if config.version:
        print(f"bddrun {VERSION} & behave {behave_version}")
        return 0

    return None


@contextmanager
def handle_test_environment(config: Configuration) -> Generator[None, None, None]:
    """
    Context manager that sets up and tears down the test environment.
    """
    # --- SETUP ---
    # Add the features directory to sys.path so steps can import their helpers
    base_dir_str = str(config.base_dir)
    path_added = False

    if base_dir_str not in sys.path:
        sys.path.append(base_dir_str)
        path_added = True

    try:
        # Give control back to the 'with' block
        yield
    finally:
        # --- TEARDOWN ---
        if path_added and base_dir_str in sys.path:
            sys.path.remove(base_dir_str)


@contextmanager
def abort_on_interrupt(runner: SuiteRunner) -> Generator[None, None, None]:
    """
    Context manager turning SIGINT into an abort request.

    The running step finishes, the run stops at the next feature or scenario boundary
    and AFTER_SUITE still fires.
    """

    def request_abort(signum, frame):  # pylint: disable=unused-argument
        print("\nInterrupted, finishing the current step...")
        runner.abort()

    previous_handler = signal.signal(signal.SIGINT, request_abort)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous_handler)


def collect_features(config: Configuration) -> List[Feature]:
    """Parses and selects the features to run.

    Raises:
        ConfigError: If no feature file is found.
    """
    files = list(dict.fromkeys(iter_feature_files(config.paths, Path.cwd(), config.verbose)))
    if not files:
        if config.verbose:
            print('ERROR: Could not find any "<name>.feature" files.')
        raise ConfigError("No feature files found.")

    return select_scenarios(load_features(files, language=config.lang), config.tag_filters)


def run_bddrun(config: Configuration) -> int:
    """
    Runs the features described by the configuration.

    Args:
        config (Configuration): The run configuration.

    Returns:
        int: The exit status code derived from the suite outcome.
    """
    result = handle_utility_functions(config)
    if result is not None:
        return result

    config.setup_logging()
    suite_context = SuiteContext(config)

    # Hooks and steps may import helpers living next to the features.
    with handle_test_environment(config):
        features = collect_features(config)
        hooks = load_hooks(config.environment_path, suite_context)
        load_step_definitions(config.steps_path)

        runner = SuiteRunner(
            hooks,
            StepRegistryMatcher(),
            options=config.make_runner_options(),
            context_parent=suite_context,
        )

        reporter = SummaryReporter()
        reporter.subscribe(runner.dispatcher)

        with abort_on_interrupt(runner):
            suite_result, exit_code = runner.run(features)

    if config.summary:
        print(reporter.render())

    # --stop aborts too, but reports the outcome that caused it.
    if runner.aborted and not suite_result.is_completed and not config.stop:
        return EXIT_INTERRUPTED

    return exit_code


def main() -> int:
    """
    Main entry point for the bddrun command-line utility.

    Returns:
        int: The exit status code (0 passed, 2 pending, 3 undefined, 4 failed, 1 usage error).
    """
    try:
        config = Configuration()
        return run_bddrun(config)
    except ConfigError as e:
        exception_class_name = e.__class__.__name__
        print(f"{exception_class_name}: {e}")
    except (AmbiguousStep, BddRunError, FileNotFoundError) as e:
        print(e)
    except Exception:
        # Catch and report any unhandled exceptions during execution
        traceback.print_exc()

    return EXIT_USAGE_ERROR


if __name__ == "__main__":
    sys.exit(main())

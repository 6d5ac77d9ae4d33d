# pylint: disable=redefined-outer-name
import shutil
import sys
import textwrap
from pathlib import Path
from typing import Callable, List, Tuple

import pytest
from pytest_mock import MockerFixture

from bddrun import __main__ as cli
from bddrun.bddrun_behave import loader
from bddrun.constants import VERSION
from support import get_project_root_dir

INTERRUPTING_STEPS = """\
import os
import signal

from behave import given


@given("the run is interrupted")
def step_interrupt(context):
    os.kill(os.getpid(), signal.SIGINT)
"""

RunCli = Callable[..., Tuple[int, List[str]]]


@pytest.fixture(autouse=True)
def empty_step_registry():
    """Leaves behave's global step registry empty for the next test."""
    yield
    loader.clear_step_registry()


@pytest.fixture
def suite_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Copies the mock suite into a temporary working directory."""
    shutil.copytree(get_project_root_dir() / "mock_suite", tmp_path / "suite")
    monkeypatch.chdir(tmp_path / "suite")
    return tmp_path / "suite"


@pytest.fixture
def run_cli(mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> RunCli:
    """Runs the bddrun entry point isolated from the OS environment and the user config file."""
    mocker.patch("bddrun.bddrun_behave.configuration.build_environment_values", return_value={})

    def run(*args: str) -> Tuple[int, List[str]]:
        monkeypatch.setattr(sys, "argv", ["bddrun", *args])
        code = cli.main()
        return code, capsys.readouterr().out.splitlines()

    return run


def add_feature(suite_dir: Path, name: str, content: str) -> None:
    (suite_dir / "features" / name).write_text(textwrap.dedent(content))


class TestCli:
    """Integration tests running the mock suite through the command-line entry point."""

    def test_passing_suite(self, suite_dir: Path, run_cli: RunCli):  # pylint: disable=unused-argument
        code, output = run_cli()

        assert code == 0, "\n".join(output)
        assert output[:3] == ["1 features (1 passed)", "3 scenarios (3 passed)", "9 steps (9 passed)"]

    def test_tags(self, suite_dir: Path, run_cli: RunCli):  # pylint: disable=unused-argument
        code, output = run_cli("--tags", "@reset")

        assert code == 0
        assert "1 scenarios (1 passed)" in output

    def test_no_summary(self, suite_dir: Path, run_cli: RunCli):  # pylint: disable=unused-argument
        assert run_cli("--no-summary") == (0, [])

    def test_failing_step(self, suite_dir: Path, run_cli: RunCli):
        add_feature(
            suite_dir,
            "broken.feature",
            """\
            Feature: Broken
              Scenario: Wrong expectation
                Given the Bar handler is ready
                When the Bar dry run is set to 'true'
                Then the Bar dry run should be 'false'
            """,
        )

        code, output = run_cli()

        assert code == 4
        assert "2 features (1 passed, 1 failed)" in output
        assert "Failing steps:" in output

    def test_undefined_step(self, suite_dir: Path, run_cli: RunCli):
        add_feature(
            suite_dir,
            "undefined.feature",
            """\
            Feature: Undefined
              Scenario: Unknown step
                Given the Bar handler is ready
                When the Bar is painted blue
            """,
        )

        code, output = run_cli("features/undefined.feature")

        assert code == 3
        assert "2 steps (1 passed, 1 undefined)" in output
        assert '@when(u"the Bar is painted blue")' in output

    def test_stop_on_failure(self, suite_dir: Path, run_cli: RunCli):
        add_feature(
            suite_dir,
            "a_broken.feature",
            """\
            Feature: Broken first
              Scenario: Wrong expectation
                Given the Bar handler is ready
                Then the Bar dry run should be 'false'
            """,
        )

        code, output = run_cli("--stop")

        assert code == 4
        assert "1 features (1 failed)" in output

    def test_interrupt(self, suite_dir: Path, run_cli: RunCli):
        (suite_dir / "features" / "steps" / "interrupt_steps.py").write_text(INTERRUPTING_STEPS)
        add_feature(
            suite_dir,
            "a_interrupted.feature",
            """\
            Feature: Interrupted
              Scenario: Ctrl-C
                Given the run is interrupted
            """,
        )

        code, output = run_cli()

        assert code == cli.EXIT_INTERRUPTED
        assert "Run interrupted before completion." in output
        assert "1 features (1 passed)" in output

    def test_version(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, run_cli: RunCli):
        monkeypatch.chdir(tmp_path)

        code, output = run_cli("--version")

        assert code == 0
        assert output[0].startswith(f"bddrun {VERSION} & behave ")

    def test_missing_features_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, run_cli: RunCli):
        monkeypatch.chdir(tmp_path)

        code, output = run_cli()

        assert code == 1
        assert output == ["ConfigError: Features directory not found for path 'features'"]

    def test_no_feature_files(self, suite_dir: Path, run_cli: RunCli):
        (suite_dir / "features" / "bar_dry_run.feature").unlink()

        code, output = run_cli()

        assert code == 1
        assert output == ["ConfigError: No feature files found."]

    def test_base_dir_removed_from_sys_path(self, suite_dir: Path, run_cli: RunCli):
        run_cli()

        assert str(suite_dir / "features") not in sys.path

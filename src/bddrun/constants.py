from pathlib import Path
from typing import Set

from .types import Options

VERSION: str = "0.1.0"

OPTIONS: Options = [
    (
        ("--steps-dir",),
        dict(
            dest="steps_dir",
            action="store",
            type=str,
            help="Directory (relative to the features directory) containing the step modules.",
        ),
    ),
    (
        ("--environment-file",),
        dict(
            dest="environment_file",
            action="store",
            type=str,
            help="File (relative to the features directory) declaring the hooks.",
        ),
    ),
    (
        (
            "-t",
            "--tags",
        ),
        dict(
            dest="tags",
            action="append",
            type=str,
            help="Only run scenarios matching the tag expression (e.g., '@database,@orm' or '@db&&~@slow').",
        ),
    ),
    (
        ("--stop",),
        dict(dest="stop", action="store_true", help="Stop running scenarios after the first failure."),
    ),
    (
        ("--listener-errors",),
        dict(
            dest="listener_errors",
            action="store",
            choices=["abort", "log"],
            help="Whether a failing event listener aborts the run or is logged and ignored.",
        ),
    ),
    (
        ("--logging-level",),
        dict(dest="logging_level", action="store", type=str, help="Logging level (e.g., 'INFO', 'DEBUG')."),
    ),
    (
        ("--lang",),
        dict(dest="lang", action="store", type=str, help="Language used for parsing the feature files."),
    ),
    (
        ("--no-summary",),
        dict(dest="summary", action="store_false", help="Do not print the run summary."),
    ),
    (
        ("--framework-version",),
        dict(
            dest="framework_version",
            action="store",
            type=str,
            help="The bddrun version the features are guaranteed to support.",
        ),
    ),
    (("--config",), dict(dest="config", action="store", type=str, help="Specify the path to a configuration file.")),
    (
        (
            "-v",
            "--verbose",
        ),
        dict(dest="verbose", action="store_true", help="Show the configuration loading details."),
    ),
    (("--version",), dict(dest="version", action="store_true", help="Show the version and exit.")),
]

ENV_PREFIX: str = "bddrun_"

ENV_SEQUENCE_OPTIONS: Set = {"paths", "tags"}

ENV_EXCLUDED_OPTIONS: Set = {
    "config",
    "help",
    "verbose",
    "version",
}

USER_CONFIG: str = ".bddrun"

DEFAULT_FEATURES_PATH = Path("features")

DEFAULT_STEPS_DIR: str = "steps"

DEFAULT_ENVIRONMENT_FILE: str = "environment.py"

FEATURE_FILE_SUFFIX: str = ".feature"

# Exit codes outside the outcome mapping.
EXIT_USAGE_ERROR: int = 1

EXIT_INTERRUPTED: int = 130

import argparse
import glob
import itertools
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from behave.exception import ConfigError
from dotenv import dotenv_values

from ..constants import (
    DEFAULT_ENVIRONMENT_FILE,
    DEFAULT_FEATURES_PATH,
    DEFAULT_STEPS_DIR,
    ENV_EXCLUDED_OPTIONS,
    ENV_PREFIX,
    ENV_SEQUENCE_OPTIONS,
    OPTIONS,
    USER_CONFIG,
    VERSION,
)
from ..exceptions import TagFilterError
from ..hooks import TagFilter
from ..testers import ListenerPolicy, RunnerOptions
from ..types import CommandArgs, DefaultValues
from ..utils import is_version_supported

__all__ = ["Configuration"]


def build_environment_values(cli_file: Optional[Path] = None, verbose: Optional[bool] = None) -> Dict[str, str]:
    """Builds the complete configuration dictionary by loading values from environment
    and configuration sources in ascending order of precedence (lowest to highest).

    The order of loading (lowest precedence first) is:
    1. OS Environment Variables (Lowest)
    2. User Home Config (~/.bddrun)
    3. Specified Config File (CLI argument) (Highest)

    Args:
        cli_file: Optional path to a configuration file specified via CLI.
        verbose: If True, prints status messages about file loading.

    Returns:
        A dictionary containing all environment key-value pairs.
    """
    # OS Environment Variables (Priority 1)
    env_values = os.environ.copy()

    # User Home Config (~/.bddrun) (Priority 2)
    user_config_file = Path.home() / USER_CONFIG
    if user_config_file.exists():
        if verbose:
            print("Load user config file.")
        loaded_config = dotenv_values(user_config_file)
        if loaded_config is not None:
            env_values.update(loaded_config)
    elif verbose:
        print("Skipping: User config file not found.")

    # Specified Config File (CLI argument) (Priority 3)
    if cli_file is not None:
        if not cli_file.exists():
            raise FileNotFoundError(f"The CLI specified config file not found at {str(cli_file)!r}.")
        if verbose:
            print("Load CLI config file.")
        loaded_config = dotenv_values(cli_file)
        if loaded_config is not None:
            env_values.update(loaded_config)
    elif verbose:
        print("Skipping: CLI config file was not specified.")

    return env_values


def load_environment_settings(
    defaults: DefaultValues, cli_file: Optional[Path] = None, verbose: Optional[bool] = None
) -> None:
    """Loads configuration settings from sources (ENV, config files)
    and applies them to the default values dictionary.

    Variables prefixed with 'BDDRUN_' are parsed (boolean, int, list, or string)
    and stored under the lower-cased name without the prefix.

    Args:
        defaults: The dictionary containing default settings, updated in place.
        cli_file: Optional path to a configuration file specified via CLI.
        verbose: If True, prints status messages about environment variable loading and parsing.
    """
    env_values = build_environment_values(cli_file, verbose)

    for env_var, env_value in env_values.items():
        env_var_lowered = env_var.lower()
        if not env_var_lowered.startswith(ENV_PREFIX):
            continue

        config_name = env_var_lowered[len(ENV_PREFIX) :]
        if not config_name:
            if verbose:
                print(f"Skipping ENV[{env_var}]: Configuration name is empty after stripping prefix ('BDDRUN_').")
            continue

        if config_name in ENV_EXCLUDED_OPTIONS:
            raise ConfigError(f"ENV[{env_var}]: Setting {config_name!r} cannot be specified as environment var.")

        env_parsed_value = (env_value or "").strip()
        if not env_parsed_value:
            if verbose:
                print(f"Skipping ENV[{env_var}]: Value is empty or whitespace.")
            continue

        env_value_lowered = env_parsed_value.lower()
        if env_value_lowered in ["true", "false"]:
            env_parsed_value = env_value_lowered == "true"
        elif env_parsed_value.isnumeric():
            env_parsed_value = int(env_parsed_value)
        elif config_name in ENV_SEQUENCE_OPTIONS:
            # shlex.split keeps quoted elements together.
            env_parsed_value = shlex.split(env_parsed_value)

        defaults[config_name] = env_parsed_value

        if verbose:
            print(f"{config_name:<15} = {env_parsed_value!r} (ENV[{env_var}] = {env_value!r})")


def auto_discover(command_args: CommandArgs, verbose: Optional[bool] = None) -> Tuple[Optional[Path], bool]:
    """Finds the config file and the verbose flag before the arguments are parsed.

    Args:
        command_args (CommandArgs): Raw command-line arguments.
        verbose (Optional[bool]): Explicit verbosity, detected from the arguments if None.

    Returns:
        Tuple[Optional[Path], bool]: The CLI config file (if any) and the verbosity.
    """
    cli_config = None
    if "--config" in command_args:
        config_arg_pos = command_args.index("--config")
        if config_arg_pos + 1 < len(command_args):
            cli_config = Path(command_args[config_arg_pos + 1])

    if verbose is None:
        verbose = ("-v" in command_args) or ("--verbose" in command_args)

    return cli_config, verbose


def setup_main_parser() -> argparse.ArgumentParser:
    """Constructs the ArgumentParser for the bddrun script.

    Returns:
        The configured ArgumentParser instance.
    """
    prog = "bddrun"
    usage = "%(prog)s [options] [paths ...]"
    description = """Run feature files with %(prog)s.

EXAMPLES:
  %(prog)s
  %(prog)s features/battery
  %(prog)s features/battery/levels.feature features/battery/healthy.feature
  %(prog)s --tags '@database,@orm' --tags '~@slow' features
"""

    formatter_class = argparse.RawDescriptionHelpFormatter
    parser = argparse.ArgumentParser(prog=prog, usage=usage, description=description, formatter_class=formatter_class)

    for arguments, keywords in OPTIONS:
        parser.add_argument(*arguments, **keywords)

    parser.add_argument(
        "paths",
        nargs="*",
        help="Feature directories or files. Defaults to the 'features' directory if unspecified.",
    )

    return parser


class Configuration:
    """
    Central configuration for a bddrun invocation.

    Values are layered: defaults, BDDRUN_ environment variables, the user config file,
    the --config file and finally the command line.
    """

    defaults: DefaultValues = {
        "paths": [],
        "steps_dir": DEFAULT_STEPS_DIR,
        "environment_file": DEFAULT_ENVIRONMENT_FILE,
        "tags": None,
        "stop": False,
        "listener_errors": ListenerPolicy.ABORT.value,
        "logging_level": "ERROR",
        "lang": None,
        "summary": True,
        "framework_version": None,
        "config": None,
        "verbose": False,
        "version": False,
    }

    def __init__(
        self,
        command_args: Optional[CommandArgs] = None,
        verbose: Optional[bool] = None,
        **kwargs: DefaultValues,
    ):
        """Initializes configuration by loading defaults, kwargs, config files,
        env vars, and parsing CLI arguments.

        Args:
            command_args (CommandArgs): List of command-line arguments (defaults to sys.argv[1:]).
            verbose (Optional[bool]): Overrides the verbosity setting (Defaults to None).
            **kwargs (DefaultValues): Overrides of the default values.
        """
        if command_args is None:
            command_args = sys.argv[1:]

        cli_config, verbose = auto_discover(command_args, verbose)
        defaults = self.make_defaults(**kwargs)

        # 1. Load environment settings (BDDRUN_ prefix) into defaults
        load_environment_settings(defaults, cli_config, verbose)

        # 2. Parse the command line on top of the loaded defaults
        parser = setup_main_parser()
        parser.set_defaults(**defaults)
        parsed_args = parser.parse_args(command_args)

        for key, value in vars(parsed_args).items():
            setattr(self, key, value)
        self.verbose = bool(self.verbose or verbose)

        # 3. Finalize setup
        self.base_dir: Path = Path()
        self.tag_filters: List[TagFilter] = []
        self.listener_policy: ListenerPolicy = ListenerPolicy.ABORT
        self.setup_paths()
        self.setup_tags()
        self.setup_listener_policy()
        self.setup_framework_version()

    @classmethod
    def make_defaults(cls, **kwargs) -> DefaultValues:
        defaults = cls.defaults.copy()
        defaults.update(kwargs)
        return defaults

    @property
    def steps_path(self) -> Path:
        return self.base_dir / self.steps_dir

    @property
    def environment_path(self) -> Path:
        return self.base_dir / self.environment_file

    def setup_paths(self) -> None:
        """Resolves the features directory holding the steps and the environment file.

        Like behave, the search starts at the first path and walks up the parent directories
        until one contains the steps directory. Without a match the first path's directory is used.
        """
        if self.version:
            return

        if isinstance(self.paths, str):
            self.paths = [self.paths]
        if not self.paths:
            self.paths = [str(DEFAULT_FEATURES_PATH)]

        first_path = Path(self.paths[0])
        if glob.has_magic(self.paths[0]):
            first_path = Path(*itertools.takewhile(lambda part: not glob.has_magic(part), first_path.parts))
        if first_path.is_file():
            first_path = first_path.parent
        if not first_path.is_dir():
            raise ConfigError(f"Features directory not found for path {self.paths[0]!r}")

        start = first_path.absolute()
        for candidate in [start, *start.parents]:
            if (candidate / self.steps_dir).is_dir():
                self.base_dir = candidate
                break
        else:
            self.base_dir = start

    def setup_tags(self) -> None:
        tags = self.tags
        if tags is None:
            return
        if isinstance(tags, str):
            tags = [tags]

        try:
            self.tag_filters = [TagFilter.parse(expression) for expression in tags]
        except TagFilterError as e:
            raise ConfigError(f"Invalid --tags expression: {e}") from e

    def setup_listener_policy(self) -> None:
        try:
            self.listener_policy = ListenerPolicy(str(self.listener_errors).lower())
        except ValueError as e:
            choices = ", ".join(policy.value for policy in ListenerPolicy)
            raise ConfigError(f"Invalid listener_errors {self.listener_errors!r}, expected one of: {choices}") from e

    def setup_framework_version(self) -> None:
        if not self.framework_version:
            return

        required = str(self.framework_version)
        if not is_version_supported(required, VERSION):
            raise ConfigError(f"The features require bddrun {required}, but the running version is {VERSION}.")

    def setup_logging(self) -> None:
        """Configures the root logger from the logging_level setting."""
        level = self.logging_level
        if isinstance(level, str):
            level_value = logging.getLevelName(level.upper())
            if not isinstance(level_value, int):
                raise ConfigError(f"Unknown logging level: {level!r}")
            level = level_value

        logging.basicConfig(level=level, format="%(levelname)s:%(name)s: %(message)s")

    def make_runner_options(self) -> RunnerOptions:
        return RunnerOptions(stop_on_failure=bool(self.stop), listener_errors=self.listener_policy)

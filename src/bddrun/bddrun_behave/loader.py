"""Adapters supplying the core collaborators from behave: parsed features, step
definitions and hook registrations."""

import glob
from collections import namedtuple
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from behave import step_registry
from behave.exception import ConfigError
from behave.model import ScenarioOutline as BehaveScenarioOutline
from behave.parser import parse_file
from behave.runner_util import exec_file, load_step_modules

from ..constants import FEATURE_FILE_SUFFIX
from ..events import EventKind
from ..exceptions import AmbiguousStepError
from ..hooks import HOOK_ATTRIBUTE, HookRegistration, HookScope, TagFilter
from ..model import (
    STEP_TYPES,
    Background,
    ExampleRow,
    Feature,
    Scenario,
    ScenarioDefinition,
    ScenarioOutline,
    Step,
    make_tags,
)

__all__ = [
    "SuiteContext",
    "StepDefinition",
    "StepRegistryMatcher",
    "iter_feature_files",
    "load_features",
    "convert_feature",
    "select_scenarios",
    "load_step_definitions",
    "load_hooks",
]

ENVIRONMENT_HOOKS: Dict[str, EventKind] = {
    "before_all": EventKind.BEFORE_SUITE,
    "after_all": EventKind.AFTER_SUITE,
    "before_feature": EventKind.BEFORE_FEATURE,
    "after_feature": EventKind.AFTER_FEATURE,
    "before_scenario": EventKind.BEFORE_SCENARIO,
    "after_scenario": EventKind.AFTER_SCENARIO,
    "before_step": EventKind.BEFORE_STEP,
    "after_step": EventKind.AFTER_STEP,
}

_StepQuery = namedtuple("_StepQuery", ["step_type", "text"])


class SuiteContext:
    """
    Namespace shared by the whole run. Behave-style ``before_all``/``before_feature`` hooks
    receive it as their context, and every scenario context falls back to it.
    """

    def __init__(self, config: Optional[Any] = None):
        self.config = config


# --- Features ---


def iter_feature_files(paths: Iterable[str], base_path: Path, verbose: bool = False) -> Iterator[Path]:
    """Resolve path strings into feature files.

    Directories are searched recursively, glob patterns are expanded.

    Args:
        paths (Iterable[str]): Input path strings (e.g., 'features', 'features/*.feature').
        base_path (Path): Root directory for relative path resolution.
        verbose (bool): If True, reports skipped paths.

    Yields:
        Path: Absolute feature file paths, each directory's files in sorted order.
    """
    for path_str in paths:
        if glob.has_magic(path_str):
            if Path(path_str).is_absolute():
                candidates = [Path(p) for p in sorted(glob.glob(path_str))]
            else:
                candidates = sorted(base_path.glob(path_str))
        elif Path(path_str).is_absolute():
            candidates = [Path(path_str)]
        else:
            candidates = [base_path / path_str]

        for candidate in candidates:
            if candidate.is_dir():
                yield from (feature.absolute() for feature in sorted(candidate.rglob(f"*{FEATURE_FILE_SUFFIX}")))
            elif candidate.is_file() and candidate.suffix == FEATURE_FILE_SUFFIX:
                yield candidate.absolute()
            elif verbose:
                print(f"Skipping {str(candidate)!r}. Not a feature file or directory. Resolved from {path_str!r}")


def convert_step(step: Any) -> Step:
    """Converts a behave step into a core step node."""
    table = None
    if step.table is not None:
        headings = list(step.table.headings)
        table = tuple(dict(zip(headings, row.cells)) for row in step.table.rows)

    step_type = step.step_type if step.step_type in STEP_TYPES else "step"
    return Step(
        keyword=step.keyword,
        text=step.name,
        step_type=step_type,
        doc_string=step.text,
        table=table,
        line=step.line,
    )


def convert_scenario(
    scenario: Any, inherited_tags: Iterable[str] = (), prefix_steps: Tuple[Step, ...] = ()
) -> ScenarioDefinition:
    """Converts a behave scenario or scenario outline.

    Outlines are expanded with behave's generated scenarios, one ExampleRow per row of
    every examples table, in table order.

    Args:
        scenario (Any): behave Scenario or ScenarioOutline.
        inherited_tags (Iterable[str]): Tags of an enclosing rule.
        prefix_steps (Tuple[Step, ...]): Steps of an enclosing rule's background.

    Returns:
        ScenarioDefinition: The converted Scenario or ScenarioOutline.
    """
    inherited = make_tags(inherited_tags)

    if isinstance(scenario, BehaveScenarioOutline):
        rows = []
        for generated in scenario.scenarios:
            row = getattr(generated, "_row", None)
            values = dict(zip(row.headings, row.cells)) if row is not None else {}
            rows.append(
                ExampleRow(
                    outline_name=scenario.name,
                    name=generated.name,
                    steps=prefix_steps + tuple(convert_step(step) for step in generated.steps),
                    tags=make_tags(generated.tags) | inherited,
                    values=values,
                    line=generated.line,
                )
            )
        return ScenarioOutline(
            name=scenario.name, rows=tuple(rows), tags=make_tags(scenario.tags) | inherited, line=scenario.line
        )

    return Scenario(
        name=scenario.name,
        steps=prefix_steps + tuple(convert_step(step) for step in scenario.steps),
        tags=make_tags(scenario.tags) | inherited,
        line=scenario.line,
    )


def convert_feature(feature: Any) -> Feature:
    """Converts a behave feature into a core feature node.

    Scenarios of rules are flattened after the feature's own scenarios. They inherit the
    rule tags and start with the rule background steps.

    Args:
        feature (Any): behave Feature.

    Returns:
        Feature: The converted feature, keeping the behave feature as ``source``.
    """
    background = None
    if feature.background is not None:
        background = Background(tuple(convert_step(step) for step in feature.background.steps))

    scenarios: List[ScenarioDefinition] = [convert_scenario(scenario) for scenario in feature.scenarios]

    for rule in getattr(feature, "rules", None) or ():
        rule_background: Tuple[Step, ...] = ()
        if getattr(rule, "background", None) is not None:
            rule_background = tuple(convert_step(step) for step in rule.background.steps)
        scenarios.extend(convert_scenario(scenario, rule.tags, rule_background) for scenario in rule.scenarios)

    return Feature(
        name=feature.name,
        scenarios=tuple(scenarios),
        tags=make_tags(feature.tags),
        background=background,
        filename=str(feature.filename),
        line=feature.line,
        source=feature,
    )


def load_features(files: Iterable[Path], language: Optional[str] = None) -> List[Feature]:
    """Parses feature files with behave's parser.

    Args:
        files (Iterable[Path]): Feature files, in execution order.
        language (Optional[str]): Gherkin language, defaults to the file's own declaration.

    Returns:
        List[Feature]: The converted features. Empty files are left out.
    """
    features = []
    for filename in files:
        feature = parse_file(str(filename), language=language)
        if feature is not None:
            features.append(convert_feature(feature))
    return features


def select_scenarios(features: Iterable[Feature], tag_filters: Sequence[TagFilter]) -> List[Feature]:
    """Keeps only the scenarios and outline rows whose inherited tags match every filter.

    Features without any remaining scenario are dropped.

    Args:
        features (Iterable[Feature]): Parsed features.
        tag_filters (Sequence[TagFilter]): Selection filters, AND-combined. No filter keeps everything.

    Returns:
        List[Feature]: The selected features.
    """
    features = list(features)
    if not tag_filters:
        return features

    def selected_by(tags: FrozenSet[str]) -> bool:
        return all(tag_filter.matches(tags) for tag_filter in tag_filters)

    selected = []
    for feature in features:
        scenarios: List[ScenarioDefinition] = []
        for definition in feature.scenarios:
            if isinstance(definition, ScenarioOutline):
                rows = tuple(row for row in definition.rows if selected_by(feature.tags | row.tags))
                if rows:
                    scenarios.append(replace(definition, rows=rows))
            elif selected_by(feature.tags | definition.tags):
                scenarios.append(definition)

        if scenarios:
            selected.append(replace(feature, scenarios=tuple(scenarios)))
    return selected


# --- Step definitions ---


class StepDefinition:
    """A behave step function bound to the arguments it matched."""

    def __init__(self, match: Any):
        self.match = match
        self.location = str(match.location)

    def __repr__(self):
        return f"<StepDefinition {self.location}>"

    def invoke(self, context: Any, step: Step) -> None:
        context.table = step.table
        context.text = step.doc_string

        args = []
        kwargs = {}
        for argument in self.match.arguments or ():
            if argument.name is not None:
                kwargs[argument.name] = argument.value
            else:
                args.append(argument.value)

        self.match.func(context, *args, **kwargs)


class StepRegistryMatcher:
    """
    Resolves steps against behave's step registry.

    Step-type specific definitions (``@given`` ...) win over generic ``@step`` ones. More
    than one match within the winning group is reported as ambiguous.
    """

    def match(self, step: Step) -> Optional[StepDefinition]:
        registry = step_registry.registry
        query = _StepQuery(step.step_type, step.text)

        groups = [registry.steps.get(query.step_type, [])]
        if query.step_type != "step":
            groups.append(registry.steps.get("step", []))

        for definitions in groups:
            matches = [m for m in (definition.match(query.text) for definition in definitions) if m]
            if len(matches) > 1:
                raise AmbiguousStepError(query.text, [str(m.location) for m in matches])
            if matches:
                return StepDefinition(matches[0])
        return None


def clear_step_registry() -> None:
    """Removes every step definition from behave's registry, in place."""
    for definitions in step_registry.registry.steps.values():
        del definitions[:]


def load_step_definitions(steps_dir: Path) -> None:
    """Load step definition modules into behave's registry.

    Args:
        steps_dir (Path): Directory containing the step modules.

    Raises:
        ConfigError: If the steps directory does not exist.
    """
    if not steps_dir.is_dir():
        raise ConfigError(f"Steps directory not found: {str(steps_dir)!r}")

    clear_step_registry()
    load_step_modules([str(steps_dir)])


# --- Hooks ---


class EnvironmentHook:
    """Adapts a behave-style environment function to the core hook calling conventions."""

    def __init__(self, name: str, func: Any, suite_context: SuiteContext):
        self.name = name
        self.func = func
        self.suite_context = suite_context

    def __repr__(self):
        return f"<EnvironmentHook {self.name}>"

    def __call__(self, *args) -> None:
        kind = ENVIRONMENT_HOOKS[self.name]
        if kind.level == "suite":
            self.func(self.suite_context)
        elif kind.level == "feature":
            (event,) = args
            self.func(self.suite_context, event.feature)
        elif kind.level == "scenario":
            context, event = args
            self.func(context, event.scenario)
        else:
            context, event = args
            self.func(context, event.step)


def load_hooks(environment_file: Path, suite_context: SuiteContext) -> List[HookRegistration]:
    """Resolve the hooks declared in an environment file.

    Behave-style functions (``before_all``, ``before_scenario``, ...) come first, in event
    order, followed by the functions marked with ``bddrun.hooks.hook`` in definition order.
    A marked function registers once per marker, even when it is bound to several names or
    to a behave-style name.

    Args:
        environment_file (Path): The environment file. A missing file declares no hooks.
        suite_context (SuiteContext): Namespace handed to suite and feature level functions.

    Returns:
        List[HookRegistration]: The resolved registrations.
    """
    namespace: Dict[str, Any] = {}
    if environment_file.is_file():
        exec_file(str(environment_file), namespace)

    registrations = []
    for name, kind in ENVIRONMENT_HOOKS.items():
        func = namespace.get(name)
        # A marked function follows its markers, whatever name it is bound to.
        if not callable(func) or hasattr(func, HOOK_ATTRIBUTE):
            continue
        scope = HookScope.STATIC if kind.level in ("suite", "feature") else HookScope.INSTANCE
        registrations.append(
            HookRegistration(kind=kind, callback=EnvironmentHook(name, func, suite_context), scope=scope, name=name)
        )

    seen = set()
    for value in namespace.values():
        markers = getattr(value, HOOK_ATTRIBUTE, ())
        if not markers or id(value) in seen:
            continue
        seen.add(id(value))
        for kind, tags, scope in markers:
            registrations.append(HookRegistration.create(kind, value, tags, scope))

    return registrations

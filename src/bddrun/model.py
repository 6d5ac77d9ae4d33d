"""Syntax nodes consumed by the testers.

These are the values a parser hands over to the execution core. They are immutable for
the whole run. Tags are stored without the leading ``@``.
"""

import re
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple, Union

__all__ = ["Step", "Background", "Scenario", "ExampleRow", "ScenarioOutline", "Feature", "make_tags"]

STEP_TYPES = ("given", "when", "then", "step")

_PLACEHOLDER = re.compile(r"<([^<>]+)>")


def make_tags(tags: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Normalize tag labels to a frozen set without the leading ``@``."""
    if not tags:
        return frozenset()
    return frozenset(str(tag).lstrip("@") for tag in tags)


@dataclass(frozen=True)
class Step:
    keyword: str
    text: str
    step_type: str = "step"
    doc_string: Optional[str] = None
    table: Optional[Tuple[Mapping[str, str], ...]] = field(default=None, compare=False)
    line: int = 0

    def __post_init__(self):
        if self.step_type not in STEP_TYPES:
            raise ValueError(f"Unknown step type {self.step_type!r}, expected one of {STEP_TYPES}")

    def __str__(self):
        return f"{self.keyword} {self.text}"

    def substitute(self, values: Mapping[str, str]) -> "Step":
        """Returns a copy with every ``<name>`` placeholder replaced by its value."""

        def replace(text: str) -> str:
            return _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), m.group(0))), text)

        table = self.table
        if table is not None:
            table = tuple({key: replace(value) for key, value in row.items()} for row in table)

        doc_string = replace(self.doc_string) if self.doc_string is not None else None
        return Step(self.keyword, replace(self.text), self.step_type, doc_string, table, self.line)


@dataclass(frozen=True)
class Background:
    steps: Tuple[Step, ...] = ()


@dataclass(frozen=True)
class Scenario:
    name: str
    steps: Tuple[Step, ...] = ()
    tags: FrozenSet[str] = frozenset()
    line: int = 0


@dataclass(frozen=True)
class ExampleRow:
    """One instantiation of a scenario outline, built from a single example table row."""

    outline_name: str
    name: str
    steps: Tuple[Step, ...] = ()
    tags: FrozenSet[str] = frozenset()
    values: Mapping[str, str] = field(default_factory=dict, hash=False, compare=False)
    line: int = 0


@dataclass(frozen=True)
class ScenarioOutline:
    name: str
    rows: Tuple[ExampleRow, ...] = ()
    tags: FrozenSet[str] = frozenset()
    line: int = 0

    @classmethod
    def expand(
        cls,
        name: str,
        steps: Sequence[Step],
        examples: Sequence[Mapping[str, str]],
        tags: Optional[Iterable[str]] = None,
        line: int = 0,
    ) -> "ScenarioOutline":
        """Builds an outline from its step template and example table.

        Args:
            name (str): Outline name, may contain placeholders.
            steps (Sequence[Step]): Step template.
            examples (Sequence[Mapping[str, str]]): Example rows in table order.
            tags (Optional[Iterable[str]]): Tags of the outline, inherited by every row.
            line (int): Line of the outline in its source.

        Returns:
            ScenarioOutline: The outline with one substituted ExampleRow per example.
        """
        outline_tags = make_tags(tags)
        rows = []
        for values in examples:
            row_name = _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), m.group(0))), name)
            rows.append(
                ExampleRow(
                    outline_name=name,
                    name=row_name,
                    steps=tuple(step.substitute(values) for step in steps),
                    tags=outline_tags,
                    values=dict(values),
                    line=line,
                )
            )
        return cls(name=name, rows=tuple(rows), tags=outline_tags, line=line)


ScenarioDefinition = Union[Scenario, ScenarioOutline]

RunnableScenario = Union[Scenario, ExampleRow]


@dataclass(frozen=True)
class Feature:
    name: str
    scenarios: Tuple[ScenarioDefinition, ...] = ()
    tags: FrozenSet[str] = frozenset()
    background: Optional[Background] = None
    filename: str = "<string>"
    line: int = 0
    source: Any = field(default=None, repr=False, compare=False, hash=False)
    """The parser's own node, when the feature was converted from one."""

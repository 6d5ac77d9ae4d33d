"""Hook registrations, tag filter evaluation and the registry resolving hooks per event."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Callable, FrozenSet, Iterable, List, Optional, Tuple

from .events import EventKind
from .exceptions import HookRegistrationError, TagFilterError
from .types import HookCallback

__all__ = ["HookScope", "TagFilter", "HookRegistration", "HookRegistry", "hook", "matches", "HOOK_ATTRIBUTE"]

HOOK_ATTRIBUTE = "__bddrun_hooks__"

STATIC_ONLY_KINDS: FrozenSet[EventKind] = frozenset(
    {EventKind.BEFORE_SUITE, EventKind.AFTER_SUITE, EventKind.BEFORE_FEATURE, EventKind.AFTER_FEATURE}
)

SUITE_KINDS: FrozenSet[EventKind] = frozenset({EventKind.BEFORE_SUITE, EventKind.AFTER_SUITE})

_AND_OPERATOR = re.compile(r"\s*&&\s*")
_GROUP_SEPARATOR = re.compile(r"[,\s]+")
_TAG_NAME = re.compile(r"^~?@?[^\s,&~@]+$")


class HookScope(Enum):
    STATIC = "static"
    """Invoked as ``callback(event)``, without an execution context."""

    INSTANCE = "instance"
    """Invoked as ``callback(context, event)`` against the running scenario's context."""


@dataclass(frozen=True)
class _TagTerm:
    name: str
    negated: bool = False

    def matches(self, tags: AbstractSet[str]) -> bool:
        return (self.name in tags) != self.negated


class TagFilter:
    """
    Compiled tag filter expression.

    Grammar: groups separated by commas or whitespace are OR-combined, tags joined by
    ``&&`` inside a group are AND-combined, and a ``~`` prefix negates a tag. The ``@``
    prefix is optional.

    Examples:
        >>> TagFilter.parse("@database,@orm").matches({"orm"})
        True
        >>> TagFilter.parse("@database&&@fixtures").matches({"database"})
        False
        >>> TagFilter.parse("@database&&~@slow").matches({"database"})
        True
    """

    def __init__(self, expression: str, groups: Tuple[Tuple[_TagTerm, ...], ...]):
        self.expression = expression
        self.groups = groups

    def __repr__(self):
        return f"TagFilter({self.expression!r})"

    def __eq__(self, other):
        return isinstance(other, TagFilter) and self.groups == other.groups

    def __hash__(self):
        return hash(self.groups)

    @classmethod
    def parse(cls, expression: str) -> "TagFilter":
        """Compiles a tag filter expression.

        Args:
            expression (str): Expression such as ``@database,@orm`` or ``@database&&@fixtures``.

        Returns:
            TagFilter: The compiled filter.

        Raises:
            TagFilterError: If the expression is empty or contains a malformed group.
        """
        normalized = _AND_OPERATOR.sub("&&", expression.strip())
        if not normalized:
            raise TagFilterError(f"Empty tag filter expression: {expression!r}")

        groups = []
        for group in _GROUP_SEPARATOR.split(normalized):
            if not group:
                continue

            terms = []
            for name in group.split("&&"):
                if not _TAG_NAME.match(name):
                    raise TagFilterError(f"Malformed tag {name!r} in tag filter expression {expression!r}")
                negated = name.startswith("~")
                terms.append(_TagTerm(name.lstrip("~").lstrip("@"), negated))
            groups.append(tuple(terms))

        return cls(expression, tuple(groups))

    def matches(self, tags: Iterable[str]) -> bool:
        """Evaluates the filter against a tag set.

        Args:
            tags (Iterable[str]): Tags of the current feature or scenario, with or without ``@``.

        Returns:
            bool: True if any group has all of its terms satisfied.
        """
        tag_set = {tag.lstrip("@") for tag in tags}
        return any(all(term.matches(tag_set) for term in group) for group in self.groups)


def matches(tags: Iterable[str], expression: Optional[str]) -> bool:
    """Evaluates an optional tag filter expression. No expression always matches."""
    if expression is None:
        return True
    return TagFilter.parse(expression).matches(tags)


@dataclass(frozen=True)
class HookRegistration:
    """
    A resolved hook: the event kind it reacts to, the optional tag filter, the callback
    and the scope the callback is invoked with.
    """

    kind: EventKind
    callback: HookCallback
    tags: Optional[TagFilter] = None
    scope: HookScope = HookScope.STATIC
    name: str = field(default="", compare=False)

    def __post_init__(self):
        if self.scope is HookScope.INSTANCE and self.kind in STATIC_ONLY_KINDS:
            raise HookRegistrationError(
                f"Hook {self.describe()!r} for {self.kind} requires an instance, but {self.kind} hooks are static."
            )
        if self.tags is not None and self.kind in SUITE_KINDS:
            raise HookRegistrationError(f"Hook {self.describe()!r} for {self.kind} cannot be tag-filtered.")

    @classmethod
    def create(
        cls,
        kind: EventKind,
        callback: HookCallback,
        tags: Optional[str] = None,
        scope: HookScope = HookScope.STATIC,
    ) -> "HookRegistration":
        """Builds a registration from raw hook metadata, compiling the tag filter expression."""
        tag_filter = TagFilter.parse(tags) if tags is not None else None
        name = getattr(callback, "__qualname__", None) or repr(callback)
        return cls(kind=kind, callback=callback, tags=tag_filter, scope=scope, name=name)

    def describe(self) -> str:
        return self.name or repr(self.callback)

    def matches(self, tags: Iterable[str]) -> bool:
        return self.tags is None or self.tags.matches(tags)

    def invoke(self, event, context=None) -> None:
        """Invokes the callback with the arguments its scope requires.

        Args:
            event: The event of the current transition.
            context: The running scenario's ExecutionContext (instance scope only).
        """
        if self.scope is HookScope.INSTANCE:
            if context is None:
                raise HookRegistrationError(f"Hook {self.describe()!r} requires an execution context.")
            self.callback(context, event)
        else:
            self.callback(event)


class HookRegistry:
    """Read-only collection of the hook registrations resolved before the run."""

    def __init__(self, registrations: Iterable[HookRegistration] = ()):
        self._registrations: Tuple[HookRegistration, ...] = tuple(registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def __iter__(self):
        return iter(self._registrations)

    def hooks_for(self, kind: EventKind, tags: Iterable[str] = ()) -> List[HookRegistration]:
        """Returns the registrations for an event kind whose tag filter matches the tags.

        Args:
            kind (EventKind): Event kind of the current transition.
            tags (Iterable[str]): Tags of the current feature or scenario (inherited tags included).

        Returns:
            List[HookRegistration]: Matching registrations in registration order.
        """
        tag_set = frozenset(tags)
        return [
            registration
            for registration in self._registrations
            if registration.kind is kind and registration.matches(tag_set)
        ]


def hook(kind: EventKind, tags: Optional[str] = None, scope: Optional[HookScope] = None) -> Callable:
    """Marks a function as a hook so that a loader can turn it into a HookRegistration.

    The scope defaults to INSTANCE for scenario and step hooks and to STATIC otherwise.

    Usage:

        @hook(EventKind.BEFORE_SCENARIO, tags="@database&&@fixtures")
        def load_fixtures(context, event):
            ...
    """
    if scope is None:
        scope = HookScope.STATIC if kind in STATIC_ONLY_KINDS else HookScope.INSTANCE
    if tags is not None:
        # Fail at decoration time rather than when the hooks are loaded.
        TagFilter.parse(tags)

    def decorator(func: HookCallback) -> HookCallback:
        markers = list(getattr(func, HOOK_ATTRIBUTE, ()))
        markers.append((kind, tags, scope))
        setattr(func, HOOK_ATTRIBUTE, tuple(markers))
        return func

    return decorator

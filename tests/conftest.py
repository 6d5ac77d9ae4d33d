import pytest

from bddrun.events import EventDispatcher
from support import EventRecorder, FakeMatcher, failing_step, pending_step


@pytest.fixture
def dispatcher() -> EventDispatcher:
    """Provides a fresh dispatcher."""
    return EventDispatcher()


@pytest.fixture
def recorder(dispatcher: EventDispatcher) -> EventRecorder:  # pylint: disable=redefined-outer-name
    """Provides a listener subscribed to every event kind of the ``dispatcher`` fixture."""
    return EventRecorder().subscribe(dispatcher)


@pytest.fixture
def matcher() -> FakeMatcher:
    """Provides a matcher knowing 'a passing step', 'a failing step' and 'a pending step'."""
    fake = FakeMatcher()
    fake.define("a passing step")
    fake.define("a failing step", failing_step)
    fake.define("a pending step", pending_step)
    return fake

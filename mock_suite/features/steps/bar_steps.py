from bar_support import BarHandler
from behave import given, then, when


@given("the Bar handler is ready")
def step_given(context):
    assert isinstance(context.bar_handler, BarHandler), "No Bar handler was created for the scenario"
    assert not context.bar_handler.closed, f"Bar handler {context.bar_handler.name!r} is already closed"


@when("the Bar dry run is set to '{state}'")
def step_when(context, state: str):
    context.bar_handler.set_dry_run(state.lower() == "true")


@then("the Bar dry run should be '{state}'")
def step_then(context, state: str):
    expected = state.lower() == "true"
    assert (
        context.bar_handler.get_dry_run() == expected
    ), f"THEN failed: Bar handler dry run is {context.bar_handler.get_dry_run()}, expected {expected}"

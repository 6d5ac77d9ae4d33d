"""
Hooks executed around the bddrun lifecycle events.

Behave-style functions (before_all, before_scenario, ...) and functions marked with
``bddrun.hook`` can be mixed in one file. The behave-style functions run first.
"""

from bar_support import BarHandler

from bddrun import EventKind, hook


def before_all(context):
    """
    Setup executed once before any feature runs. Attributes set here are visible to
    every scenario context.
    """
    context.handlers = []


def before_scenario(context, scenario):
    """
    Every scenario (and every outline example row) gets its own Bar handler.
    """
    context.bar_handler = BarHandler(scenario.name)
    context.handlers.append(context.bar_handler)
    context.add_cleanup(context.bar_handler.close)


@hook(EventKind.BEFORE_SCENARIO, tags="@reset")
def switch_to_live_mode(context, event):  # pylint: disable=unused-argument
    context.bar_handler.set_dry_run(False)

from typing import Any, Callable, Dict, List, Tuple, Union

Options = List[Tuple[Union[Tuple[str], Tuple[str, str]], Dict[str, Any]]]
DefaultValues = Dict[str, Any]
CommandArgs = List[str]

Listener = Callable[[Any], None]
"""Any callable receiving a published event."""

HookCallback = Callable[..., None]
"""Static hooks are called as ``callback(event)``, instance hooks as ``callback(context, event)``."""

Cleanup = Callable[..., None]

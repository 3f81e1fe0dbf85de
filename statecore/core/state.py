"""
State cell: the single source of truth for application state.

The cell holds one opaque value. The value is replaced wholesale on each
commit; readers always observe a complete value.
"""

import logging
from typing import Any, Callable, Dict, Hashable

logger = logging.getLogger(__name__)

# Watch signature: (key, old_value, new_value) -> None
Watch = Callable[[Hashable, Any, Any], None]


class StateCell:
    """
    Holder of the current application state.

    Fields:
        version: Monotonic commit counter (0 = initial value)

    Usage:
        cell = StateCell({"counter": 0})
        cell.reset({"counter": 1})
        cell.value  # {"counter": 1}
    """

    def __init__(self, initial: Any = None) -> None:
        self._value = {} if initial is None else initial
        self._version = 0
        self._watches: Dict[Hashable, Watch] = {}

    @property
    def value(self) -> Any:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def deref(self) -> Any:
        return self._value

    def reset(self, new_value: Any) -> Any:
        """
        Replace the current value and notify watches.

        Watches run after the new value is in place, in registration order.

        Returns:
            The new value
        """
        old = self._value
        self._value = new_value
        self._version += 1
        logger.debug(f"state committed (version {self._version})")
        for key, watch in list(self._watches.items()):
            watch(key, old, new_value)
        return new_value

    def add_watch(self, key: Hashable, watch: Watch) -> None:
        """Register watch under key (replaces an existing watch with the same key)."""
        self._watches[key] = watch

    def remove_watch(self, key: Hashable) -> None:
        self._watches.pop(key, None)

    def watch_count(self) -> int:
        return len(self._watches)

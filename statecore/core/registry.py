"""
Handler registries: events, subscriptions, effects.

Each registry maps an id to a handler. Re-registering an id replaces the
previous entry (last writer wins). Handlers are not inspected at
registration; a malformed handler fails only when invoked.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional

from .effects import RESERVED_KEYS
from .errors import EffectNotFound, HandlerNotFound
from .events import HandlerKind, event_id

logger = logging.getLogger(__name__)

# db-kind signature: (state, event) -> new_state
# fx-kind signature: ({"db": state}, event) -> effects description
EventHandler = Callable[[Any, Sequence], Any]
# Subscription signature: (state, query) -> derived value
Computation = Callable[[Any, Sequence], Any]
# Effect signature: (payload) -> ignored, or an awaitable on the async path
EffectHandler = Callable[[Any], Any]


@dataclass(frozen=True)
class EventHandlerEntry:
    event_id: Hashable
    handler: EventHandler
    kind: HandlerKind


class EventRegistry:
    """
    Registry of event handlers.

    Usage:
        events = EventRegistry()
        events.register("counter/increment", handle_increment, HandlerKind.DB)
        entry = events.lookup("counter/increment")
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, EventHandlerEntry] = {}

    def register(self, event_id: Hashable, handler: EventHandler, kind: HandlerKind) -> None:
        """
        Register event handler.

        Args:
            event_id: Event identifier
            handler: db-kind (state, event) -> state, or fx-kind ({"db": state}, event) -> effects
            kind: HandlerKind.DB or HandlerKind.FX (plain "db"/"fx" strings accepted)
        """
        kind = HandlerKind(kind)
        if event_id in self._entries:
            logger.debug(f"replacing event handler {event_id!r}")
        self._entries[event_id] = EventHandlerEntry(event_id, handler, kind)

    def lookup(self, event_id: Hashable) -> EventHandlerEntry:
        """
        Raises:
            HandlerNotFound: If no handler registered for event_id
        """
        try:
            return self._entries[event_id]
        except KeyError:
            raise HandlerNotFound(event_id, registry="event") from None

    def remove(self, event_id: Hashable) -> None:
        """Remove handler; unknown ids are ignored."""
        self._entries.pop(event_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def ids(self) -> List[Hashable]:
        return list(self._entries)

    def __contains__(self, event_id: Hashable) -> bool:
        return event_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _select_key(key: Hashable) -> Computation:
    def compute(state: Any, query: Sequence) -> Any:
        if isinstance(state, Mapping):
            return state.get(key)
        if not isinstance(key, str):
            return None
        return getattr(state, key, None)

    return compute


def _apply_selector(selector: Callable[..., Any]) -> Computation:
    def compute(state: Any, query: Sequence) -> Any:
        return selector(state, *query[1:])

    return compute


class SubscriptionRegistry:
    """
    Registry of subscription computations.

    Three registration forms, all normalized to compute(state, query):
        subs.register("todos", lambda state, query: state["todos"])
        subs.register("counter", key="counter")
        subs.register("todo", selector=lambda state, todo_id: state["todos"][todo_id])
    """

    def __init__(self) -> None:
        self._computations: Dict[Hashable, Computation] = {}

    def register(
        self,
        sub_id: Hashable,
        computation: Optional[Computation] = None,
        *,
        key: Optional[Hashable] = None,
        selector: Optional[Callable[..., Any]] = None,
    ) -> None:
        """
        Register subscription.

        Raises:
            ValueError: If not exactly one of computation, key, selector is given
        """
        given = [x is not None for x in (computation, key, selector)]
        if sum(given) != 1:
            raise ValueError(
                f"subscription {sub_id!r}: pass exactly one of computation, key= or selector="
            )
        if computation is not None:
            compute = computation
        elif key is not None:
            compute = _select_key(key)
        else:
            compute = _apply_selector(selector)
        self._computations[sub_id] = compute

    def lookup(self, sub_id: Hashable) -> Computation:
        """
        Raises:
            HandlerNotFound: If no computation registered for sub_id
        """
        try:
            return self._computations[sub_id]
        except KeyError:
            raise HandlerNotFound(sub_id, registry="subscription") from None

    def compute(self, state: Any, query: Sequence) -> Any:
        """Look up the computation for query[0] and run it against state."""
        compute = self.lookup(event_id(query, what="query"))
        return compute(state, query)

    def remove(self, sub_id: Hashable) -> None:
        self._computations.pop(sub_id, None)

    def clear(self) -> None:
        self._computations.clear()

    def ids(self) -> List[Hashable]:
        return list(self._computations)

    def __contains__(self, sub_id: Hashable) -> bool:
        return sub_id in self._computations


class EffectRegistry:
    """Registry of effect handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[Hashable, EffectHandler] = {}

    def register(self, effect_id: Hashable, handler: EffectHandler) -> None:
        """
        Register effect handler.

        Raises:
            ValueError: If effect_id is one of the keys the dispatcher interprets itself
        """
        if effect_id in RESERVED_KEYS:
            raise ValueError(f"{effect_id!r} is a reserved effect key")
        self._handlers[effect_id] = handler

    def invoke(self, effect_id: Hashable, payload: Any) -> Any:
        """
        Run the handler for effect_id with payload and return what it returned.

        The dispatcher ignores the result except to await it on the async path.

        Raises:
            EffectNotFound: If no handler registered for effect_id
        """
        try:
            handler = self._handlers[effect_id]
        except KeyError:
            raise EffectNotFound(effect_id) from None
        return handler(payload)

    def remove(self, effect_id: Hashable) -> None:
        self._handlers.pop(effect_id, None)

    def clear(self) -> None:
        self._handlers.clear()

    def ids(self) -> List[Hashable]:
        return list(self._handlers)

    def __contains__(self, effect_id: Hashable) -> bool:
        return effect_id in self._handlers

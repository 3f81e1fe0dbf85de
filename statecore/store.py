"""
Store: the application context owning state, registries and dispatcher.

Every piece of process-wide machinery (state cell, three registries,
scheduler) hangs off one Store object, so applications and tests can run
several isolated stores side by side.

Usage:
    store = Store(initial_state={"counter": 0})
    store.reg_event_db("increment", lambda db, ev: {**db, "counter": db["counter"] + 1})
    store.reg_sub("counter", key="counter")

    counter = store.subscribe(["counter"])
    store.dispatch_sync(["increment"])
    counter.value  # 1
"""

from collections.abc import Sequence
from typing import Any, Callable, Hashable, List, Optional

from .config import StoreConfig
from .core.events import HandlerKind, event_id
from .core.registry import (
    Computation,
    EffectHandler,
    EffectRegistry,
    EventHandler,
    EventRegistry,
    SubscriptionRegistry,
)
from .core.state import StateCell
from .dispatch.dispatcher import Dispatcher, DispatchRecord
from .dispatch.scheduler import ManualScheduler, Scheduler
from .metrics import start_metrics_server
from .reactive import Reaction


class Store:
    def __init__(
        self,
        initial_state: Any = None,
        scheduler: Optional[Scheduler] = None,
        config: Optional[StoreConfig] = None,
    ) -> None:
        self.config = config or StoreConfig()
        self.scheduler = scheduler if scheduler is not None else ManualScheduler()
        self.cell = StateCell(initial_state)
        self.events = EventRegistry()
        self.subscriptions = SubscriptionRegistry()
        self.effects = EffectRegistry()
        self.dispatcher = Dispatcher(
            self.cell,
            self.events,
            self.effects,
            self.scheduler,
            history_size=self.config.history_size,
        )
        if self.config.metrics_enabled:
            start_metrics_server(enabled=True, port=self.config.metrics_port)

    @classmethod
    def from_env(cls, initial_state: Any = None, scheduler: Optional[Scheduler] = None) -> "Store":
        return cls(initial_state, scheduler=scheduler, config=StoreConfig.from_env())

    @property
    def state(self) -> Any:
        """Current state value."""
        return self.cell.value

    @property
    def history(self) -> List[DispatchRecord]:
        """Most recent dispatch records, oldest first."""
        return self.dispatcher.history

    # Registration

    def reg_event_db(self, event_id: Hashable, handler: EventHandler) -> None:
        """Register handler(state, event) -> new_state."""
        self.events.register(event_id, handler, HandlerKind.DB)

    def reg_event_fx(self, event_id: Hashable, handler: EventHandler) -> None:
        """Register handler({"db": state}, event) -> effects description."""
        self.events.register(event_id, handler, HandlerKind.FX)

    def reg_sub(
        self,
        sub_id: Hashable,
        computation: Optional[Computation] = None,
        *,
        key: Optional[Hashable] = None,
        selector: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.subscriptions.register(sub_id, computation, key=key, selector=selector)

    def reg_fx(self, effect_id: Hashable, handler: EffectHandler) -> None:
        self.effects.register(effect_id, handler)

    def clear_event(self, event_id: Optional[Hashable] = None) -> None:
        """Remove one event handler, or all of them when event_id is None."""
        if event_id is None:
            self.events.clear()
        else:
            self.events.remove(event_id)

    def clear_sub(self, sub_id: Optional[Hashable] = None) -> None:
        if sub_id is None:
            self.subscriptions.clear()
        else:
            self.subscriptions.remove(sub_id)

    def clear_fx(self, effect_id: Optional[Hashable] = None) -> None:
        if effect_id is None:
            self.effects.clear()
        else:
            self.effects.remove(effect_id)

    # Dispatch

    def dispatch(self, event: Sequence) -> None:
        """Queue event; runs when the scheduler gets to it."""
        self.dispatcher.dispatch(event)

    def dispatch_sync(self, event: Sequence) -> None:
        """Process event to completion before returning."""
        self.dispatcher.dispatch_sync(event)

    async def dispatch_async(self, event: Sequence) -> None:
        """Process event to completion, awaiting handlers that return awaitables."""
        await self.dispatcher.dispatch_async(event)

    # Subscribe

    def subscribe(self, query: Sequence) -> Reaction:
        """
        Return a Reaction computing query against the current state.

        Raises:
            HandlerNotFound: If query[0] has no registered subscription
            InvalidEventError: If query is empty
        """
        compute = self.subscriptions.lookup(event_id(query, what="query"))
        return Reaction(self.cell, compute, query)

    def query(self, query: Sequence) -> Any:
        """One-shot read: compute query against the current state."""
        return self.subscriptions.compute(self.cell.value, query)

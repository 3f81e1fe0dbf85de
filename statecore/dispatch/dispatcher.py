"""
Dispatcher: turns an event into a state commit plus an ordered run of effects.

One dispatch step:
1. Look up the event handler (HandlerNotFound propagates, nothing changes)
2. Invoke it; a db-kind handler's result becomes {"db": result}
3. Commit "db" to the state cell before any other effect
4. Process the remaining effects in order:
   - "dispatch": nested event, processed to completion right here
   - "dispatch-later": handed to the scheduler, never blocks
   - "fx": [key, payload] pairs, flattened in listed order
   - "deregister-event-handler": remove that event handler
   - anything else: user effect from the EffectRegistry

Nested dispatches run on an explicit stack of effect iterators instead of
recursive calls. Order is depth-first: a nested event's commit and all of
its effects finish before the next sibling effect of its parent.

The first error aborts the rest of the step, outer frames included, and
propagates to the caller. Committed state is never rolled back.

process() is fully synchronous and rejects a handler that returns an
awaitable. process_async() runs the same steps but awaits such results:
the event handler before its commit, each effect before the next one.
"""

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Deque, Hashable, Iterator, List, Set, Tuple

from ..core.effects import (
    DB,
    DEREGISTER_EVENT_HANDLER,
    DISPATCH,
    DISPATCH_LATER,
    iter_effects,
    normalize,
    parse_dispatch_later,
)
from ..core.errors import InvalidEventError
from ..core.events import HandlerKind, describe, event_id
from ..core.registry import EffectRegistry, EventHandlerEntry, EventRegistry
from ..core.state import StateCell
from ..metrics import track_dispatch, track_dispatch_duration, track_effect, track_failure
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchRecord:
    """
    Trace entry for one processed event.

    Fields:
        event: The event as dispatched
        kind: Kind of the handler that ran
        committed: Whether the step replaced the state
        state_version: State cell version after the step's commit
        effect_keys: Top-level effect keys returned, in order ("db" included)
        depth: 0 for the dispatched event, >0 for nested "dispatch" effects
    """
    event: Tuple[Any, ...]
    kind: HandlerKind
    committed: bool
    state_version: int
    effect_keys: Tuple[Hashable, ...]
    depth: int


class Dispatcher:
    """
    Dispatch engine bound to one state cell and one pair of registries.

    Usage:
        dispatcher = Dispatcher(cell, events, effects, ManualScheduler())
        dispatcher.dispatch_sync(["counter/increment"])
    """

    def __init__(
        self,
        state: StateCell,
        events: EventRegistry,
        effects: EffectRegistry,
        scheduler: Scheduler,
        history_size: int = 100,
    ) -> None:
        self.state = state
        self.events = events
        self.effects = effects
        self.scheduler = scheduler
        self._history: Deque[DispatchRecord] = deque(maxlen=history_size)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def history(self) -> List[DispatchRecord]:
        return list(self._history)

    def dispatch_sync(self, event: Sequence) -> None:
        """
        Process event to completion before returning.

        Must not be called from inside an event or effect handler that is
        itself being processed; use dispatch() or a "dispatch" effect there.
        """
        self.process(event)

    def dispatch(self, event: Sequence) -> None:
        """
        Queue event on the scheduler. Calls from one caller run in FIFO order.

        Raises:
            InvalidEventError: If event is malformed (checked immediately)
        """
        event_id(event)
        self.scheduler.call_soon(partial(self.process, event))

    async def dispatch_async(self, event: Sequence) -> None:
        """Process event to completion, awaiting async event and effect handlers."""
        await self.process_async(event)

    def process(self, event: Sequence) -> None:
        """Run one full dispatch step for event."""
        trace_id = describe(event)
        with track_dispatch_duration():
            try:
                self._drain(event)
            except Exception as e:
                track_failure(e)
                logger.error(
                    f"dispatch aborted: {type(e).__name__}: {e}",
                    extra={"trace_id": trace_id},
                )
                raise

    async def process_async(self, event: Sequence) -> None:
        """
        Run one full dispatch step for event, awaiting handlers that return awaitables.

        An awaitable returned by the event handler is awaited before the
        commit. An awaitable returned by an effect handler is awaited before
        the next effect runs. Delayed dispatches queued from here run
        through process_async as well.
        """
        trace_id = describe(event)
        with track_dispatch_duration():
            try:
                await self._drain_async(event)
            except Exception as e:
                track_failure(e)
                logger.error(
                    f"dispatch aborted: {type(e).__name__}: {e}",
                    extra={"trace_id": trace_id},
                )
                raise

    def _drain(self, event: Sequence) -> None:
        stack: List[Iterator[Tuple[Any, Any]]] = [self._handle(event, depth=0)]
        while stack:
            try:
                key, value = next(stack[-1])
            except StopIteration:
                stack.pop()
                continue

            if key == DISPATCH:
                stack.append(self._handle(value, depth=len(stack)))
            else:
                result = self._apply_effect(key, value, self.process)
                _reject_awaitable(result, f"effect {key!r}")

    async def _drain_async(self, event: Sequence) -> None:
        stack: List[Iterator[Tuple[Any, Any]]] = [await self._handle_async(event, depth=0)]
        while stack:
            try:
                key, value = next(stack[-1])
            except StopIteration:
                stack.pop()
                continue

            if key == DISPATCH:
                stack.append(await self._handle_async(value, depth=len(stack)))
            else:
                result = self._apply_effect(key, value, self._spawn)
                if inspect.isawaitable(result):
                    await result

    def _handle(self, event: Sequence, depth: int) -> Iterator[Tuple[Any, Any]]:
        """
        Invoke the handler for event and commit its "db" effect.

        Returns:
            Iterator over the remaining effects
        """
        entry, result = self._invoke(event)
        _reject_awaitable(result, f"event handler for {entry.event_id!r}")
        return self._commit(event, entry, result, depth)

    async def _handle_async(self, event: Sequence, depth: int) -> Iterator[Tuple[Any, Any]]:
        entry, result = self._invoke(event)
        if inspect.isawaitable(result):
            result = await result
        return self._commit(event, entry, result, depth)

    def _invoke(self, event: Sequence) -> Tuple[EventHandlerEntry, Any]:
        entry = self.events.lookup(event_id(event))
        current = self.state.value
        if entry.kind is HandlerKind.DB:
            return entry, entry.handler(current, event)
        return entry, entry.handler({DB: current}, event)

    def _commit(
        self,
        event: Sequence,
        entry: EventHandlerEntry,
        result: Any,
        depth: int,
    ) -> Iterator[Tuple[Any, Any]]:
        if entry.kind is HandlerKind.DB:
            effects = {DB: result}
        else:
            effects = normalize(result)

        committed = DB in effects
        if committed:
            self.state.reset(effects[DB])

        self._history.append(
            DispatchRecord(
                event=tuple(event),
                kind=entry.kind,
                committed=committed,
                state_version=self.state.version,
                effect_keys=tuple(effects.keys()),
                depth=depth,
            )
        )
        track_dispatch(entry.event_id, entry.kind.value)
        logger.debug(
            f"handled {entry.kind.value} event (depth {depth}, committed={committed})",
            extra={"trace_id": str(entry.event_id)},
        )
        return iter_effects(effects)

    def _apply_effect(self, key: Any, value: Any, runner: Callable[[Sequence], Any]) -> Any:
        """
        Run one non-"dispatch" effect. runner processes delayed events.

        Returns:
            Whatever a user effect handler returned, None for built-in keys
        """
        if key == DISPATCH_LATER:
            self._schedule_later(value, runner)
            return None
        if key == DEREGISTER_EVENT_HANDLER:
            logger.debug(f"deregistering event handler {value!r}")
            self.events.remove(value)
            return None
        logger.debug(f"running effect {key!r}")
        result = self.effects.invoke(key, value)
        track_effect(key)
        return result

    def _schedule_later(self, value: Any, runner: Callable[[Sequence], Any]) -> None:
        for delayed in parse_dispatch_later(value):
            event_id(delayed.event)
            logger.debug(f"scheduling {describe(delayed.event)!r} in {delayed.ms}ms")
            self.scheduler.call_later(delayed.ms, partial(runner, delayed.event))

    def _spawn(self, event: Sequence) -> None:
        """Start process_async(event) on the running loop, or run it to completion."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.process_async(event))
            return
        task = loop.create_task(self.process_async(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _reject_awaitable(result: Any, what: str) -> None:
    if not inspect.isawaitable(result):
        return
    close = getattr(result, "close", None)
    if close is not None:
        close()
    raise InvalidEventError(f"{what} returned an awaitable; use dispatch_async")

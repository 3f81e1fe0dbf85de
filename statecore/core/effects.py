"""
Effects descriptions.

An fx-kind event handler returns a mapping of effect key -> payload.
The reserved keys below are interpreted by the dispatcher itself; every
other key names a handler in the EffectRegistry.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Iterator, Tuple

from .errors import InvalidEventError

DB = "db"
DISPATCH = "dispatch"
DISPATCH_LATER = "dispatch-later"
FX = "fx"
DEREGISTER_EVENT_HANDLER = "deregister-event-handler"

RESERVED_KEYS = frozenset({DB, DISPATCH, DISPATCH_LATER, FX, DEREGISTER_EVENT_HANDLER})


@dataclass(frozen=True)
class DelayedDispatch:
    """
    Parsed ``dispatch-later`` payload.

    Fields:
        ms: Delay in whole milliseconds (>= 0), fractions rounded up
        event: Event to dispatch once the delay elapsed
    """
    ms: int
    event: Sequence


def normalize(effects: Any) -> Mapping:
    """
    Validate handler output.

    None means "no effects". Anything else must be a mapping.
    """
    if effects is None:
        return {}
    if not isinstance(effects, Mapping):
        raise InvalidEventError(
            f"fx handler must return a mapping of effects, got {type(effects).__name__}"
        )
    return effects


def iter_effects(effects: Mapping) -> Iterator[Tuple[Any, Any]]:
    """
    Yield (effect_key, payload) pairs in processing order, ``db`` excluded.

    ``fx`` entries are flattened in their listed order so the dispatcher
    sees one uniform stream. None entries inside ``fx`` are skipped.
    """
    for key, value in effects.items():
        if key == DB:
            continue
        if key == FX:
            yield from _iter_fx(value)
        else:
            yield key, value


def _iter_fx(pairs: Any) -> Iterator[Tuple[Any, Any]]:
    if pairs is None:
        return
    if isinstance(pairs, (str, bytes, Mapping)) or not isinstance(pairs, Sequence):
        raise InvalidEventError(f"'fx' expects a sequence of [key, payload] pairs, got {pairs!r}")
    for pair in pairs:
        if pair is None:
            continue
        if isinstance(pair, (str, bytes)) or not isinstance(pair, Sequence) or len(pair) != 2:
            raise InvalidEventError(f"'fx' entry must be a [key, payload] pair, got {pair!r}")
        key, value = pair
        if key in (DB, FX):
            raise InvalidEventError(f"'{key}' is not allowed inside 'fx'")
        yield key, value


def parse_dispatch_later(value: Any) -> Tuple[DelayedDispatch, ...]:
    """
    Parse a ``dispatch-later`` payload.

    Accepts ``{"ms": 200, "dispatch": [...]}`` or a sequence of such
    mappings (None entries skipped).
    """
    if isinstance(value, Mapping):
        items = [value]
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        items = [v for v in value if v is not None]
    else:
        raise InvalidEventError(f"'dispatch-later' expects a mapping, got {value!r}")

    parsed = []
    for item in items:
        if not isinstance(item, Mapping) or "dispatch" not in item:
            raise InvalidEventError(f"'dispatch-later' entry needs 'ms' and 'dispatch': {item!r}")
        ms = item.get("ms", 0)
        if not isinstance(ms, (int, float)) or isinstance(ms, bool) or ms < 0:
            raise InvalidEventError(f"'dispatch-later' ms must be a non-negative number: {ms!r}")
        parsed.append(DelayedDispatch(ms=math.ceil(ms), event=item["dispatch"]))
    return tuple(parsed)

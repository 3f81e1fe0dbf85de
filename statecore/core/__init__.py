"""
Core primitives of the state store.

- StateCell: holder of the single current state value
- EventRegistry / SubscriptionRegistry / EffectRegistry: id -> handler maps
- effects: reserved effect keys and effects-description parsing
- Canonical: deterministic serialization and state hashing
"""

from .state import StateCell
from .events import HandlerKind, event_id
from .registry import (
    EventRegistry,
    EventHandlerEntry,
    SubscriptionRegistry,
    EffectRegistry,
)
from .effects import (
    DB,
    DISPATCH,
    DISPATCH_LATER,
    FX,
    DEREGISTER_EVENT_HANDLER,
    RESERVED_KEYS,
)
from .canonical import canonicalize, canonical_json_bytes, canonical_json_str, state_hash
from .errors import StoreError, HandlerNotFound, EffectNotFound, InvalidEventError

__all__ = [
    "StateCell",
    "HandlerKind",
    "event_id",
    "EventRegistry",
    "EventHandlerEntry",
    "SubscriptionRegistry",
    "EffectRegistry",
    "DB",
    "DISPATCH",
    "DISPATCH_LATER",
    "FX",
    "DEREGISTER_EVENT_HANDLER",
    "RESERVED_KEYS",
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "state_hash",
    "StoreError",
    "HandlerNotFound",
    "EffectNotFound",
    "InvalidEventError",
]

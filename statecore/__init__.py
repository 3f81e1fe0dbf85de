"""
statecore

Single-writer reactive state store: events change state, subscriptions
derive values from it, effects carry out everything else.
"""

from .core import (
    StateCell,
    HandlerKind,
    EventRegistry,
    SubscriptionRegistry,
    EffectRegistry,
    StoreError,
    HandlerNotFound,
    EffectNotFound,
    InvalidEventError,
    state_hash,
)
from .dispatch import Dispatcher, DispatchRecord, ManualScheduler, AsyncioScheduler
from .reactive import Reaction
from .config import StoreConfig
from .store import Store

__version__ = "0.1.0"

__all__ = [
    "Store",
    "StoreConfig",
    "StateCell",
    "HandlerKind",
    "EventRegistry",
    "SubscriptionRegistry",
    "EffectRegistry",
    "Dispatcher",
    "DispatchRecord",
    "ManualScheduler",
    "AsyncioScheduler",
    "Reaction",
    "StoreError",
    "HandlerNotFound",
    "EffectNotFound",
    "InvalidEventError",
    "state_hash",
]

"""
Resolve an application reference ("package.module:factory") to a Store.
"""

import importlib
import json
from typing import Any, List

from ..core.errors import InvalidEventError
from ..store import Store


def load_store(app_ref: str) -> Store:
    """
    Import app_ref and return its Store.

    The attribute may be a Store or a zero-argument callable returning one.

    Raises:
        ValueError: If the reference is malformed or does not yield a Store
    """
    module_name, sep, attr = app_ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"expected 'module:attribute', got {app_ref!r}")

    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"{module_name!r} has no attribute {attr!r}") from None

    store = target() if callable(target) and not isinstance(target, Store) else target
    if not isinstance(store, Store):
        raise ValueError(f"{app_ref!r} did not produce a Store (got {type(store).__name__})")
    return store


def parse_event(raw: str) -> List[Any]:
    """
    Parse an event given on the command line.

    A JSON array is used as-is; any other text is a payload-less event id.
    """
    text = raw.strip()
    if not text.startswith("["):
        return [text]
    event = json.loads(text)
    if not event:
        raise InvalidEventError(f"event must not be empty: {raw!r}")
    return event

"""
Event vocabulary.

An event is a non-empty sequence whose first element is the event id and
whose remaining elements are payload, e.g. ``("todos/add", "buy milk")``.
Subscription queries share the same shape.
"""

from collections.abc import Sequence
from enum import Enum
from typing import Any, Hashable

from .errors import InvalidEventError


class HandlerKind(str, Enum):
    """Kind of an event handler."""

    DB = "db"
    FX = "fx"


def event_id(event: Sequence, what: str = "event") -> Hashable:
    """
    Return the id (first element) of an event or query.

    Raises:
        InvalidEventError: If event is not a non-empty sequence
    """
    if isinstance(event, (str, bytes)) or not isinstance(event, Sequence):
        raise InvalidEventError(f"{what} must be a non-empty sequence, got {event!r}")
    if len(event) == 0:
        raise InvalidEventError(f"{what} must not be empty")
    return event[0]


def describe(event: Any) -> str:
    """Short printable form used in log lines."""
    try:
        return str(event_id(event))
    except InvalidEventError:
        return repr(event)

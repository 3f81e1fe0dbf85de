"""
Exception types for the dispatch engine.
"""


class StoreError(Exception):
    """Base class for all store errors."""
    pass


class HandlerNotFound(StoreError, LookupError):
    """Raised when an event or subscription id has no registered handler."""

    def __init__(self, handler_id, registry: str = "event") -> None:
        super().__init__(f"No {registry} handler registered for: {handler_id!r}")
        self.handler_id = handler_id
        self.registry = registry


class EffectNotFound(StoreError, LookupError):
    """Raised when an effects description references an unregistered effect id."""

    def __init__(self, effect_id) -> None:
        super().__init__(f"No effect handler registered for: {effect_id!r}")
        self.effect_id = effect_id


class InvalidEventError(StoreError, ValueError):
    """Raised when an event, query or effect payload is malformed."""
    pass

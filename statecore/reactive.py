"""
Reaction: a derived value bound to a state cell.

A Reaction is lazy. Reading .value computes from the cell's current state
and caches the result until the next commit. Watchers are notified after a
commit only when the derived value actually changed.

A computation or watcher that raises during a commit is logged and does not
interrupt the dispatch that made the commit. The next read of .value
recomputes and raises to the reader.
"""

import itertools
import logging
from collections.abc import Sequence
from typing import Any, Callable, Dict, Hashable, Optional

from .core.state import StateCell

logger = logging.getLogger(__name__)

# Watcher signature: (old_value, new_value) -> None
Watcher = Callable[[Any, Any], None]

_UNSET = object()
_ids = itertools.count(1)


class Reaction:
    def __init__(
        self,
        cell: StateCell,
        compute: Callable[[Any, Sequence], Any],
        query: Sequence,
    ) -> None:
        self.query = tuple(query)
        self._cell = cell
        self._compute = compute
        self._cached: Any = _UNSET
        self._cached_version: Optional[int] = None
        self._watchers: Dict[int, Watcher] = {}
        self._watch_key: Hashable = ("reaction", next(_ids))
        self._disposed = False

    @property
    def value(self) -> Any:
        version = self._cell.version
        if self._cached is _UNSET or self._cached_version != version:
            self._cached = self._compute(self._cell.value, self.query)
            self._cached_version = version
        return self._cached

    def deref(self) -> Any:
        return self.value

    def watch(self, watcher: Watcher) -> Callable[[], None]:
        """
        Call watcher(old, new) after each commit that changes this value.

        Returns:
            Function that removes the watcher
        """
        if self._disposed:
            raise RuntimeError(f"reaction for {self.query!r} is disposed")
        if not self._watchers:
            # Prime the cache so the first commit has something to compare against
            _ = self.value
            self._cell.add_watch(self._watch_key, self._on_commit)
        token = next(_ids)
        self._watchers[token] = watcher

        def unwatch() -> None:
            self._watchers.pop(token, None)
            if not self._watchers:
                self._cell.remove_watch(self._watch_key)

        return unwatch

    def dispose(self) -> None:
        self._watchers.clear()
        self._cell.remove_watch(self._watch_key)
        self._disposed = True

    def _on_commit(self, key: Hashable, old_state: Any, new_state: Any) -> None:
        # Runs inside the commit; errors are logged and kept out of the dispatch step
        old = self._cached
        try:
            new = self.value
        except Exception as e:
            self._cached = _UNSET
            self._cached_version = None
            logger.error(
                f"reaction {self.query!r} failed to recompute: {type(e).__name__}: {e}",
                extra={"trace_id": str(self.query[0])},
            )
            return
        if old is not _UNSET and old == new:
            return
        for watcher in list(self._watchers.values()):
            try:
                watcher(None if old is _UNSET else old, new)
            except Exception as e:
                logger.error(
                    f"watcher of reaction {self.query!r} raised: {type(e).__name__}: {e}",
                    extra={"trace_id": str(self.query[0])},
                )

    def __repr__(self) -> str:
        return f"Reaction({self.query!r})"

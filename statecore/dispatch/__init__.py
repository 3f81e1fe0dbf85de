"""
Dispatch engine and its scheduling collaborators.
"""

from .dispatcher import Dispatcher, DispatchRecord
from .scheduler import Scheduler, ManualScheduler, AsyncioScheduler

__all__ = [
    "Dispatcher",
    "DispatchRecord",
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
]

# watchfs/watch/__init__.py

"""
watchfs watch module - file system monitoring and debouncing
"""
from .events import ChangeEvent, ChangeKind, WatchError
from .patterns import PathFilter
from .debounce import DeadlineTimer, DebounceScheduler
from .handlers import ChangeEventHandler
from .monitor import WatchLoop

__all__ = [
    'ChangeEvent',
    'ChangeKind',
    'WatchError',
    'PathFilter',
    'DeadlineTimer',
    'DebounceScheduler',
    'ChangeEventHandler',
    'WatchLoop',
]

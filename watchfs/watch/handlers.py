# watchfs/watch/handlers.py

"""
Event handler bridging watchdog observers to the watch loop
"""
import os
import logging
from queue import Queue
from datetime import datetime
from typing import Optional, Dict, Any, List, Union

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileCreatedEvent,
    FileModifiedEvent,
    FileDeletedEvent,
    FileMovedEvent,
    FileClosedEvent,
    DirCreatedEvent,
    DirModifiedEvent,
    DirDeletedEvent,
    DirMovedEvent
)

from .events import ChangeEvent, ChangeKind, WatchError

logger = logging.getLogger(__name__)

QueueItem = Union[ChangeEvent, WatchError]


class ChangeEventHandler(FileSystemEventHandler):
    """
    Normalizes watchdog events and queues them for the watch loop

    House-keeping notifications (opens, closes without a write, and the
    modification events watchdog raises on a parent directory whenever one
    of its entries changes) are dropped here and never reach the queue.
    """

    def __init__(self, root: Union[str, os.PathLike], queue: Optional[Queue] = None):
        """
        Initialize change event handler

        Args:
            root: Watched root directory (canonical)
            queue: Destination queue; a new unbounded queue by default
        """
        self.root = os.fsdecode(root)
        self.queue: Queue = queue if queue is not None else Queue()

        # Statistics
        self.stats = {
            'events_received': 0,
            'events_queued': 0,
            'events_ignored': 0,
            'errors': 0,
            'last_event': None,
        }

    def on_any_event(self, event: FileSystemEvent):
        """Handle any file system event"""
        self.stats['events_received'] += 1
        self.stats['last_event'] = datetime.now()

        try:
            if self._is_root_removal(event):
                self.report_error("Watched directory was removed", self.root)
                return

            changes = self._convert_event(event)
        except Exception as e:
            logger.error(f"Error converting event {event!r}: {e}")
            self.report_error(str(e), _decode(getattr(event, 'src_path', None)))
            return

        if not changes:
            self.stats['events_ignored'] += 1
            logger.debug(f"Ignoring house-keeping event: {event!r}")
            return

        for change in changes:
            self.queue.put(change)
            self.stats['events_queued'] += 1

    def report_error(self, message: str, path: Optional[str] = None):
        """Queue an error for the watch loop"""
        self.stats['errors'] += 1
        self.queue.put(WatchError(message=message, path=path))

    def _is_root_removal(self, event: FileSystemEvent) -> bool:
        return (isinstance(event, DirDeletedEvent)
                and os.path.normpath(_decode(event.src_path)) == os.path.normpath(self.root))

    def _convert_event(self, event: FileSystemEvent) -> List[ChangeEvent]:
        """Convert a watchdog event to zero or more change events"""
        is_directory = event.is_directory
        src_path = _decode(event.src_path)

        if isinstance(event, (FileCreatedEvent, DirCreatedEvent)):
            return [ChangeEvent(src_path, ChangeKind.CREATE, is_directory)]
        elif isinstance(event, DirModifiedEvent):
            return []
        elif isinstance(event, FileModifiedEvent):
            return [ChangeEvent(src_path, ChangeKind.MODIFY, is_directory)]
        elif isinstance(event, (FileDeletedEvent, DirDeletedEvent)):
            return [ChangeEvent(src_path, ChangeKind.REMOVE, is_directory)]
        elif isinstance(event, (FileMovedEvent, DirMovedEvent)):
            # A rename changes both the old and the new location
            return [
                ChangeEvent(src_path, ChangeKind.OTHER, is_directory),
                ChangeEvent(_decode(event.dest_path), ChangeKind.CREATE, is_directory),
            ]
        elif isinstance(event, FileClosedEvent):
            return [ChangeEvent(src_path, ChangeKind.OTHER, is_directory)]

        return []

    def get_stats(self) -> Dict[str, Any]:
        """Get handler statistics"""
        return self.stats.copy()


def _decode(path: Any) -> Optional[str]:
    if path is None:
        return None
    return os.fsdecode(path)

# watchfs/watch/events.py

from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class ChangeKind(Enum):
    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    OTHER = "other"


@dataclass
class ChangeEvent:
    path: str
    kind: ChangeKind
    is_directory: bool = False
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    def __str__(self):
        return f"{self.kind.value}: {self.path}"


@dataclass
class WatchError:
    """Error reported by the watch primitive instead of a change"""
    message: str
    path: Optional[str] = None

    def __str__(self):
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message

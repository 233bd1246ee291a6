# watchfs/errors.py

"""
Exception types for watchfs
"""
from typing import Optional


class WatchfsError(Exception):
    """Base class for all watchfs errors"""


class ConfigError(WatchfsError):
    """
    Invalid configuration, detected at startup

    The exit code is the one the command line reports for this problem.
    """

    def __init__(self, message: str, exit_code: int = 2):
        super().__init__(message)
        self.exit_code = exit_code


class WatchStartError(WatchfsError):
    """The watched directory could not be watched"""


class RelativizeError(WatchfsError):
    """A changed path was reported outside of the watched root"""

    def __init__(self, path: str, root: str):
        super().__init__(f"Path {path!r} is not under watched root {root!r}")
        self.path = path
        self.root = root


class ExitRequested(WatchfsError):
    """
    Raised when the process as a whole should terminate

    Args:
        code: Process exit code
        reason: Human readable explanation, logged before exiting
    """

    def __init__(self, code: int, reason: Optional[str] = None):
        super().__init__(reason or f"exit requested with code {code}")
        self.code = code
        self.reason = reason

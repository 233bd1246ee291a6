# watchfs/watch/patterns.py

"""
Regular expression filtering of changed paths
"""
import re
import logging
from pathlib import PurePath
from typing import Optional, Pattern, Union

from ..errors import ConfigError
from ..utils.config import EXIT_BAD_FILTER

logger = logging.getLogger(__name__)


class PathFilter:
    """
    Accepts or rejects fully qualified paths against optional patterns

    A path is accepted when it is valid UTF-8, matches the filter pattern
    (if any) and does not match the ignore pattern (if any).  Patterns are
    searched for anywhere in the path, so anchor them when needed.
    """

    def __init__(self, pattern: Optional[str] = None, ignore_pattern: Optional[str] = None):
        """
        Initialize path filter

        Args:
            pattern: Only paths matching this expression are accepted
            ignore_pattern: Paths matching this expression are rejected

        Raises:
            ConfigError: If a pattern does not compile
        """
        self.pattern = pattern
        self.ignore_pattern = ignore_pattern
        self.compiled_pattern = _compile(pattern)
        self.compiled_ignore = _compile(ignore_pattern)

    def accepts(self, path: Union[str, PurePath]) -> bool:
        """
        Check whether a changed path should reach the scheduler

        Args:
            path: Fully qualified path of the change

        Returns:
            True if the path is valid UTF-8 and passes both patterns
        """
        path_str = str(path)
        if not _is_utf8(path_str):
            logger.debug(f"Rejecting path that is not valid UTF-8: {path_str!r}")
            return False

        if self.compiled_pattern is not None and not self.compiled_pattern.search(path_str):
            return False
        if self.compiled_ignore is not None and self.compiled_ignore.search(path_str):
            return False
        return True

    def __repr__(self):
        return f"PathFilter(pattern={self.pattern!r}, ignore_pattern={self.ignore_pattern!r})"


def _compile(pattern: Optional[str]) -> Optional[Pattern[str]]:
    if pattern is None:
        return None
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise ConfigError(
            f"Invalid regular expression '{pattern}' - {e}",
            exit_code=EXIT_BAD_FILTER,
        ) from e
    logger.debug(f"Compiled pattern {pattern!r}")
    return compiled


def _is_utf8(value: str) -> bool:
    # Undecodable file name bytes arrive as lone surrogates
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True

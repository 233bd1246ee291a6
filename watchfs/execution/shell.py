# watchfs/execution/shell.py

"""
Building the single command string handed to a shell

Quoting here is minimal and best-effort: a token containing whitespace is
wrapped in single quotes, or in double quotes when it already contains a
single quote or a ``$``.  Quote characters inside a token are not escaped,
so a token holding both kinds of quote still produces a broken command.
This is not a general shell-escaping routine.
"""
import sys
from typing import Iterable, List

_WHITESPACE = (' ', '\n', '\t')


def maybe_quote(token: str) -> str:
    """
    Quote a token if it contains whitespace

    Args:
        token: Single command line token

    Returns:
        The token, possibly wrapped in quotes
    """
    if not any(ch in token for ch in _WHITESPACE):
        return token

    quote_char = '"' if ('$' in token or "'" in token) else "'"
    return f"{quote_char}{token}{quote_char}"


def join_tokens(tokens: Iterable[str]) -> str:
    """Join tokens with single spaces, quoting each as needed"""
    return ' '.join(maybe_quote(token) for token in tokens)


def shell_argv(command_string: str, platform: str = sys.platform) -> List[str]:
    """
    Argument vector running a command string through the platform shell

    ``sh -c`` everywhere except Windows, where ``cmd /C`` is used.
    """
    if platform == "win32":
        return ["cmd", "/C", command_string]
    return ["sh", "-c", command_string]

# watchfs/execution/__init__.py

"""
watchfs execution module - running the configured command
"""
from .dispatcher import CommandDispatcher, ExecutionOutcome, ExecutionResult, spawn_and_wait
from .shell import maybe_quote, join_tokens, shell_argv

__all__ = [
    'CommandDispatcher',
    'ExecutionOutcome',
    'ExecutionResult',
    'spawn_and_wait',
    'maybe_quote',
    'join_tokens',
    'shell_argv',
]

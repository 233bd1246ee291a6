# watchfs/execution/dispatcher.py

"""
Running the configured command for a batch of changed paths
"""
import logging
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Callable, List, Optional, Sequence

from ..errors import ExitRequested, RelativizeError
from ..utils.config import WatchConfig
from ..utils.logger import PerformanceLogger
from .shell import join_tokens, shell_argv

logger = logging.getLogger(__name__)

# Process exit codes for the per-invocation policy
EXIT_ONCE_SUCCEEDED = 0
EXIT_COMMAND_FAILED = 12
EXIT_WAIT_FAILED = 100
EXIT_SPAWN_FAILED = 101


class ExecutionOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED_NON_ZERO = "failed_non_zero"
    SPAWN_ERROR = "spawn_error"
    WAIT_ERROR = "wait_error"


@dataclass
class ExecutionResult:
    """Outcome of one command invocation"""
    outcome: ExecutionOutcome
    argv: List[str]
    returncode: Optional[int] = None
    error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome is ExecutionOutcome.SUCCEEDED


Runner = Callable[[List[str]], ExecutionResult]


class CommandDispatcher:
    """
    Builds the command line for a snapshot of changed paths and runs it

    ``run`` blocks until the child exits.  Because it is only ever called
    from the single timer thread, two invocations never overlap.
    """

    def __init__(self, config: WatchConfig, runner: Optional[Runner] = None):
        """
        Initialize command dispatcher

        Args:
            config: Effective configuration
            runner: Spawns the argument vector and waits for it; defaults
                to a subprocess based runner
        """
        if not config.command:
            raise ValueError("Command is empty")

        self.config = config
        self.runner = runner or spawn_and_wait

        self.stats = {
            'invocations': 0,
            'succeeded': 0,
            'failed': 0,
            'spawn_errors': 0,
        }

    def run(self, paths: Sequence[str]) -> Optional[ExecutionResult]:
        """
        Run the command for a batch of changed paths

        Args:
            paths: Changed paths, absolute

        Returns:
            The execution result, or None when there was nothing to run

        Raises:
            RelativizeError: If a path lies outside the watched root
            ExitRequested: If the exit policy says the process should end
        """
        if not paths:
            logger.debug("No changed paths - nothing to run")
            return None

        logger.info(f"EMIT {list(paths)}")

        path_args = self.prepare_paths(paths)
        argv = self.build_argv(path_args)

        logger.info(f"Launch {argv}")
        self.stats['invocations'] += 1
        with PerformanceLogger("command", logger, {'argv': argv}):
            result = self.runner(argv)

        self.apply_policy(result)
        return result

    def prepare_paths(self, paths: Sequence[str]) -> List[str]:
        """Path arguments to append to the command, if any"""
        if not self.config.pass_changed_paths:
            return []
        if not self.config.relativize_paths:
            return list(paths)
        return [relativize(path, self.config.path) for path in paths]

    def build_argv(self, path_args: Sequence[str]) -> List[str]:
        """
        Argument vector to spawn

        Args:
            path_args: Changed path arguments (already relativized)
        """
        if self.config.shell:
            return shell_argv(self.build_shell_string(path_args))
        return [*self.config.command, *path_args]

    def build_shell_string(self, path_args: Sequence[str]) -> str:
        """The single string passed to the shell"""
        return join_tokens([*self.config.command, *path_args])

    def apply_policy(self, result: ExecutionResult):
        """
        Decide whether the process should keep watching

        Raises:
            ExitRequested: When ``once`` or ``exit_on_error`` ends the run
        """
        if result.outcome is ExecutionOutcome.SUCCEEDED:
            self.stats['succeeded'] += 1
            logger.info(f"Command success: {result.argv}")
            if self.config.once:
                raise ExitRequested(
                    EXIT_ONCE_SUCCEEDED,
                    "--once was passed and command has succeeded. Exiting.",
                )
            return

        if result.outcome is ExecutionOutcome.FAILED_NON_ZERO:
            self.stats['failed'] += 1
            logger.warning(f"Command exited with {result.returncode}: {result.argv}")
            if self.config.exit_on_error:
                raise ExitRequested(
                    EXIT_COMMAND_FAILED,
                    f"Process exited with {result.returncode} and exit-on-error is set. Exiting.",
                )
            return

        self.stats['spawn_errors'] += 1
        if result.outcome is ExecutionOutcome.WAIT_ERROR:
            logger.error(f"Error waiting for command {result.argv}: {result.error}")
            code = EXIT_WAIT_FAILED
        else:
            logger.error(f"Error launching process {result.argv}: {result.error}")
            code = EXIT_SPAWN_FAILED

        if self.config.exit_on_error:
            raise ExitRequested(code, "Error launching process. Exiting.")


def spawn_and_wait(argv: List[str]) -> ExecutionResult:
    """
    Start a child process and wait for it, inheriting stdio

    Args:
        argv: Program and arguments

    Returns:
        Execution result; spawn and wait failures are reported, not raised
    """
    start = time.monotonic()
    try:
        process = subprocess.Popen(argv)
    except OSError as e:
        return ExecutionResult(ExecutionOutcome.SPAWN_ERROR, argv, error=e)

    logger.debug(f"Enter wait for pid {process.pid}")
    try:
        returncode = process.wait()
    except OSError as e:
        return ExecutionResult(ExecutionOutcome.WAIT_ERROR, argv, error=e,
                               duration=time.monotonic() - start)

    outcome = ExecutionOutcome.SUCCEEDED if returncode == 0 else ExecutionOutcome.FAILED_NON_ZERO
    return ExecutionResult(outcome, argv, returncode=returncode,
                           duration=time.monotonic() - start)


def relativize(path: str, root: str) -> str:
    """
    Express a changed path relative to the watched root

    Raises:
        RelativizeError: If the path is not under the root
    """
    try:
        return str(PurePath(path).relative_to(PurePath(root)))
    except ValueError as e:
        raise RelativizeError(path, root) from e

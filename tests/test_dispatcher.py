"""Tests for :mod:`watchfs.execution.dispatcher`."""
from __future__ import annotations

import os
import sys

import pytest

from watchfs.errors import ExitRequested, RelativizeError
from watchfs.execution.dispatcher import (
    CommandDispatcher,
    ExecutionOutcome,
    relativize,
    spawn_and_wait,
)
from watchfs.utils.config import WatchConfig

from .conftest import RecordingRunner


def make_dispatcher(runner, **overrides):
    values = {"path": os.sep + "w", "command": ("make", "build")}
    values.update(overrides)
    return CommandDispatcher(WatchConfig(**values), runner=runner)


def w(*parts):
    return os.path.join(os.sep + "w", *parts)


def test_empty_batch_is_noop(runner):
    dispatcher = make_dispatcher(runner)

    assert dispatcher.run([]) is None
    assert runner.calls == []


def test_direct_exec_without_paths(runner):
    dispatcher = make_dispatcher(runner)

    result = dispatcher.run([w("a.txt")])

    assert result.success
    assert runner.calls == [["make", "build"]]


def test_direct_exec_appends_changed_paths(runner):
    dispatcher = make_dispatcher(runner, pass_changed_paths=True)

    dispatcher.run([w("a.txt"), w("b c.txt")])

    assert runner.calls == [["make", "build", w("a.txt"), w("b c.txt")]]


def test_relativized_paths(runner):
    dispatcher = make_dispatcher(runner, pass_changed_paths=True, relativize_paths=True)

    dispatcher.run([w("a.txt"), w("sub", "b.txt")])

    assert runner.calls == [["make", "build", "a.txt", os.path.join("sub", "b.txt")]]


def test_path_outside_root_is_fatal(runner):
    dispatcher = make_dispatcher(runner, pass_changed_paths=True, relativize_paths=True)

    with pytest.raises(RelativizeError) as excinfo:
        dispatcher.run([os.path.join(os.sep + "elsewhere", "a.txt")])

    assert excinfo.value.root == w()
    assert runner.calls == []


def test_relativize_helper():
    assert relativize(w("x", "y"), w()) == os.path.join("x", "y")
    with pytest.raises(RelativizeError):
        relativize(os.sep + "wx", w())


def test_shell_string_quotes_paths_with_spaces(runner):
    dispatcher = make_dispatcher(runner, command=("echo",), shell=True, pass_changed_paths=True)

    assert dispatcher.build_shell_string(["my file.txt"]) == "echo 'my file.txt'"

    dispatcher.run(["my file.txt"])
    assert runner.calls[0][-1] == "echo 'my file.txt'"


def test_shell_mode_without_pass_paths(runner):
    dispatcher = make_dispatcher(runner, command=("git", "commit", "-m", "auto sync"), shell=True)

    dispatcher.run([w("a.txt")])

    assert runner.calls[0][-1] == "git commit -m 'auto sync'"


def test_once_terminates_after_success(runner):
    dispatcher = make_dispatcher(runner, once=True)

    with pytest.raises(ExitRequested) as excinfo:
        dispatcher.run([w("a.txt")])

    assert excinfo.value.code == 0


def test_non_zero_exit_continues_by_default():
    runner = RecordingRunner(ExecutionOutcome.FAILED_NON_ZERO, returncode=2)
    dispatcher = make_dispatcher(runner, once=True)

    result = dispatcher.run([w("a.txt")])

    assert result.returncode == 2
    assert dispatcher.stats["failed"] == 1


def test_non_zero_exit_with_exit_on_error():
    runner = RecordingRunner(ExecutionOutcome.FAILED_NON_ZERO, returncode=2)
    dispatcher = make_dispatcher(runner, exit_on_error=True)

    with pytest.raises(ExitRequested) as excinfo:
        dispatcher.run([w("a.txt")])

    assert excinfo.value.code == 12


def test_spawn_error_is_logged_and_continues(caplog):
    runner = RecordingRunner(ExecutionOutcome.SPAWN_ERROR, returncode=None,
                             error=FileNotFoundError("no such program"))
    dispatcher = make_dispatcher(runner)

    result = dispatcher.run([w("a.txt")])

    assert result.outcome is ExecutionOutcome.SPAWN_ERROR
    assert "no such program" in caplog.text


@pytest.mark.parametrize(
    "outcome, code",
    [(ExecutionOutcome.SPAWN_ERROR, 101), (ExecutionOutcome.WAIT_ERROR, 100)],
)
def test_launch_errors_with_exit_on_error(outcome, code):
    runner = RecordingRunner(outcome, returncode=None, error=OSError("nope"))
    dispatcher = make_dispatcher(runner, exit_on_error=True)

    with pytest.raises(ExitRequested) as excinfo:
        dispatcher.run([w("a.txt")])

    assert excinfo.value.code == code


def test_empty_command_rejected(runner):
    with pytest.raises(ValueError):
        CommandDispatcher(WatchConfig(command=()), runner=runner)


def test_spawn_and_wait_reports_exit_status():
    result = spawn_and_wait([sys.executable, "-c", "raise SystemExit(3)"])

    assert result.outcome is ExecutionOutcome.FAILED_NON_ZERO
    assert result.returncode == 3


def test_spawn_and_wait_success():
    result = spawn_and_wait([sys.executable, "-c", "pass"])

    assert result.success
    assert result.returncode == 0


def test_spawn_and_wait_missing_program(tmp_path):
    result = spawn_and_wait([str(tmp_path / "does-not-exist")])

    assert result.outcome is ExecutionOutcome.SPAWN_ERROR
    assert isinstance(result.error, OSError)

"""Shared fixtures for the watchfs test-suite."""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import pytest

from watchfs.execution.dispatcher import ExecutionOutcome, ExecutionResult


class FakeTimer:
    """Single-slot timer fired by hand."""

    def __init__(self) -> None:
        self.generation = 0
        self.armed: Optional[tuple[int, float, Callable[[], Any]]] = None
        self.scheduled: list[float] = []
        self.cancelled: list[int] = []
        self.closed = False

    def schedule(self, deadline: float, callback: Callable[[], Any]) -> Optional[int]:
        if self.closed:
            return None
        self.generation += 1
        self.armed = (self.generation, deadline, callback)
        self.scheduled.append(deadline)
        return self.generation

    def cancel(self, generation: int) -> bool:
        self.cancelled.append(generation)
        if self.armed is not None and self.armed[0] == generation:
            self.armed = None
            return True
        return False

    def close(self, timeout: Optional[float] = None) -> None:
        self.closed = True
        self.armed = None

    @property
    def deadline(self) -> Optional[float]:
        return self.armed[1] if self.armed else None

    def fire(self) -> None:
        assert self.armed is not None, "no timer armed"
        _, _, callback = self.armed
        self.armed = None
        callback()


class RecordingRunner:
    """Stands in for spawning a process; remembers every argument vector."""

    def __init__(self, outcome: ExecutionOutcome = ExecutionOutcome.SUCCEEDED,
                 returncode: Optional[int] = 0, error: Optional[BaseException] = None) -> None:
        self.outcome = outcome
        self.returncode = returncode
        self.error = error
        self.calls: list[list[str]] = []
        self.called = threading.Event()

    def __call__(self, argv: list[str]) -> ExecutionResult:
        self.calls.append(list(argv))
        self.called.set()
        return ExecutionResult(self.outcome, list(argv), returncode=self.returncode, error=self.error)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture()
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep config discovery and log level away from the developer's setup."""
    cwd = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(cwd)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    monkeypatch.delenv("WATCHFS_LOG", raising=False)

    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield cwd
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)

"""Shared test fixtures."""

from __future__ import annotations

import logging
import sys
import threading

import pytest

from core.process_runner import OutputLine, ProcessRunner, TerminalStatus

# Echo the command text back, the way the interpreter would receive it
ECHO_ARGS = ("-c", "import sys; print(sys.argv[1])")
# Echo, then hang until terminated
HANG_ARGS = ("-c", "import sys, time; print(sys.argv[1], flush=True); time.sleep(60)")


class EventRecorder:
    """Sink that remembers every event and signals the first line and the end."""

    def __init__(self) -> None:
        self.events: list = []
        self.first_line = threading.Event()
        self.finished = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, event) -> None:
        with self._lock:
            self.events.append(event)
        if isinstance(event, OutputLine):
            self.first_line.set()
        if isinstance(event, TerminalStatus):
            self.finished.set()

    @property
    def lines(self) -> list[OutputLine]:
        return [event for event in self.events if isinstance(event, OutputLine)]

    @property
    def statuses(self) -> list[TerminalStatus]:
        return [event for event in self.events if isinstance(event, TerminalStatus)]


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def python_runner() -> ProcessRunner:
    """Runner whose 'command line' is Python source passed to ``python -c``."""
    return ProcessRunner(sys.executable, ("-c",), encoding="utf-8")


@pytest.fixture()
def echo_runner() -> ProcessRunner:
    return ProcessRunner(sys.executable, ECHO_ARGS)


@pytest.fixture()
def hang_runner() -> ProcessRunner:
    return ProcessRunner(sys.executable, HANG_ARGS)


@pytest.fixture()
def restore_root_logging():
    """Detach and close any handler a test adds to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

"""Run the PowerShell interpreter in the background and stream its output.

Each run gets one worker thread that launches the child process and waits for
it, plus one reader thread per output stream. Lines are handed to the caller's
sink as they arrive; a run always ends with exactly one terminal status
(``Completed``, ``LaunchFailed``, ``RunnerFailed`` or ``Cancelled``).
"""

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

if os.name == "nt":
    DEFAULT_INTERPRETER = "powershell.exe"
    # Windows PowerShell writes redirected output in the console OEM code page
    DEFAULT_ENCODING = "oem"
else:
    DEFAULT_INTERPRETER = "pwsh"
    DEFAULT_ENCODING = "utf-8"
DEFAULT_INTERPRETER_ARGS = ("-NoProfile", "-ExecutionPolicy", "Bypass", "-Command")

POLL_INTERVAL = 0.1
TERMINATE_GRACE_SECONDS = 2

# No console window on Windows; the child heads its own process group so a
# cancel can take down anything the interpreter started
if os.name == "nt":
    _CREATION_FLAGS = subprocess.CREATE_NO_WINDOW | subprocess.CREATE_NEW_PROCESS_GROUP
    _NEW_SESSION = False
else:
    _CREATION_FLAGS = 0
    _NEW_SESSION = True


class StreamName(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class OutputLine:
    stream: StreamName
    text: str

    @property
    def is_error(self):
        return self.stream is StreamName.STDERR


class TerminalStatus:
    """Base for the single event that ends a run"""

    success = False

    def describe(self):
        raise NotImplementedError


@dataclass(frozen=True)
class Completed(TerminalStatus):
    exit_code: int

    @property
    def success(self):
        return self.exit_code == 0

    def describe(self):
        if self.success:
            return "Command completed successfully."
        return f"Command failed with exit code {self.exit_code}."


@dataclass(frozen=True)
class LaunchFailed(TerminalStatus):
    reason: str

    def describe(self):
        return f"Could not start interpreter: {self.reason}"


@dataclass(frozen=True)
class RunnerFailed(TerminalStatus):
    message: str

    def describe(self):
        return f"Error running command: {self.message}"


@dataclass(frozen=True)
class Cancelled(TerminalStatus):
    def describe(self):
        return "Command cancelled."


class RunHandle:
    """Caller-side view of a background run"""

    def __init__(self, command_line):
        self.command_line = command_line
        self.status = None
        self._cancel_event = threading.Event()
        self._finished = threading.Event()

    @property
    def done(self):
        return self._finished.is_set()

    @property
    def cancel_requested(self):
        return self._cancel_event.is_set()

    def cancel(self):
        """Ask the worker to stop the child process"""
        self._cancel_event.set()

    def wait(self, timeout=None):
        """Block until the run finishes; returns the terminal status or None on timeout"""
        self._finished.wait(timeout)
        return self.status

    def _finish(self, status):
        self.status = status
        self._finished.set()


def _marshal(sink, dispatch):
    if dispatch is None:
        return sink

    def emit(event):
        dispatch(lambda: sink(event))

    return emit


def _describe_os_error(program, error):
    return f"{program}: {error.strerror or error}"


def _signal_tree(process, force):
    """Stop the interpreter and every process it started"""
    if os.name == "nt":
        subprocess.run(  # noqa: S603, S607
            ["taskkill", "/T", "/F", "/PID", str(process.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=subprocess.CREATE_NO_WINDOW,
            check=False,
        )
        return
    os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)


def _terminate_process(process):
    try:
        _signal_tree(process, force=False)
    except OSError:
        return
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        pass
    # Sweep up anything in the group that ignored the polite signal; its
    # open pipe handles would otherwise keep the readers waiting
    try:
        _signal_tree(process, force=True)
    except OSError:
        return
    process.wait(timeout=TERMINATE_GRACE_SECONDS)


def _pump(stream, name, emit, failures, failed):
    try:
        for line in stream:
            emit(OutputLine(name, line.rstrip("\r\n")))
    except Exception as error:
        failures.append(error)
        failed.set()


class ProcessRunner:
    def __init__(
        self,
        interpreter=DEFAULT_INTERPRETER,
        interpreter_args=DEFAULT_INTERPRETER_ARGS,
        encoding=DEFAULT_ENCODING,
    ):
        self.interpreter = interpreter
        self.interpreter_args = tuple(interpreter_args)
        self.encoding = encoding

    def build_argv(self, command_line):
        return [self.interpreter, *self.interpreter_args, command_line]

    def run(self, command_line, sink, dispatch=None, on_finish=None):
        """Start a run on a worker thread and return its handle immediately.

        ``dispatch`` receives a zero-argument callable and must run it on the
        thread that owns ``sink`` (for Tk: ``lambda fn: window.after(0, fn)``).
        ``on_finish`` is called on the worker thread with the handle once the
        terminal status is known.
        """
        handle = RunHandle(command_line)
        deliver = _marshal(sink, dispatch)

        def emit(event):
            # The handle reports done before the sink sees the terminal status
            if isinstance(event, TerminalStatus):
                handle._finish(event)
            deliver(event)

        def _worker():
            status = self.execute(command_line, emit, handle._cancel_event)
            handle._finish(status)
            if on_finish is not None:
                try:
                    on_finish(handle)
                except Exception:
                    logger.exception("Finish callback failed for: %s", command_line)

        thread = threading.Thread(target=_worker, name="process-runner", daemon=True)
        try:
            thread.start()
        except RuntimeError as error:
            status = RunnerFailed(f"could not start worker thread: {error}")
            handle._finish(status)
            try:
                deliver(status)
            except Exception:
                logger.exception("Could not deliver terminal status %r", status)
        return handle

    def execute(self, command_line, emit, cancel_event=None):
        """Run synchronously, pushing every event through ``emit``; never raises"""
        if cancel_event is None:
            cancel_event = threading.Event()
        try:
            status = self._execute(command_line, emit, cancel_event)
        except Exception as error:
            logger.exception("Runner failed for command: %s", command_line)
            status = RunnerFailed(str(error) or type(error).__name__)

        logger.info("Finished: %s", status.describe())
        try:
            emit(status)
        except Exception:
            logger.exception("Could not deliver terminal status %r", status)
        return status

    def _execute(self, command_line, emit, cancel_event):
        argv = self.build_argv(command_line)
        logger.info("Launching %s", argv[0])
        logger.debug("Command text: %s", command_line)
        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding=self.encoding,
                errors="replace",
                bufsize=1,
                creationflags=_CREATION_FLAGS,
                start_new_session=_NEW_SESSION,
            )
        except OSError as error:
            logger.warning("Launch failed for %s: %s", argv[0], error)
            return LaunchFailed(_describe_os_error(argv[0], error))

        failures = []
        failed = threading.Event()
        # Popen's context manager closes both pipes and reaps the child on every path
        with process:
            try:
                cancelled = self._stream(process, emit, cancel_event, failures, failed)
            except Exception:
                _terminate_process(process)
                raise

        if failures:
            raise failures[0]
        if cancelled:
            return Cancelled()
        return Completed(process.returncode)

    def _stream(self, process, emit, cancel_event, failures, failed):
        readers = [
            threading.Thread(
                target=_pump,
                args=(pipe, name, emit, failures, failed),
                name=f"process-runner-{name.value}",
                daemon=True,
            )
            for pipe, name in (
                (process.stdout, StreamName.STDOUT),
                (process.stderr, StreamName.STDERR),
            )
        ]
        for reader in readers:
            reader.start()

        cancelled = self._wait_for_exit(process, cancel_event, failed)
        for reader in readers:
            reader.join()
        return cancelled

    def _wait_for_exit(self, process, cancel_event, failed):
        while True:
            if process.poll() is not None:
                return False
            if cancel_event.is_set() or failed.is_set():
                _terminate_process(process)
                return cancel_event.is_set()
            cancel_event.wait(POLL_INTERVAL)

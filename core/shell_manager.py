import logging
import threading

from core.command_builder import (
    OPERATION_PARAMETERS,
    CommandRequest,
    OperationKind,
    build_command,
)
from core.config import CONFIG_FILE, load_config, save_config
from core.event_log import log_command_event
from core.process_runner import ProcessRunner

logger = logging.getLogger(__name__)


class PSHVToolsCore:
    """Builds and launches PSHVTools commands for the GUI.

    At most one run per operation kind is active at a time; different kinds
    may run side by side as independent child processes.
    """

    def __init__(self, config_path=CONFIG_FILE, runner=None):
        self.config_path = config_path
        self.config = load_config(config_path)
        self.runner = runner or ProcessRunner(
            self.config["interpreter"],
            self.config["interpreter_args"],
            encoding=self.config["encoding"],
        )
        self.handles = {}
        self._lock = threading.Lock()

    # ========== COMMAND METHODS ==========

    def make_request(self, kind, values):
        """Keep only the fields the operation accepts"""
        accepted = OPERATION_PARAMETERS[kind]
        params = {
            name: value
            for name, value in values.items()
            if name in accepted and value is not None
        }
        return CommandRequest(kind, params)

    def preview_command(self, kind, values):
        return build_command(self.make_request(kind, values), self.config["module_name"])

    def is_running(self, kind):
        handle = self.handles.get(kind)
        return handle is not None and not handle.done

    def running_operations(self):
        return [kind for kind in OperationKind if self.is_running(kind)]

    def start_operation(self, kind, values, sink, dispatch=None):
        """Build the command and launch it in the background.

        Raises InvalidParameter for values that cannot be embedded safely.
        Returns (success, message).
        """
        command_line = self.preview_command(kind, values)

        with self._lock:
            if self.is_running(kind):
                return False, f"{kind.value.capitalize()} is already running"
            log_command_event("start", kind.value, command_line)
            self.handles[kind] = self.runner.run(
                command_line,
                sink,
                dispatch=dispatch,
                on_finish=lambda handle: self._on_finished(kind, handle),
            )
        return True, f"Started {kind.value}: {command_line}"

    def _on_finished(self, kind, handle):
        log_command_event("finish", kind.value, handle.status.describe())

    def cancel_operation(self, kind):
        handle = self.handles.get(kind)
        if handle is None or handle.done:
            return False, f"{kind.value.capitalize()} is not running"
        handle.cancel()
        log_command_event("cancel", kind.value, handle.command_line)
        return True, f"Cancelling {kind.value}"

    def cancel_all(self):
        """Cancel every active run; returns the kinds that were cancelled"""
        cancelled = []
        for kind in self.running_operations():
            success, _ = self.cancel_operation(kind)
            if success:
                cancelled.append(kind)
        return cancelled

    def wait_all(self, timeout=None):
        for handle in list(self.handles.values()):
            handle.wait(timeout)

    # ========== CONFIGURATION METHODS ==========

    def get_defaults(self):
        return dict(self.config["defaults"])

    def save_defaults(self, values):
        """Remember the parameter fields for the next start"""
        defaults = self.config["defaults"]
        for name in defaults:
            if name in values and values[name] is not None:
                defaults[name] = values[name]
        save_config(self.config, self.config_path)
        logger.info("Saved parameter defaults to %s", self.config_path)

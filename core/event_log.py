import logging
import os

LOG_FILE_NAME = "shell.log"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EVENT_LOGGER = "pshvtools.events"


def configure_logging(log_dir, level=logging.INFO):
    """Send application logging to <log_dir>/shell.log; returns the log path"""
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.abspath(os.path.join(log_dir, LOG_FILE_NAME))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if getattr(handler, "baseFilename", None) == log_path:
            return log_path

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    return log_path


def log_command_event(action, kind, detail):
    """Record one line per started/finished command"""
    logging.getLogger(EVENT_LOGGER).info("%s: %s | %s", action.upper(), kind, detail)

import codecs
import copy
import json
import os

from core.command_builder import DEFAULT_MODULE, DEFAULT_PATTERN
from core.process_runner import (
    DEFAULT_ENCODING,
    DEFAULT_INTERPRETER,
    DEFAULT_INTERPRETER_ARGS,
)

CONFIG_FILE = "pshvtools_shell_config.json"
CONFIG_VERSION = "1.0"

COMPRESSION_LEVELS = ("Fast", "Optimal", "NoCompression", "SmallestSize")

DEFAULT_CONFIG = {
    "interpreter": DEFAULT_INTERPRETER,
    "interpreter_args": list(DEFAULT_INTERPRETER_ARGS),
    "encoding": DEFAULT_ENCODING,
    "module_name": DEFAULT_MODULE,
    "log_dir": "logs",
    "defaults": {
        "pattern": DEFAULT_PATTERN,
        "destination": "",
        "keep": "7",
        "compression": COMPRESSION_LEVELS[0],
        "dry_run": False,
    },
    "version": CONFIG_VERSION,
}


def default_config():
    return copy.deepcopy(DEFAULT_CONFIG)


def _merge_defaults(config):
    """Fill keys missing from an older or hand-edited file"""
    merged = default_config()
    for key, value in config.items():
        if key == "defaults" and isinstance(value, dict):
            merged["defaults"].update(value)
        else:
            merged[key] = value

    if not isinstance(merged["interpreter"], str) or not merged["interpreter"].strip():
        raise ValueError("'interpreter' must be a non-empty string")
    if not isinstance(merged["interpreter_args"], list) or not all(
        isinstance(arg, str) for arg in merged["interpreter_args"]
    ):
        raise ValueError("'interpreter_args' must be a list of strings")
    try:
        codecs.lookup(merged["encoding"])
    except (LookupError, TypeError):
        raise ValueError(f"unknown output encoding {merged['encoding']!r}") from None
    merged["interpreter"] = merged["interpreter"].strip()
    merged["log_dir"] = os.path.normpath(merged["log_dir"])
    return merged


def load_config(path=CONFIG_FILE):
    """Load or create configuration file"""
    config_path = os.path.abspath(path)

    if not os.path.exists(config_path):
        config = default_config()
        save_config(config, config_path)
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError("top level must be a JSON object")
        return _merge_defaults(config)
    except (OSError, TypeError, ValueError) as e:
        raise RuntimeError(f"Configuration error: {str(e)}") from e


def save_config(config, path=CONFIG_FILE):
    """Save current configuration to file"""
    config_path = os.path.abspath(path)
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=4)
    except (OSError, TypeError) as e:
        raise RuntimeError(f"Failed to save config: {str(e)}") from e

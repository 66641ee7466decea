import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

DEFAULT_MODULE = "pshvtools"
DEFAULT_PATTERN = "*"


class OperationKind(Enum):
    BACKUP = "backup"
    COMPACT = "compact"
    HEALTH = "health"
    CONFIG = "config"
    RESTORE = "restore"


class InvalidParameter(ValueError):
    """Raised when a parameter value cannot be embedded in a command line"""

    def __init__(self, name, message):
        super().__init__(f"{name}: {message}")
        self.name = name


@dataclass(frozen=True)
class CommandRequest:
    kind: OperationKind
    params: dict = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Freeze the mapping so the request stays immutable after click-time
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


# ======== Operation table ========
SUBCOMMANDS = {
    OperationKind.BACKUP: "hvbak",
    OperationKind.COMPACT: "hvcompact",
    OperationKind.HEALTH: "hvhealth",
    OperationKind.CONFIG: "Show-PSHVToolsConfig",
    OperationKind.RESTORE: "hvrecover",
}

OPERATION_PARAMETERS = {
    OperationKind.BACKUP: ("pattern", "destination", "keep", "compression", "dry_run"),
    OperationKind.COMPACT: ("pattern", "dry_run"),
    OperationKind.HEALTH: (),
    OperationKind.CONFIG: (),
    OperationKind.RESTORE: ("pattern", "dry_run"),
}

KNOWN_PARAMETERS = ("pattern", "destination", "keep", "compression", "dry_run")

_PATTERN_DEFAULTED = (OperationKind.BACKUP, OperationKind.COMPACT)
_VERBOSE = (OperationKind.BACKUP,)

# Characters PowerShell interprets inside a double-quoted string
_ESCAPED = {"`", '"', "$", "\u201c", "\u201d", "\u201e"}
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")
_KEEP = re.compile(r"[0-9]+")
_BAREWORD = re.compile(r"[A-Za-z]+")

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off", ""}


def quote_argument(name, value):
    """Wrap a text value in PowerShell double quotes, escaping special characters"""
    if _CONTROL.search(value):
        raise InvalidParameter(name, "control characters are not allowed")
    escaped = "".join(f"`{char}" if char in _ESCAPED else char for char in value)
    return f'"{escaped}"'


def parse_flag(name, value):
    """Interpret a checkbox or free-form yes/no value"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise InvalidParameter(name, f"expected a yes/no value, got {value!r}")


def _text(params, name):
    value = params.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidParameter(name, f"expected text, got {type(value).__name__}")
    return value


def _check_parameters(request):
    accepted = OPERATION_PARAMETERS[request.kind]
    for name in request.params:
        if name not in KNOWN_PARAMETERS:
            raise InvalidParameter(name, "unknown parameter")
        if name not in accepted:
            raise InvalidParameter(name, f"not accepted by {request.kind.value}")


def build_flags(request):
    """Translate request parameters into the sub-command's flag list"""
    params = request.params
    flags = []

    pattern = _text(params, "pattern")
    if not pattern.strip() and request.kind in _PATTERN_DEFAULTED:
        pattern = DEFAULT_PATTERN
    if pattern.strip():
        flags.append(f"-NamePattern {quote_argument('pattern', pattern)}")

    destination = _text(params, "destination")
    if destination.strip():
        flags.append(f"-DestinationPath {quote_argument('destination', destination)}")

    keep = _text(params, "keep").strip()
    if keep:
        if not _KEEP.fullmatch(keep):
            raise InvalidParameter("keep", f"expected a whole number, got {keep!r}")
        flags.append(f"-Keep {keep}")

    compression = _text(params, "compression").strip()
    if compression:
        if not _BAREWORD.fullmatch(compression):
            raise InvalidParameter(
                "compression", f"expected a single word, got {compression!r}"
            )
        flags.append(f"-CompressionLevel {compression}")

    if request.kind in _VERBOSE:
        flags.append("-Verbose")

    if parse_flag("dry_run", params.get("dry_run")):
        flags.append("-WhatIf")

    return flags


def build_command(request, module_name=DEFAULT_MODULE):
    """Assemble the full interpreter command text for a request"""
    if not isinstance(request.kind, OperationKind):
        raise InvalidParameter("kind", f"unsupported operation {request.kind!r}")
    if not _BAREWORD.fullmatch(module_name.replace("-", "").replace(".", "")):
        raise InvalidParameter("module_name", f"unsafe module name {module_name!r}")

    _check_parameters(request)
    parts = [SUBCOMMANDS[request.kind], *build_flags(request)]
    return f"Import-Module {module_name}; {' '.join(parts)}"

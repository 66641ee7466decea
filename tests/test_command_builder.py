from __future__ import annotations

import allure
import pytest

from core.command_builder import (
    CommandRequest,
    InvalidParameter,
    OperationKind,
    build_command,
    parse_flag,
    quote_argument,
)

pytestmark = [
    allure.epic("PSHVTools Shell"),
    allure.feature("Command Builder"),
]

_CLOSING_QUOTES = '"\u201c\u201d\u201e'


def _quoted_values(command: str) -> list[str]:
    """Decode every PowerShell double-quoted string the way the parser would."""
    values = []
    index = 0
    while index < len(command):
        if command[index] not in _CLOSING_QUOTES:
            index += 1
            continue
        index += 1
        chars = []
        while True:
            char = command[index]
            if char == "`":
                chars.append(command[index + 1])
                index += 2
                continue
            index += 1
            if char in _CLOSING_QUOTES:
                break
            chars.append(char)
        values.append("".join(chars))
    return values


def test_backup_command_matches_known_scenario() -> None:
    request = CommandRequest(
        OperationKind.BACKUP,
        {
            "pattern": "*",
            "destination": "D:\\backups",
            "keep": "7",
            "compression": "Fast",
            "dry_run": False,
        },
    )

    assert build_command(request) == (
        'Import-Module pshvtools; hvbak -NamePattern "*" -DestinationPath "D:\\backups" '
        "-Keep 7 -CompressionLevel Fast -Verbose"
    )


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (OperationKind.HEALTH, "Import-Module pshvtools; hvhealth"),
        (OperationKind.CONFIG, "Import-Module pshvtools; Show-PSHVToolsConfig"),
        (OperationKind.RESTORE, "Import-Module pshvtools; hvrecover"),
        (OperationKind.COMPACT, 'Import-Module pshvtools; hvcompact -NamePattern "*"'),
        (OperationKind.BACKUP, 'Import-Module pshvtools; hvbak -NamePattern "*" -Verbose'),
    ],
)
def test_commands_without_parameters(kind: OperationKind, expected: str) -> None:
    assert build_command(CommandRequest(kind)) == expected


@pytest.mark.parametrize("kind", [OperationKind.BACKUP, OperationKind.COMPACT, OperationKind.RESTORE])
def test_dry_run_toggles_whatif_flag(kind: OperationKind) -> None:
    dry = CommandRequest(kind, {"pattern": "web-*", "dry_run": True})
    live = CommandRequest(kind, {"pattern": "web-*", "dry_run": False})

    assert build_command(dry).endswith(" -WhatIf")
    assert "-WhatIf" not in build_command(live)
    assert build_command(dry) == build_command(dry)
    assert build_command(live) == build_command(live)


def test_compact_dry_run_reproduces_classic_button() -> None:
    request = CommandRequest(OperationKind.COMPACT, {"pattern": "*", "dry_run": "true"})

    assert build_command(request) == 'Import-Module pshvtools; hvcompact -NamePattern "*" -WhatIf'


def test_custom_module_name() -> None:
    command = build_command(CommandRequest(OperationKind.HEALTH), module_name="PSHVTools.Dev")

    assert command == "Import-Module PSHVTools.Dev; hvhealth"


def test_unsafe_module_name_is_rejected() -> None:
    with pytest.raises(InvalidParameter):
        build_command(CommandRequest(OperationKind.HEALTH), module_name="x; Remove-Item C:\\")


@pytest.mark.parametrize(
    "pattern",
    [
        'vm"; Remove-Item C:\\ -Recurse; "',
        "$(Stop-Computer)",
        "back`tick",
        "smart \u201cquotes\u201d and \u201elow\u201d",
        "trailing backslash\\",
        "plain-vm-01",
    ],
)
def test_text_values_never_escape_their_quotes(pattern: str) -> None:
    destination = 'E:\\hv "nightly" $HOME'
    request = CommandRequest(
        OperationKind.BACKUP,
        {"pattern": pattern, "destination": destination, "keep": "3"},
    )

    command = build_command(request)

    assert _quoted_values(command) == [pattern, destination]
    assert command.endswith("-Keep 3 -Verbose")


def test_dollar_sign_is_escaped() -> None:
    assert quote_argument("pattern", "$env:COMPUTERNAME") == '"`$env:COMPUTERNAME"'


@pytest.mark.parametrize("value", ["line\nbreak", "tab\there", "nul\x00", "bell\x07", "del\x7f"])
def test_control_characters_are_rejected(value: str) -> None:
    request = CommandRequest(OperationKind.BACKUP, {"destination": value})

    with pytest.raises(InvalidParameter) as excinfo:
        build_command(request)

    assert excinfo.value.name == "destination"


@pytest.mark.parametrize("keep", ["seven", "-1", "7; hvrecover", "1.5", "\u0663", "1\uff10"])
def test_keep_must_be_a_whole_number(keep: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        build_command(CommandRequest(OperationKind.BACKUP, {"keep": keep}))

    assert excinfo.value.name == "keep"


@pytest.mark.parametrize("level", ["Fast; hvrecover", "No Compression", "$level", "Fast-1"])
def test_compression_must_be_a_single_word(level: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        build_command(CommandRequest(OperationKind.BACKUP, {"compression": level}))

    assert excinfo.value.name == "compression"


def test_blank_fields_are_omitted() -> None:
    request = CommandRequest(
        OperationKind.BACKUP,
        {"pattern": "  ", "destination": "", "keep": " ", "compression": "", "dry_run": ""},
    )

    assert build_command(request) == 'Import-Module pshvtools; hvbak -NamePattern "*" -Verbose'


def test_parameter_not_accepted_by_operation() -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        build_command(CommandRequest(OperationKind.HEALTH, {"pattern": "*"}))

    assert excinfo.value.name == "pattern"


def test_unknown_parameter() -> None:
    with pytest.raises(InvalidParameter, match="unknown parameter"):
        build_command(CommandRequest(OperationKind.BACKUP, {"force": "yes"}))


def test_non_text_value_is_rejected() -> None:
    with pytest.raises(InvalidParameter):
        build_command(CommandRequest(OperationKind.BACKUP, {"keep": 7}))


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), (False, False), (None, False), ("Yes", True), ("off", False), ("1", True), ("", False)],
)
def test_parse_flag(value, expected: bool) -> None:
    assert parse_flag("dry_run", value) is expected


def test_parse_flag_rejects_garbage() -> None:
    with pytest.raises(InvalidParameter, match="dry_run"):
        parse_flag("dry_run", "maybe")


def test_request_is_immutable() -> None:
    params = {"pattern": "db-*"}
    request = CommandRequest(OperationKind.COMPACT, params)
    params["pattern"] = "changed"

    assert request.params["pattern"] == "db-*"
    with pytest.raises(TypeError):
        request.params["pattern"] = "other"  # type: ignore[index]


def test_invalid_parameter_is_a_value_error() -> None:
    assert issubclass(InvalidParameter, ValueError)


def test_keep_is_trimmed_before_validation() -> None:
    command = build_command(CommandRequest(OperationKind.BACKUP, {"keep": " 14 "}))

    assert command.endswith("-Keep 14 -Verbose")


def test_text_values_keep_surrounding_whitespace() -> None:
    pattern = "  vm 01 "
    destination = "\\\\nas\\hv backups\\ "
    request = CommandRequest(OperationKind.BACKUP, {"pattern": pattern, "destination": destination})

    command = build_command(request)

    assert _quoted_values(command) == [pattern, destination]
    assert '-NamePattern "  vm 01 "' in command

"""Command set of the licensing protocol and the parser for its command lines."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

MAX_COMMAND_LINE_SIZE = 1023
MAX_TOKENS_PER_MSG = 3
MAX_CMD_LENGTH = 17


class MessageForm(IntEnum):
    """Shape of a protocol message."""

    UNDEFINED = 0
    SIMPLE = 1
    NUMBER = 2
    LENGTH = 3
    NUMBER_AND_LENGTH = 4


class CommandId(IntEnum):
    """Protocol commands."""

    UNDEFINED = 0
    NOTSIMPLE = 1
    TOOLS = 2
    YES = 3
    VERSION = 4
    FEATURE = 5
    FILE = 6
    FILECONT = 7
    LIB = 8
    LICENSE = 9
    NO = 10
    RETURNFEATURE = 11
    RETURNLICENSE = 12
    TOOLLIST = 13
    ERROR = 14


class ProtocolErrorId(IntEnum):
    """Error codes carried by the ERROR command."""

    UNDEFINED = 0
    COMMAND_NOT_UNDERSTOOD = 1
    VERSION_TOO_LOW = 2
    LVE_NOT_LICENSING = 3
    FILE_NOT_FOUND = 4
    TOOL_NOT_ALLOWED = 5
    FILE_IO = 6
    LICENSE = 7
    OTHER = 8
    SSL = 9


class GrammarError(IntEnum):
    """Outcome of parsing a command line."""

    VALID_GRAMMAR = 0
    UNKNOWN_ERROR = 1
    NO_TOKENS = 2
    TOO_MANY_TOKENS = 3
    TOO_FEW_TOKENS = 4
    UNKNOWN_CMD = 5
    NOT_AN_INT = 6
    NEGATIVE_LENGTH = 7


@dataclass(frozen=True)
class CommandInfo:
    """Static description of one command."""

    id: CommandId
    msg_form: MessageForm
    name: str


@dataclass
class Command:
    """A parsed command; ``data`` holds the payload once it has been read."""

    id: CommandId = CommandId.UNDEFINED
    number: int = 0
    length: int = 0
    data: Optional[bytes] = None


class ParseError(ValueError):
    """Raised when a command line does not follow the protocol grammar."""

    def __init__(self, kind: GrammarError, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


_TOKENS_FOR_FORM = {
    MessageForm.UNDEFINED: 0,
    MessageForm.SIMPLE: 1,
    MessageForm.NUMBER: 2,
    MessageForm.LENGTH: 2,
    MessageForm.NUMBER_AND_LENGTH: MAX_TOKENS_PER_MSG,
}

_EXPECTED_FORM_TEMPLATE = {
    MessageForm.UNDEFINED: "[This should never be used.]",
    MessageForm.SIMPLE: "%s",
    MessageForm.NUMBER: "%s <number>",
    MessageForm.LENGTH: "%s <length>",
    MessageForm.NUMBER_AND_LENGTH: "%s <number> <length>",
}

_COMMANDS = {
    info.id: info
    for info in (
        CommandInfo(CommandId.UNDEFINED, MessageForm.UNDEFINED, "[unknown_command]"),
        CommandInfo(CommandId.NOTSIMPLE, MessageForm.SIMPLE, "NOTSIMPLE"),
        CommandInfo(CommandId.TOOLS, MessageForm.SIMPLE, "TOOLS"),
        CommandInfo(CommandId.YES, MessageForm.SIMPLE, "YES"),
        CommandInfo(CommandId.VERSION, MessageForm.NUMBER, "VERSION"),
        CommandInfo(CommandId.FEATURE, MessageForm.LENGTH, "FEATURE"),
        CommandInfo(CommandId.FILE, MessageForm.LENGTH, "FILE"),
        CommandInfo(CommandId.FILECONT, MessageForm.LENGTH, "FILECONT"),
        CommandInfo(CommandId.LIB, MessageForm.LENGTH, "LIB"),
        CommandInfo(CommandId.LICENSE, MessageForm.LENGTH, "LICENSE"),
        CommandInfo(CommandId.NO, MessageForm.LENGTH, "NO"),
        CommandInfo(CommandId.RETURNFEATURE, MessageForm.LENGTH, "RETURNFEATURE"),
        CommandInfo(CommandId.RETURNLICENSE, MessageForm.LENGTH, "RETURNLICENSE"),
        CommandInfo(CommandId.TOOLLIST, MessageForm.LENGTH, "TOOLLIST"),
        CommandInfo(CommandId.ERROR, MessageForm.NUMBER_AND_LENGTH, "ERROR"),
    )
}

_BY_NAME = {
    info.name: info for info in _COMMANDS.values() if info.id != CommandId.UNDEFINED
}

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def command_info(command_id: Union[CommandId, int]) -> CommandInfo:
    """Return the description of ``command_id``."""
    return _COMMANDS[CommandId(command_id)]


def lookup_command(name: str) -> Optional[CommandInfo]:
    """Return the command called ``name``, or ``None`` if there is none."""
    return _BY_NAME.get(name)


def tokens_for_form(form: Union[MessageForm, int]) -> int:
    """Number of tokens on the command line of a message of ``form``."""
    return _TOKENS_FOR_FORM[MessageForm(form)]


def _as_text(text: Union[str, bytes]) -> str:
    return text.decode("latin-1") if isinstance(text, (bytes, bytearray)) else text


def tokenize(text: Union[str, bytes]) -> list[str]:
    """Split the first non-empty line of ``text`` into space-separated tokens.

    Everything after that line is the data part and is ignored here.
    """
    text = _as_text(text)
    first_line = next((line for line in text.split("\n") if line), None)
    if first_line is None:
        return []
    return [token for token in first_line.split(" ") if token]


def _parse_int(token: str, command_name: str) -> int:
    match = _INT_PREFIX.match(token)
    if match is None:
        raise ParseError(
            GrammarError.NOT_AN_INT,
            f"Parse error. Argument {token} to command {command_name} is not an integer.",
        )
    return int(match.group(1))


def parse_command(text: Union[str, bytes]) -> Command:
    """Parse the command line at the start of ``text``.

    Raises :class:`ParseError` describing the first grammar violation found.
    """
    tokens = tokenize(text)
    if not tokens:
        raise ParseError(GrammarError.NO_TOKENS, "No tokens in message.")

    name = tokens[0]
    info = lookup_command(name)
    if info is None:
        raise ParseError(GrammarError.UNKNOWN_CMD, f"Unknown command {name}.")

    form = info.msg_form
    expected = tokens_for_form(form)
    if len(tokens) != expected:
        too_many = len(tokens) > expected
        message = (
            f"Too {'many' if too_many else 'few'} arguments for command {name}. "
            f"Expected form is " + _EXPECTED_FORM_TEMPLATE[form] % name
        )
        kind = GrammarError.TOO_MANY_TOKENS if too_many else GrammarError.TOO_FEW_TOKENS
        raise ParseError(kind, message)

    if form == MessageForm.SIMPLE:
        return Command(id=info.id)

    first = _parse_int(tokens[1], name)
    if form == MessageForm.NUMBER:
        return Command(id=info.id, number=first)

    if form == MessageForm.NUMBER_AND_LENGTH:
        number, length = first, _parse_int(tokens[2], name)
    else:
        number, length = 0, first

    if length < 0:
        raise ParseError(
            GrammarError.NEGATIVE_LENGTH,
            f"Parse error. Length argument {length} to command {name} is negative.",
        )
    return Command(id=info.id, number=number, length=length)
"""Building, sending and receiving protocol messages, and reading files."""

from __future__ import annotations

import os
import time
from typing import BinaryIO, Optional, Protocol, Union

from .errors import MlleError, format_error
from .protocol import Command, CommandId, MessageForm, ParseError, command_info, parse_command
from .secure import ssl_error_string

LE_NO_ERROR = 0
LE_EOF = -1
LE_LINE_TOO_LONG = -2
LE_IO_ERROR = -3

NUMBER_MAX_LEN = 20
SIMPLE_FORM_BUFFER_SIZE = 20
NUMBER_FORM_BUFFER_SIZE = SIMPLE_FORM_BUFFER_SIZE + 1 + NUMBER_MAX_LEN
NUMBER_AND_LENGTH_FORM_BUFFER_SIZE = NUMBER_FORM_BUFFER_SIZE + 1 + NUMBER_MAX_LEN
MESSAGE_ERROR_BUFFER_SIZE = 100

log_file: Optional[BinaryIO] = None
"""Debug log opened by :func:`open_log`; ``None`` when logging is off."""

Payload = Union[bytes, bytearray, str]


class Channel(Protocol):
    """Anything that can write and read whole protocol messages."""

    def write_message(self, data: bytes) -> int: ...

    def read_message(self) -> bytes: ...


def _as_bytes(data: Payload) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def open_log(envvar: str) -> Optional[BinaryIO]:
    """Open the log file named by environment variable ``envvar``, if it is set.

    Returns the open file, or ``None`` when the variable is unset or the file
    cannot be created.
    """
    global log_file
    file_name = os.environ.get(envvar)
    if file_name is None:
        return None
    try:
        handle = open(file_name, "wb")
    except OSError:
        return None
    handle.write(f"Opening logfile at: {time.ctime()}\n\n".encode("utf-8"))
    handle.flush()
    log_file = handle
    return handle


def read_file(file_path: Union[str, os.PathLike]) -> bytes:
    """Return the whole contents of ``file_path``.

    Raises :class:`MlleError` (domain 1, code 1) if the file cannot be opened or read.
    """
    path = os.fspath(file_path)
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise format_error(
            1, 1, "Couldn't open file %s. The error message was: %s", path, exc.strerror
        ) from exc
    with handle:
        try:
            os.fstat(handle.fileno())
        except OSError as exc:
            raise format_error(
                1, 1, "Couldn't find file size for %s. The error message was: %s",
                path, exc.strerror,
            ) from exc
        try:
            return handle.read()
        except OSError as exc:
            raise format_error(
                1, 1, "I/O error while reading file %s. The error message was: %s",
                path, exc.strerror,
            ) from exc


def simple_form(command_id: Union[CommandId, int]) -> bytes:
    """Message of the form ``<COMMAND>\\n``."""
    return f"{command_info(command_id).name}\n".encode("ascii")


def number_form(command_id: Union[CommandId, int], number: int) -> bytes:
    """Message of the form ``<COMMAND> <NUMBER>\\n``."""
    return f"{command_info(command_id).name} {int(number)}\n".encode("ascii")


def length_form(command_id: Union[CommandId, int], data: Payload) -> bytes:
    """Message of the form ``<COMMAND> <LENGTH>\\n<DATA>``."""
    payload = _as_bytes(data)
    header = f"{command_info(command_id).name} {len(payload)}\n".encode("ascii")
    return header + payload


def number_and_length_form(
    command_id: Union[CommandId, int], number: int, data: Payload
) -> bytes:
    """Message of the form ``<COMMAND> <NUMBER> <LENGTH>\\n<DATA>``."""
    payload = _as_bytes(data)
    header = f"{command_info(command_id).name} {int(number)} {len(payload)}\n".encode("ascii")
    return header + payload


def send_simple_form(channel: Channel, command_id: Union[CommandId, int]) -> int:
    """Send a simple-form message; returns the bytes written."""
    return channel.write_message(simple_form(command_id))


def send_number_form(channel: Channel, command_id: Union[CommandId, int], number: int) -> int:
    """Send a number-form message; returns the bytes written."""
    return channel.write_message(number_form(command_id, number))


def send_length_form(channel: Channel, command_id: Union[CommandId, int], data: Payload) -> int:
    """Send a length-form message carrying ``data``; returns the bytes written."""
    return channel.write_message(length_form(command_id, data))


def send_string(channel: Channel, command_id: Union[CommandId, int], text: str) -> int:
    """Send ``text`` as the data of a length-form message."""
    return send_length_form(channel, command_id, text)


def send_number_and_length_form(
    channel: Channel, command_id: Union[CommandId, int], number: int, data: Payload
) -> int:
    """Send a number-and-length-form message; returns the bytes written."""
    return channel.write_message(number_and_length_form(command_id, number, data))


def send_error(channel: Channel, error_code: int, error_msg: Optional[str]) -> int:
    """Send an ERROR message with ``error_code`` and ``error_msg`` (empty if ``None``)."""
    return send_number_and_length_form(
        channel, CommandId.ERROR, error_code, error_msg if error_msg is not None else ""
    )


def extract_data(command: Command, buffer: bytes) -> int:
    """Store the data part of ``buffer`` (everything after the first newline) in ``command``.

    At most ``command.length`` bytes are kept. Returns the number of bytes
    stored; if ``buffer`` has no newline, ``command.data`` becomes ``None``
    and 0 is returned.
    """
    command.data = None
    head, newline, rest = bytes(buffer).partition(b"\n")
    if not newline:
        return 0
    command.data = rest[: command.length]
    return len(command.data)


def _read(channel: Channel) -> bytes:
    try:
        return channel.read_message()
    except OSError as exc:
        raise MlleError(1, 1, ssl_error_string(exc), exc) from exc


def read_command(channel: Channel) -> Command:
    """Read one command, and its whole data part if it has one, from ``channel``.

    Raises :class:`MlleError` (domain 1, code 1) on a transport error, a
    grammar error, or a message that lacks its data part.
    """
    message = _read(channel)
    # The final byte of the received message terminates the command line.
    try:
        command = parse_command(message[:-1])
    except ParseError as exc:
        raise MlleError(1, 1, exc.message, exc) from exc

    if command_info(command.id).msg_form not in (
        MessageForm.LENGTH,
        MessageForm.NUMBER_AND_LENGTH,
    ):
        return command

    extract_data(command, message)
    if command.data is None:
        raise MlleError(1, 1, "End Of File.")

    parts = [command.data]
    total = len(command.data)
    while total < command.length:
        chunk = _read(channel)[: command.length - total]
        parts.append(chunk)
        total += len(chunk)
    command.data = b"".join(parts)
    return command
"""Packet builders and request-id allocation.

Request id 1 is reserved for the auth packet so the auth response can never
be confused with a command reply. Command and trailer ids are drawn from
[2, 4095].
"""

from __future__ import annotations

import random

from .errors import EncodeError
from .packet import Packet, PacketKind

AUTH_REQUEST_ID = 1
AUTH_FAILED_REQUEST_ID = -1
MIN_COMMAND_ID = 2
MAX_COMMAND_ID = 4095


def next_request_id(rng: random.Random | None = None, exclude: int | None = None) -> int:
    """Pick a random command request id, never the reserved auth id.

    Args:
        rng: Random source, the module-level generator by default.
        exclude: An id the result must differ from.
    """
    rng = rng or random
    while True:
        request_id = rng.randint(MIN_COMMAND_ID, MAX_COMMAND_ID)
        if request_id != exclude:
            return request_id


def _ascii(text: str) -> bytes:
    try:
        return text.encode("ascii")
    except UnicodeEncodeError as e:
        raise EncodeError(f"Packet body must be ASCII, got {text!r}") from e


def build_auth(password: str) -> Packet:
    """Build the auth packet carrying the RCON password."""
    return Packet(
        request_id=AUTH_REQUEST_ID,
        kind=PacketKind.AUTH,
        body=_ascii(password),
    )


def build_exec_command(command: str, request_id: int) -> Packet:
    """Build an exec-command packet."""
    return Packet(
        request_id=request_id,
        kind=PacketKind.EXEC_COMMAND,
        body=_ascii(command),
    )


def build_null_packet(request_id: int) -> Packet:
    """Build the empty response-value trailer sent after a command.

    The server answers the trailer only after it has finished sending the
    command's output, so a reply carrying the trailer's id marks the end of a
    multi-packet response.
    """
    return Packet(request_id=request_id, kind=PacketKind.RESPONSE_VALUE)

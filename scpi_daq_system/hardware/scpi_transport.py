"""
scpi_transport.py
PURPOSE: Exchange one ASCII command with an instrument over raw TCP
KEY CONCEPT: Every exchange opens its own socket and closes it again, so a
             hung instrument can never leave shared connection state behind.
Protocol: {command}\r\n -> {reply}\n, or silence for fire-and-forget commands
"""

import socket
import time
from dataclasses import dataclass

from .errors import ConnectivityError

DEFAULT_TIMEOUT = 1.5
TERMINATOR = "\r\n"
BUFFER_SIZE = 4096


@dataclass(frozen=True)
class InstrumentAddress:
    """Network location of one instrument."""
    host: str
    port: int

    def __str__(self):
        return f"{self.host}:{self.port}"


def exchange(address, command, timeout=DEFAULT_TIMEOUT):
    """
    Send a command and return the trimmed reply text.

    Args:
        address: InstrumentAddress of the instrument
        command: Command string without terminator (e.g. '*IDN?')
        timeout: Deadline in seconds for connecting and for the whole reply

    Returns:
        Reply string with surrounding whitespace removed. An empty string
        means the read deadline passed before a single byte arrived, which
        is how commands such as FUNC:RUN answer.

    Raises:
        ConnectivityError: Connect refused/timed out, write failed, the
            instrument closed the connection without replying, or any
            other non-timeout read error.
    """
    if not timeout:
        timeout = DEFAULT_TIMEOUT

    try:
        sock = socket.create_connection((address.host, address.port), timeout=timeout)
    except OSError as e:
        raise ConnectivityError(address, f"connect: {e}") from e

    with sock:
        deadline = time.monotonic() + timeout
        try:
            sock.sendall((command + TERMINATOR).encode("ascii"))
        except OSError as e:
            raise ConnectivityError(address, f"write: {e}") from e

        reply = _read_reply(sock, address, deadline)

    return reply.decode("ascii", errors="replace").strip()


def _read_reply(sock, address, deadline):
    """Read until a line feed, the deadline, or end of stream after data."""
    received = bytearray()

    while not received.endswith(b"\n"):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        sock.settimeout(remaining)
        try:
            chunk = sock.recv(BUFFER_SIZE)
        except socket.timeout:
            break
        except OSError as e:
            raise ConnectivityError(address, f"read: {e}") from e

        if not chunk:
            if not received:
                raise ConnectivityError(address, "read: connection closed by instrument")
            break
        received.extend(chunk)

    return bytes(received)

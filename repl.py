"""
The connection contract shared by the nREPL and pREPL clients, the response
events they produce, and the handshake that decides which one to use.
"""

import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from errors import ProtocolViolation, TransportError
from utils import logger, write_and_flush

# Bencoded {"op": "eval", "code": "(+ 1 1)"}. The code is valid for either
# server, the newline completes the line for a line-oriented reader.
PROBE = b"d4:code7:(+ 1 1)2:op4:evale\n"

PREPL_MARKER = b"{"
NREPL_MARKER = b"d"


class ResponseType(Enum):
    """Kind of event read back after sending code."""

    STDOUT = "out"
    STDERR = "err"
    RESULT = "value"
    EXCEPTION = "exception"
    DONE = "done"
    IGNORABLE = "ignorable"


@dataclass(frozen=True)
class Response:
    """One event of an evaluation's response stream."""

    type: ResponseType
    text: Optional[str] = None

    def is_terminal(self) -> bool:
        """True for the event that ends the read loop of one evaluation."""
        return self.type in (ResponseType.DONE, ResponseType.EXCEPTION)

    def render(self) -> Optional[str]:
        """Text the front end should print for this event, if any."""
        if self.type == ResponseType.IGNORABLE:
            return None
        if self.type == ResponseType.RESULT:
            return f"{self.text}\n"
        return self.text


class Repl(ABC):
    """
    A live connection to a REPL server.

    Subclasses wrap one socket and translate between code strings and
    Response events. Any ReplError raised by a method leaves the
    connection unusable.
    """

    name = "REPL"

    def __init__(self, sock):
        self.sock = sock
        self.namespace = "user"
        self.reader = sock.makefile('rb')
        self.writer = sock.makefile('wb')
        self.closed = False

    @abstractmethod
    def send(self, code: str):
        """Submit code for evaluation."""

    @abstractmethod
    def receive(self) -> Response:
        """Block until the next response event arrives."""

    @abstractmethod
    def quit(self):
        """Tell the server the session is over, if the protocol allows it."""

    def _write(self, data):
        write_and_flush(self.writer, data)

    def close(self):
        if self.closed:
            return
        self.closed = True
        for f in (self.reader, self.writer):
            try:
                f.close()
            except OSError as e:
                logger.debug(f"Ignoring error while closing stream: {e}")
        _shutdown(self.sock)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def _shutdown(sock):
    """Release both directions of a socket, then the descriptor."""
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        # Peer already reset the connection; closing is still required
        logger.debug(f"Socket shutdown failed: {e}")
    sock.close()


def _read_marker(sock):
    data = sock.recv(1)
    if not data:
        raise TransportError("Connection closed before the server answered the probe")
    return data


def get_repl(host, port, connect=socket.create_connection) -> Repl:
    """
    Connect to host:port and return the client matching the server's protocol.

    Sends a bencoded eval request and looks at the first byte of the answer:
    pREPL servers print an EDN map ('{'), nREPL servers a bencoded dict ('d').
    The probe socket is discarded and a clean one is handed to the client.
    """
    from nrepl import Nrepl
    from prepl import Prepl

    address = (host, port)
    try:
        # 1. Probe
        probe = connect(address)
    except OSError as e:
        raise TransportError(f"Unable to connect to {host}:{port}: {e}") from e

    try:
        probe.sendall(PROBE)
        logger.debug(f"Probe sent to {host}:{port}")
        marker = _read_marker(probe)
    except OSError as e:
        raise TransportError(f"Probe to {host}:{port} failed: {e}") from e
    finally:
        # 2. Restart from a clean state, the probe left the session dirty
        _shutdown(probe)

    logger.debug(f"Probe answered with {marker!r}")
    if marker == PREPL_MARKER:
        repl_class = Prepl
    elif marker == NREPL_MARKER:
        repl_class = Nrepl
    else:
        raise ProtocolViolation(
            f"Unable to identify nREPL/pREPL at {host}:{port}: "
            f"unexpected first byte {marker!r}"
        )

    # 3. Fresh connection for the real session
    try:
        sock = connect(address)
    except OSError as e:
        raise TransportError(f"Unable to reconnect to {host}:{port}: {e}") from e

    logger.debug(f"Detected {repl_class.name}")
    return repl_class(sock)

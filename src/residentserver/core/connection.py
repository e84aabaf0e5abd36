"""
=============================================================================
SESSION: ONE CLIENT CONNECTION
=============================================================================

This module wraps one accepted client socket with the line protocol the
resident server speaks.

=============================================================================
THE WIRE PROTOCOL
=============================================================================

There is no header, no length prefix and no blank-line terminator. The
client marks the end of its request by closing its side of the stream:

    Client                                   Server
      │                                        │
      │  "hello\n"  ─────────────────────────► │  line 1: "hello"
      │  "world"    ─────────────────────────► │  line 2: "world"
      │  FIN (shutdown SHUT_WR) ─────────────► │  EOF → request = "helloworld"
      │                                        │
      │ ◄───────────────────── "response\n"    │  exactly one line back
      │ ◄───────────────────── FIN             │  server closes
      │                                        │

Lines are joined with NO separator, so multi-line input collapses into a
single logical request. "\n", "\r\n" and a lone "\r" all end a line; a
last fragment without a terminator still counts as a line.

TCP IS A BYTE STREAM: "hello\nworld" may arrive as "hel" + "lo\nwor" +
"ld". Reading through a buffered text file object hides the chunking and
hands us whole lines.

=============================================================================
SESSION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING
     │             │                 │                 │
     │             ▼                 ▼                 ▼
     └──────────────────────────► CLOSED ◄─────────────┘

A session is closed on every path out of the handling step, including
when the handler raises.

=============================================================================
"""

import socket
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import IO, List, Optional

from ..errors import ConnectionIOError


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of one client session."""

    NEW = "new"                # Just accepted, nothing read yet
    READING = "reading"        # Reading request lines until EOF
    PROCESSING = "processing"  # Request complete, handler is executing
    WRITING = "writing"        # Sending the response line
    CLOSED = "closed"          # Socket released


@dataclass
class Session:
    """
    One client connection and the request/response exchanged on it.

    Attributes:
        socket: The connected client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used to correlate log lines.
        state: Current session state.
        raw_request_lines: Lines as received, terminators removed.
        response: The response text, once one has been sent.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: SessionState = SessionState.NEW
    encoding: str = "utf-8"

    raw_request_lines: List[str] = field(default_factory=list)
    response: Optional[str] = None

    _reader: Optional[IO[str]] = field(default=None, repr=False)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def request(self) -> str:
        """All received lines concatenated with no separator."""
        return "".join(self.raw_request_lines)

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> str:
        """
        Read lines until the client closes its write side.

        Blocks with no timeout: a client that connects and never sends
        EOF keeps this call (and the whole server) waiting.

        Returns:
            The concatenated request.

        Raises:
            ConnectionIOError: If the socket read fails.
        """
        self.state = SessionState.READING

        # newline=None turns "\r\n" and "\r" into "\n" before we see them
        self._reader = self.socket.makefile(
            "r", encoding=self.encoding, errors="replace", newline=None
        )

        try:
            for line in self._reader:
                if line.endswith("\n"):
                    line = line[:-1]
                self.raw_request_lines.append(line)
        except OSError as e:
            raise ConnectionIOError(f"Read failed: {e}", session_id=self.id) from e

        return self.request

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, response: str) -> None:
        """
        Send the response as exactly one line.

        Line breaks inside the response are removed, the same way request
        lines are joined, so "a\\nb" goes out as "ab\\n".

        sendall() is used because send() may write only part of the data.

        Raises:
            ConnectionIOError: If the socket write fails.
        """
        self.state = SessionState.WRITING
        response = response.replace("\r", "").replace("\n", "")
        data = (response + "\n").encode(self.encoding, errors="replace")

        try:
            self.socket.sendall(data)
        except OSError as e:
            raise ConnectionIOError(f"Send failed: {e}", session_id=self.id) from e

        self.response = response

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close both directions of the connection and release the socket.

        Safe to call more than once. Errors while closing are ignored: the
        peer may already be gone, and there is nothing left to deliver.
        """
        if self.state == SessionState.CLOSED:
            return

        if self._reader is not None:
            try:
                self._reader.close()
            except OSError:
                pass
            self._reader = None

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = SessionState.CLOSED
        logger.debug(f"[{self.id}] Connection from {self.client_ip}:{self.client_port} closed")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

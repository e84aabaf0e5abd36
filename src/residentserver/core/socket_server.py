"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

This module owns the listening socket and serves clients ONE AT A TIME.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP socket file descriptor
    2. bind()      Reserve IP:PORT for this server
                   └─ Fails if another process already owns the port
    3. listen()    Let the OS queue incoming connections (backlog)
    4. accept()    BLOCK until a client connects
                   └─ Returns a NEW socket just for that client
    5. close()     Release the client socket; the listener stays open

=============================================================================
STRICTLY SEQUENTIAL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept ─► read until EOF ─► handler ─► send line ─► close         │
    │     ▲                                                      │         │
    │     └──────────────────────────────────────────────────────┘         │
    │                                                                      │
    │   Only after close() is the next accept() issued.                   │
    │   Clients arriving meanwhile wait in the listen backlog.            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There are no threads, no timeouts and no select(): accept() and the line
read are the only places the process blocks. A client that connects and
never closes its write side stalls the server until it goes away.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Lets the server restart immediately even while the previous run's
    sockets sit in TIME_WAIT. It does NOT let two live listeners share a
    port on Linux, so a second instance still fails to bind.

SO_REUSEPORT is deliberately NOT set: it would let a second process bind
the same port silently, hiding a misconfigured start-up.

=============================================================================
"""

import socket
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import BindError, ConnectionIOError
from .connection import Session, SessionState


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Sequential TCP server for the line protocol.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    bind()            socket() + setsockopt() + bind() + listen()    │
    │                                                                      │
    │    accept_one()      accept()  → Session                            │
    │                                                                      │
    │    serve_one(s)      s.read_request()                               │
    │                      handler(request)                               │
    │                      s.send_response(response)                      │
    │                      processed_count += 1                           │
    │                      s.close()   (always)                           │
    │                                                                      │
    │    close()           Close the listening socket                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config, handler=str.upper)
        server.bind()
        while keep_going():
            server.serve_one(server.accept_one())
        server.close()
    """

    def __init__(self, config: ServerConfig, handler: Callable[[str], str]):
        """
        Initialize the socket server.

        Args:
            config: Server configuration (host, port, backlog, encoding).
            handler: Business logic, called once per request.

        Note: This does NOT create the socket. Call bind().
        """
        self.config = config
        self.handler = handler

        self._socket: Optional[socket.socket] = None

        # Connections whose response was fully sent
        self._processed_count = 0

        # Set once the socket is listening; tests wait on it before
        # connecting so that a readiness check is not served as a request
        self._ready = threading.Event()

    @property
    def processed_count(self) -> int:
        """Number of connections served to completion."""
        return self._processed_count

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the configured one before bind()."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.listen_port)

    def _create_socket(self) -> socket.socket:
        """Create the TCP socket and set its options."""
        # AF_INET = IPv4, SOCK_STREAM = TCP
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return sock

    def bind(self) -> None:
        """
        Acquire the listening socket.

        Raises:
            BindError: If the address is in use, not permitted, or invalid.
        """
        host, port = self.config.host, self.config.listen_port
        sock = self._create_socket()

        try:
            sock.bind((host, port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise BindError(host, port, str(e)) from e

        self._socket = sock
        self._ready.set()
        logger.info(f"Server listening on {host}:{self.address[1]}")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the socket is listening.

        Returns:
            True if bound, False if the timeout expired first.
        """
        return self._ready.wait(timeout)

    def accept_one(self) -> Session:
        """
        Block until a client connects.

        There is no timeout: if nobody connects, this never returns.

        Returns:
            A new Session wrapping the client socket.

        Raises:
            RuntimeError: If bind() has not been called.
            OSError: If accept() itself fails. This is not a per-connection
                     error, so it is left for the caller to treat as fatal.
        """
        if self._socket is None:
            raise RuntimeError("accept_one() called before bind()")

        client_socket, client_address = self._socket.accept()
        session = Session(
            socket=client_socket,
            address=client_address,
            encoding=self.config.encoding,
        )
        logger.debug(f"[{session.id}] Accepted connection from {client_address[0]}:{client_address[1]}")
        return session

    def serve_one(self, session: Session) -> bool:
        """
        Read the request, run the handler, send the response, close.

        Returns:
            True if the response was sent, False if a read or write on the
            client stream failed (the connection is dropped, the server
            carries on).

        Raises:
            Exception: Anything the handler raises propagates after the
                       session has been closed.
        """
        with session:
            try:
                request = session.read_request()
                logger.info(f"[{session.id}] request received. [{request}]")

                session.state = SessionState.PROCESSING
                response = self.handler(request)

                session.send_response(response)
                logger.info(f"[{session.id}] response sent. [{session.response}]")

            except ConnectionIOError as e:
                logger.warning(f"Connection aborted: {e}")
                return False

        self._processed_count += 1
        return True

    def close(self) -> None:
        """Close the listening socket. Safe to call more than once."""
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None
            self._ready.clear()
            logger.info("Socket server stopped")

    def __enter__(self) -> "SocketServer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

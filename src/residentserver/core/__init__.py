"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    socket_server.py   SocketServer - owns the listening socket and
                       serves one connection at a time
    connection.py      Session - one client connection speaking the
                       line protocol (read until EOF, reply one line)

These two know nothing about the stop time or the process lifecycle;
that belongs to residentserver.server.ResidencyController.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Session, SessionState

__all__ = [
    "SocketServer",   # Listening socket, sequential accept/serve
    "Session",        # One client connection
    "SessionState",   # Enum for session lifecycle states
]

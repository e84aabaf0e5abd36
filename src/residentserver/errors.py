"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure in the server is either absorbed at the connection boundary
or fatal to the whole process. There are no retries anywhere.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR CLASSES                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ConfigError          Bad settings at startup        → exit 20     │
    │   BindError            Listening port unavailable     → exit 20     │
    │   ConnectionIOError    Read/write on one client fails → next client │
    │   (anything else)      Unexpected, logged with trace  → exit 20     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Optional


class ResidentServerError(Exception):
    """Base class for all errors raised by the resident server."""


class ConfigError(ResidentServerError, ValueError):
    """
    Raised when configuration values are invalid.

    Configuration is validated once at startup, so this error always
    surfaces before the listening socket is created.
    """


class BindError(ResidentServerError):
    """
    Raised when the listening socket cannot be acquired.

    Common causes:
        - Address already in use: another process owns the port
        - Permission denied: ports < 1024 require root
    """

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to bind to {host}:{port}: {reason}")


class ConnectionIOError(ResidentServerError):
    """
    Raised when reading from or writing to one client stream fails.

    This error is scoped to a single connection. The server closes that
    connection and goes back to accepting the next one.
    """

    def __init__(self, message: str, session_id: Optional[str] = None):
        self.session_id = session_id
        if session_id:
            message = f"[{session_id}] {message}"
        super().__init__(message)

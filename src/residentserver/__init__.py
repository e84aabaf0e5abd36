"""
=============================================================================
RESIDENTSERVER - Time-Bounded Resident TCP Line Server
=============================================================================

A small resident process that answers plain-text TCP requests one at a
time until a configured time of day, then exits.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESIDENT SERVER ARCHITECTURE                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ResidencyController      "Is it before the stop time?"            │
    │          │                                                           │
    │          ▼                                                           │
    │   SocketServer             accept → read → handle → reply → close   │
    │          │                                                           │
    │          ▼                                                           │
    │   handler(request)         your business logic, str → str           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    residentserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m residentserver)
    ├── server.py            # ResidencyController (lifecycle, stop time)
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Exception taxonomy
    ├── observability.py     # Log file, BEGIN/END records, RunStats
    ├── core/
    │   ├── socket_server.py # Listening socket, sequential serving
    │   └── connection.py    # Session: line protocol on one connection
    └── handlers/
        └── __init__.py      # Request handler protocol and built-ins

=============================================================================
QUICK START
=============================================================================

    from residentserver import ResidencyController, ServerConfig

    def shout(request: str) -> str:
        return request.upper()

    config = ServerConfig(listen_port=60000, stop_time="1800")
    exit_code = ResidencyController(config, handler=shout).run()

    # From another terminal:
    #   printf 'hello\\nworld' | nc -N localhost 60000
    #   HELLOWORLD

=============================================================================
"""

__version__ = "1.0.0"

from .server import ResidencyController, ControllerState, EXIT_OK, EXIT_ON_ERROR
from .config import ServerConfig
from .errors import ResidentServerError, ConfigError, BindError, ConnectionIOError

__all__ = [
    "ResidencyController",
    "ControllerState",
    "ServerConfig",
    "EXIT_OK",
    "EXIT_ON_ERROR",
    "ResidentServerError",
    "ConfigError",
    "BindError",
    "ConnectionIOError",
    "__version__",
]

"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the resident socket server.

The configuration is built ONCE at process start and never changes
afterwards. Every component receives the same immutable ServerConfig.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m residentserver --port 60001                     │
    │                                                                      │
    │   2. Environment variables (set by the start-up script)             │
    │      └── env socket_server.listen_port_no=60001 ...                │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The variable names contain a dot, so most shells cannot `export` them
directly. Use `env 'socket_server.stop_time=1830' python -m residentserver`
or set them from the service manager.

=============================================================================
THE STOP TIME
=============================================================================

stop_time is a 24-hour "HHMM" string. The server compares the current
local time, formatted the same way, against it as a STRING:

    "2159" < "2200"   → keep serving
    "2200" < "2200"   → stop

Because both sides are always four zero-padded digits, the string order
equals the clock order within one day. That only holds for well-formed
values, so anything else ("900", "25:00", "2460") is rejected here.

A stop time "past midnight" (start at 08:00, stop at 02:00) is NOT
supported: "0800" < "0200" is false, so the server stops immediately.

=============================================================================
"""

import os
import re
import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import ConfigError


# ─────────────────────────────────────────────────────────────────────────
# ENVIRONMENT VARIABLE NAMES
# ─────────────────────────────────────────────────────────────────────────

ENV_LISTEN_PORT = "socket_server.listen_port_no"
ENV_STOP_TIME = "socket_server.stop_time"
ENV_LOG_DIR = "socket_server.log_dir"
ENV_LOG_NAME = "socket_server.log_name"
ENV_HOST = "socket_server.host"
ENV_LOG_LEVEL = "socket_server.log_level"
ENV_LOG_FORMAT = "socket_server.log_format"

# HH = 00-23, MM = 00-59
STOP_TIME_PATTERN = re.compile(r"^(?:[01][0-9]|2[0-3])[0-5][0-9]$")

LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the resident socket server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, listen_port, backlog, encoding

    RESIDENCY
    - stop_time

    LOGGING
    - log_dir, log_name, log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    listen_port: int = 60000
    """The TCP port to listen on (1-65535)."""

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All network interfaces (default)
    - "127.0.0.1" - Localhost only
    """

    backlog: int = 50
    """
    Maximum number of queued connections.
    Clients that connect while another one is being served wait here.
    """

    encoding: str = "utf-8"
    """Text encoding of request and response lines."""

    # ─────────────────────────────────────────────────────────────────────
    # RESIDENCY
    # ─────────────────────────────────────────────────────────────────────

    stop_time: str = "2200"
    """
    Local wall-clock cutoff in 24-hour HHMM form.
    No new connection is accepted once the current HHMM reaches it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_dir: str = "log"
    """Directory for the log file. Created at startup if absent."""

    log_name: str = "socket_server.log"
    """Log file name inside log_dir."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """
    Format of the begin/end records: 'text' or 'json'.
    JSON is easier for log aggregators to pick apart.
    """

    @property
    def log_path(self) -> str:
        """Full path of the log file."""
        return os.path.join(self.log_dir, self.log_name)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        socket_server.listen_port_no  TCP port (default: 60000)
        socket_server.stop_time       Stop time HHMM (default: 2200)
        socket_server.log_dir         Log directory (default: log)
        socket_server.log_name        Log file name (default: socket_server.log)
        socket_server.host            Bind address (default: 0.0.0.0)
        socket_server.log_level       Logging level (default: INFO)
        socket_server.log_format      text or json (default: text)

        Empty values are treated as unset.

        =====================================================================
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str) -> str:
            value = env.get(name)
            return value if value else default

        port_text = get(ENV_LISTEN_PORT, str(cls.listen_port))
        try:
            port = int(port_text)
        except ValueError:
            raise ConfigError(
                f"Invalid {ENV_LISTEN_PORT}: {port_text!r} is not an integer"
            ) from None

        return cls(
            listen_port=port,
            stop_time=get(ENV_STOP_TIME, cls.stop_time),
            log_dir=get(ENV_LOG_DIR, cls.log_dir),
            log_name=get(ENV_LOG_NAME, cls.log_name),
            host=get(ENV_HOST, cls.host),
            log_level=get(ENV_LOG_LEVEL, cls.log_level),
            log_format=get(ENV_LOG_FORMAT, cls.log_format),
        )

    def with_overrides(self, **overrides) -> "ServerConfig":
        """
        Return a copy with the given fields replaced.

        None values are ignored, so argparse results can be passed
        straight through:

            config = ServerConfig.from_env().with_overrides(
                listen_port=args.port,    # None if --port was not given
            )
        """
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: On the first invalid value found.
        """
        if isinstance(self.listen_port, bool) or not isinstance(self.listen_port, int):
            raise ConfigError(f"Invalid port: {self.listen_port!r}. Must be an integer.")

        if not 0 < self.listen_port < 65536:
            raise ConfigError(f"Invalid port: {self.listen_port}. Must be 1-65535.")

        if not isinstance(self.stop_time, str) or not STOP_TIME_PATTERN.match(self.stop_time):
            raise ConfigError(
                f"Invalid stop time: {self.stop_time!r}. Must be HHMM (0000-2359)."
            )

        if self.backlog < 1:
            raise ConfigError("backlog must be >= 1")

        if not self.log_name:
            raise ConfigError("log_name must not be empty")

        if not isinstance(self.log_level, str) or not isinstance(
            logging.getLevelName(self.log_level.upper()), int
        ):
            raise ConfigError(f"Invalid log level: {self.log_level!r}")

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"Invalid log format: {self.log_format!r}. Must be one of {LOG_FORMATS}."
            )

        try:
            "".encode(self.encoding)
        except LookupError:
            raise ConfigError(f"Unknown encoding: {self.encoding!r}") from None

    def describe(self) -> dict:
        """Resolved values written to the begin record, in display order."""
        return {
            "log_dir": self.log_dir,
            "log_name": self.log_name,
            "listen_port": self.listen_port,
            "stop_time": self.stop_time,
            "host": self.host,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

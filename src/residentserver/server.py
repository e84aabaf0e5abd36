"""
=============================================================================
RESIDENCY CONTROLLER
=============================================================================

The orchestrator of the resident process. It ties configuration, logging
and the socket server together and decides when the process stops.

=============================================================================
STATE MACHINE
=============================================================================

    ┌──────────┐        ┌──────────┐        ┌──────────┐        ┌─────────┐
    │ STARTING │ ─────► │ SERVING  │ ─────► │ STOPPING │ ─────► │ STOPPED │
    └──────────┘        └────┬─────┘        └──────────┘        └─────────┘
         │                   │  ▲                 ▲
         │                   └──┘                 │
         │          one connection per turn       │
         │                                        │
         └──── startup failure (exit 20) ─────────┘

STARTING   validate config, open the log file, write the BEGIN record
SERVING    bind, then:  while should_continue(): accept_one(); serve_one()
STOPPING   close the listener, write the END record
STOPPED    run() returns the exit code

=============================================================================
WHEN DOES IT STOP?
=============================================================================

should_continue() is evaluated BETWEEN connections only:

    stop_time = "2200"

    21:59  check "2159" < "2200" → accept (blocks until a client arrives)
           serve that client
    22:01  check "2201" < "2200" → false → STOPPING, exit 0

If no client connects after the last successful check, accept() keeps
blocking past 22:00. Nothing interrupts it; the process ends at the next
loop turn or when it is killed from outside.

=============================================================================
EXIT CODES
=============================================================================

    0    Stop time reached
    20   Anything unexpected: bad config, log dir not creatable, port in
         use, handler crash, accept failure

Per-connection read/write failures are NOT in this list. SocketServer
absorbs them and the loop carries on.

=============================================================================
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .config import ServerConfig
from .core import SocketServer
from .errors import BindError, ConfigError
from .handlers import stub_handler
from .observability import (
    RunStats,
    configure_logging,
    log_begin,
    log_end,
    reset_logging,
)


logger = logging.getLogger("residentserver")


EXIT_OK = 0
EXIT_ON_ERROR = 20


class ControllerState(Enum):
    """Lifecycle states of the resident process."""

    STARTING = "starting"
    SERVING = "serving"
    STOPPING = "stopping"
    STOPPED = "stopped"


def format_hhmm(moment: datetime) -> str:
    """Format a time as zero-padded 24-hour HHMM, e.g. 09:05 → "0905"."""
    return moment.strftime("%H%M")


class ResidencyController:
    """
    Runs the socket server until the configured stop time.

    Usage:
        config = ServerConfig.from_env()
        exit_code = ResidencyController(config).run()
        sys.exit(exit_code)

    For tests, the clock and the handler can be replaced:

        times = iter([datetime(2026, 1, 1, 21, 59), datetime(2026, 1, 1, 22, 1)])
        controller = ResidencyController(
            config,
            handler=str.upper,
            clock=lambda: next(times),
            configure_logging=False,
        )
    """

    def __init__(
        self,
        config: ServerConfig,
        handler: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        socket_server_factory: Callable[..., SocketServer] = SocketServer,
        configure_logging: bool = True,
    ):
        """
        Args:
            config: Immutable server configuration.
            handler: Request handler; defaults to the stub handler.
            clock: Returns the current local time; defaults to datetime.now.
            socket_server_factory: Builds the SocketServer from (config, handler).
            configure_logging: Attach file and console log handlers at start.
                               Tests turn this off and use caplog.
        """
        self.config = config
        self.handler = handler or stub_handler

        self._clock = clock or datetime.now
        self._socket_server_factory = socket_server_factory
        self._configure_logging = configure_logging

        self.state = ControllerState.STARTING
        self.stats = RunStats()
        self.socket_server: Optional[SocketServer] = None

    @property
    def processed_count(self) -> int:
        if self.socket_server is None:
            return 0
        return self.socket_server.processed_count

    def should_continue(self) -> bool:
        """
        True while the current HHMM sorts before the stop time.

        Plain string comparison: both sides are four zero-padded digits,
        so string order is clock order within a day.
        """
        return format_hhmm(self._clock()) < self.config.stop_time

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> int:
        """
        Run the resident process to completion (blocking).

        Returns:
            The exit code (EXIT_OK or EXIT_ON_ERROR).
        """
        self.state = ControllerState.STARTING
        self.stats = RunStats()

        try:
            self._start()
        except (ConfigError, OSError) as e:
            logger.error(f"Startup failed: {e}")
            return self._stop(EXIT_ON_ERROR)
        except Exception:
            logger.exception("Startup failed")
            return self._stop(EXIT_ON_ERROR)

        self.state = ControllerState.SERVING
        try:
            exit_code = self._serve()
        except BindError as e:
            logger.error(str(e))
            exit_code = EXIT_ON_ERROR
        except KeyboardInterrupt:
            logger.error("Interrupted while serving")
            exit_code = EXIT_ON_ERROR
        except Exception:
            logger.exception("Unexpected error while serving")
            exit_code = EXIT_ON_ERROR

        return self._stop(exit_code)

    def _start(self) -> None:
        self.config.validate()

        if self._configure_logging:
            configure_logging(self.config)

        log_begin(self.config)

    def _serve(self) -> int:
        self.socket_server = self._socket_server_factory(self.config, self.handler)
        self.socket_server.bind()

        while self.should_continue():
            session = self.socket_server.accept_one()
            self.socket_server.serve_one(session)

        logger.info(f"Stop time {self.config.stop_time} reached")
        return EXIT_OK

    def _stop(self, exit_code: int) -> int:
        self.state = ControllerState.STOPPING

        if self.socket_server is not None:
            self.socket_server.close()

        self.stats.finish(exit_code, self.processed_count)
        log_end(self.stats, self.config.log_format)

        if self._configure_logging:
            reset_logging()

        self.state = ControllerState.STOPPED
        return exit_code

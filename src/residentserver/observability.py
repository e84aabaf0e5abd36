"""
=============================================================================
OBSERVABILITY: LOG FILE, RUN STATISTICS, BEGIN/END RECORDS
=============================================================================

The resident server writes a line-oriented log that an operator can read
the next morning to answer three questions:

    1. What settings did it start with?        → BEGIN record
    2. What did it receive and send?           → one line per request/response
    3. How did it end, and how much did it do? → END record

    2026-10-19 08:00:00 [INFO] residentserver: @@@@ BEGIN @@@@
    2026-10-19 08:00:00 [INFO] residentserver: log_dir     =[log]
    2026-10-19 08:00:00 [INFO] residentserver: log_name    =[socket_server.log]
    2026-10-19 08:00:00 [INFO] residentserver: listen_port =[60000]
    2026-10-19 08:00:00 [INFO] residentserver: stop_time   =[2200]
    ...
    2026-10-19 09:12:03 [INFO] residentserver.core.socket_server: [a1b2c3d4] request received. [hello]
    2026-10-19 09:12:03 [INFO] residentserver.core.socket_server: [a1b2c3d4] response sent. [something to do]
    ...
    2026-10-19 22:00:41 [INFO] residentserver: @@@@ END @@@@ exit_code=[0] execution_time(ms)=[50441123] processed_count=[1]

=============================================================================
LOGGER NAMESPACE
=============================================================================

All modules log under the "residentserver" namespace, so one handler on
that logger captures everything:

    logging.getLogger("residentserver")                     # lifecycle
    logging.getLogger("residentserver.core.socket_server")  # per-connection

=============================================================================
"""

import json
import time
import logging
from datetime import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import ServerConfig


LOGGER_NAME = "residentserver"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(LOGGER_NAME)

# Marks handlers installed by configure_logging() so a second call
# replaces them instead of stacking duplicates.
_HANDLER_TAG = "_residentserver_handler"


def ensure_log_dir(log_dir: str) -> Path:
    """
    Create the log directory if it does not exist.

    Raises:
        OSError: If the directory cannot be created.
    """
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(config: ServerConfig) -> logging.Logger:
    """
    Attach a file handler and a console handler to the package logger.

    The file goes to <log_dir>/<log_name>; the directory is created first.
    The logger keeps propagating to the root logger, so pytest's caplog and
    any application-level handlers still see every record.

    Raises:
        OSError: If the log directory or file cannot be created.
    """
    ensure_log_dir(config.log_dir)

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    file_handler = logging.FileHandler(config.log_path, encoding="utf-8")
    console_handler = logging.StreamHandler()

    reset_logging()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def reset_logging() -> None:
    """Remove and close the handlers installed by configure_logging()."""
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()


@dataclass
class RunStats:
    """
    Statistics for one run of the resident process.

    Created when the controller starts, finalized at shutdown and written
    out as the END record.

    Attributes:
        start_time: Wall-clock time the process started.
        end_time: Wall-clock time the process stopped (None while running).
        exit_code: Final exit code (None while running).
        processed_count: Connections fully served.
    """

    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    exit_code: Optional[int] = None
    processed_count: int = 0

    # Elapsed time is measured on the monotonic clock so that a wall-clock
    # adjustment during the day cannot make it negative.
    _started: float = field(default_factory=time.monotonic, repr=False)
    _stopped: Optional[float] = field(default=None, repr=False)

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds from start to finish (or to now, while running)."""
        stopped = self._stopped if self._stopped is not None else time.monotonic()
        return int((stopped - self._started) * 1000)

    def finish(self, exit_code: int, processed_count: int) -> "RunStats":
        """Record the final values. Returns self for chaining."""
        self._stopped = time.monotonic()
        self.end_time = datetime.now()
        self.exit_code = exit_code
        self.processed_count = processed_count
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "event": "end",
            "start_time": self.start_time.isoformat(timespec="seconds"),
            "end_time": self.end_time.isoformat(timespec="seconds") if self.end_time else None,
            "exit_code": self.exit_code,
            "execution_time_ms": self.elapsed_ms,
            "processed_count": self.processed_count,
        }

    def to_text(self) -> str:
        return (
            f"@@@@ END @@@@ exit_code=[{self.exit_code}] "
            f"execution_time(ms)=[{self.elapsed_ms}] "
            f"processed_count=[{self.processed_count}]"
        )


def log_begin(config: ServerConfig) -> None:
    """Emit the BEGIN record with every resolved configuration value."""
    values = config.describe()

    if config.log_format == "json":
        logger.info(json.dumps({"event": "begin", **values}))
        return

    logger.info("@@@@ BEGIN @@@@")
    width = max(len(name) for name in values)
    for name, value in values.items():
        logger.info(f"{name.ljust(width)} =[{value}]")


def log_end(stats: RunStats, log_format: str = "text") -> None:
    """Emit the END record with exit code, elapsed time and processed count."""
    if log_format == "json":
        logger.info(json.dumps(stats.to_dict()))
    else:
        logger.info(stats.to_text())

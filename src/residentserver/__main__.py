"""
=============================================================================
RESIDENT SERVER CLI ENTRY POINT
=============================================================================

    # Run with environment/default settings (port 60000, stop at 22:00)
    python -m residentserver

    # Custom port and stop time
    python -m residentserver --port 60001 --stop-time 1830

    # Echo requests back instead of the placeholder reply
    python -m residentserver --handler echo

    # Plug in your own handler
    python -m residentserver --handler mypackage.handlers:process

Command-line options override the socket_server.* environment variables,
which override the defaults in ServerConfig.

The process exit status is the controller's exit code: 0 when the stop
time is reached, 20 on any unexpected error (including bad settings).

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .errors import ConfigError
from .handlers import DEFAULT_HANDLER, resolve_handler
from .server import ResidencyController, EXIT_ON_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resident-server",
        description="Sequential TCP line server that runs until a stop time",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m residentserver                        # Environment/defaults
  python -m residentserver --port 60001           # Custom port
  python -m residentserver --stop-time 1830       # Stop at 18:30
  python -m residentserver --handler echo         # Echo requests back
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 60000)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # RESIDENCY ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--stop-time", "-t",
        default=None,
        metavar="HHMM",
        help="Local time to stop accepting connections (default: 2200)",
    )

    parser.add_argument(
        "--handler",
        default=DEFAULT_HANDLER,
        help="Request handler: stub, echo or package.module:attribute (default: stub)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-dir", default=None, help="Log directory (default: log)")
    parser.add_argument("--log-name", default=None, help="Log file name (default: socket_server.log)")

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Format of the BEGIN/END records (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"residentserver {__version__}",
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        The exit code for the process.
    """
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig.from_env().with_overrides(
            host=args.host,
            listen_port=args.port,
            stop_time=args.stop_time,
            log_dir=args.log_dir,
            log_name=args.log_name,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        config.validate()
        handler = resolve_handler(args.handler)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ON_ERROR

    return ResidencyController(config, handler=handler).run()


if __name__ == "__main__":
    sys.exit(main())

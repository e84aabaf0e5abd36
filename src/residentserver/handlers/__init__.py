"""
=============================================================================
REQUEST HANDLERS
=============================================================================

A request handler is the business logic of the server: a plain function
that maps one request string to one response string.

    ┌──────────────┐   "helloworld"   ┌───────────────┐   "HELLOWORLD"
    │ SocketServer │ ───────────────► │ handler(text) │ ──────────────►
    └──────────────┘                  └───────────────┘

The handler never sees the socket. It cannot block the protocol, change
the framing or keep state between connections unless it chooses to hold
that state itself. This makes handlers trivial to unit test.

=============================================================================
USAGE
=============================================================================

    # Built-in handlers
    from residentserver.handlers import stub_handler, echo_handler

    # Your own handler is any callable(str) -> str
    def upper(request: str) -> str:
        return request.upper()

    ResidencyController(config, handler=upper).run()

    # Or by name from the command line
    python -m residentserver --handler echo
    python -m residentserver --handler mypackage.handlers:upper

=============================================================================
"""

import importlib
from typing import Callable, Dict, Protocol

from ..errors import ConfigError


class RequestHandler(Protocol):
    """Anything callable as handler(request) -> response."""

    def __call__(self, request: str) -> str:
        ...


STUB_RESPONSE = "something to do"


def stub_handler(request: str) -> str:
    """Placeholder handler: ignores the request and returns a fixed reply."""
    return STUB_RESPONSE


def echo_handler(request: str) -> str:
    """Return the request unchanged."""
    return request


BUILTIN_HANDLERS: Dict[str, Callable[[str], str]] = {
    "stub": stub_handler,
    "echo": echo_handler,
}

DEFAULT_HANDLER = "stub"


def resolve_handler(name: str) -> RequestHandler:
    """
    Look up a handler by name.

    Args:
        name: A built-in name ("stub", "echo") or an import path of the
              form "package.module:attribute".

    Returns:
        The handler callable.

    Raises:
        ConfigError: If the name is unknown, cannot be imported, or does
                     not refer to a callable.
    """
    if name in BUILTIN_HANDLERS:
        return BUILTIN_HANDLERS[name]

    module_name, sep, attribute = name.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(
            f"Unknown handler {name!r}. Use one of {sorted(BUILTIN_HANDLERS)} "
            f"or 'package.module:attribute'."
        )

    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        raise ConfigError(f"Cannot import handler module {module_name!r}: {e}") from e

    handler = getattr(module, attribute, None)
    if not callable(handler):
        raise ConfigError(f"Handler {name!r} is not a callable")

    return handler


__all__ = [
    "RequestHandler",
    "STUB_RESPONSE",
    "stub_handler",
    "echo_handler",
    "BUILTIN_HANDLERS",
    "DEFAULT_HANDLER",
    "resolve_handler",
]

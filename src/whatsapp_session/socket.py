"""Contract between the session manager and the protocol layer.

The protocol layer (handshake, framing, Signal encryption) lives outside this
package. It is handed in as a :class:`ProtocolBindings` object which knows how
to build a socket and how to create and decode auth material.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from .cache import TTLCache

# Socket events the session manager subscribes to
SOCKET_EVENTS = (
    "creds.update",
    "connection.update",
    "messages.upsert",
    "messages.delete",
    "messages.update",
)

DEFAULT_CONNECT_TIMEOUT_MS = 30_000


class DisconnectReason(IntEnum):
    """Status codes carried by the error of a closed connection."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    TIMED_OUT = 408
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


def disconnect_status_code(error: Any) -> Optional[int]:
    """
    Extract the status code from a disconnect error.

    Accepts exceptions or dicts carrying ``status_code``/``statusCode`` either
    directly or under ``output``.
    """
    if error is None:
        return None

    def lookup(source: Any, *names: str) -> Any:
        for name in names:
            if isinstance(source, dict):
                value = source.get(name)
            else:
                value = getattr(source, name, None)
            if value is not None:
                return value
        return None

    code = lookup(error, "status_code", "statusCode")
    if code is None:
        output = lookup(error, "output")
        if output is not None:
            code = lookup(output, "status_code", "statusCode")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


class SocketEvents(Protocol):
    """Event source of a socket."""

    def on(self, event: str, handler: Callable[[Any], Awaitable[None]]) -> None: ...

    def off(self, event: str, handler: Callable[[Any], Awaitable[None]]) -> None: ...


class SocketCapability(Protocol):
    """One live protocol connection."""

    ev: SocketEvents

    async def request_pairing_code(self, phone_number: str) -> str: ...

    async def logout(self) -> None: ...

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any: ...

    async def group_metadata(self, jid: str) -> Any: ...

    async def group_accept_invite(self, code: str) -> Any: ...

    async def group_leave(self, jid: str) -> None: ...


@dataclass
class SocketConfig:
    """Everything the protocol layer needs to open a socket."""

    browser: Tuple[str, str, str]
    auth: Any
    logger: logging.Logger
    version: Optional[Tuple[int, int, int]] = None
    print_qr_in_terminal: bool = True
    mark_online_on_connect: bool = False
    generate_high_quality_link_preview: bool = True
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    msg_retry_counter_cache: Optional[TTLCache] = None
    cached_group_metadata: Optional[Callable[[str], Awaitable[Any]]] = None
    options: Dict[str, Any] = field(default_factory=dict)


class ProtocolBindings(Protocol):
    """Entry points of the protocol layer."""

    def make_socket(self, config: SocketConfig) -> SocketCapability: ...

    def init_auth_creds(self) -> Dict[str, Any]: ...

    def decode_app_state_sync_key(self, value: Any) -> Any: ...

"""Connection lifecycle: connect, watch the socket, retry or give up."""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from .auth import AuthState, AuthStateProvider, CacheableSignalKeyStore, create_auth_provider
from .cache import TTLCache
from .config import ClientConfig
from .events import EventEmitter
from .exceptions import ConnectionError, RetryExhaustedError, WhatsAppClientError
from .logging import log_exception
from .models import ConnectionUpdate, MessagesUpsert, VersionInfo
from .socket import (
    DEFAULT_CONNECT_TIMEOUT_MS,
    DisconnectReason,
    ProtocolBindings,
    SocketCapability,
    SocketConfig,
    disconnect_status_code,
)
from .version import fetch_latest_version

logger = logging.getLogger(__name__)

GROUP_METADATA_TTL = 60 * 60


class ConnectionState(Enum):
    """Connection states of a client."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class DisconnectKind(Enum):
    """How a closed connection is treated."""

    TRANSIENT = "transient"
    LOGGED_OUT = "logged_out"


class RetryDecision(Enum):
    """What to do after a transient disconnect."""

    RECONNECT = "reconnect"
    GIVE_UP = "give_up"


def classify_disconnect(status_code: Optional[int]) -> DisconnectKind:
    """Only an explicit logout is terminal; everything else may be retried."""
    if status_code == DisconnectReason.LOGGED_OUT:
        return DisconnectKind.LOGGED_OUT
    return DisconnectKind.TRANSIENT


def decide_retry(retry_count: int, max_retries: int) -> RetryDecision:
    if retry_count < max_retries:
        return RetryDecision.RECONNECT
    return RetryDecision.GIVE_UP


def should_reset_session(
    retry_count: int, phone_number: Optional[str], creds: Mapping[str, Any]
) -> bool:
    """
    Whether stored session state must be wiped before the next attempt.

    A half-registered session makes pairing-code login fail on every attempt,
    so from the second retry on the session is dropped when a phone number is
    used or an identity was already registered. The first retry is the normal
    reconnect that follows a QR scan and keeps the session.
    """
    return retry_count > 1 and bool(phone_number or creds.get("me"))


def message_id(message: Any) -> Optional[str]:
    if isinstance(message, dict):
        key = message.get("key") or {}
        return key.get("id") if isinstance(key, dict) else getattr(key, "id", None)
    return getattr(getattr(message, "key", None), "id", None)


class ConnectionManager:
    """
    Owns the socket of one client and drives it through its life.

    Socket events are translated into the client's public events. A dropped
    connection is retried up to ``config.max_retries`` times; an explicit
    logout ends the session.
    """

    def __init__(
        self,
        config: ClientConfig,
        bindings: ProtocolBindings,
        events: EventEmitter,
        auth_provider: Optional[AuthStateProvider] = None,
        version_fetcher: Optional[Callable[[], Awaitable[VersionInfo]]] = None,
    ) -> None:
        """
        Initialize the connection manager.

        Args:
            config: Validated client configuration
            bindings: Protocol layer entry points
            events: Emitter for public events
            auth_provider: Auth backend (default: picked from config)
            version_fetcher: Resolves the protocol version before connecting
                (default: fetch_latest_version)
        """
        self.config = config
        self.bindings = bindings
        self.events = events
        self.auth_provider = auth_provider or create_auth_provider(config, bindings)
        self.group_cache = TTLCache(ttl=GROUP_METADATA_TTL, check_period=GROUP_METADATA_TTL)

        self._version_fetcher = version_fetcher
        self._socket_logger = logging.getLogger("whatsapp_session.socket")
        self._sock: Optional[SocketCapability] = None
        self._auth_state: Optional[AuthState] = None
        self._listeners: List[Tuple[str, Callable]] = []

        self._state = ConnectionState.DISCONNECTED
        self._retry_count = 0
        self._started = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def socket(self) -> Optional[SocketCapability]:
        """The live socket, if any."""
        return self._sock

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def creds(self) -> Dict[str, Any]:
        return self._auth_state.creds if self._auth_state else {}

    async def start(self) -> None:
        """
        Start the session.

        Does nothing when already started.

        Raises:
            ConnectionError: If the socket could not be set up
            PersistenceError: If stored auth state could not be read
        """
        if self._started:
            logger.debug("Client already started")
            return

        self._started = True
        self._retry_count = 0
        logger.info("Starting WhatsApp client...")
        try:
            await self.connect()
        except WhatsAppClientError as e:
            self._started = False
            logger.error(f"Failed to start client: {e}")
            raise
        except Exception as e:
            self._started = False
            logger.error(f"Failed to start client: {e}")
            raise ConnectionError(f"Failed to start client: {e}", e) from e
        logger.info("WhatsApp client started successfully")

    async def connect(self) -> None:
        """Load auth state, build a socket and wire its events."""
        logger.info("Connecting to WhatsApp...")
        self._state = ConnectionState.CONNECTING

        try:
            auth_state = await self.auth_provider.load()
            version = await self._resolve_version()
            sock = self.bindings.make_socket(self._socket_config(auth_state, version))
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            logger.error(f"Connection failed: {e}")
            raise

        self._detach_socket()
        self._sock = sock
        self._auth_state = auth_state
        self._attach_socket(sock)

    async def disconnect(self) -> None:
        """
        Log out and release the socket.

        Raises:
            Exception: Whatever the socket's logout raised
        """
        sock = self._sock
        if sock is None:
            return

        previous = self._state
        self._state = ConnectionState.CLOSING
        try:
            await sock.logout()
        except Exception as e:
            self._state = previous
            logger.error(f"Error disconnecting: {e}")
            raise

        self._detach_socket()
        self._sock = None
        self._state = ConnectionState.DISCONNECTED
        self._started = False
        logger.info("Disconnected from WhatsApp")

    async def _resolve_version(self) -> Optional[VersionInfo]:
        try:
            fetcher = self._version_fetcher or fetch_latest_version
            version = await fetcher()
        except Exception as e:
            logger.warning(f"Failed to resolve WhatsApp version: {e}")
            return None
        logger.info(f"Using WhatsApp v{version.label}, isLatest: {version.is_latest}")
        return version

    async def _cached_group_metadata(self, jid: str) -> Any:
        return self.group_cache.get(jid)

    def _socket_config(
        self, auth_state: AuthState, version: Optional[VersionInfo]
    ) -> SocketConfig:
        return SocketConfig(
            browser=self.config.browser_description,
            auth=AuthState(
                creds=auth_state.creds,
                keys=CacheableSignalKeyStore(auth_state.keys),
            ),
            logger=self._socket_logger,
            version=version.version if version else None,
            print_qr_in_terminal=not self.config.phone_number,
            mark_online_on_connect=False,
            generate_high_quality_link_preview=True,
            connect_timeout_ms=DEFAULT_CONNECT_TIMEOUT_MS,
            msg_retry_counter_cache=TTLCache(),
            cached_group_metadata=self._cached_group_metadata,
            options=dict(self.config.socket_options),
        )

    def _attach_socket(self, sock: SocketCapability) -> None:
        routes = {
            "creds.update": self._on_creds_update,
            "connection.update": self._on_connection_update,
            "messages.upsert": self._on_messages_upsert,
            "messages.delete": self._on_messages_delete,
            "messages.update": self._on_messages_update,
        }
        for event, route in routes.items():

            async def handler(payload: Any, _event: str = event, _route=route) -> None:
                # Superseded sockets are ignored
                if sock is not self._sock:
                    return
                try:
                    await _route(payload)
                except Exception as e:
                    log_exception(e, _event, logger)
                    await self.events.emit("error", e)

            sock.ev.on(event, handler)
            self._listeners.append((event, handler))

    def _detach_socket(self) -> None:
        sock = self._sock
        if sock is None:
            self._listeners.clear()
            return
        for event, handler in self._listeners:
            try:
                sock.ev.off(event, handler)
            except Exception as e:
                logger.debug(f"Could not remove {event} listener: {e}")
        self._listeners.clear()

    async def _on_creds_update(self, payload: Any) -> None:
        if isinstance(payload, dict) and self._auth_state is not None:
            self._auth_state.creds.update(payload)
        try:
            await self.auth_provider.save_creds()
            logger.info("Credentials updated successfully")
        except Exception as e:
            logger.error(f"Failed to save credentials: {e}")

    async def _on_connection_update(self, payload: Any) -> None:
        update = ConnectionUpdate.parse_payload(payload)

        if update.qr:
            await self._handle_qr(update.qr)

        if update.connection == "open":
            self._retry_count = 0
            self._state = ConnectionState.OPEN
            await self.events.emit("ready")
            logger.info("Connected to WhatsApp")

        if update.connection == "close":
            await self._handle_close(update)

    async def _handle_qr(self, qr: str) -> None:
        await self.events.emit("qr", qr)
        logger.info("QR code received")

        phone_number = self.config.phone_number
        if phone_number and not self.creds.get("registered"):
            logger.info("Requesting pairing code")
            code = await self._sock.request_pairing_code(phone_number)
            await self.events.emit("pairingCode", code)

    async def _handle_close(self, update: ConnectionUpdate) -> None:
        previous, self._state = self._state, ConnectionState.DISCONNECTED
        if previous is ConnectionState.CLOSING:
            logger.info("Connection closed during disconnect")
            return

        error = update.last_disconnect.error if update.last_disconnect else None
        if error is not None:
            logger.error(f"Disconnected: {error}")

        kind = classify_disconnect(disconnect_status_code(error))
        if kind is DisconnectKind.LOGGED_OUT:
            await self._handle_logged_out()
        else:
            await self._reconnect()

    async def _handle_logged_out(self) -> None:
        logger.info("Logged out")
        try:
            await self._sock.logout()
        except Exception as e:
            logger.warning(f"Socket logout after disconnect failed: {e}")
        self._started = False
        self._detach_socket()
        self._sock = None
        await self.events.emit("logout")

    async def _reconnect(self) -> None:
        max_retries = self.config.max_retries

        while decide_retry(self._retry_count, max_retries) is RetryDecision.RECONNECT:
            self._retry_count += 1

            if should_reset_session(self._retry_count, self.config.phone_number, self.creds):
                logger.info("Deleting stored session state")
                try:
                    await self.auth_provider.destroy()
                except Exception as e:
                    logger.error(f"Failed to delete session state: {e}")

            logger.info(f"Attempting reconnection ({self._retry_count}/{max_retries})")
            try:
                await self.connect()
            except Exception as e:
                logger.error(f"Reconnection attempt {self._retry_count} failed: {e}")
                continue

            await self.events.emit("reconnect")
            return

        logger.error("Max retries reached")
        self._started = False
        await self.events.emit("error", RetryExhaustedError("Max retries reached"))

    async def _on_messages_upsert(self, payload: Any) -> None:
        upsert = MessagesUpsert.parse_payload(payload)
        if upsert.type != "notify":
            return
        for message in upsert.messages:
            await self.events.emit("message", message)
            logger.debug(f"Received message: {message_id(message)}")

    async def _on_messages_delete(self, payload: Any) -> None:
        await self.events.emit("messages.delete", payload)
        logger.debug(f"Message deleted: {payload}")

    async def _on_messages_update(self, payload: Any) -> None:
        await self.events.emit("messages.update", payload)
        logger.debug(f"Message updated: {payload}")

"""Main WhatsApp session client."""

import logging
from typing import Any, Callable, Optional

from .auth import AuthStateProvider
from .config import ClientConfig
from .events import EventEmitter
from .exceptions import ConfigurationError, NotConnectedError
from .lifecycle import ConnectionManager, ConnectionState
from .logging import configure_logging
from .socket import ProtocolBindings, SocketCapability

logger = logging.getLogger(__name__)


class WhatsAppClient:
    """
    Main client for one WhatsApp Web session.

    Wraps the connection manager, exposes its events and offers a few
    convenience calls that need an open connection.

    Example:
        >>> client = WhatsAppClient(bindings, session_dir="./session", max_retries=5)
        >>> @client.on("qr")
        ... def show_qr(code):
        ...     print(code)
        >>> await client.start()
    """

    def __init__(
        self,
        bindings: ProtocolBindings,
        config: Optional[ClientConfig] = None,
        auth_provider: Optional[AuthStateProvider] = None,
        **options: Any,
    ) -> None:
        """
        Initialize WhatsApp Client.

        Args:
            bindings: Protocol layer used to build sockets and auth material
            config: Complete configuration (mutually exclusive with options)
            auth_provider: Custom auth backend (default: picked from config)
            **options: ClientConfig fields, e.g. ``max_retries=5``

        Raises:
            ConfigurationError: If the options are invalid
        """
        if config is not None and options:
            raise ConfigurationError("Pass either config or keyword options, not both")
        if config is None:
            config = ClientConfig.from_dict(options)
        if bindings is None:
            raise ConfigurationError("Protocol bindings are required")

        self.config = config
        configure_logging(config.log_level, config.log_path)
        logger.info("Initializing WhatsAppClient")

        self._events = EventEmitter()
        self._manager = ConnectionManager(
            config, bindings, self._events, auth_provider=auth_provider
        )

    @property
    def connection_state(self) -> ConnectionState:
        """Current connection state."""
        return self._manager.state

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._manager.state is ConnectionState.OPEN

    @property
    def retry_count(self) -> int:
        """Reconnection attempts since the connection was last open."""
        return self._manager.retry_count

    @property
    def socket(self) -> Optional[SocketCapability]:
        """The live socket, for calls this client does not wrap."""
        return self._manager.socket

    @property
    def group_cache(self):
        return self._manager.group_cache

    def on(self, event: str, handler: Optional[Callable] = None) -> Callable:
        """
        Register an event handler.

        Events: ``qr``, ``pairingCode``, ``ready``, ``reconnect``, ``logout``,
        ``error``, ``message``, ``messages.delete``, ``messages.update``.

        Example:
            @client.on("message")
            async def handle(msg):
                print(msg)
        """
        return self._events.on(event, handler)

    def off(self, event: str, handler: Callable) -> None:
        """Remove an event handler."""
        self._events.off(event, handler)

    async def start(self) -> None:
        """
        Connect to WhatsApp.

        Raises:
            ConnectionError: If connecting failed
        """
        await self._manager.start()

    async def disconnect(self) -> None:
        """Log out and close the connection."""
        await self._manager.disconnect()

    async def clear_session(self) -> None:
        """Delete all stored auth state of this session."""
        await self._manager.auth_provider.destroy()
        logger.info("Stored session cleared")

    def _require_connection(self) -> SocketCapability:
        if not self.is_connected or self._manager.socket is None:
            raise NotConnectedError("Client is not connected")
        return self._manager.socket

    async def send_text(self, to: str, text: str) -> Any:
        """
        Send a text message.

        Args:
            to: Recipient JID
            text: Message text

        Raises:
            NotConnectedError: If the connection is not open
        """
        sock = self._require_connection()
        try:
            result = await sock.send_message(to, {"text": text})
            logger.info(f"Text message sent to {to}")
            return result
        except Exception as e:
            logger.error(f"Failed to send text message: {e}")
            raise

    async def get_group_metadata(self, group_id: str) -> Any:
        """
        Fetch group metadata and refresh the group cache.

        Args:
            group_id: Group JID

        Raises:
            NotConnectedError: If the connection is not open
        """
        sock = self._require_connection()
        try:
            metadata = await sock.group_metadata(group_id)
        except Exception as e:
            logger.error(f"Failed to get group metadata: {e}")
            raise
        self._manager.group_cache.set(group_id, metadata)
        return metadata

    async def join_group(self, invite_code: str) -> Any:
        """Join a group with an invite code."""
        sock = self._require_connection()
        try:
            result = await sock.group_accept_invite(invite_code)
            logger.info(f"Joined group with invite code: {invite_code}")
            return result
        except Exception as e:
            logger.error(f"Failed to join group: {e}")
            raise

    async def leave_group(self, group_id: str) -> None:
        """Leave a group."""
        sock = self._require_connection()
        try:
            await sock.group_leave(group_id)
            logger.info(f"Left group: {group_id}")
        except Exception as e:
            logger.error(f"Failed to leave group: {e}")
            raise

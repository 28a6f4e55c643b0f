"""
WhatsApp Web session library

Keeps one WhatsApp Web multi-device session alive: connects through a
pluggable protocol layer, reconnects on drops, and persists auth state in a
session directory or a MongoDB collection.
"""

from .client import WhatsAppClient
from .config import AuthStoreConfig, BrowserProfile, ClientConfig, config_from_env, load_config
from .events import EventEmitter
from .lifecycle import ConnectionManager, ConnectionState
from .socket import DisconnectReason, ProtocolBindings, SocketCapability, SocketConfig
from .auth import AuthState, CacheableSignalKeyStore, MultiFileAuthState
from .exceptions import (
    WhatsAppClientError,
    ConfigurationError,
    ConnectionError,
    NotConnectedError,
    PersistenceError,
    RetryExhaustedError,
)

__version__ = "0.1.0"
__all__ = [
    "WhatsAppClient",
    "ClientConfig",
    "AuthStoreConfig",
    "BrowserProfile",
    "config_from_env",
    "load_config",
    "EventEmitter",
    "ConnectionManager",
    "ConnectionState",
    "DisconnectReason",
    "ProtocolBindings",
    "SocketCapability",
    "SocketConfig",
    "AuthState",
    "CacheableSignalKeyStore",
    "MultiFileAuthState",
    "WhatsAppClientError",
    "ConfigurationError",
    "ConnectionError",
    "NotConnectedError",
    "PersistenceError",
    "RetryExhaustedError",
]

"""Auth state persistence."""

from ..config import ClientConfig
from ..socket import ProtocolBindings
from .state import (
    AuthState,
    AuthStateProvider,
    KeyedAuthStateProvider,
    SignalKeyStore,
    storage_key,
)
from .cache import CacheableSignalKeyStore
from .files import MultiFileAuthState


def create_auth_provider(
    config: ClientConfig, bindings: ProtocolBindings
) -> AuthStateProvider:
    """
    Pick the auth backend for a configuration.

    The document store is used when ``config.auth_store`` is set, the session
    directory otherwise.
    """
    if config.auth_store is not None:
        from .mongo import MongoAuthState

        return MongoAuthState(
            config.auth_store,
            bindings.init_auth_creds,
            bindings.decode_app_state_sync_key,
        )
    return MultiFileAuthState(
        config.session_dir,
        bindings.init_auth_creds,
        bindings.decode_app_state_sync_key,
    )


__all__ = [
    "AuthState",
    "AuthStateProvider",
    "KeyedAuthStateProvider",
    "SignalKeyStore",
    "CacheableSignalKeyStore",
    "MultiFileAuthState",
    "create_auth_provider",
    "storage_key",
]

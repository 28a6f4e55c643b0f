"""Auth state shared by every persistence backend."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

CREDS_KEY = "creds"
APP_STATE_SYNC_KEY = "app-state-sync-key"

# category -> id -> payload (None/falsy payload means delete)
KeyData = Mapping[str, Mapping[str, Any]]


def storage_key(category: str, key_id: str) -> str:
    """Flat storage key for a signal key entry."""
    return f"{category}-{key_id}"


class SignalKeyStore(ABC):
    """Per-peer signal key storage as seen by the protocol layer."""

    @abstractmethod
    async def get(self, type: str, ids: Iterable[str]) -> Dict[str, Any]:
        """Return a mapping with exactly the requested ids (missing -> None)."""

    @abstractmethod
    async def set(self, data: KeyData) -> None:
        """Upsert truthy payloads and delete falsy ones."""


@dataclass
class AuthState:
    """Credentials plus key store handed to the socket."""

    creds: Dict[str, Any]
    keys: SignalKeyStore


class AuthStateProvider(ABC):
    """Source and sink of auth state for one session."""

    @abstractmethod
    async def load(self) -> AuthState:
        """Read stored credentials (or create fresh ones) and return the auth state."""

    @abstractmethod
    async def save_creds(self) -> None:
        """Persist the in-memory credentials of the last loaded state."""

    @abstractmethod
    async def destroy(self) -> None:
        """Remove every stored record of this session."""


class _ProviderKeyStore(SignalKeyStore):
    def __init__(self, provider: "KeyedAuthStateProvider") -> None:
        self._provider = provider

    async def get(self, type: str, ids: Iterable[str]) -> Dict[str, Any]:
        return await self._provider.get_keys(type, ids)

    async def set(self, data: KeyData) -> None:
        await self._provider.set_keys(data)


class KeyedAuthStateProvider(AuthStateProvider):
    """
    Auth state over a flat key -> payload store.

    Subclasses only implement ``read_data``, ``write_data``, ``remove_data``
    and ``destroy``; the signal key semantics live here.
    """

    def __init__(
        self,
        init_creds: Callable[[], Dict[str, Any]],
        decode_app_state_sync_key: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        Args:
            init_creds: Creates fresh credentials when none are stored
            decode_app_state_sync_key: Turns a stored app-state-sync-key
                payload into the structured object the protocol uses
        """
        self._init_creds = init_creds
        self._decode_app_state_sync_key = decode_app_state_sync_key
        self._state: Optional[AuthState] = None

    @property
    def state(self) -> Optional[AuthState]:
        """Auth state from the last ``load()``."""
        return self._state

    @abstractmethod
    async def read_data(self, key: str) -> Any:
        """Return the payload stored under key, or None."""

    @abstractmethod
    async def write_data(self, data: Any, key: str) -> None:
        """Insert or replace the payload stored under key."""

    @abstractmethod
    async def remove_data(self, key: str) -> None:
        """Delete key; deleting a missing key is not an error."""

    async def load(self) -> AuthState:
        try:
            creds = await self.read_data(CREDS_KEY)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to load credentials: {e}", e) from e

        if not creds:
            logger.info("No stored credentials, creating new ones")
            creds = self._init_creds()

        self._state = AuthState(creds=creds, keys=_ProviderKeyStore(self))
        return self._state

    async def save_creds(self) -> None:
        if self._state is None:
            raise PersistenceError("No auth state loaded")
        try:
            await self.write_data(self._state.creds, CREDS_KEY)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save credentials: {e}", e) from e

    async def get_keys(self, type: str, ids: Iterable[str]) -> Dict[str, Any]:
        ids = list(ids)

        async def read(key_id: str) -> Any:
            value = await self.read_data(storage_key(type, key_id))
            if type == APP_STATE_SYNC_KEY and value and self._decode_app_state_sync_key:
                value = self._decode_app_state_sync_key(value)
            return value

        try:
            values = await asyncio.gather(*(read(key_id) for key_id in ids))
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to read {type} keys: {e}", e) from e

        return dict(zip(ids, values))

    async def set_keys(self, data: KeyData) -> None:
        tasks = []
        for category, entries in data.items():
            for key_id, value in entries.items():
                key = storage_key(category, key_id)
                if value:
                    tasks.append(self.write_data(value, key))
                else:
                    tasks.append(self.remove_data(key))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            first = errors[0]
            if isinstance(first, PersistenceError):
                raise first
            raise PersistenceError(
                f"Failed to write {len(errors)} of {len(tasks)} key(s): {first}", first
            ) from first

"""Auth state stored as one JSON file per key in a session directory."""

import base64
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..exceptions import PersistenceError
from .state import AuthState, KeyedAuthStateProvider

logger = logging.getLogger(__name__)


def encode_buffers(value: Any) -> Any:
    """Replace bytes with ``{"type": "Buffer", "data": <base64>}`` markers."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"type": "Buffer", "data": base64.b64encode(bytes(value)).decode()}
    if isinstance(value, dict):
        return {key: encode_buffers(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_buffers(item) for item in value]
    return value


def _decode_buffer_hook(obj: Dict[str, Any]) -> Any:
    if obj.get("type") == "Buffer" and len(obj) == 2:
        data = obj.get("data")
        if isinstance(data, str):
            return base64.b64decode(data)
        if isinstance(data, list):
            return bytes(data)
    return obj


def dumps(value: Any) -> str:
    return json.dumps(encode_buffers(value))


def loads(text: str) -> Any:
    return json.loads(text, object_hook=_decode_buffer_hook)


def fix_file_name(key: str) -> str:
    """Make a storage key safe to use as a file name."""
    return key.replace("/", "__").replace(":", "-")


class MultiFileAuthState(KeyedAuthStateProvider):
    """
    Session directory backend.

    Each key is written to ``<session_dir>/<key>.json``; the credentials live in
    ``creds.json``. Destroying the session removes the whole directory.

    Example:
        >>> provider = MultiFileAuthState("./whatsapp_session", bindings.init_auth_creds)
        >>> state = await provider.load()
    """

    def __init__(
        self,
        session_dir: str,
        init_creds: Callable[[], Dict[str, Any]],
        decode_app_state_sync_key: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        Initialize the session directory backend.

        Args:
            session_dir: Directory holding one file per key
            init_creds: Creates fresh credentials when none are stored
            decode_app_state_sync_key: Decoder for app-state-sync-key payloads
        """
        super().__init__(init_creds, decode_app_state_sync_key)
        self.session_dir = Path(session_dir).expanduser()

    def _path(self, key: str) -> Path:
        return self.session_dir / f"{fix_file_name(key)}.json"

    async def load(self) -> AuthState:
        if self.session_dir.exists() and not self.session_dir.is_dir():
            raise PersistenceError(
                f"Found something that is not a directory at {self.session_dir}, "
                "either delete it or specify a different location"
            )
        self.session_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Using session directory {self.session_dir}")
        return await super().load()

    async def read_data(self, key: str) -> Any:
        path = self._path(key)
        try:
            with open(path, "r") as f:
                return loads(f.read())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}", e) from e

    async def write_data(self, data: Any, key: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.session_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                f.write(dumps(data))
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}", e) from e

    async def remove_data(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}", e) from e

    async def destroy(self) -> None:
        logger.info(f"Deleting session directory {self.session_dir}")
        shutil.rmtree(self.session_dir, ignore_errors=True)

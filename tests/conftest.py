"""Shared fakes for the protocol layer and the document store."""

import copy
import logging
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest
from bson.binary import Binary

from whatsapp_session.auth.state import KeyedAuthStateProvider
from whatsapp_session.models import VersionInfo
from whatsapp_session.socket import SocketConfig


class FakeSocketEvents:
    """Event source with the on/off contract of a socket."""

    def __init__(self) -> None:
        self.handlers: Dict[str, List[Any]] = {}

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        if handler in self.handlers.get(event, []):
            self.handlers[event].remove(handler)

    def count(self, event):
        return len(self.handlers.get(event, []))

    async def emit(self, event, payload=None):
        for handler in list(self.handlers.get(event, [])):
            await handler(payload)


class FakeSocket:
    """Socket double recording every call."""

    def __init__(self, config: SocketConfig) -> None:
        self.config = config
        self.ev = FakeSocketEvents()
        self.auth_state = config.auth
        self.request_pairing_code = AsyncMock(return_value="ABCD-EFGH")
        self.logout = AsyncMock()
        self.send_message = AsyncMock(return_value={"key": {"id": "sent-1"}})
        self.group_metadata = AsyncMock(
            side_effect=lambda jid: {"id": jid, "subject": "Team"}
        )
        self.group_accept_invite = AsyncMock(return_value="123@g.us")
        self.group_leave = AsyncMock()

    async def open(self):
        await self.ev.emit("connection.update", {"connection": "open"})

    async def close(self, status_code=428):
        error = {"output": {"statusCode": status_code}} if status_code else None
        await self.ev.emit(
            "connection.update",
            {"connection": "close", "lastDisconnect": {"error": error}},
        )


class FakeBindings:
    """Protocol bindings producing FakeSocket instances."""

    def __init__(self, make_socket_failures: int = 0) -> None:
        self.sockets: List[FakeSocket] = []
        self.make_socket_failures = make_socket_failures

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]

    def make_socket(self, config: SocketConfig) -> FakeSocket:
        if self.make_socket_failures:
            self.make_socket_failures -= 1
            raise RuntimeError("socket setup failed")
        sock = FakeSocket(config)
        self.sockets.append(sock)
        return sock

    def init_auth_creds(self) -> Dict[str, Any]:
        return {
            "noiseKey": {"private": b"\x01" * 32, "public": b"\x02" * 32},
            "registrationId": 42,
            "registered": False,
        }

    def decode_app_state_sync_key(self, value: Any) -> Any:
        return {"decoded": value}


class MemoryAuthState(KeyedAuthStateProvider):
    """Auth backend keeping everything in a dict."""

    def __init__(self, bindings: FakeBindings, stored_creds=None) -> None:
        super().__init__(bindings.init_auth_creds, bindings.decode_app_state_sync_key)
        self.data: Dict[str, Any] = {}
        if stored_creds is not None:
            self.data["creds"] = stored_creds
        self.destroy_calls = 0
        self.fail_writes = False

    async def read_data(self, key):
        return copy.deepcopy(self.data.get(key))

    async def write_data(self, data, key):
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = copy.deepcopy(data)

    async def remove_data(self, key):
        self.data.pop(key, None)

    async def destroy(self):
        self.destroy_calls += 1
        self.data.clear()


def wrap_binary(value):
    if isinstance(value, bytes):
        return Binary(value)
    if isinstance(value, dict):
        return {k: wrap_binary(v) for k, v in value.items()}
    if isinstance(value, list):
        return [wrap_binary(v) for v in value]
    return value


class FakeCollection:
    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Any]] = {}

    async def find_one(self, query):
        doc = self.docs.get(query["key"])
        return dict(doc) if doc else None

    async def update_one(self, query, update, upsert=False):
        fields = update["$set"]
        if query["key"] in self.docs or upsert:
            self.docs[query["key"]] = {
                "key": fields["key"],
                "data": wrap_binary(copy.deepcopy(fields["data"])),
            }

    async def delete_one(self, query):
        self.docs.pop(query["key"], None)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def list_collection_names(self, filter=None):
        names = list(self.collections)
        if filter and "name" in filter:
            names = [n for n in names if n == filter["name"]]
        return names

    async def drop_collection(self, name):
        self.collections.pop(name, None)


class FakeMongoClient:
    """Stands in for AsyncMongoClient; databases outlive the client."""

    databases: Dict[str, FakeDatabase] = {}

    def __init__(self, url: str) -> None:
        self.url = url
        self.connected = False
        self.closed = False

    async def aconnect(self):
        self.connected = True

    async def close(self):
        self.closed = True

    def __getitem__(self, name):
        return self.databases.setdefault(name, FakeDatabase())


@pytest.fixture
def bindings():
    return FakeBindings()


@pytest.fixture
def memory_auth(bindings):
    return MemoryAuthState(bindings)


@pytest.fixture
def fake_mongo():
    FakeMongoClient.databases = {}
    yield FakeMongoClient
    FakeMongoClient.databases = {}


@pytest.fixture(autouse=True)
def no_version_lookup(monkeypatch):
    """Keep tests offline."""
    fetcher = AsyncMock(return_value=VersionInfo(version=(2, 3000, 1), is_latest=True))
    monkeypatch.setattr("whatsapp_session.lifecycle.fetch_latest_version", fetcher)
    return fetcher


@pytest.fixture(autouse=True)
def close_file_handlers():
    yield
    logger = logging.getLogger("whatsapp_session")
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)

"""Tests for the WhatsApp session client."""

import logging

import pytest
from conftest import MemoryAuthState

from whatsapp_session import WhatsAppClient
from whatsapp_session.auth import MultiFileAuthState
from whatsapp_session.auth.mongo import MongoAuthState
from whatsapp_session.config import ClientConfig
from whatsapp_session.exceptions import ConfigurationError, NotConnectedError
from whatsapp_session.lifecycle import ConnectionState


@pytest.fixture
def client_options(tmp_path):
    return {
        "log_path": str(tmp_path / "whatsapp.log"),
        "session_dir": str(tmp_path / "session"),
    }


@pytest.fixture
def client(bindings, client_options):
    return WhatsAppClient(
        bindings, auth_provider=MemoryAuthState(bindings), **client_options
    )


async def open_client(client, bindings):
    await client.start()
    await bindings.socket.open()


class TestClientInit:
    """Test client construction."""

    def test_keyword_options(self, bindings, client_options):
        client = WhatsAppClient(bindings, max_retries=5, **client_options)

        assert client.config.max_retries == 5
        assert client.connection_state is ConnectionState.DISCONNECTED
        assert not client.is_connected
        assert client.retry_count == 0
        assert client.socket is None

    def test_config_object(self, bindings, client_options):
        config = ClientConfig(device="Server", **client_options)
        client = WhatsAppClient(bindings, config=config)
        assert client.config is config

    def test_config_and_options_rejected(self, bindings, client_options):
        with pytest.raises(ConfigurationError):
            WhatsAppClient(bindings, config=ClientConfig(), max_retries=2)

    @pytest.mark.parametrize("max_retries", [0, -1])
    def test_invalid_max_retries(self, bindings, client_options, max_retries):
        with pytest.raises(ConfigurationError, match="maxRetries must be at least 1"):
            WhatsAppClient(bindings, max_retries=max_retries, **client_options)

    def test_unknown_option(self, bindings, client_options):
        with pytest.raises(ConfigurationError):
            WhatsAppClient(bindings, printQRInTerminal=True, **client_options)

    def test_bindings_required(self, client_options):
        with pytest.raises(ConfigurationError):
            WhatsAppClient(None, **client_options)

    def test_session_dir_backend_by_default(self, bindings, client_options):
        client = WhatsAppClient(bindings, **client_options)
        assert isinstance(client._manager.auth_provider, MultiFileAuthState)

    def test_mongo_backend_when_configured(self, bindings, client_options):
        client = WhatsAppClient(
            bindings, auth_store={"url": "mongodb://localhost:27017"}, **client_options
        )
        provider = client._manager.auth_provider
        assert isinstance(provider, MongoAuthState)
        assert provider.collection_name == "auth_state"
        assert not provider.connection.is_connected

    def test_logs_to_configured_file(self, bindings, client_options):
        WhatsAppClient(bindings, **client_options)

        logger = logging.getLogger("whatsapp_session")
        for handler in logger.handlers:
            handler.flush()

        with open(client_options["log_path"]) as f:
            assert "Initializing WhatsAppClient" in f.read()


class TestClientSession:
    """Test the session lifecycle through the client."""

    @pytest.mark.asyncio
    async def test_qr_and_ready_events(self, client, bindings):
        seen = []
        client.on("qr", seen.append)

        @client.on("ready")
        async def on_ready():
            seen.append("ready")

        await client.start()
        await bindings.socket.ev.emit("connection.update", {"qr": "2@abc"})
        await bindings.socket.open()

        assert seen == ["2@abc", "ready"]
        assert client.is_connected

    @pytest.mark.asyncio
    async def test_off(self, client, bindings):
        seen = []
        handler = client.on("qr", seen.append)
        client.off("qr", handler)

        await client.start()
        await bindings.socket.ev.emit("connection.update", {"qr": "2@abc"})

        assert seen == []

    @pytest.mark.asyncio
    async def test_disconnect(self, client, bindings):
        await open_client(client, bindings)
        sock = bindings.socket

        await client.disconnect()

        sock.logout.assert_awaited_once()
        assert not client.is_connected
        assert client.socket is None

    @pytest.mark.asyncio
    async def test_clear_session(self, bindings, client_options, tmp_path):
        client = WhatsAppClient(bindings, **client_options)
        await client.start()
        await bindings.socket.ev.emit("creds.update", {"registered": True})
        assert (tmp_path / "session" / "creds.json").exists()

        await client.clear_session()

        assert not (tmp_path / "session").exists()


class TestClientOperations:
    """Test calls that need an open connection."""

    @pytest.mark.asyncio
    async def test_send_text(self, client, bindings):
        await open_client(client, bindings)
        result = await client.send_text("5511999999999@s.whatsapp.net", "hello")

        bindings.socket.send_message.assert_awaited_once_with(
            "5511999999999@s.whatsapp.net", {"text": "hello"}
        )
        assert result == {"key": {"id": "sent-1"}}

    @pytest.mark.asyncio
    async def test_send_failure_propagates(self, client, bindings):
        await open_client(client, bindings)
        bindings.socket.send_message.side_effect = RuntimeError("rate limited")

        with pytest.raises(RuntimeError, match="rate limited"):
            await client.send_text("5511999999999@s.whatsapp.net", "hello")

    @pytest.mark.asyncio
    async def test_group_metadata_refreshes_cache(self, client, bindings):
        await open_client(client, bindings)
        metadata = await client.get_group_metadata("123@g.us")

        assert metadata == {"id": "123@g.us", "subject": "Team"}
        assert client.group_cache.get("123@g.us") == metadata

        lookup = bindings.socket.config.cached_group_metadata
        assert await lookup("123@g.us") == metadata

    @pytest.mark.asyncio
    async def test_group_metadata_failure_keeps_cache(self, client, bindings):
        await open_client(client, bindings)
        client.group_cache.set("123@g.us", {"subject": "Old"})
        bindings.socket.group_metadata.side_effect = RuntimeError("forbidden")

        with pytest.raises(RuntimeError):
            await client.get_group_metadata("123@g.us")

        assert client.group_cache.get("123@g.us") == {"subject": "Old"}

    @pytest.mark.asyncio
    async def test_join_and_leave_group(self, client, bindings):
        await open_client(client, bindings)
        assert await client.join_group("AbCdEf") == "123@g.us"
        await client.leave_group("123@g.us")

        bindings.socket.group_accept_invite.assert_awaited_once_with("AbCdEf")
        bindings.socket.group_leave.assert_awaited_once_with("123@g.us")

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, client, bindings):
        with pytest.raises(NotConnectedError, match="Client is not connected"):
            await client.send_text("5511999999999@s.whatsapp.net", "hello")

        await client.start()

        for call in (
            client.send_text("5511999999999@s.whatsapp.net", "hello"),
            client.get_group_metadata("123@g.us"),
            client.join_group("AbCdEf"),
            client.leave_group("123@g.us"),
        ):
            with pytest.raises(NotConnectedError):
                await call

        sock = bindings.socket
        sock.send_message.assert_not_awaited()
        sock.group_metadata.assert_not_awaited()
        sock.group_accept_invite.assert_not_awaited()
        sock.group_leave.assert_not_awaited()

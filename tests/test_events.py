"""Tests for the client event emitter."""

import logging

import pytest

from whatsapp_session.events import EVENTS, EventEmitter


class TestEventEmitter:
    """Test EventEmitter registration and delivery."""

    def setup_method(self):
        self.emitter = EventEmitter()

    def test_every_event_starts_empty(self):
        for event in EVENTS:
            assert self.emitter.listener_count(event) == 0

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError, match="Unknown event"):
            self.emitter.on("presence", lambda: None)

    @pytest.mark.asyncio
    async def test_emit_sync_and_async_handlers(self):
        seen = []

        def on_qr(code):
            seen.append(("sync", code))

        async def on_qr_async(code):
            seen.append(("async", code))

        self.emitter.on("qr", on_qr)
        self.emitter.on("qr", on_qr_async)
        await self.emitter.emit("qr", "2@abc")

        assert seen == [("sync", "2@abc"), ("async", "2@abc")]

    @pytest.mark.asyncio
    async def test_decorator_registration(self):
        seen = []

        @self.emitter.on("ready")
        async def on_ready():
            seen.append("ready")

        await self.emitter.emit("ready")

        assert seen == ["ready"]
        assert on_ready is not None

    @pytest.mark.asyncio
    async def test_off_removes_handler(self):
        seen = []
        handler = self.emitter.on("logout", lambda: seen.append("logout"))
        self.emitter.off("logout", handler)
        self.emitter.off("logout", handler)

        await self.emitter.emit("logout")

        assert seen == []

    @pytest.mark.asyncio
    async def test_wrong_arity_rejected(self):
        with pytest.raises(ValueError):
            await self.emitter.emit("ready", "extra")
        with pytest.raises(ValueError):
            await self.emitter.emit("message")

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self, caplog):
        seen = []

        def broken(message):
            raise RuntimeError("boom")

        self.emitter.on("message", broken)
        self.emitter.on("message", seen.append)

        with caplog.at_level(logging.ERROR, logger="whatsapp_session.events"):
            await self.emitter.emit("message", {"key": {"id": "1"}})

        assert seen == [{"key": {"id": "1"}}]
        assert "message handler error" in caplog.text

    @pytest.mark.asyncio
    async def test_unhandled_error_event_is_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="whatsapp_session.events"):
            await self.emitter.emit("error", RuntimeError("lost"))

        assert "Unhandled error event: lost" in caplog.text

    @pytest.mark.asyncio
    async def test_events_delivered_in_order(self):
        seen = []
        self.emitter.on("message", seen.append)

        for i in range(5):
            await self.emitter.emit("message", i)

        assert seen == [0, 1, 2, 3, 4]

"""
tests/unit/test_socketio_channel.py - Socket.IO channel adapter tests

The socketio client is mocked; these tests cover the multiplexing and
error wrapping, not the transport.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from socketio import exceptions as socketio_exceptions

from protodice.errors.taxonomy import ChannelError
from protodice.sync.channel import Channel, SocketIOChannel


@pytest.fixture
def client():
    client = Mock()
    client.connected = True
    client.sid = "abc"
    client.emit = AsyncMock()
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    return client


def _dispatcher(client, event):
    """Return the single handler the adapter registered with the client."""
    calls = [c for c in client.on.call_args_list if c.args[0] == event]
    assert len(calls) == 1
    return calls[0].args[1]


class TestSubscription:
    def test_satisfies_channel_protocol(self, client):
        assert isinstance(SocketIOChannel(client), Channel)

    def test_one_dispatcher_many_handlers(self, client):
        channel = SocketIOChannel(client)
        first, second = Mock(), Mock()

        channel.on("game-state", first)
        channel.on("game-state", second)
        _dispatcher(client, "game-state")({"room": "R"})

        first.assert_called_once_with({"room": "R"})
        second.assert_called_once_with({"room": "R"})
        assert channel.listener_count("game-state") == 2

    def test_off_removes_only_that_handler(self, client):
        channel = SocketIOChannel(client)
        keep, drop = Mock(), Mock()
        channel.on("lobby-data", keep)
        channel.on("lobby-data", drop)

        channel.off("lobby-data", drop)
        _dispatcher(client, "lobby-data")("payload")

        keep.assert_called_once_with("payload")
        drop.assert_not_called()
        assert channel.listener_count("lobby-data") == 1

    def test_failing_handler_does_not_block_others(self, client):
        channel = SocketIOChannel(client)
        after = Mock()
        channel.on("error", Mock(side_effect=RuntimeError("boom")))
        channel.on("error", after)

        _dispatcher(client, "error")("oops")

        after.assert_called_once_with("oops")


class TestTransport:
    def test_connected_and_sid(self, client):
        channel = SocketIOChannel(client)
        assert channel.connected
        assert channel.sid == "abc"

        client.connected = False
        assert not channel.connected

    @pytest.mark.asyncio
    async def test_emit(self, client):
        channel = SocketIOChannel(client)
        await channel.emit("get-leaderboard", {"sortBy": "total"})
        client.emit.assert_awaited_once_with("get-leaderboard", {"sortBy": "total"})

    @pytest.mark.asyncio
    async def test_connect(self, client):
        channel = SocketIOChannel(client)

        await channel.connect("http://test", wait_timeout_ms=2000, transports=["websocket"])

        client.connect.assert_awaited_once_with("http://test", transports=["websocket"], wait_timeout=2.0)
        assert channel.url == "http://test"

    @pytest.mark.asyncio
    async def test_connect_failure_wrapped(self, client):
        client.connect.side_effect = socketio_exceptions.ConnectionError("refused")
        channel = SocketIOChannel(client)

        with pytest.raises(ChannelError) as exc_info:
            await channel.connect("http://test")

        assert exc_info.value.operation == "connect"
        assert "refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_disconnect_only_when_connected(self, client):
        channel = SocketIOChannel(client)
        client.connected = False

        await channel.disconnect()

        client.disconnect.assert_not_awaited()

    def test_default_client(self):
        channel = SocketIOChannel(reconnection_attempts=3)
        assert not channel.connected
        assert channel.client.reconnection_attempts == 3

"""
Tests for the real-time chat relay: unit tests against fake sockets and an
end-to-end run over the ``/ws`` endpoint.
"""

import json
import time

import pytest

from clinic.relay import ChatRelay, ConnectionState, RelayEvent, RelayEventType, parse_frame


def chat_frame(text, sender="u1"):
    return json.dumps({"type": "chat_message", "senderId": sender, "message": text})


class FakeWebSocket:
    """Stand-in for a Starlette websocket with scripted inbound messages."""

    def __init__(self, incoming=(), fail=False):
        self.incoming = list(incoming)
        self.sent = []
        self.accepted = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def receive(self):
        if self.incoming:
            return self.incoming.pop(0)
        return {"type": "websocket.disconnect"}


async def _open(relay, websocket):
    connection = relay.register(websocket)
    await relay.dispatch(connection, RelayEvent(RelayEventType.CONNECTED))
    return connection


# ============================================================================
# FRAME PARSING
# ============================================================================


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "not json",
        "[1, 2]",
        '{"message": "no type"}',
        '{"type": 7}',
        b"\xff\xfe",
        chat_frame("utf-16 text").encode("utf-16"),
    ],
)
def test_parse_frame_rejects_malformed_payloads(payload):
    assert parse_frame(payload) is None


def test_parse_frame_accepts_text_and_utf8_bytes():
    frame, text = parse_frame(chat_frame("hi"))
    assert frame["message"] == "hi"
    assert text == chat_frame("hi")

    frame, text = parse_frame(chat_frame("hi").encode())
    assert frame["type"] == "chat_message"
    assert text == chat_frame("hi")


# ============================================================================
# RELAY UNIT TESTS
# ============================================================================


class TestChatRelay:
    async def test_chat_frame_reaches_everyone_but_sender(self):
        relay = ChatRelay()
        sockets = [FakeWebSocket() for _ in range(3)]
        sender, *_ = [await _open(relay, ws) for ws in sockets]

        delivered = await relay.handle_frame(sender, chat_frame("hello"))

        assert delivered == 2
        assert sockets[0].sent == []
        assert sockets[1].sent == sockets[2].sent == [chat_frame("hello")]

    async def test_frames_are_delivered_verbatim_and_in_order(self):
        relay = ChatRelay()
        sender = await _open(relay, FakeWebSocket())
        receiver = FakeWebSocket()
        await _open(relay, receiver)
        frames = [chat_frame(f"message {i}") for i in range(5)]

        for frame in frames:
            await relay.handle_frame(sender, frame)

        assert receiver.sent == frames

    async def test_bytes_frame_is_relayed_as_text(self):
        relay = ChatRelay()
        sender = await _open(relay, FakeWebSocket())
        receiver = FakeWebSocket()
        await _open(relay, receiver)

        await relay.handle_frame(sender, chat_frame("binary").encode())

        assert receiver.sent == [chat_frame("binary")]

    async def test_malformed_and_other_frames_are_not_relayed(self):
        relay = ChatRelay()
        sender = await _open(relay, FakeWebSocket())
        receiver = FakeWebSocket()
        await _open(relay, receiver)

        assert await relay.handle_frame(sender, "{broken") == 0
        assert await relay.handle_frame(sender, json.dumps({"type": "typing"})) == 0
        assert receiver.sent == []
        assert sender.is_open

    async def test_connection_not_yet_open_receives_nothing(self):
        relay = ChatRelay()
        sender = await _open(relay, FakeWebSocket())
        pending_socket = FakeWebSocket()
        pending = relay.register(pending_socket)

        await relay.handle_frame(sender, chat_frame("early"))

        assert pending.state == ConnectionState.CONNECTING
        assert pending_socket.sent == []

    async def test_failing_recipient_is_dropped_and_others_still_receive(self):
        relay = ChatRelay()
        sender = await _open(relay, FakeWebSocket())
        broken = await _open(relay, FakeWebSocket(fail=True))
        healthy = FakeWebSocket()
        await _open(relay, healthy)

        delivered = await relay.handle_frame(sender, chat_frame("still here"))

        assert delivered == 1
        assert healthy.sent == [chat_frame("still here")]
        assert broken.state == ConnectionState.CLOSED
        assert relay.connection_count == 2

    async def test_serve_relays_until_disconnect_then_removes_connection(self):
        relay = ChatRelay()
        listener = FakeWebSocket()
        await _open(relay, listener)
        talker = FakeWebSocket(incoming=[
            {"type": "websocket.receive", "text": chat_frame("one")},
            {"type": "websocket.receive", "text": "garbage"},
            {"type": "websocket.receive", "text": chat_frame("two")},
            {"type": "websocket.disconnect", "code": 1000},
        ])

        await relay.serve(talker)

        assert talker.accepted
        assert listener.sent == [chat_frame("one"), chat_frame("two")]
        assert relay.connection_count == 1

    async def test_non_utf8_binary_frame_is_dropped_and_loop_keeps_running(self):
        relay = ChatRelay()
        listener = FakeWebSocket()
        await _open(relay, listener)
        talker = FakeWebSocket(incoming=[
            {"type": "websocket.receive", "bytes": chat_frame("wide").encode("utf-16")},
            {"type": "websocket.receive", "text": chat_frame("after wide")},
        ])

        await relay.serve(talker)

        assert listener.sent == [chat_frame("after wide")]


# ============================================================================
# END-TO-END OVER /ws
# ============================================================================


def wait_for_connections(app, expected, timeout=2.0):
    deadline = time.monotonic() + timeout
    while app.state.relay.connection_count != expected:
        if time.monotonic() > deadline:
            raise AssertionError(
                f"expected {expected} open connections, got {app.state.relay.connection_count}"
            )
        time.sleep(0.01)


class TestWebSocketEndpoint:
    def test_chat_frame_fans_out_to_other_clients_only(self, app, client):
        with client.websocket_connect("/ws") as a, \
                client.websocket_connect("/ws") as b, \
                client.websocket_connect("/ws") as c:
            wait_for_connections(app, 3)

            a.send_text(chat_frame("from a", sender="a"))
            assert b.receive_text() == chat_frame("from a", sender="a")
            assert c.receive_text() == chat_frame("from a", sender="a")

            # a never saw its own frame: the next thing it receives is b's
            b.send_text(chat_frame("from b", sender="b"))
            assert a.receive_text() == chat_frame("from b", sender="b")
            assert c.receive_text() == chat_frame("from b", sender="b")

    def test_malformed_frame_is_dropped_and_connection_stays_open(self, app, client):
        with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
            wait_for_connections(app, 2)

            a.send_text("this is not json")
            a.send_text(json.dumps({"type": "typing", "senderId": "a"}))
            a.send_text(chat_frame("after garbage", sender="a"))

            assert b.receive_text() == chat_frame("after garbage", sender="a")
            assert app.state.relay.connection_count == 2

    def test_closed_client_is_removed(self, app, client):
        with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
            with client.websocket_connect("/ws"):
                wait_for_connections(app, 3)
            wait_for_connections(app, 2)

            a.send_text(chat_frame("two left", sender="a"))

            assert b.receive_text() == chat_frame("two left", sender="a")

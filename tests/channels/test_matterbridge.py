"""Tests for the Matterbridge stream reader."""

import base64
import json
from unittest.mock import MagicMock

import httpx
import pytest

from matterhook.bus import Message
from matterhook.channels.matterbridge import MatterbridgeChannel, build_stream_url
from matterhook.errors import PermanentStreamError, TransientStreamError

API_URL = "http://matterbridge.test:4242"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _lines(*records) -> bytes:
    out = []
    for record in records:
        out.append(record if isinstance(record, str) else json.dumps(record))
    return ("\n".join(out) + "\n").encode("utf-8")


class _StreamServer:
    """Mock transport handler recording every request."""

    def __init__(self, body: bytes = b"", status: int = 200, error: Exception | None = None):
        self.body = body
        self.status = status
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, content=self.body)


def _channel(bus, metrics, server, **kwargs) -> MatterbridgeChannel:
    kwargs.setdefault("api_url", API_URL)
    return MatterbridgeChannel(
        bus=bus,
        metrics=metrics,
        transport=httpx.MockTransport(server),
        **kwargs,
    )


async def _drain(bus) -> list[Message]:
    out = []
    while bus.pending:
        out.append(await bus.consume())
    return out


# ---------------------------------------------------------------------------
# URL construction
# ---------------------------------------------------------------------------


class TestBuildStreamUrl:
    @pytest.mark.parametrize(
        "base, expected",
        [
            ("http://localhost:4242", "http://localhost:4242/api/stream"),
            ("http://localhost:4242/", "http://localhost:4242/api/stream"),
            ("https://chat.example.com/mb", "https://chat.example.com/mb/api/stream"),
            ("https://chat.example.com/mb/", "https://chat.example.com/mb/api/stream"),
        ],
    )
    def test_joins_stream_path(self, base, expected):
        assert build_stream_url(base) == expected

    @pytest.mark.parametrize("base", ["", "not a url", "ftp://files.example.com", "http://"])
    def test_unusable_url_is_permanent(self, base):
        with pytest.raises(PermanentStreamError, match="failed to build url"):
            build_stream_url(base)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuth:
    def test_no_credentials(self, buffered_bus, metrics):
        channel = _channel(buffered_bus, metrics, _StreamServer())
        assert channel.build_auth() is None

    @pytest.mark.parametrize("username, password", [("bob", ""), ("", "secret")])
    def test_partial_credentials_ignored(self, buffered_bus, metrics, username, password):
        channel = _channel(
            buffered_bus, metrics, _StreamServer(), username=username, password=password
        )
        assert channel.build_auth() is None

    async def test_basic_auth_header_sent(self, buffered_bus, metrics):
        server = _StreamServer(body=b"")
        channel = _channel(buffered_bus, metrics, server, username="bob", password="secret")

        with pytest.raises(TransientStreamError):
            await channel.start()

        expected = "Basic " + base64.b64encode(b"bob:secret").decode()
        assert server.requests[0].headers["Authorization"] == expected

    async def test_no_auth_header_without_credentials(self, buffered_bus, metrics):
        server = _StreamServer(body=b"")
        channel = _channel(buffered_bus, metrics, server, username="bob")

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert "Authorization" not in server.requests[0].headers


# ---------------------------------------------------------------------------
# Reading the stream
# ---------------------------------------------------------------------------


class TestStream:
    async def test_requests_stream_endpoint(self, buffered_bus, metrics):
        server = _StreamServer()
        channel = _channel(buffered_bus, metrics, server)

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert server.requests[0].method == "GET"
        assert str(server.requests[0].url) == f"{API_URL}/api/stream"

    async def test_publishes_messages_in_order(self, buffered_bus, metrics):
        body = _lines(*({"text": f"msg {i}", "event": ""} for i in range(4)))
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError, match="stream closed"):
            await channel.start()

        received = await _drain(buffered_bus)
        assert [m.text for m in received] == ["msg 0", "msg 1", "msg 2", "msg 3"]
        assert metrics.value("received") == 4

    async def test_events_are_not_published(self, buffered_bus, metrics):
        body = _lines({"event": "join", "username": "bob"}, {"text": "hi", "event": ""})
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError):
            await channel.start()

        received = await _drain(buffered_bus)
        assert [m.text for m in received] == ["hi"]
        assert all(not m.is_event for m in received)
        assert metrics.value("received") == 1

    async def test_malformed_line_skipped(self, buffered_bus, metrics):
        body = _lines({"text": "before"}, "{this is not json", {"text": "after"})
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError):
            await channel.start()

        received = await _drain(buffered_bus)
        assert [m.text for m in received] == ["before", "after"]
        assert metrics.value("errors") == 1

    async def test_blank_lines_ignored(self, buffered_bus, metrics):
        body = b'\n\n{"text":"one"}\n\n'
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert [m.text for m in await _drain(buffered_bus)] == ["one"]
        assert metrics.value("errors") == 0

    async def test_unicode_line_breaks_inside_text(self, buffered_bus, metrics):
        text = "a\u0085b\u2028c\u2029d\x0be\x1cf"
        body = (json.dumps({"text": text}, ensure_ascii=False) + "\n").encode("utf-8")
        backoff = MagicMock()
        channel = _channel(buffered_bus, metrics, _StreamServer(body), backoff=backoff)

        with pytest.raises(TransientStreamError, match="stream closed"):
            await channel.start()

        assert [m.text for m in await _drain(buffered_bus)] == [text]
        assert metrics.value("errors") == 0
        assert backoff.reset.call_count == 1

    async def test_records_split_across_chunks(self, buffered_bus, metrics):
        body = '{"text": "héllo"}\n{"text": "second"}\n'.encode("utf-8")
        # Split inside the two-byte "é" and inside the second record
        chunks = [body[:12], body[12:30], body[30:]]

        async def stream():
            for chunk in chunks:
                yield chunk

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=stream())

        channel = MatterbridgeChannel(
            bus=buffered_bus,
            api_url=API_URL,
            metrics=metrics,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert [m.text for m in await _drain(buffered_bus)] == ["héllo", "second"]
        assert metrics.value("errors") == 0

    async def test_unterminated_tail_dropped(self, buffered_bus, metrics):
        body = b'{"text":"complete"}\n{"text":"cut'
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError, match="stream closed"):
            await channel.start()

        assert [m.text for m in await _drain(buffered_bus)] == ["complete"]
        assert metrics.value("errors") == 0

    async def test_fields_passed_through(self, buffered_bus, metrics, sample_message):
        body = _lines(sample_message.to_dict())
        channel = _channel(buffered_bus, metrics, _StreamServer(body))

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert await _drain(buffered_bus) == [sample_message]

    async def test_backoff_reset_per_message(self, buffered_bus, metrics):
        backoff = MagicMock()
        body = _lines({"text": "a"}, {"event": "leave"}, "garbage", {"text": "b"})
        channel = _channel(buffered_bus, metrics, _StreamServer(body), backoff=backoff)

        with pytest.raises(TransientStreamError):
            await channel.start()

        assert backoff.reset.call_count == 2


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_connect_error_is_transient(self, buffered_bus, metrics):
        server = _StreamServer(error=httpx.ConnectError("connection refused"))
        channel = _channel(buffered_bus, metrics, server)

        with pytest.raises(TransientStreamError, match="failed to request messages"):
            await channel.start()

    async def test_read_timeout_is_transient(self, buffered_bus, metrics):
        server = _StreamServer(error=httpx.ReadTimeout("timed out"))
        channel = _channel(buffered_bus, metrics, server)

        with pytest.raises(TransientStreamError):
            await channel.start()

    async def test_error_status_is_transient(self, buffered_bus, metrics):
        channel = _channel(buffered_bus, metrics, _StreamServer(status=401))

        with pytest.raises(TransientStreamError, match="HTTP 401"):
            await channel.start()

    async def test_bad_url_is_permanent_and_sends_nothing(self, buffered_bus, metrics):
        server = _StreamServer()
        channel = _channel(buffered_bus, metrics, server, api_url="ftp://nope")

        with pytest.raises(PermanentStreamError):
            await channel.start()

        assert server.requests == []

    async def test_each_start_opens_fresh_connection(self, buffered_bus, metrics):
        server = _StreamServer(_lines({"text": "x"}))
        channel = _channel(buffered_bus, metrics, server)

        for _ in range(2):
            with pytest.raises(TransientStreamError):
                await channel.start()

        assert len(server.requests) == 2

    async def test_stop_closes_client(self, buffered_bus, metrics):
        channel = _channel(buffered_bus, metrics, _StreamServer())
        with pytest.raises(TransientStreamError):
            await channel.start()
        assert channel.is_running

        await channel.stop()
        assert not channel.is_running
        assert channel._client is None

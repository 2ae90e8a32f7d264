import asyncio
import json

import httpx
import pytest

from chat_relay.client.notices import NoticeBoard
from chat_relay.client.session import ChatSession
from chat_relay.memory.conversation_cache import ConversationCache
from chat_relay.memory.key_value_store import InMemoryStore
from chat_relay.models.enums import ErrorCode, MessageRole, NoticeKind, StreamState
from chat_relay.utils.api_client import RelayClient
from chat_relay.utils.stream_protocol import (
    encode_done,
    encode_frame,
    error_frame,
    finish_frame,
    start_frame,
    text_delta_frame,
    text_end_frame,
    text_start_frame,
)

from .conftest import FakeProvider, build_test_app

RELAY_URL = "http://relay.test/chat"


def sse(*fragments: str, finish: bool = True, error: str | None = None) -> bytes:
    chunks = [encode_frame(start_frame("m1")), encode_frame(text_start_frame("p1"))]
    chunks += [encode_frame(text_delta_frame("p1", fragment)) for fragment in fragments]
    if error is not None:
        chunks.append(encode_frame(error_frame(error)))
    elif finish:
        chunks += [encode_frame(text_end_frame("p1")), encode_frame(finish_frame()), encode_done()]
    return "".join(chunks).encode()


class Relay:
    """Mock relay endpoint recording every request it receives."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return self.respond(request)

    def session(self, **kwargs) -> ChatSession:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return ChatSession(RelayClient(RELAY_URL, http_client=http), **kwargs)


def streaming(body: bytes):
    return lambda request: httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})


class StateRecorder:
    def __init__(self):
        self.states: list[StreamState] = []
        self.calls = 0

    def __call__(self, session: ChatSession) -> None:
        self.calls += 1
        if not self.states or self.states[-1] != session.state:
            self.states.append(session.state)


@pytest.mark.asyncio
async def test_successful_submission_walks_the_state_machine():
    relay = Relay(streaming(sse("Hel", "lo", "!")))
    recorder = StateRecorder()
    session = relay.session(on_change=recorder)

    task = session.submit("  Hello\x00 ")
    assert session.state == StreamState.SENDING
    assert [m.text for m in session.conversation.messages] == ["Hello"]
    await task

    assert recorder.states == [StreamState.SENDING, StreamState.STREAMING, StreamState.READY]
    assert session.state == StreamState.READY
    roles = [message.role for message in session.conversation.messages]
    assert roles == [MessageRole.USER, MessageRole.ASSISTANT]
    assert session.conversation.messages[-1].text == "Hello!"
    assert session.partial_text == ""
    assert relay.requests[0]["messages"][0]["parts"] == [{"type": "text", "text": "Hello"}]
    await session.close()


@pytest.mark.asyncio
async def test_fragments_are_kept_exactly_as_received():
    relay = Relay(streaming(sse("a", "a", " ", "b", "a")))
    session = relay.session()
    await session.submit("Hi")
    assert session.conversation.messages[-1].text == "aa ba"


@pytest.mark.asyncio
async def test_partial_text_is_visible_while_streaming():
    release = asyncio.Event()

    async def body():
        yield sse("Hel", finish=False)
        await release.wait()
        yield sse("lo")[len(sse(finish=False)):]

    relay = Relay(lambda request: httpx.Response(200, content=body()))
    seen: list[str] = []
    session = relay.session(on_change=lambda s: seen.append(s.partial_text))

    task = session.submit("Hi")
    while session.partial_text != "Hel":
        await asyncio.sleep(0.01)
    assert session.state == StreamState.STREAMING
    assert [m.text for m in session.visible_messages] == ["Hi", "Hel"]
    assert len(session.conversation.messages) == 1

    release.set()
    await task
    assert [m.text for m in session.visible_messages] == ["Hi", "Hello"]
    assert "Hel" in seen


@pytest.mark.asyncio
async def test_second_submit_while_in_flight_is_ignored():
    release = asyncio.Event()

    async def body():
        await release.wait()
        yield sse("ok")

    relay = Relay(lambda request: httpx.Response(200, content=body()))
    session = relay.session()

    first = session.submit("one")
    assert session.submit("two") is None
    await asyncio.sleep(0.01)
    assert session.submit("three") is None

    release.set()
    await first
    assert len(relay.requests) == 1
    assert [m.text for m in session.conversation.messages] == ["one", "ok"]


@pytest.mark.asyncio
async def test_ready_and_errored_sessions_accept_new_submissions():
    bodies = iter([sse(error="Could not connect to the AI service"), sse("first"), sse("second")])
    relay = Relay(lambda request: httpx.Response(200, content=next(bodies)))
    session = relay.session()

    await session.submit("one")
    assert session.state == StreamState.ERRORED
    await session.submit("two")
    assert session.state == StreamState.READY
    await session.submit("three")
    assert session.state == StreamState.READY
    assert [m.text for m in session.conversation.messages] == ["one", "two", "first", "three", "second"]
    assert len(relay.requests[2]["messages"]) == 4


@pytest.mark.asyncio
async def test_validation_rejection_does_not_send():
    relay = Relay(streaming(sse("never")))
    notices = NoticeBoard()
    session = relay.session(notices=notices)

    assert session.submit("<script>alert(1)</script>") is None
    assert session.state == StreamState.IDLE
    assert relay.requests == []
    assert session.conversation.messages == []
    assert notices.current.kind == NoticeKind.VALIDATION


@pytest.mark.asyncio
async def test_error_frame_keeps_accepted_messages_and_posts_notice():
    relay = Relay(streaming(sse("partial", error="Could not connect to the AI service")))
    notices = NoticeBoard()
    session = relay.session(notices=notices)

    await session.submit("Hello")

    assert session.state == StreamState.ERRORED
    assert [m.text for m in session.conversation.messages] == ["Hello"]
    assert session.partial_text == ""
    assert notices.current.kind == NoticeKind.ERROR
    assert notices.current.message == "Could not connect to the AI service"
    assert len(relay.requests) == 1


@pytest.mark.asyncio
async def test_error_response_before_streaming():
    relay = Relay(
        lambda request: httpx.Response(
            503, json={"error": "Could not connect to the AI service", "code": "UpstreamUnavailable"}
        )
    )
    notices = NoticeBoard()
    session = relay.session(notices=notices)

    await session.submit("Hello")

    assert session.state == StreamState.ERRORED
    assert [m.text for m in session.conversation.messages] == ["Hello"]
    assert notices.current.message == "Could not connect to the AI service"


@pytest.mark.asyncio
async def test_non_json_error_body_still_errors():
    relay = Relay(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))
    session = relay.session()
    await session.submit("Hello")
    assert session.state == StreamState.ERRORED
    assert "502" in session.notices.current.message


@pytest.mark.asyncio
async def test_stream_closing_without_terminal_marker_is_an_error():
    relay = Relay(streaming(sse("cut", finish=False)))
    session = relay.session()
    await session.submit("Hello")
    assert session.state == StreamState.ERRORED
    assert len(session.conversation.messages) == 1


@pytest.mark.asyncio
async def test_transport_failure_is_an_error():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    relay = Relay(refuse)
    session = relay.session()
    await session.submit("Hello")
    assert session.state == StreamState.ERRORED
    assert session.notices.current.message == "Could not reach the chat server"


@pytest.mark.asyncio
async def test_close_while_streaming_stops_all_mutation():
    release = asyncio.Event()

    async def body():
        yield sse("Hel", finish=False)
        await release.wait()
        yield sse("lo")[len(sse(finish=False)):]

    relay = Relay(lambda request: httpx.Response(200, content=body()))
    recorder = StateRecorder()
    session = relay.session(on_change=recorder)

    task = session.submit("Hi")
    while session.state != StreamState.STREAMING:
        await asyncio.sleep(0.01)

    calls_before = recorder.calls
    await session.close()
    release.set()
    await asyncio.sleep(0.01)

    assert task.done()
    assert session.closed
    assert recorder.calls == calls_before
    assert [m.text for m in session.conversation.messages] == ["Hi"]
    assert session.submit("again") is None


@pytest.mark.asyncio
async def test_conversation_is_cached_on_every_append_and_restored():
    store = InMemoryStore()
    relay = Relay(streaming(sse("Hi there")))
    session = relay.session(cache=ConversationCache(store))
    await session.submit("Hello")

    restored = relay.session(cache=ConversationCache(store))
    assert [m.text for m in restored.conversation.messages] == ["Hello", "Hi there"]
    assert restored.state == StreamState.IDLE

    assert restored.clear()
    assert restored.conversation.messages == []
    assert store.get("chatbot-messages") is None


@pytest.mark.asyncio
async def test_end_to_end_against_the_relay_app():
    provider = FakeProvider(fragments=["Hello", ", ", "world"])
    app = build_test_app(provider)
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    async with ChatSession(RelayClient("http://testserver/chat", http_client=http)) as session:
        await session.submit("Hello")
        assert session.state == StreamState.READY
        assert session.conversation.messages[-1].text == "Hello, world"

        assert session.submit("x" * 10 + "<script>") is None
        assert session.notices.current.kind == NoticeKind.VALIDATION
    await http.aclose()


@pytest.mark.asyncio
async def test_relay_error_codes_reach_the_client():
    app = build_test_app(FakeProvider(error=ConnectionRefusedError()))
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    client = RelayClient("http://testserver/chat", http_client=http)
    session = ChatSession(client)

    await session.submit("Hello")

    assert session.state == StreamState.ERRORED
    assert session.notices.current.message == "Could not connect to the AI service"
    await session.close()
    await http.aclose()


def test_error_code_of_request_errors():
    from chat_relay.utils.api_client import _error_from_response

    error = _error_from_response(401, b'{"error": "Authentication failed", "code": "UpstreamAuthFailed"}')
    assert error.status_code == 401
    assert error.code == ErrorCode.UPSTREAM_AUTH_FAILED
    assert error.message == "Authentication failed"


@pytest.mark.asyncio
async def test_cancelled_request_frees_the_session():
    release = asyncio.Event()

    async def body():
        await release.wait()
        yield sse("late")

    replies = iter([lambda: httpx.Response(200, content=body()), lambda: httpx.Response(200, content=sse("ok"))])
    relay = Relay(lambda request: next(replies)())
    session = relay.session()

    task = session.submit("Hello")
    while not relay.requests:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert session.state == StreamState.ERRORED
    assert session.partial_text == ""
    assert [m.text for m in session.conversation.messages] == ["Hello"]

    await session.submit("again")
    assert session.state == StreamState.READY
    assert [m.text for m in session.conversation.messages] == ["Hello", "again", "ok"]
    release.set()
    await session.close()

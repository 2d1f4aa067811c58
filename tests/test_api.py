"""API tests for the root, health and chat endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from weather_chat.api.chat import get_chat_client_factory
from weather_chat.config import Settings, get_settings
from weather_chat.main import app
from weather_chat.models.chat import ContentChunk, DoneChunk, ToolCallChunk

client = TestClient(app)

CHAT_BODY = {
    "messages": [{"role": "user", "content": "What's the weather in Paris?"}],
    "conversationId": "conv-1",
}


class FakeChatClient:
    """Stands in for GeminiClient; replays a fixed list of chunks."""

    def __init__(self, chunks=(), fail_after=None, error=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.error = error or RuntimeError("upstream exploded")
        self.calls = []

    async def stream_chat(self, messages, conversation_id=None):
        self.calls.append((messages, conversation_id))
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise self.error


def parse_events(body):
    events = []
    for line in body.splitlines():
        if line.startswith("data: "):
            data = line[len("data: ") :]
            events.append(data if data == "[DONE]" else json.loads(data))
    return events


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def use_settings(**overrides):
    configured = Settings(_env_file=None, **overrides)
    app.dependency_overrides[get_settings] = lambda: configured
    return configured


def use_chat_client(fake):
    app.dependency_overrides[get_chat_client_factory] = lambda: (lambda settings: fake)


def test_root_endpoint():
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Weather Chat API"
    assert data["status"] == "running"


def test_health_endpoint():
    """Test the health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "api_key_configured" in data


def test_invalid_endpoint():
    """Test calling an invalid endpoint."""
    response = client.get("/invalid")
    assert response.status_code == 404


def test_chat_without_api_key_returns_500():
    """A missing credential is reported before any model call."""
    use_settings(gemini_api_key=None)

    def factory_must_not_run(settings):
        raise AssertionError("chat client built without an API key")

    app.dependency_overrides[get_chat_client_factory] = lambda: factory_must_not_run

    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 500
    assert response.json() == {"error": "GEMINI_API_KEY not configured"}


def test_chat_with_empty_api_key_returns_500():
    use_settings(gemini_api_key="")
    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 500
    assert response.json() == {"error": "GEMINI_API_KEY not configured"}


def test_chat_missing_key_checked_before_body():
    use_settings(gemini_api_key=None)
    response = client.post("/api/chat", content=b"not json")
    assert response.status_code == 500
    assert response.json()["error"] == "GEMINI_API_KEY not configured"


@pytest.mark.parametrize(
    "body",
    [b"not json", b'{"conversationId": "x"}', b'{"messages": [{"role": "robot"}]}'],
)
def test_chat_invalid_body_returns_400(body):
    use_settings(gemini_api_key="test-key")
    use_chat_client(FakeChatClient())
    response = client.post(
        "/api/chat", content=body, headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request body")


def test_chat_streams_chunks():
    """The stream from the chat client is relayed as SSE events."""
    use_settings(gemini_api_key="test-key")
    meta = {"id": "chat-1", "model": "gemini-test", "conversation_id": "conv-1"}
    fake = FakeChatClient(
        [
            ToolCallChunk(
                tool_call_id="call_1",
                tool_name="get_weather",
                arguments={"location": "Paris"},
                **meta,
            ),
            ContentChunk(delta="Sunny ", content="Sunny ", **meta),
            ContentChunk(delta="in Paris.", content="Sunny in Paris.", **meta),
            DoneChunk(**meta),
        ]
    )
    use_chat_client(fake)

    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = parse_events(response.text)
    assert [e["type"] for e in events[:-1]] == [
        "tool_call",
        "content",
        "content",
        "done",
    ]
    assert events[0]["toolName"] == "get_weather"
    assert events[2]["content"] == "Sunny in Paris."
    assert events[3]["finishReason"] == "stop"
    assert all(e["conversationId"] == "conv-1" for e in events[:-1])
    assert events[-1] == "[DONE]"

    messages, conversation_id = fake.calls[0]
    assert conversation_id == "conv-1"
    assert messages[0].content == "What's the weather in Paris?"


def test_chat_upstream_failure_returns_500():
    use_settings(gemini_api_key="test-key")
    use_chat_client(FakeChatClient(fail_after=0))

    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 500
    assert response.json() == {"error": "upstream exploded"}


def test_chat_client_construction_failure_returns_500():
    use_settings(gemini_api_key="test-key")

    def broken_factory(settings):
        raise ValueError("bad model name")

    app.dependency_overrides[get_chat_client_factory] = lambda: broken_factory

    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 500
    assert response.json() == {"error": "bad model name"}


def test_chat_failure_mid_stream_emits_error_event():
    use_settings(gemini_api_key="test-key")
    meta = {"id": "chat-2", "model": "gemini-test", "conversation_id": "conv-1"}
    use_chat_client(
        FakeChatClient(
            [ContentChunk(delta="Hel", content="Hel", **meta)], fail_after=1
        )
    )

    response = client.post("/api/chat", json=CHAT_BODY)
    assert response.status_code == 200

    events = parse_events(response.text)
    assert events[0]["type"] == "content"
    assert events[1]["type"] == "error"
    assert events[1]["error"]["message"] == "upstream exploded"
    assert events[1]["id"] == "chat-2"
    assert events[-1] == "[DONE]"


@pytest.mark.asyncio
async def test_relayed_stream_is_closed_when_consumer_stops():
    from weather_chat.api.chat import _prepend

    state = {"closed": False}
    meta = {"id": "chat-3", "model": "gemini-test"}

    async def upstream():
        try:
            for i in range(10):
                yield ContentChunk(delta=str(i), content=str(i), **meta)
        finally:
            state["closed"] = True

    rest = upstream()
    first = await rest.__anext__()
    relay = _prepend(first, rest)

    assert (await relay.__anext__()).delta == "0"
    assert (await relay.__anext__()).delta == "1"
    await relay.aclose()

    assert state["closed"] is True

"""Integration tests with the Anthropic API.

These tests require ANTHROPIC_API_KEY to be set in environment or .env file.
Run with: pytest tests/integration -v
"""

import pytest
import pytest_asyncio

from claudia import (
    AbortError,
    AbortSignal,
    Anthropic,
    APIError,
    ContentBlockDelta,
    ErrorCode,
    Message,
    MessageRequest,
    MessageStop,
    RequestOptions,
    TimeoutError,
)

# Import the marker from conftest
from tests.conftest import requires_anthropic

MODEL = "claude-3-haiku-20240307"


def hello_request(max_tokens: int = 10) -> MessageRequest:
    return MessageRequest(
        model=MODEL,
        max_tokens=max_tokens,
        messages=[Message(role="user", content="Say 'hello' and nothing else.")],
    )


@requires_anthropic
class TestAnthropicIntegration:
    """Integration tests using the real Messages API."""

    @pytest_asyncio.fixture
    async def client(self):
        async with Anthropic() as client:
            yield client

    @pytest.mark.asyncio
    async def test_create(self, client):
        response = await client.messages.create(hello_request())
        assert "hello" in response.text.lower()
        assert response.usage.output_tokens > 0

    @pytest.mark.asyncio
    async def test_streaming(self, client):
        events = []
        async for event in client.messages.create_stream(hello_request()):
            events.append(event)

        assert events[0].type == "message_start"
        assert isinstance(events[-1], MessageStop)
        text = "".join(e.text for e in events if isinstance(e, ContentBlockDelta))
        assert "hello" in text.lower()

    @pytest.mark.asyncio
    async def test_stream_read(self, client):
        stream = client.messages.create_stream(hello_request())
        text = await stream.read()
        assert "hello" in text.lower()
        assert stream.state.completed

    @pytest.mark.asyncio
    async def test_invalid_request(self, client):
        with pytest.raises(APIError) as exc_info:
            await client.messages.create(hello_request(max_tokens=0))

        assert exc_info.value.code == ErrorCode.INVALID_REQUEST_ERROR
        assert "Input:" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_tiny_timeout(self, client):
        with pytest.raises(TimeoutError):
            await client.messages.create(
                hello_request(), RequestOptions(timeout=0.001, max_retries=0)
            )

    @pytest.mark.asyncio
    async def test_abort_before_send(self, client):
        signal = AbortSignal()
        signal.abort("not needed")

        with pytest.raises(AbortError):
            await client.messages.create(hello_request(), signal=signal)

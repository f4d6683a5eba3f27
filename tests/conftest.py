"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from claudia import Anthropic, Message, MessageRequest, Retry
from helpers import HELLO_RECORDS, MODEL, sse

# Load .env file if it exists
try:
    from dotenv import load_dotenv  # type: ignore[import-not-found]

    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
except ImportError:
    pass  # python-dotenv not installed


def has_anthropic() -> bool:
    """Check if a real API key is configured."""
    return bool(os.environ.get("ANTHROPIC_API_KEY"))


# Marker for integration tests against the live API
requires_anthropic = pytest.mark.skipif(
    not has_anthropic(),
    reason="ANTHROPIC_API_KEY not set",
)


@pytest.fixture
def request_body() -> MessageRequest:
    return MessageRequest(
        model=MODEL,
        max_tokens=256,
        messages=[Message(role="user", content="Hello, Claude")],
    )


@pytest.fixture
def hello_stream() -> str:
    return sse(*HELLO_RECORDS)


@pytest.fixture
def make_client() -> Callable[..., Anthropic]:
    """Build a client whose requests go to ``handler`` instead of the network.

    Backoff delays are zero so retried tests run instantly.
    """

    def make(handler, **kwargs) -> Anthropic:
        kwargs.setdefault("retry", Retry(base_delay=0.0))
        return Anthropic(
            api_key="test-key",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return make


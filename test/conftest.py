"""
Pytest configuration and shared fixtures for batch annotator tests
"""

import inspect
import pytest
from unittest.mock import Mock, AsyncMock
from langchain_core.messages import AIMessage

from batch_annotator.config import AnnotatorConfig
from batch_annotator.database import InMemoryJobStore


def _user_text(messages) -> str:
    """Content of the user message in a rendered system + user prompt."""
    return messages.to_messages()[-1].content


def make_chat_model(responder, model_name: str = "fake-model"):
    """
    Build a mock chat model whose ``ainvoke`` answers with ``responder(user_text)``.

    The responder may return a string, return an awaitable or raise.
    """
    async def ainvoke(messages, *args, **kwargs):
        reply = responder(_user_text(messages))
        if inspect.isawaitable(reply):
            reply = await reply
        return AIMessage(
            content=reply,
            usage_metadata={'input_tokens': 20, 'output_tokens': 3, 'total_tokens': 23}
        )

    mock = Mock()
    mock.model_name = model_name
    mock.ainvoke = AsyncMock(side_effect=ainvoke)
    return mock


@pytest.fixture
def chat_model_factory():
    """Factory for mock chat models driven by a responder function"""
    return make_chat_model


@pytest.fixture
def settings():
    """Settings with no inter-batch sleeps so tests run quickly"""
    return AnnotatorConfig(inter_batch_delay=0, sync_inter_batch_delay=0, request_timeout=5.0)


@pytest.fixture
def job_store():
    """Fresh in-memory job store"""
    return InMemoryJobStore()


@pytest.fixture
def comments_csv():
    """The Name/Comment sample with a quoted field containing a comma"""
    return b'Name,Comment\nAlice,"Great, thanks"\nBob,No comment\n'


@pytest.fixture
def make_large_csv():
    """Build a CSV with ``rows`` numbered data rows"""
    def _make(rows: int) -> bytes:
        lines = ['id,text']
        lines.extend(f'{i},message number {i}' for i in range(rows))
        return ('\n'.join(lines) + '\n').encode('utf-8')
    return _make


@pytest.fixture
def interview_text():
    """Interview notes that fit in a single extraction chunk"""
    first = ("The interviewer asked about the early days of the project. "
             "She said that the team had almost no budget and worked out of a garage for two years.")
    second = ("Later she explained that the turning point came when a large customer signed on, "
              "which allowed them to hire their first engineers and move into a real office.")
    return f"{first}\n\nOk.\n\n{second}"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Setup test environment variables"""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-123")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key-456")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-789")
    monkeypatch.setenv("HOST_IP", "localhost")

"""
Test cases for chat client construction and the completion call
"""

import asyncio
import pytest
from unittest.mock import Mock, AsyncMock, patch
from langchain_core.messages import AIMessage
from langchain_openai import ChatOpenAI
from langchain_anthropic import ChatAnthropic

from batch_annotator.exceptions import (
    APICallError,
    InvalidProviderError,
    MissingAPIKeyError,
    ModelInitializationError,
    ResponseParsingError,
)
from batch_annotator.llm_core import (
    LLM,
    ModelConfig,
    TokenUsageTracker,
    extract_token_usage,
    make_api_call,
    response_text,
)


class TestModelConfig:
    """Test cases for the model catalogue"""

    def test_get_models(self):
        config = ModelConfig()
        ids = [m['id'] for m in config.get_models('openai')]
        assert 'gpt-4o-mini' in ids
        assert config.get_models('unknown') == []

    def test_reasoning_model(self):
        config = ModelConfig()
        assert config.is_reasoning_model('openai', 'o4-mini')
        assert not config.is_reasoning_model('openai', 'gpt-4o-mini')
        assert config.get_unsupported_parameters('openai', 'o4-mini') == ['temperature', 'top_p']

    def test_unlisted_model_uses_provider_defaults(self):
        assert ModelConfig().get_model_parameters('vllm', 'my-local-model') == {'temperature': 0.1}


class TestLLM:
    """Test cases for the LLM factory"""

    def test_invalid_provider(self):
        with pytest.raises(InvalidProviderError):
            LLM(provider='nonexistent', model='x')

    def test_openai_client(self):
        llm = LLM(provider='openai', model='gpt-4o-mini', credential='sk-caller',
                  timeout=15.0, max_retries=3, max_tokens=50, temperature=0.1).get_llm()

        assert isinstance(llm, ChatOpenAI)
        assert llm.model_name == 'gpt-4o-mini'
        assert llm.openai_api_key.get_secret_value() == 'sk-caller'
        assert llm.max_tokens == 50
        assert llm.temperature == 0.1
        assert llm.max_retries == 3

    def test_env_key_fallback(self):
        params = LLM(provider='openai', model='gpt-4o-mini')._prepare_openai_params()
        assert params['api_key'] == 'test-key-123'

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv('OPENAI_API_KEY', raising=False)
        with pytest.raises(MissingAPIKeyError):
            LLM(provider='openai', model='gpt-4o-mini').get_llm()

    def test_reasoning_model_drops_temperature(self):
        factory = LLM(provider='openai', model='o4-mini', temperature=0.1, max_tokens=50)
        params = factory._prepare_openai_params()
        assert 'temperature' not in params
        assert params['reasoning_effort'] == 'low'
        assert params['max_tokens'] == 50

    def test_client_rejects_parameters(self):
        with patch('batch_annotator.llm_core.api_provider.ChatOpenAI',
                   side_effect=ValueError("unknown parameter")):
            with pytest.raises(ModelInitializationError, match="gpt-4o-mini"):
                LLM(provider='openai', model='gpt-4o-mini').get_llm()

    def test_anthropic_client(self):
        llm = LLM(provider='anthropic', model='claude-3-5-haiku-latest').get_llm()
        assert isinstance(llm, ChatAnthropic)

    def test_gemini_params(self):
        params = LLM(provider='gemini', model='gemini-2.0-flash', max_tokens=1000)._prepare_gemini_params()
        assert params['google_api_key'] == 'test-key-789'
        assert params['max_output_tokens'] == 1000

    def test_local_params(self):
        params = LLM(provider='lm-studio', model='qwen')._prepare_local_params()
        assert params['base_url'] == 'http://localhost:1234/v1'
        assert params['api_key'] == 'lm-studio'


class TestApiCall:
    """Test cases for make_api_call and reply helpers"""

    def test_make_api_call(self):
        llm = Mock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(
            content=' Positive \n',
            usage_metadata={'input_tokens': 30, 'output_tokens': 1, 'total_tokens': 31}))

        text, usage = asyncio.run(make_api_call(llm, "system", "user"))

        assert text == 'Positive'
        assert usage == {'input_tokens': 30, 'output_tokens': 1, 'total_tokens': 31}
        messages = llm.ainvoke.call_args.args[0].to_messages()
        assert [m.type for m in messages] == ['system', 'human']

    def test_provider_error_wrapped(self):
        llm = Mock()
        llm.ainvoke = AsyncMock(side_effect=ConnectionError("reset"))
        with pytest.raises(APICallError):
            asyncio.run(make_api_call(llm, "s", "u"))

    def test_timeout_wrapped(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        llm = Mock()
        llm.ainvoke = AsyncMock(side_effect=slow)
        with pytest.raises(APICallError, match="timed out"):
            asyncio.run(make_api_call(llm, "s", "u", timeout=0.01))

    def test_response_text_blocks(self):
        message = AIMessage(content=[{'type': 'text', 'text': 'Neutral'}])
        assert response_text(message) == 'Neutral'

    def test_response_without_content(self):
        with pytest.raises(ResponseParsingError):
            response_text(object())

    def test_usage_from_response_metadata(self):
        message = AIMessage(content='x', response_metadata={
            'token_usage': {'prompt_tokens': 5, 'completion_tokens': 2, 'total_tokens': 7}})
        assert extract_token_usage(message) == {'input_tokens': 5, 'output_tokens': 2, 'total_tokens': 7}


class TestTokenUsageTracker:
    """Test cases for token accounting"""

    def test_summary(self):
        tracker = TokenUsageTracker()
        tracker.add_usage({'input_tokens': 10, 'output_tokens': 2, 'total_tokens': 12}, operation='labels')
        tracker.add_usage({'input_tokens': 20, 'output_tokens': 4, 'total_tokens': 24}, operation='quotes')
        tracker.add_usage({}, operation='labels')

        summary = tracker.get_summary(include_details=True)
        assert summary['total_calls'] == 2
        assert summary['total_tokens'] == 36
        assert summary['by_operation']['quotes']['call_count'] == 1
        assert 'Total API Calls: 2' in tracker.format_summary()

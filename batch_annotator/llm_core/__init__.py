from .api_provider import LLM, ModelConfig, SUPPORTED_PROVIDERS
from .api_call import (
    make_api_call,
    create_prompt_template,
    extract_token_usage,
    response_text
)
from .token_counter import TokenUsageTracker, TokenUsageRecord

__all__ = ['LLM', 'ModelConfig', 'SUPPORTED_PROVIDERS', 'make_api_call',
           'create_prompt_template', 'extract_token_usage', 'response_text',
           'TokenUsageTracker', 'TokenUsageRecord']

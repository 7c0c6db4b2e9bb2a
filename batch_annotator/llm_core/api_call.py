from typing import Any, Dict, Optional, Tuple
from langchain_core.prompts import ChatPromptTemplate
import asyncio
import logging

from ..exceptions import APICallError, ResponseParsingError

logger = logging.getLogger(__name__)


def create_prompt_template(system_prompt: str, user_prompt: str):
    """Create a standardized system + user message list."""
    template = ChatPromptTemplate([
        ("system", "{system_prompt}"),
        ("user", "{user_prompt}")
    ])
    return template.invoke({"system_prompt": system_prompt, "user_prompt": user_prompt})


def extract_token_usage(response: Any) -> Dict[str, Any]:
    """Extract token usage information from a response object.

    Args:
        response: Response message from LangChain

    Returns:
        Dictionary with input, output and total token counts
    """
    token_info: Dict[str, Any] = {}

    usage = getattr(response, 'usage_metadata', None)
    if isinstance(usage, dict):
        token_info['input_tokens'] = usage.get('input_tokens', 0)
        token_info['output_tokens'] = usage.get('output_tokens', 0)
        token_info['total_tokens'] = usage.get('total_tokens', 0)

    # Standard chat completions report usage under response_metadata
    metadata = getattr(response, 'response_metadata', None)
    if 'input_tokens' not in token_info and isinstance(metadata, dict) and 'token_usage' in metadata:
        token_usage = metadata['token_usage'] or {}
        token_info['input_tokens'] = token_usage.get('prompt_tokens', 0)
        token_info['output_tokens'] = token_usage.get('completion_tokens', 0)
        token_info['total_tokens'] = token_usage.get('total_tokens', 0)

    return token_info


def response_text(response: Any) -> str:
    """Return the plain text of a chat reply (``choices[0].message.content``)."""
    content = getattr(response, 'content', None)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        # Content blocks, as returned by some providers
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get('type') == 'text':
                parts.append(block.get('text', ''))
        if parts:
            return ''.join(parts).strip()
    raise ResponseParsingError(f"Unexpected completion shape: {type(response).__name__}")


async def make_api_call(
        llm: object,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> Tuple[str, Dict[str, Any]]:
    """
    Make an async completion call and return the reply text with token usage.

    Args:
        llm: The LangChain chat model
        system_prompt: System prompt
        user_prompt: User prompt
        timeout: Seconds to wait before abandoning the request

    Raises:
        APICallError: On timeout or any provider error
        ResponseParsingError: When the reply carries no text content
    """
    messages = create_prompt_template(system_prompt, user_prompt)
    model_name = getattr(llm, 'model_name', None) or getattr(llm, 'model', 'unknown')

    try:
        if timeout:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
        else:
            response = await llm.ainvoke(messages)
    except asyncio.TimeoutError as e:
        raise APICallError(f"Request to {model_name} timed out after {timeout}s") from e
    except Exception as e:
        raise APICallError(f"Request to {model_name} failed: {e}") from e

    return response_text(response), extract_token_usage(response)

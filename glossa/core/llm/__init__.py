"""
LLM client layer: provider base class, OpenAI-compatible provider and the
tool dispatch table used for mid-conversation glossary access.
"""

from .base import LLMProvider, LLMResponse
from .tools import Tool, ToolRegistry
from .providers import OpenAICompatibleProvider

__all__ = [
    'LLMProvider',
    'LLMResponse',
    'Tool',
    'ToolRegistry',
    'OpenAICompatibleProvider',
    'create_llm_provider',
]


def create_llm_provider(config) -> OpenAICompatibleProvider:
    """Build the provider described by a TranslationConfig"""
    return OpenAICompatibleProvider(
        api_base_url=config.api_base_url,
        model=config.model,
        api_key=config.api_key or None,
        temperature=config.temperature,
        timeout=config.timeout,
        max_retries=config.max_retries,
    )

"""
LLM provider implementations.
"""

from .openai import OpenAICompatibleProvider

__all__ = ['OpenAICompatibleProvider']

"""
Base classes and data structures for LLM providers.

This module defines the abstract base class that all LLM providers must implement,
as well as common data structures like LLMResponse.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, TYPE_CHECKING
import httpx

from glossa.config import REQUEST_TIMEOUT

if TYPE_CHECKING:
    from .tools import ToolRegistry


@dataclass
class LLMResponse:
    """Response from LLM with token usage information"""
    content: str
    prompt_tokens: int = 0  # Summed over every round trip of the call
    completion_tokens: int = 0
    tool_rounds: int = 0  # Number of tool-call round trips before the final answer

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    def __init__(self, model: str, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize the LLM provider.

        Args:
            model: Model name/identifier
            timeout: Hard timeout for one HTTP attempt, in seconds
        """
        self.model = model
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        """False when the provider lacks credentials and callers should use mock mode"""
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> 'LLMProvider':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def chat(self, messages: List[Dict[str, Any]],
                   tools: Optional["ToolRegistry"] = None,
                   temperature: Optional[float] = None) -> LLMResponse:
        """
        Run a chat completion, resolving tool calls until the model answers.

        Args:
            messages: Chat messages (role/content dictionaries)
            tools: Tools the model may call mid-conversation
            temperature: Sampling temperature override

        Returns:
            LLMResponse with the final assistant content

        Raises:
            LLMError: On transport, protocol or tool failures
        """
        pass

    async def generate(self, prompt: str, system_prompt: Optional[str] = None,
                       tools: Optional["ToolRegistry"] = None,
                       temperature: Optional[float] = None) -> LLMResponse:
        """
        Generate text from prompt.

        Args:
            prompt: The user prompt (content to process)
            system_prompt: Optional system prompt (role/instructions)
            tools: Tools the model may call
            temperature: Sampling temperature override

        Returns:
            LLMResponse object with content and token usage info
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, tools=tools, temperature=temperature)

"""
OpenAI-compatible provider implementation.

This module provides the OpenAICompatibleProvider class for interacting with
OpenAI API and compatible endpoints (llama.cpp, LM Studio, vLLM, OpenRouter, etc.).

One call to ``chat`` may span several HTTP round trips: when the model
answers with tool calls, each call is executed locally, its result appended
to the conversation, and the request resubmitted. Every round trip is
retried independently for transient failures.
"""

from typing import Optional, List, Dict, Any
import json
import logging
import httpx

from ..base import LLMProvider, LLMResponse
from ..tools import ToolRegistry
from glossa.config import (
    API_BASE_URL,
    DEFAULT_MODEL,
    REQUEST_TIMEOUT,
    MAX_RETRIES,
    MAX_TOOL_ITERATIONS,
    TEMPERATURE,
)
from glossa.core.exceptions import (
    LLMConnectionError,
    LLMServerError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMRequestError,
    LLMResponseError,
    ToolCallError,
)
from glossa.core.retry_manager import RetryManager, RetryConfig

logger = logging.getLogger(__name__)


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAICompatibleProvider(LLMProvider):
    """OpenAI-compatible chat completions provider with a tool-call loop"""

    def __init__(self, api_base_url: str = API_BASE_URL, model: str = DEFAULT_MODEL,
                 api_key: Optional[str] = None, temperature: float = TEMPERATURE,
                 timeout: float = REQUEST_TIMEOUT, max_retries: int = MAX_RETRIES,
                 max_tool_iterations: int = MAX_TOOL_ITERATIONS,
                 retry_manager: Optional[RetryManager] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(model, timeout)
        self.api_base_url = api_base_url.rstrip('/')
        self.api_key = api_key
        self.temperature = temperature
        self.max_tool_iterations = max_tool_iterations
        self.retry_manager = retry_manager or RetryManager(RetryConfig.from_max_retries(max_retries))
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.api_base_url}/chat/completions"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None and self._transport is not None:
            self._client = httpx.AsyncClient(transport=self._transport,
                                             timeout=httpx.Timeout(self.timeout))
        return await super()._get_client()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        One HTTP round trip, with transport failures mapped onto the error hierarchy.
        """
        client = await self._get_client()
        try:
            response = await client.post(self.endpoint, json=payload,
                                         headers=self._headers(), timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise LLMConnectionError(f"Request timed out after {self.timeout}s: {e}") from e
        except httpx.TransportError as e:
            raise LLMConnectionError(f"Connection failed: {e}") from e

        status = response.status_code
        if status >= 400:
            body = response.text[:500]
            context = {'status_code': status, 'body': body}
            if status in (401, 403):
                raise LLMAuthenticationError(f"Authentication failed ({status})", context=context)
            if status == 429:
                raise LLMRateLimitError("Rate limit exceeded",
                                        retry_after=_parse_retry_after(response), context=context)
            if status >= 500:
                raise LLMServerError(f"Server error ({status})", status_code=status,
                                     context={'body': body})
            raise LLMRequestError(f"Request rejected ({status})", status_code=status,
                                  context={'body': body})

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Response is not valid JSON: {e}",
                                   context={'body': response.text[:200]}) from e

        if not isinstance(data, dict) or not data.get("choices"):
            raise LLMResponseError("Response has no choices", context={'body': str(data)[:200]})
        return data

    async def _complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.retry_manager.execute_with_retry(
            self._post_once, payload, operation_id=f"chat:{self.model}"
        )

    async def _run_tool_calls(self, tool_calls: List[Dict[str, Any]],
                              tools: Optional[ToolRegistry]) -> List[Dict[str, Any]]:
        """Execute requested tools, returning the ``tool`` messages to append"""
        results = []
        for call in tool_calls:
            function = call.get("function") or {}
            name = function.get("name", "")
            raw_arguments = function.get("arguments") or "{}"

            try:
                arguments = json.loads(raw_arguments) if isinstance(raw_arguments, str) else raw_arguments
            except json.JSONDecodeError as e:
                raise ToolCallError(f"Malformed tool arguments: {e}", tool_name=name,
                                    context={'arguments': str(raw_arguments)[:200]}) from e

            if tools is None:
                content = f"Error: Tool {name} not found"
            else:
                content = await tools.dispatch(name, arguments)

            results.append({
                "role": "tool",
                "tool_call_id": call.get("id", ""),
                "content": content,
            })
        return results

    async def chat(self, messages: List[Dict[str, Any]],
                   tools: Optional[ToolRegistry] = None,
                   temperature: Optional[float] = None) -> LLMResponse:
        """
        Run a chat completion, resolving tool calls until the model answers.

        Raises:
            ToolCallError: When the model keeps calling tools past the iteration cap
            LLMResponseError: When the final answer is empty
            RetryExhaustedError: When a round trip keeps failing transiently
            LLMAuthenticationError: On 401/403 (never retried)
        """
        conversation = list(messages)
        prompt_tokens = 0
        completion_tokens = 0

        for iteration in range(self.max_tool_iterations):
            payload = {
                "model": self.model,
                "messages": conversation,
                "temperature": self.temperature if temperature is None else temperature,
                "stream": False,
            }
            if tools is not None and len(tools):
                payload["tools"] = tools.schemas()

            data = await self._complete(payload)

            usage = data.get("usage") or {}
            prompt_tokens += usage.get("prompt_tokens", 0)
            completion_tokens += usage.get("completion_tokens", 0)

            message = data["choices"][0].get("message") or {}
            tool_calls = message.get("tool_calls")

            if tool_calls:
                logger.debug(f"Tool round {iteration + 1}/{self.max_tool_iterations}: "
                             f"{[c.get('function', {}).get('name') for c in tool_calls]}")
                conversation.append({
                    "role": "assistant",
                    "content": message.get("content"),
                    "tool_calls": tool_calls,
                })
                conversation.extend(await self._run_tool_calls(tool_calls, tools))
                continue

            content = (message.get("content") or "").strip()
            if not content:
                raise LLMResponseError("Empty response from LLM", recoverable=False)

            return LLMResponse(
                content=content,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                tool_rounds=iteration,
            )

        raise ToolCallError("Max tool iteration limit reached",
                            context={'iterations': self.max_tool_iterations})

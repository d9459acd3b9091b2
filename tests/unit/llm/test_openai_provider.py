"""Unit tests for the OpenAI-compatible provider and its tool-call loop."""

import json

import httpx
import pytest

from glossa.config import TranslationConfig
from glossa.core.exceptions import (
    LLMAuthenticationError,
    LLMRequestError,
    LLMResponseError,
    RetryExhaustedError,
    ToolCallError,
)
from glossa.core.glossary import InMemoryGlossaryStore, LOOKUP_TOOL, create_glossary_tools
from glossa.core.llm import OpenAICompatibleProvider, create_llm_provider
from glossa.core.retry_manager import RetryConfig, RetryManager


async def no_sleep(_):
    return None


def completion(content=None, tool_calls=None):
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    }


def tool_call(name, arguments, call_id="call_1"):
    return {"id": call_id, "type": "function",
            "function": {"name": name, "arguments": json.dumps(arguments)}}


class Recorder:
    """MockTransport handler replaying queued responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(json.loads(request.content))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)


def make_provider(recorder, max_attempts=3, **kwargs):
    return OpenAICompatibleProvider(
        api_base_url="http://llm.test/v1",
        model="test-model",
        api_key="sk-test",
        retry_manager=RetryManager(RetryConfig(max_attempts=max_attempts), sleep=no_sleep),
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


class TestChat:
    """Test plain completions."""

    @pytest.mark.asyncio
    async def test_plain_answer(self):
        recorder = Recorder(completion("温珀来了。"))

        async with make_provider(recorder) as llm:
            response = await llm.generate("Whymper came.", system_prompt="Translate")

        assert response.content == "温珀来了。"
        assert response.tool_rounds == 0
        assert response.total_tokens == 15
        payload = recorder.requests[0]
        assert payload["model"] == "test-model"
        assert payload["messages"][0] == {"role": "system", "content": "Translate"}
        assert "tools" not in payload

    @pytest.mark.asyncio
    async def test_temperature_override(self):
        recorder = Recorder(completion("ok"))

        async with make_provider(recorder, temperature=0.3) as llm:
            await llm.generate("x", temperature=0.1)

        assert recorder.requests[0]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_empty_answer_is_not_retried(self):
        """An empty final answer fails without another attempt."""
        recorder = Recorder(completion("   "))

        async with make_provider(recorder) as llm:
            with pytest.raises(LLMResponseError):
                await llm.generate("Whymper came.")

        assert len(recorder.requests) == 1

    def test_is_configured(self):
        assert make_provider(Recorder(completion("x"))).is_configured
        assert not OpenAICompatibleProvider(api_key=None).is_configured

    def test_factory_uses_config(self):
        config = TranslationConfig(model="m1", api_base_url="http://llm.test/v1/", api_key="k",
                                   max_retries=2)

        provider = create_llm_provider(config)

        assert provider.model == "m1"
        assert provider.endpoint == "http://llm.test/v1/chat/completions"
        assert provider.retry_manager.config.max_attempts == 3


class TestToolLoop:
    """Test tool calls resolved mid-conversation."""

    @pytest.mark.asyncio
    async def test_lookup_then_answer(self):
        """A tool result is appended and the request resubmitted."""
        recorder = Recorder(
            completion(tool_calls=[tool_call(LOOKUP_TOOL, {"term": "Whymper"})]),
            completion("温珀来了。"),
        )
        tools = create_glossary_tools(InMemoryGlossaryStore({"Whymper": "温珀"}))

        async with make_provider(recorder) as llm:
            response = await llm.generate("Whymper came.", tools=tools)

        assert response.content == "温珀来了。"
        assert response.tool_rounds == 1
        assert response.prompt_tokens == 20
        assert len(recorder.requests[0]["tools"]) == 2

        second = recorder.requests[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-2]["tool_calls"][0]["id"] == "call_1"
        assert second[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "温珀"}

    @pytest.mark.asyncio
    async def test_unknown_tool_answered_with_error(self):
        """Unknown tools are reported back to the model, not executed."""
        recorder = Recorder(
            completion(tool_calls=[tool_call("delete_everything", {})]),
            completion("done"),
        )
        tools = create_glossary_tools(InMemoryGlossaryStore())

        async with make_provider(recorder) as llm:
            response = await llm.generate("x", tools=tools)

        assert response.content == "done"
        assert recorder.requests[1]["messages"][-1]["content"] == "Error: Tool delete_everything not found"

    @pytest.mark.asyncio
    async def test_iteration_cap(self):
        """A model that never stops calling tools fails after the cap."""
        recorder = Recorder(completion(tool_calls=[tool_call(LOOKUP_TOOL, {"term": "Whymper"})]))
        tools = create_glossary_tools(InMemoryGlossaryStore())

        async with make_provider(recorder, max_tool_iterations=5) as llm:
            with pytest.raises(ToolCallError):
                await llm.generate("x", tools=tools)

        assert len(recorder.requests) == 5

    @pytest.mark.asyncio
    async def test_missing_required_argument(self):
        recorder = Recorder(completion(tool_calls=[tool_call(LOOKUP_TOOL, {})]))
        tools = create_glossary_tools(InMemoryGlossaryStore())

        async with make_provider(recorder) as llm:
            with pytest.raises(ToolCallError):
                await llm.generate("x", tools=tools)


class TestHttpErrors:
    """Test status code mapping and retries."""

    @pytest.mark.asyncio
    async def test_authentication_not_retried(self):
        recorder = Recorder(httpx.Response(401, json={"error": "bad key"}))

        async with make_provider(recorder) as llm:
            with pytest.raises(LLMAuthenticationError):
                await llm.generate("x")

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self):
        recorder = Recorder(httpx.Response(400, text="bad request"))

        async with make_provider(recorder) as llm:
            with pytest.raises(LLMRequestError):
                await llm.generate("x")

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_until_success(self):
        recorder = Recorder(
            httpx.Response(503, text="overloaded"),
            httpx.Response(502, text="bad gateway"),
            completion("ok"),
        )

        async with make_provider(recorder) as llm:
            response = await llm.generate("x")

        assert response.content == "ok"
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self):
        recorder = Recorder(httpx.Response(500, text="boom"))

        async with make_provider(recorder, max_attempts=3) as llm:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await llm.generate("x")

        assert exc_info.value.attempts == 3
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self):
        recorder = Recorder(
            httpx.Response(429, headers={"retry-after": "2"}, text="slow down"),
            completion("ok"),
        )

        async with make_provider(recorder) as llm:
            response = await llm.generate("x")

        assert response.content == "ok"

    @pytest.mark.asyncio
    async def test_connection_error_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=completion("ok"))

        llm = OpenAICompatibleProvider(
            api_base_url="http://llm.test/v1", api_key="sk-test",
            retry_manager=RetryManager(RetryConfig(max_attempts=2), sleep=no_sleep),
            transport=httpx.MockTransport(handler),
        )
        async with llm:
            response = await llm.generate("x")

        assert response.content == "ok"
        assert len(calls) == 2

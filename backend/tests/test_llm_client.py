"""
Tests for the OpenAI chat provider.

The AsyncOpenAI client is mocked; completions are SimpleNamespace objects shaped
like the SDK's ChatCompletion.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from config import ProviderConfig
from domain.exceptions import EmptyReplyError, ProviderError, ResponseParseError
from domain.models import WeatherResponse
from infrastructure.llm_client import OpenAIChatProvider, create_openai_client, structured_output_format

REQUEST = httpx.Request("POST", "http://test/v1/chat/completions")


def _tool_call(call_id="call_1", name="get_weather", arguments='{"city": "Tokyo"}', type_="function"):
    return SimpleNamespace(
        id=call_id,
        type=type_,
        function=SimpleNamespace(name=name, arguments=arguments)
    )


def _completion(content=None, tool_calls=None, refusal=None, model="gpt-5-test"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls, refusal=refusal)
    return SimpleNamespace(model=model, choices=[SimpleNamespace(message=message)])


def _empty_completion():
    return SimpleNamespace(model="gpt-5-test", choices=[])


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def provider(mock_client, provider_config):
    return OpenAIChatProvider(mock_client, provider_config)


@pytest.mark.asyncio
async def test_request_tool_call_converts_tool_calls(provider, mock_client, registry):
    mock_client.chat.completions.create.return_value = _completion(tool_calls=[_tool_call()])

    reply = await provider.request_tool_call(
        messages=[{"role": "user", "content": "Weather in Tokyo?"}],
        tools=registry.definitions(),
        tool_choice="required"
    )

    assert reply.model == "gpt-5-test"
    assert len(reply.tool_calls) == 1
    assert reply.tool_calls[0].call_id == "call_1"
    assert reply.tool_calls[0].name == "get_weather"
    assert reply.tool_calls[0].arguments == '{"city": "Tokyo"}'

    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["tool_choice"] == "required"
    assert kwargs["parallel_tool_calls"] is False
    assert kwargs["tools"] == registry.definitions()


@pytest.mark.asyncio
async def test_request_tool_call_skips_non_function_calls(provider, mock_client):
    mock_client.chat.completions.create.return_value = _completion(
        tool_calls=[_tool_call(type_="custom"), _tool_call(call_id="call_2")]
    )

    reply = await provider.request_tool_call(messages=[], tools=[], tool_choice="auto")

    assert [call.call_id for call in reply.tool_calls] == ["call_2"]


@pytest.mark.asyncio
async def test_request_tool_call_without_tool_calls(provider, mock_client):
    mock_client.chat.completions.create.return_value = _completion(content="It is sunny.")

    reply = await provider.request_tool_call(messages=[], tools=[], tool_choice="auto")

    assert reply.tool_calls == []
    assert reply.content == "It is sunny."


@pytest.mark.asyncio
async def test_empty_reply_is_retried_once(provider, mock_client):
    mock_client.chat.completions.create.side_effect = [
        _empty_completion(),
        _completion(tool_calls=[_tool_call()]),
    ]

    reply = await provider.request_tool_call(messages=[], tools=[], tool_choice="required")

    assert len(reply.tool_calls) == 1
    assert mock_client.chat.completions.create.await_count == 2


@pytest.mark.asyncio
async def test_empty_reply_after_retries_raises(provider, mock_client):
    mock_client.chat.completions.create.return_value = _empty_completion()

    with pytest.raises(EmptyReplyError):
        await provider.request_tool_call(messages=[], tools=[], tool_choice="required")

    assert mock_client.chat.completions.create.await_count == 2


@pytest.mark.asyncio
async def test_connection_error_becomes_provider_error(provider, mock_client):
    mock_client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)

    with pytest.raises(ProviderError):
        await provider.request_tool_call(messages=[], tools=[], tool_choice="required")

    assert mock_client.chat.completions.create.await_count == 2


@pytest.mark.asyncio
async def test_bad_request_is_not_retried(provider, mock_client):
    mock_client.chat.completions.create.side_effect = openai.BadRequestError(
        "bad request",
        response=httpx.Response(400, request=REQUEST),
        body=None
    )

    with pytest.raises(ProviderError):
        await provider.request_tool_call(messages=[], tools=[], tool_choice="required")

    assert mock_client.chat.completions.create.await_count == 1


@pytest.mark.asyncio
async def test_retries_can_be_disabled(mock_client):
    config = ProviderConfig(model="test-model", api_key="sk-test", max_retries=0)
    provider = OpenAIChatProvider(mock_client, config)
    mock_client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)

    with pytest.raises(ProviderError):
        await provider.request_tool_call(messages=[], tools=[], tool_choice="required")

    assert mock_client.chat.completions.create.await_count == 1


@pytest.mark.asyncio
async def test_request_structured_parses_response(provider, mock_client):
    content = '{"success": true, "weatherData": {"temperature": 22, "condition": "sunny", "remark": "Nice day."}, "error": null}'
    mock_client.chat.completions.create.return_value = _completion(content=content)

    response = await provider.request_structured(
        messages=[{"role": "user", "content": "Weather in Tokyo?"}],
        response_model=WeatherResponse,
        schema_name="WeatherResponse"
    )

    assert response.success is True
    assert response.weather_data.temperature == 22

    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == structured_output_format(WeatherResponse, "WeatherResponse")
    assert "tools" not in kwargs


@pytest.mark.asyncio
@pytest.mark.parametrize("completion", [
    _completion(content=None),
    _completion(content="not json"),
    _completion(content='{"success": true, "weatherData": null, "error": null}'),
    _completion(content='{"success": true, "weatherData": {"temperature": 99, "condition": "sunny", "remark": "x"}, "error": null}'),
    _completion(content=None, refusal="I can't help with that."),
])
async def test_request_structured_rejects_bad_answers(provider, mock_client, completion):
    mock_client.chat.completions.create.return_value = completion

    with pytest.raises(ResponseParseError):
        await provider.request_structured(messages=[], response_model=WeatherResponse, schema_name="WeatherResponse")


def test_structured_output_format_is_strict():
    response_format = structured_output_format(WeatherResponse, "WeatherResponse")

    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "WeatherResponse"
    assert response_format["json_schema"]["strict"] is True
    assert "weatherData" in response_format["json_schema"]["schema"]["properties"]


@pytest.mark.asyncio
async def test_close_closes_client(provider, mock_client):
    await provider.close()
    mock_client.close.assert_awaited_once()


def test_create_openai_client_settings():
    config = ProviderConfig(
        model="local-model",
        api_key="lm-studio",
        base_url="http://localhost:1234/v1",
        timeout_seconds=12.0
    )

    client = create_openai_client(config)

    assert str(client.base_url).startswith("http://localhost:1234/v1")
    assert client.api_key == "lm-studio"
    assert client.timeout == 12.0
    assert client.max_retries == 0

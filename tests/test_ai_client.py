from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from mentorjournal.ai import AIService
from mentorjournal.errors import AIServiceError
from mentorjournal.settings import Settings


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def openai_client() -> MagicMock:
    m = MagicMock()
    m.chat.completions.create = AsyncMock(return_value=_completion("  Hello there!  "))
    return m


@pytest.mark.asyncio
async def test_generate_sends_single_user_message(settings: Settings, openai_client: MagicMock) -> None:
    ai = AIService(settings, client=openai_client)
    assert await ai.generate("Greet the user") == "Hello there!"
    kwargs = openai_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [{"role": "user", "content": "Greet the user"}]
    assert kwargs["temperature"] == settings.temperature


@pytest.mark.asyncio
async def test_generate_wraps_api_errors(settings: Settings, openai_client: MagicMock) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    openai_client.chat.completions.create.side_effect = APIConnectionError(request=request)
    ai = AIService(settings, client=openai_client)
    with pytest.raises(AIServiceError):
        await ai.generate("hi")


@pytest.mark.asyncio
async def test_generate_rejects_empty_reply(settings: Settings, openai_client: MagicMock) -> None:
    openai_client.chat.completions.create.return_value = _completion(None)
    ai = AIService(settings, client=openai_client)
    with pytest.raises(AIServiceError, match="empty"):
        await ai.generate("hi")


def test_local_provider_uses_local_endpoint() -> None:
    local = Settings(ai_provider="local", openai_api_key=None, local_base_url="http://127.0.0.1:8080/v1")
    ai = AIService(local)
    assert ai.model == local.local_model
    assert local.use_compact_prompts is True
    with patch("mentorjournal.ai.client.AsyncOpenAI") as client_cls:
        ai._make_client()
        client_cls.assert_called_once_with(
            api_key="local",
            base_url="http://127.0.0.1:8080/v1",
            timeout=local.ai_request_timeout_seconds,
        )

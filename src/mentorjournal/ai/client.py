import logging

from openai import APIError, AsyncOpenAI

from ..errors import AIServiceError
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AIService:
    """Single-prompt text generation over an OpenAI-compatible chat API.

    The ``cloud`` provider talks to ``openai_base_url``; ``local`` talks to an
    OpenAI-compatible server on ``local_base_url`` (llama.cpp, Ollama, ...).
    """

    def __init__(self, settings: Settings | None = None, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def provider(self) -> str:
        return self._settings.ai_provider

    @property
    def model(self) -> str:
        if self.provider == "local":
            return self._settings.local_model
        return self._settings.model

    def _make_client(self) -> AsyncOpenAI:
        s = self._settings
        if s.ai_provider == "local":
            # Local servers ignore the key but the client requires one.
            return AsyncOpenAI(
                api_key=s.openai_api_key or "local",
                base_url=s.local_base_url,
                timeout=s.ai_request_timeout_seconds,
            )
        return AsyncOpenAI(
            api_key=s.openai_api_key,
            base_url=s.openai_base_url,
            timeout=s.ai_request_timeout_seconds,
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = self._make_client()
        return self._client

    async def generate(self, prompt: str) -> str:
        """Send prompt as a single user message and return the reply text.

        Raises:
            AIServiceError: on transport/API errors or an empty reply.
        """
        logger.debug("Generating with provider=%s model=%s", self.provider, self.model)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._settings.temperature,
            )
        except (APIError, TimeoutError, ConnectionError) as e:
            raise AIServiceError(f"AI request failed: {e}") from e

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise AIServiceError(f"Malformed AI response: {e}") from e

        content = content.strip()
        if not content:
            raise AIServiceError("AI returned an empty response")
        return content

"""OpenRouter text generation client (OpenAI-compatible API)."""

import logging

import openai
from openai import AsyncOpenAI

from auratune.config.settings import OpenRouterSettings
from auratune.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
    TransientUpstreamError,
)
from auratune.domain.ports import ITextGenerator

logger = logging.getLogger(__name__)


class OpenRouterClient(ITextGenerator):
    """Chat-completion client pointed at OpenRouter.

    One system message plus one user message in, trimmed text out. Retries on
    connection errors and 5xx are left to the OpenAI SDK (``max_retries``).
    """

    def __init__(
        self, settings: OpenRouterSettings, client: AsyncOpenAI | None = None
    ) -> None:
        """
        Initialize OpenRouter client.

        Args:
            settings: OpenRouter configuration
            client: Pre-built AsyncOpenAI client (tests inject a fake here)
        """
        self.settings = settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.is_configured:
                raise ConfigurationError(
                    "OPENROUTER_API_KEY is not configured. "
                    "Get a key at https://openrouter.ai/keys and set it in .env."
                )
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=self.settings.max_retries,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def generate(self, system_instruction: str, user_instruction: str) -> str:
        """
        Ask the model for a completion.

        Args:
            system_instruction: System prompt
            user_instruction: User prompt

        Returns:
            Trimmed response text (may be empty; callers decide what that means)

        Raises:
            ConfigurationError: No API key configured
            RateLimitExceededError: OpenRouter returned 429
            TransientUpstreamError: Connection failure or 5xx after SDK retries
            ExternalServiceError: Any other API error
        """
        client = self._get_client()
        try:
            completion = await client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": user_instruction},
                ],
                temperature=self.settings.temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimitExceededError(
                "OpenRouter rate limit exceeded. Please try again shortly."
            ) from e
        except openai.APIConnectionError as e:
            raise TransientUpstreamError(
                f"Could not reach OpenRouter: {e}"
            ) from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise TransientUpstreamError(
                    f"OpenRouter API error {e.status_code}", status_code=e.status_code
                ) from e
            raise ExternalServiceError(
                f"OpenRouter API error {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e

        if not completion.choices:
            logger.warning("OpenRouter returned no choices (model=%s)", self.settings.model)
            return ""
        content = completion.choices[0].message.content or ""
        return content.strip()

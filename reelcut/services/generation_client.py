"""Text-generation service access with rate-limit aware retries."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import openai
from openai import OpenAI

from ..domain.exceptions import GenerationFailureError, RateLimitedError
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini-2024-07-18"
REQUEST_TIMEOUT_SECONDS = 600.0


@dataclass(frozen=True)
class GenerationRequest:
    """Messages and sampling temperature for one generation call."""

    messages: list[dict] = field(default_factory=list)
    temperature: float = 0.2


class TextGenerationService(ABC):
    """Abstract text-generation collaborator."""

    @abstractmethod
    def complete(self, messages: list[dict], temperature: float) -> str:
        """Return generated text.

        Raises:
            RateLimitedError: When the service asks the caller to slow down
            GenerationFailureError: For any other failure
        """
        pass


def _retry_after_ms(error: Exception) -> int | None:
    """Read the retry delay advertised in an OpenAI error response."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None

    raw_ms = headers.get("retry-after-ms")
    if raw_ms is not None:
        try:
            return int(float(raw_ms))
        except (TypeError, ValueError):
            pass

    raw_seconds = headers.get("retry-after")
    if raw_seconds is not None:
        try:
            return int(float(raw_seconds) * 1000)
        except (TypeError, ValueError):
            pass

    return None


class OpenAIChatService(TextGenerationService):
    """Chat-completions backed implementation of TextGenerationService."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        client: OpenAI | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        if client is None:
            if not api_key:
                raise ValueError(
                    "OpenAI API key required. Set OPENAI_API_KEY environment "
                    "variable or pass api_key parameter."
                )
            # Retries are handled by GenerationClient
            client = OpenAI(api_key=api_key, max_retries=0)
        self.client = client
        self.model = model
        self.timeout = timeout

    def complete(self, messages: list[dict], temperature: float) -> str:
        try:
            result = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                timeout=self.timeout,
            )
        except openai.RateLimitError as e:
            raise RateLimitedError(_retry_after_ms(e), str(e)) from e
        except openai.OpenAIError as e:
            raise GenerationFailureError(str(e)) from e

        try:
            content = result.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise GenerationFailureError(f"Malformed completion response: {e}") from e

        if not content:
            raise GenerationFailureError("Empty completion response")
        return content


class GenerationClient:
    """Calls the text-generation service, retrying only on rate limits."""

    def __init__(
        self,
        service: TextGenerationService,
        retry_policy: RetryPolicy | None = None,
    ):
        self.service = service
        self.retry_policy = retry_policy or RetryPolicy()

    def generate(self, request: GenerationRequest) -> str:
        """Return the raw response text for a request.

        Raises:
            RateLimitedError: When rate limiting outlasts the retry policy
            GenerationFailureError: On any other service failure (not retried)
        """
        return self.retry_policy.run(
            lambda: self.service.complete(request.messages, request.temperature),
            description="Text generation",
        )

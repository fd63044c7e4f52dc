"""Completion provider client (OpenAI-compatible chat completions)."""
import logging
from typing import Optional

from openai import APIError, APITimeoutError, OpenAI

from chatdesk.config import Settings
from chatdesk.core.errors import CompletionProviderError

logger = logging.getLogger(__name__)


class CompletionGateway:
    """
    Single request/response completion call.

    Only the current prompt is sent; prior transcript is not forwarded.
    The SDK's built-in retries are disabled: one attempt, bounded by the
    configured timeout.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.model = settings.OPENAI_MODEL
        self.timeout = settings.OPENAI_TIMEOUT
        self._client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY or "missing",
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=0,
        )

    def complete(self, prompt: str) -> str:
        """
        Send prompt to the provider and return the assistant text verbatim.

        Raises:
            CompletionProviderError: on any provider failure or empty reply
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except APITimeoutError as e:
            logger.error(f"Completion provider timeout after {self.timeout}s: {e}")
            raise CompletionProviderError("Completion provider timed out") from e
        except APIError as e:
            logger.error(f"Completion provider error: {e}")
            raise CompletionProviderError(e.message or str(e)) from e

        if not response.choices:
            raise CompletionProviderError("Completion provider returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise CompletionProviderError("Completion provider returned no content")
        return content

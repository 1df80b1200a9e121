"""OpenAI transport implementation."""

import logging
from typing import TYPE_CHECKING, Iterator, Sequence

import openai

from gitgpt.errors import TransportError
from gitgpt.models import Turn
from gitgpt.token_counter import count_tokens_tiktoken

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)


class OpenAITransport:
    """Transport for OpenAI chat completion models.

    Streams the raw server-sent event body of a chat completion request so
    the same decoder handles replies and summarization requests alike.

    Example:
        >>> from openai import OpenAI
        >>> from gitgpt.backends.openai import OpenAITransport
        >>>
        >>> transport = OpenAITransport(OpenAI(), model="gpt-4o")
        >>> chunks = transport.send([Turn.user("Hello")])
    """

    def __init__(
        self,
        client: "OpenAI",
        model: str = "gpt-4o",
        temperature: float | None = None,
    ) -> None:
        """Initialize the OpenAI transport.

        Args:
            client: An initialized OpenAI client.
            model: Default model for requests.
            temperature: Sampling temperature (None for provider default).
        """
        self._client = client
        self._model = model
        self._temperature = temperature

    @property
    def model_name(self) -> str:
        """Return the default model name."""
        return self._model

    def send(self, turns: Sequence[Turn], model: str | None = None) -> Iterator[bytes]:
        """Send turns to OpenAI and stream the raw response body.

        Args:
            turns: Conversation turns to send.
            model: Model override.

        Yields:
            Raw chunks of the event stream.

        Raises:
            TransportError: On an HTTP error status or connection failure.
        """
        kwargs = {
            "model": model or self._model,
            "messages": [t.to_dict() for t in turns],
            "stream": True,
        }
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            with self._client.chat.completions.with_streaming_response.create(**kwargs) as response:
                yield from response.iter_bytes()
        except openai.APIStatusError as e:
            raise TransportError(e.message, status_code=e.status_code) from e
        except openai.APIError as e:
            raise TransportError(str(e)) from e
        except Exception as e:
            # Read errors from the HTTP client surface unwrapped mid-stream
            logger.debug("Stream from %s failed", kwargs["model"], exc_info=True)
            raise TransportError(str(e) or type(e).__name__) from e

    def count_tokens(self, turns: Sequence[Turn]) -> int:
        """Count tokens exactly using tiktoken."""
        return count_tokens_tiktoken(turns, self._model)

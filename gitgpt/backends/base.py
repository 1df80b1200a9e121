"""Base protocol for provider transports."""

from typing import Iterator, Protocol, Sequence, runtime_checkable

from gitgpt.models import Turn


@runtime_checkable
class Transport(Protocol):
    """Protocol that all provider transports must implement.

    A transport sends a full turn sequence to the provider and hands back
    the raw streamed response body. Decoding the body into text is the job
    of ``gitgpt.stream.StreamDecoder``.
    """

    def send(self, turns: Sequence[Turn], model: str | None = None) -> Iterator[bytes]:
        """Send turns to the provider and stream the raw response.

        Args:
            turns: Conversation turns to send, in order.
            model: Model override; the transport's default when None.

        Returns:
            Iterator over raw response chunks. The request is made lazily,
            and closing the iterator releases the connection.

        Raises:
            TransportError: If the provider rejects the request or the
                connection fails (raised while iterating).
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the default model name."""
        ...

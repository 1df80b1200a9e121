"""Decoding of server-sent event streams into text deltas.

Providers stream replies as ``data: {json}`` lines. Network chunks do not
line up with those lines, so the decoder keeps the last incomplete line in
a carry-over buffer until the rest of it arrives.
"""

import codecs
import json
import logging
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)


EVENT_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


def extract_delta(payload: Any) -> str | None:
    """Return ``choices[0].delta.content`` from a decoded frame, if present."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class StreamDecoder:
    """Turns a stream of byte (or str) chunks into text deltas.

    The decoder is lazy: each chunk is pulled from the source only when the
    caller asks for the next delta, and deltas come out in frame order.
    Frames that are not valid JSON are dropped and counted in
    ``dropped_frames``.

    Example:
        >>> decoder = StreamDecoder()
        >>> list(decoder.decode([b'data: {"choices":[{"delta":{"content":"Hi"}}]}\\n']))
        ['Hi']
    """

    def __init__(self) -> None:
        self.dropped_frames: int = 0

    def decode(self, chunks: Iterable[bytes | str]) -> Iterator[str]:
        """Yield the text deltas carried by ``chunks``.

        Args:
            chunks: Raw chunks as delivered by a transport.

        Yields:
            Non-empty text fragments.
        """
        utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""

        for chunk in chunks:
            if isinstance(chunk, bytes):
                buffer += utf8.decode(chunk)
            else:
                buffer += chunk

            lines = buffer.split("\n")
            buffer = lines.pop()

            for line in lines:
                content = self._decode_line(line)
                if content:
                    yield content

        # End of input terminates the stream; flush what is left
        buffer += utf8.decode(b"", final=True)
        content = self._decode_line(buffer)
        if content:
            yield content

    def _decode_line(self, line: str) -> str | None:
        trimmed = line.strip()
        if not trimmed or trimmed == DONE_SENTINEL:
            return None
        if not trimmed.startswith(EVENT_PREFIX):
            return None

        try:
            payload = json.loads(trimmed[len(EVENT_PREFIX):])
        except json.JSONDecodeError:
            self.dropped_frames += 1
            logger.debug("Dropping unparsable stream frame: %.80s", trimmed)
            return None

        return extract_delta(payload)


def decode_stream(chunks: Iterable[bytes | str]) -> Iterator[str]:
    """Decode ``chunks`` with a fresh ``StreamDecoder``."""
    return StreamDecoder().decode(chunks)

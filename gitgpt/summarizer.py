"""Summarization request for context compaction.

The summary is requested through the same transport and stream decoder as
normal replies, usually with a cheaper model.
"""

from typing import Sequence

from gitgpt.backends.base import Transport
from gitgpt.models import Turn
from gitgpt.stream import StreamDecoder


SUMMARIZATION_PROMPT = """You are a summarization assistant. Compress the following conversation history into a summary of about {target_tokens} tokens.
Keep key facts, decisions and code snippets. Use a bulleted list. Do not add any extra explanation."""


def render_transcript(turns: Sequence[Turn]) -> str:
    """Render turns as ``role: content`` blocks separated by blank lines."""
    return "\n\n".join(f"{t.role.value}: {t.content}" for t in turns)


def build_summarization_prompt(turns: Sequence[Turn], target_tokens: int) -> list[Turn]:
    """Build the two-message summarization request.

    Args:
        turns: Turns to summarize.
        target_tokens: Approximate length of the summary.

    Returns:
        A system instruction followed by the rendered transcript.
    """
    return [
        Turn.system(SUMMARIZATION_PROMPT.format(target_tokens=target_tokens)),
        Turn.user(render_transcript(turns)),
    ]


def summarize(
    transport: Transport,
    turns: Sequence[Turn],
    target_tokens: int,
    model: str | None = None,
) -> str:
    """Summarize turns and return the complete summary text.

    The streamed deltas are drained and concatenated before returning, so
    callers never see a partial summary.

    Raises:
        TransportError: If the summarization request fails.
    """
    prompt = build_summarization_prompt(turns, target_tokens)
    decoder = StreamDecoder()
    return "".join(decoder.decode(transport.send(prompt, model=model)))

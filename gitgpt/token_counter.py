"""Token counting utilities.

``estimate_tokens`` is the cheap heuristic used for every budgeting
decision. The tiktoken counter is exact for OpenAI models and is only
used for display.
"""

import math
import re
from functools import lru_cache
from typing import Iterable, Mapping

import tiktoken

from gitgpt.models import Turn


_CJK_PATTERN = re.compile(r"[\u4e00-\u9fff]")


def estimate_tokens(content: str | Iterable[Turn | Mapping[str, str]]) -> int:
    """Estimate the token cost of a text or a sequence of turns.

    CJK characters count 2 each; every other character counts 1/4,
    rounded up over the whole string. For a sequence, only the content of
    each turn is counted.

    Args:
        content: A string, or turns (``Turn`` or ``{"content": ...}`` mappings).

    Returns:
        Estimated cost, always >= 0.
    """
    if isinstance(content, str):
        cjk = len(_CJK_PATTERN.findall(content))
        other = len(content) - cjk
        return cjk * 2 + math.ceil(other / 4)

    total = 0
    for turn in content:
        text = turn.content if isinstance(turn, Turn) else turn.get("content", "")
        total += estimate_tokens(text or "")
    return total


@lru_cache(maxsize=None)
def _encoding_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_tokens_tiktoken(turns: Iterable[Turn], model: str = "gpt-4o") -> int:
    """Exact chat-format token count, shown next to the estimate in ``/stats``.

    Each turn costs its encoded role and content plus 3 framing tokens, and
    the reply priming adds 3 more.
    """
    encoding = _encoding_for(model)
    return 3 + sum(
        3 + len(encoding.encode(turn.role.value)) + len(encoding.encode(turn.content))
        for turn in turns
    )

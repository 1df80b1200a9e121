"""Context compaction policy.

Keeps the context sent to the provider within a soft budget by folding old
turns into a rolling summary at index 0. The most recent turns are always
kept verbatim, and a failed summarization never changes the history.

Result structure after compaction: [rolling_summary] + last keep_recent turns
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from gitgpt.backends.base import Transport
from gitgpt.config import CompactionConfig
from gitgpt.models import Turn, make_summary_turn
from gitgpt.summarizer import summarize
from gitgpt.token_counter import estimate_tokens

logger = logging.getLogger(__name__)


MIN_RATIO = 0.2
MAX_RATIO = 0.7
RATIO_SCALE_TOKENS = 5_000


def compression_ratio(old_tokens: int) -> float:
    """Fraction of ``old_tokens`` to remove; grows with the amount of history.

    ``old_tokens / 5000 * 0.5 + 0.2``, clamped to [0.2, 0.7].
    """
    ratio = old_tokens / RATIO_SCALE_TOKENS * 0.5 + MIN_RATIO
    return max(MIN_RATIO, min(MAX_RATIO, ratio))


class CompactionStatus(Enum):
    """Outcome of a compaction attempt."""
    SKIPPED = "skipped"
    COMPACTED = "compacted"
    FAILED = "failed"


@dataclass(frozen=True)
class CompactionNotice:
    """What a compaction removed, for display.

    Attributes:
        dropped_turn_count: Number of turns folded into the summary.
        estimated_tokens_saved: Estimated cost removed from the context.
    """
    dropped_turn_count: int
    estimated_tokens_saved: int


@dataclass(frozen=True)
class CompactionResult:
    """Result of ``CompactionPolicy.compact``.

    Attributes:
        status: What happened.
        turns: Turns to use from now on. The input turns, unchanged, unless
            status is COMPACTED.
        notice: Set when status is COMPACTED.
        reason: Why compaction was skipped or failed.
    """
    status: CompactionStatus
    turns: tuple[Turn, ...]
    notice: CompactionNotice | None = None
    reason: str = ""

    @property
    def compacted(self) -> bool:
        return self.status is CompactionStatus.COMPACTED


class CompactionPolicy:
    """Decides when to compact a turn sequence and performs the compaction.

    The policy is stateless: it is evaluated on every turn and either
    returns the turns unchanged or a new, shorter sequence.

    Example:
        >>> policy = CompactionPolicy(transport, CompactionConfig())
        >>> result = policy.compact(conversation.turns)
        >>> if result.compacted:
        ...     conversation = conversation.with_turns(result.turns)
    """

    def __init__(self, transport: Transport, config: CompactionConfig | None = None) -> None:
        """Initialize the policy.

        Args:
            transport: Transport used for the summarization request.
            config: Compaction settings. Defaults are used if None.
        """
        self._transport = transport
        self._config = config or CompactionConfig()

    @property
    def config(self) -> CompactionConfig:
        """The compaction configuration."""
        return self._config

    def should_compact(self, turns: Sequence[Turn]) -> bool:
        """Whether both the cost and the turn-count thresholds are met."""
        return (
            estimate_tokens(turns) >= self._config.threshold_tokens
            and len(turns) > self._config.min_turns
        )

    def compact(self, turns: Sequence[Turn], force: bool = False) -> CompactionResult:
        """Compact ``turns`` if the thresholds are met.

        Args:
            turns: The active turn sequence.
            force: Skip the cost threshold (the turn-count rules still apply).

        Returns:
            A CompactionResult. Never raises for summarization failures.
        """
        turns = tuple(turns)
        keep_recent = self._config.keep_recent

        if not force and estimate_tokens(turns) < self._config.threshold_tokens:
            return CompactionResult(CompactionStatus.SKIPPED, turns, reason="below token threshold")
        if len(turns) <= self._config.min_turns:
            return CompactionResult(CompactionStatus.SKIPPED, turns, reason="too few turns")

        # Existing summary is preserved and never summarized again
        previous = turns[0] if turns[0].is_summary else None
        start = 1 if previous else 0
        old = turns[start:-keep_recent]
        recent = turns[-keep_recent:]

        if len(old) < 2:
            return CompactionResult(CompactionStatus.SKIPPED, turns, reason="not enough old turns")

        old_tokens = estimate_tokens(old)
        ratio = compression_ratio(old_tokens)
        target_tokens = math.floor(old_tokens * (1 - ratio))

        try:
            summary = summarize(
                self._transport,
                old,
                target_tokens,
                model=self._config.summary_model,
            )
        except Exception as e:
            logger.debug("Compaction failed, keeping history unchanged", exc_info=True)
            return CompactionResult(CompactionStatus.FAILED, turns, reason=str(e) or type(e).__name__)

        if not summary.strip():
            logger.debug("Compaction returned an empty summary, keeping history unchanged")
            return CompactionResult(CompactionStatus.FAILED, turns, reason="empty summary")

        notice = CompactionNotice(
            dropped_turn_count=len(old),
            estimated_tokens_saved=math.floor(old_tokens * ratio),
        )
        logger.info(
            "Compacted %d turns (~%d tokens, ratio %.2f)",
            notice.dropped_turn_count, old_tokens, ratio,
        )

        return CompactionResult(
            CompactionStatus.COMPACTED,
            (make_summary_turn(summary, previous),) + recent,
            notice=notice,
        )

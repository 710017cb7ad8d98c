from __future__ import annotations
"""
Fallback retrieval over the candidate sources.

Tiers are tried strictly in order (dense -> lexical -> substring) and the
first tier that yields at least one candidate wins.  Scores from different
tiers live on different scales, so results are never merged across tiers.

Failures are absorbed here: an adapter that times out or errors is logged
and counts as "no candidates" for fallthrough purposes.
"""

import time
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from .adapters import CandidateSource
from .config import RetrievalSettings
from .pipeline_types import (
    TIER_NONE,
    TIER_ORDER,
    AdapterResult,
    SourceTier,
    TierOutcome,
)


def tier_plan(target_count: int, settings: RetrievalSettings) -> List[Tuple[SourceTier, int]]:
    """Fetch size per tier, in priority order."""
    multipliers = {
        SourceTier.DENSE: settings.dense_fetch_multiplier,
        SourceTier.LEXICAL: settings.lexical_fetch_multiplier,
        SourceTier.SUBSTRING: settings.substring_fetch_multiplier,
    }
    return [(tier, multipliers[tier] * target_count) for tier in TIER_ORDER]


class FallbackOrchestrator:
    def __init__(
        self,
        sources: Mapping[SourceTier, CandidateSource],
        settings: RetrievalSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        missing = [t.value for t in TIER_ORDER if t not in sources]
        if missing:
            raise ValueError(f"Missing candidate sources for tiers: {missing}")
        self.sources: Dict[SourceTier, CandidateSource] = dict(sources)
        self.settings = settings
        self._clock = clock

    def run(
        self,
        query: str,
        scope_key: Optional[str],
        target_count: int,
        deadline: Optional[float] = None,
    ) -> TierOutcome:
        """
        Returns the first non-empty tier's candidates, or an empty ``none``
        outcome.  ``deadline`` is a ``clock()`` value; once passed no further
        tier is started, and the time left is handed to the in-flight call.
        """
        attempts: List[AdapterResult] = []
        if target_count <= 0:
            return TierOutcome(tier_used=TIER_NONE, candidates=[], attempts=attempts)

        for tier, limit in tier_plan(target_count, self.settings):
            now = self._clock()
            remaining = None if deadline is None else deadline - now
            if remaining is not None and remaining <= 0:
                logger.warning(
                    "Retrieval budget exhausted before tier={} query='{}'; returning no evidence",
                    tier.value, query,
                )
                return TierOutcome(tier_used=TIER_NONE, candidates=[], attempts=attempts, cancelled=True)

            result = self.sources[tier].search(query, scope_key, limit, timeout_s=remaining)
            elapsed_ms = (self._clock() - now) * 1000.0
            attempts.append(result)

            if not result.ok:
                logger.warning(
                    "Tier {} failed ({}) for query='{}' scope={}: {}",
                    tier.value, result.failure.kind.value, query, scope_key, result.failure.message,
                )
                continue

            logger.info(
                "Tier {} returned {} candidates (limit={}, {:.0f} ms)",
                tier.value, len(result.candidates), limit, elapsed_ms,
            )
            if result.usable:
                return TierOutcome(tier_used=tier.value, candidates=list(result.candidates), attempts=attempts)

        logger.info("All tiers exhausted for query='{}' scope={}", query, scope_key)
        return TierOutcome(tier_used=TIER_NONE, candidates=[], attempts=attempts)

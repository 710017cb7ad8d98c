from __future__ import annotations

"""
End-to-end retrieval: fallback tiers -> MMR -> ranking -> confidence signals.
"""

import time
from typing import Callable, List, Mapping, Optional

from loguru import logger

from .adapters import CandidateSource, build_sources
from .config import (
    ResultItem,
    RetrievalResponse,
    RetrievalSettings,
    SignalsModel,
)
from .embedding import EmbeddingClient
from .errors import InvalidQueryError
from .mmr import select_diverse
from .normalize import normalize_query
from .pipeline_types import Candidate, RankedResult, Signals, SourceTier, TierOutcome
from .retrieval import FallbackOrchestrator
from .signals import compute_signals
from .store import DocumentStore, SupabaseStore


def rank(candidates: List[Candidate]) -> List[RankedResult]:
    return [RankedResult(candidate=c, rank=i) for i, c in enumerate(candidates, start=1)]


def to_response(ranked: List[RankedResult], signals: Signals, tier_used: str) -> RetrievalResponse:
    return RetrievalResponse(
        results=[
            ResultItem(
                id=r.candidate.id,
                content=r.candidate.content,
                score=r.candidate.relevance_score,
                locator=dict(r.candidate.locator),
                source_tier=r.candidate.source_tier.value,
                rank=r.rank,
            )
            for r in ranked
        ],
        signals=SignalsModel(
            top_score=signals.top_score,
            avg_top3=signals.avg_top3,
            strong_hit_count=signals.strong_hit_count,
            is_weak=signals.is_weak,
        ),
        tier_used=tier_used,
    )


class RetrievalEngine:
    def __init__(
        self,
        sources: Mapping[SourceTier, CandidateSource],
        settings: RetrievalSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.orchestrator = FallbackOrchestrator(sources, settings, clock=clock)
        self._clock = clock

    def diversify(self, candidates: List[Candidate], target_count: int) -> List[Candidate]:
        """MMR when the pool is big enough, otherwise plain truncation."""
        if len(candidates) > target_count and len(candidates) >= self.settings.mmr_min_candidates:
            return select_diverse(candidates, self.settings.mmr_lambda, target_count)
        return list(candidates[:target_count])

    def retrieve(
        self,
        query: str,
        scope_key: Optional[str] = None,
        target_count: Optional[int] = None,
    ) -> RetrievalResponse:
        cleaned = normalize_query(query)
        if not cleaned:
            raise InvalidQueryError("Query must be non-empty")
        k = self.settings.target_count if target_count is None else int(target_count)

        started = self._clock()
        outcome: TierOutcome = self.orchestrator.run(
            cleaned,
            scope_key,
            k,
            deadline=started + self.settings.request_budget_s,
        )

        ranked = rank(self.diversify(outcome.candidates, k))
        signals = compute_signals(
            ranked,
            strong_hit_threshold=self.settings.min_top_score,
            low_confidence_marker=self.settings.low_confidence_marker,
        )

        logger.info(
            "retrieve: query='{}' scope={} tier={} candidates={} -> {} results "
            "(top={:.3f} avg3={:.3f} strong={} weak={}) in {:.0f} ms",
            cleaned, scope_key, outcome.tier_used, len(outcome.candidates), len(ranked),
            signals.top_score, signals.avg_top3, signals.strong_hit_count, signals.is_weak,
            (self._clock() - started) * 1000.0,
        )
        return to_response(ranked, signals, outcome.tier_used)


def build_engine(
    settings: RetrievalSettings,
    store: Optional[DocumentStore] = None,
    embedder: Optional[EmbeddingClient] = None,
) -> RetrievalEngine:
    """Wire the production clients; tests pass their own store/embedder."""
    if store is None:
        store = SupabaseStore(timeout_s=settings.store_timeout_s)
    if embedder is None:
        embedder = EmbeddingClient(timeout_s=settings.embed_timeout_s)
    return RetrievalEngine(build_sources(store, embedder, settings), settings)

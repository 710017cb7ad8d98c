from __future__ import annotations

"""
Candidate sources: the three retrieval tiers behind one interface.

Each source turns any exception from its provider into an ``AdapterResult``
failure so the orchestrator can fall through without a try/except of its
own.  Zero matches is a successful, empty result.  ``timeout_s`` is the
remaining request budget and is handed down to every provider call.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional

from loguru import logger

from .config import RetrievalSettings
from .embedding import EmbeddingClient
from .errors import ProviderError, ProviderTimeout
from .normalize import dense_query_text
from .pipeline_types import AdapterResult, Candidate, FailureKind, SourceTier
from .store import DocumentStore


class CandidateSource(ABC):
    tier: SourceTier

    def __init__(self, store: DocumentStore, settings: RetrievalSettings):
        self.store = store
        self.settings = settings

    @abstractmethod
    def _search(
        self, query: str, scope_key: Optional[str], limit: int, timeout_s: Optional[float]
    ) -> List[Candidate]:
        ...

    def search(
        self, query: str, scope_key: Optional[str], limit: int, timeout_s: Optional[float] = None
    ) -> AdapterResult:
        if limit <= 0:
            return AdapterResult(tier=self.tier)
        try:
            found = self._search(query, scope_key, limit, timeout_s)
        except ProviderTimeout as e:
            return AdapterResult.failed(self.tier, FailureKind.TIMEOUT, str(e))
        except ProviderError as e:
            return AdapterResult.failed(self.tier, FailureKind.PROVIDER_ERROR, str(e))
        except Exception as e:
            logger.opt(exception=e).debug("Unexpected {} adapter error", self.tier.value)
            return AdapterResult.failed(self.tier, FailureKind.PROVIDER_ERROR, f"{type(e).__name__}: {e}")
        # keep the single-tier invariant even if a store mislabels rows
        found = [c if c.source_tier is self.tier else replace(c, source_tier=self.tier) for c in found]
        return AdapterResult(tier=self.tier, candidates=found[:limit])


class DenseSource(CandidateSource):
    """Embed the query, then nearest-neighbour search above a similarity floor."""

    tier = SourceTier.DENSE

    def __init__(self, store: DocumentStore, embedder: EmbeddingClient, settings: RetrievalSettings):
        super().__init__(store, settings)
        self.embedder = embedder

    def _search(self, query, scope_key, limit, timeout_s):
        text = dense_query_text(query, self.settings.embed_max_input_chars)
        started = time.monotonic()
        vector = self.embedder.embed(text, timeout_s=timeout_s)
        logger.debug("Dense query embedded ({} dims, {} chars)", len(vector), len(text))
        if timeout_s is not None:
            # the vector search only gets what the embedding left over
            timeout_s -= time.monotonic() - started
            if timeout_s <= 0:
                raise ProviderTimeout("embeddings", "request budget spent on embedding")
        found = self.store.vector_search(
            vector, scope_key, limit, self.settings.dense_min_score, timeout_s=timeout_s
        )
        return [c for c in found if c.relevance_score >= self.settings.dense_min_score]


class LexicalSource(CandidateSource):
    tier = SourceTier.LEXICAL

    def _search(self, query, scope_key, limit, timeout_s):
        return self.store.lexical_search(query, scope_key, limit, timeout_s=timeout_s)


class SubstringSource(CandidateSource):
    """Last resort: containment match, every hit gets the same low score."""

    tier = SourceTier.SUBSTRING

    def _search(self, query, scope_key, limit, timeout_s):
        found = self.store.substring_search(query, scope_key, limit, timeout_s=timeout_s)
        fixed = self.settings.substring_fixed_score
        return [replace(c, relevance_score=fixed) for c in found]


def build_sources(
    store: DocumentStore,
    embedder: EmbeddingClient,
    settings: RetrievalSettings,
) -> Dict[SourceTier, CandidateSource]:
    return {
        SourceTier.DENSE: DenseSource(store, embedder, settings),
        SourceTier.LEXICAL: LexicalSource(store, settings),
        SourceTier.SUBSTRING: SubstringSource(store, settings),
    }

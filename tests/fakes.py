"""Hand-written collaborators shared by the retrieval tests."""

from typing import List, Optional

from manual_search.config import RetrievalSettings
from manual_search.pipeline_types import Candidate, SourceTier
from manual_search.store import DocumentStore


def make_candidates(scores, tier=SourceTier.DENSE, contents=None) -> List[Candidate]:
    out = []
    for i, s in enumerate(scores):
        content = contents[i] if contents else f"word{i}a word{i}b word{i}c"
        out.append(
            Candidate(
                id=f"{tier.value}-{i}",
                content=content,
                relevance_score=s,
                source_tier=tier,
                locator={"manual_id": "m1", "page_start": i + 1, "page_end": i + 1},
            )
        )
    return out


class FakeStore(DocumentStore):
    """
    Returns canned candidates per primitive and records every call.
    A value that is an Exception instance is raised instead.
    """

    def __init__(self, dense=None, lexical=None, substring=None):
        self.responses = {"dense": dense or [], "lexical": lexical or [], "substring": substring or []}
        self.calls = {"dense": [], "lexical": [], "substring": []}

    def _answer(self, name):
        val = self.responses[name]
        if isinstance(val, Exception):
            raise val
        return list(val)

    def vector_search(self, vector, scope_key, limit, min_score, timeout_s=None):
        self.calls["dense"].append(
            {"vector": vector, "scope_key": scope_key, "limit": limit, "min_score": min_score, "timeout_s": timeout_s}
        )
        return self._answer("dense")[:limit]

    def lexical_search(self, query, scope_key, limit, timeout_s=None):
        self.calls["lexical"].append({"query": query, "scope_key": scope_key, "limit": limit, "timeout_s": timeout_s})
        return self._answer("lexical")[:limit]

    def substring_search(self, query, scope_key, limit, timeout_s=None):
        self.calls["substring"].append({"query": query, "scope_key": scope_key, "limit": limit, "timeout_s": timeout_s})
        return self._answer("substring")[:limit]


class FakeEmbedder:
    def __init__(self, vector=None, error: Optional[Exception] = None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.inputs: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def embed(self, text, timeout_s=None):
        self.inputs.append(text)
        self.timeouts.append(timeout_s)
        if self.error is not None:
            raise self.error
        return list(self.vector)


class StepClock:
    """Deterministic clock that advances ``step`` seconds per reading."""

    def __init__(self, start=0.0, step=0.0):
        self.now = start
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


def settings(**overrides) -> RetrievalSettings:
    base = dict(
        mmr_lambda=0.7,
        target_count=6,
        dense_min_score=0.3,
        substring_fixed_score=0.5,
        min_top_score=0.62,
        weak_bundle_avg=0.58,
        min_strong_hits=2,
        mmr_min_candidates=0,
        request_budget_s=20.0,
        low_confidence_marker="WARN:",
    )
    base.update(overrides)
    return RetrievalSettings(**base)

"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional


class SourceTier(str, Enum):
    """Retrieval tiers in fallback priority order."""

    DENSE = "dense"
    LEXICAL = "lexical"
    SUBSTRING = "substring"


TIER_ORDER = (SourceTier.DENSE, SourceTier.LEXICAL, SourceTier.SUBSTRING)
TIER_NONE = "none"


@dataclass(frozen=True)
class Candidate:
    """One retrieved passage with its tier-local relevance score."""

    id: str
    content: str
    relevance_score: float
    source_tier: SourceTier
    locator: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedResult:
    """A candidate pinned to its 1-based rank after reranking."""

    candidate: Candidate
    rank: int

    @property
    def score(self) -> float:
        return self.candidate.relevance_score

    @property
    def content(self) -> str:
        return self.candidate.content


@dataclass(frozen=True)
class Signals:
    top_score: float
    avg_top3: float
    strong_hit_count: int
    is_weak: bool


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class AdapterFailure:
    """Why a tier produced nothing; logged, never raised."""

    tier: SourceTier
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class AdapterResult:
    """Either a candidate list (possibly empty) or a failure."""

    tier: SourceTier
    candidates: List[Candidate] = field(default_factory=list)
    failure: Optional[AdapterFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def usable(self) -> bool:
        return self.ok and len(self.candidates) > 0

    @classmethod
    def failed(cls, tier: SourceTier, kind: FailureKind, message: str) -> "AdapterResult":
        return cls(tier=tier, failure=AdapterFailure(tier=tier, kind=kind, message=message))


@dataclass(frozen=True)
class TierOutcome:
    """What the fallback orchestrator settled on for one query."""

    tier_used: str
    candidates: List[Candidate]
    attempts: List[AdapterResult]
    cancelled: bool = False

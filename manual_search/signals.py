from __future__ import annotations

"""
Confidence signals over a ranked result list.

``compute_signals`` is the contract: three raw numbers plus ``is_weak``,
which is true only for an empty list or when some passage carries the
store's low-confidence marker.  How the numeric thresholds feed a final
strong/weak call is left to the caller; ``threshold_weak`` is the policy
the answer-shaping stage has used so far.
"""

from typing import Sequence

import numpy as np

from .config import LOW_CONFIDENCE_MARKER, MIN_TOP_SCORE, RetrievalSettings
from .pipeline_types import RankedResult, Signals


def compute_signals(
    results: Sequence[RankedResult],
    strong_hit_threshold: float = MIN_TOP_SCORE,
    low_confidence_marker: str = LOW_CONFIDENCE_MARKER,
) -> Signals:
    if not results:
        return Signals(top_score=0.0, avg_top3=0.0, strong_hit_count=0, is_weak=True)

    scores = np.asarray([r.score for r in results], dtype="float64")
    top_score = float(scores[0])
    avg_top3 = float(scores[:3].mean())
    strong_hits = int((scores >= strong_hit_threshold).sum())

    flagged = bool(low_confidence_marker) and any(low_confidence_marker in r.content for r in results)

    return Signals(
        top_score=top_score,
        avg_top3=avg_top3,
        strong_hit_count=strong_hits,
        is_weak=flagged,
    )


def threshold_weak(signals: Signals, settings: RetrievalSettings) -> bool:
    """Numeric weak test: any of top score, top-3 mean or strong-hit count under its floor."""
    return (
        signals.top_score < settings.min_top_score
        or signals.avg_top3 < settings.weak_bundle_avg
        or signals.strong_hit_count < settings.min_strong_hits
    )

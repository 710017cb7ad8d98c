from __future__ import annotations
from typing import FrozenSet, List, Sequence

from loguru import logger

from .config import MMR_LAMBDA
from .normalize import simple_tokenize
from .pipeline_types import Candidate


def token_set(text: str) -> FrozenSet[str]:
    return frozenset(simple_tokenize(text))


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """|A ∩ B| / |A ∪ B|; two empty sets count as dissimilar."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def text_similarity(text1: str, text2: str) -> float:
    return jaccard(token_set(text1), token_set(text2))


def select_diverse(
    candidates: Sequence[Candidate],
    lambda_: float = MMR_LAMBDA,
    k: int = 6,
) -> List[Candidate]:
    """
    Select up to ``k`` candidates using Maximal Marginal Relevance (MMR).

    Parameters
    ----------
    candidates :
        Over-fetched candidates from a single tier.
    lambda_ :
        Tradeoff between relevance and diversity.  ``1.0`` = relevance only.
    k :
        Maximum number of candidates to return.

    Returns
    -------
    List[Candidate]
        Selected candidates in selection order.  When ``len(candidates) <= k``
        the input is returned unchanged, in its original order.
    """
    if k <= 0 or not candidates:
        return []
    if len(candidates) <= k:
        return list(candidates)

    if lambda_ < 0.0 or lambda_ > 1.0:
        logger.warning("MMR lambda={} outside [0, 1]; clamping", lambda_)
        lambda_ = min(1.0, max(0.0, lambda_))

    # relevance order, stable on ties
    pool = sorted(candidates, key=lambda c: -c.relevance_score)
    tokens = [token_set(c.content) for c in pool]

    selected_idx: List[int] = [0]
    # running max similarity of each pool entry to the selected set
    max_sim = [0.0] * len(pool)
    remaining = list(range(1, len(pool)))

    while len(selected_idx) < k and remaining:
        last = tokens[selected_idx[-1]]
        best_i = -1
        best_mmr = float("-inf")

        for i in remaining:
            sim = jaccard(tokens[i], last)
            if sim > max_sim[i]:
                max_sim[i] = sim
            mmr_score = lambda_ * pool[i].relevance_score - (1.0 - lambda_) * max_sim[i]
            if mmr_score > best_mmr:
                best_mmr = mmr_score
                best_i = i

        selected_idx.append(best_i)
        remaining.remove(best_i)

    logger.debug("MMR selected {} of {} candidates (lambda={})", len(selected_idx), len(pool), lambda_)
    return [pool[i] for i in selected_idx]

import pandas as pd

from manual_search.config import RetrievalResponse, SignalsModel
from manual_search.eval import (
    build_gold_sets,
    mean_recall_at_k,
    recall_at_k,
    run_queries,
    tier_distribution,
    weak_rate,
)


def _resp(tier, weak):
    return RetrievalResponse(
        results=[],
        signals=SignalsModel(top_score=0.0, avg_top3=0.0, strong_hit_count=0, is_weak=weak),
        tier_used=tier,
    )


def test_recall_at_k_basic():
    gold = {"a", "b", "c"}
    preds = ["x", "b", "c", "y"]
    r = recall_at_k(gold, preds, k=3)
    # in top-3 preds we have b and c -> 2/3
    assert abs(r - (2 / 3)) < 1e-6


def test_mean_recall_at_k_multiple_queries():
    gold = {
        "q1": {"a", "b"},
        "q2": {"x"},
    }
    preds = {
        "q1": ["a", "z"],
        "q2": ["y", "x"],
    }
    # q1: 1/2, q2: 1/1 -> mean = 0.75
    mr = mean_recall_at_k(gold, preds, k=2)
    assert abs(mr - 0.75) < 1e-6


def test_gold_sets_collapse_whitespace_variants():
    df = pd.DataFrame({"query": ["reset  the machine", "reset the\nmachine"], "expected_id": ["c1", "c2"]})
    assert build_gold_sets(df) == {"reset the machine": {"c1", "c2"}}


def test_tier_distribution_and_weak_rate():
    responses = [_resp("dense", False), _resp("dense", False), _resp("lexical", True), _resp("none", True)]
    assert tier_distribution(responses) == {"dense": 0.5, "lexical": 0.25, "none": 0.25}
    assert weak_rate(responses) == 0.5
    assert tier_distribution([]) == {}
    assert weak_rate([]) == 0.0


def test_run_queries_once_per_distinct_query():
    df = pd.DataFrame(
        {
            "query": ["reset the machine", "reset  the machine", "coin jam"],
            "expected_id": ["c1", "c2", "c3"],
            "scope_key": ["m1", "m2", None],
        }
    )
    calls = []

    def fake_retrieve(query, scope_key, target_count):
        calls.append((query, scope_key, target_count))
        return _resp("dense", False)

    out = run_queries(df, fake_retrieve, target_count=6)

    assert set(out) == {"reset the machine", "coin jam"}
    assert calls == [("reset the machine", "m1", 6), ("coin jam", None, 6)]

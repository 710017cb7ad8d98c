from manual_search.pipeline_types import Candidate, RankedResult, Signals, SourceTier
from manual_search.signals import compute_signals, threshold_weak

from fakes import settings


def _ranked(scores, contents=None):
    out = []
    for i, s in enumerate(scores):
        content = contents[i] if contents else f"passage {i}"
        c = Candidate(id=str(i), content=content, relevance_score=s, source_tier=SourceTier.DENSE)
        out.append(RankedResult(candidate=c, rank=i + 1))
    return out


def test_empty_results_are_weak_with_zero_signals():
    sig = compute_signals([], 0.62)
    assert sig == Signals(top_score=0.0, avg_top3=0.0, strong_hit_count=0, is_weak=True)


def test_top_avg_and_strong_hits():
    sig = compute_signals(_ranked([0.9, 0.7, 0.5, 0.65]), strong_hit_threshold=0.62)
    assert sig.top_score == 0.9
    assert abs(sig.avg_top3 - 0.7) < 1e-9
    # counted over all results, not only the top 3
    assert sig.strong_hit_count == 3
    assert sig.is_weak is False


def test_avg_top3_with_fewer_than_three_results():
    sig = compute_signals(_ranked([0.8, 0.4]), 0.62)
    assert abs(sig.avg_top3 - 0.6) < 1e-9


def test_avg_top3_never_exceeds_top_score_for_rank_ordered_scores():
    for scores in ([0.5], [0.9, 0.9, 0.9], [0.91, 0.3, 0.2, 0.9], [1.0, 0.0]):
        ordered = sorted(scores, reverse=True)
        sig = compute_signals(_ranked(ordered), 0.62)
        assert sig.avg_top3 <= sig.top_score


def test_threshold_is_inclusive():
    sig = compute_signals(_ranked([0.62, 0.61]), strong_hit_threshold=0.62)
    assert sig.strong_hit_count == 1


def test_low_confidence_marker_marks_bundle_weak():
    sig = compute_signals(
        _ranked([0.95, 0.9], contents=["all good", "WARN: OCR quality low on this page"]),
        0.62,
    )
    assert sig.is_weak is True
    assert sig.strong_hit_count == 2


def test_numeric_scores_alone_do_not_make_bundle_weak():
    sig = compute_signals(_ranked([0.1, 0.05]), 0.62)
    assert sig.is_weak is False


def test_threshold_weak_policy():
    cfg = settings(min_top_score=0.62, weak_bundle_avg=0.58, min_strong_hits=2)
    strong = Signals(top_score=0.9, avg_top3=0.8, strong_hit_count=3, is_weak=False)
    assert threshold_weak(strong, cfg) is False
    assert threshold_weak(Signals(0.6, 0.8, 3, False), cfg) is True
    assert threshold_weak(Signals(0.9, 0.5, 3, False), cfg) is True
    assert threshold_weak(Signals(0.9, 0.8, 1, False), cfg) is True

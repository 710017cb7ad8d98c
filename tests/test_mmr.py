from manual_search.mmr import jaccard, select_diverse, text_similarity, token_set
from manual_search.pipeline_types import Candidate, SourceTier


def _c(cid, score, content):
    return Candidate(id=cid, content=content, relevance_score=score, source_tier=SourceTier.DENSE)


def test_small_input_is_returned_unchanged_in_order():
    cands = [_c("a", 0.2, "x"), _c("b", 0.9, "y"), _c("c", 0.5, "z")]
    assert select_diverse(cands, 0.7, k=3) == cands
    assert select_diverse(cands, 0.7, k=10) == cands


def test_empty_and_non_positive_k():
    assert select_diverse([], 0.7, k=6) == []
    cands = [_c("a", 0.9, "x y")]
    assert select_diverse(cands, 0.7, k=0) == []
    assert select_diverse(cands, 0.7, k=-1) == []


def test_single_candidate_returned_as_is():
    cands = [_c("a", 0.9, "reset the board")]
    assert select_diverse(cands, 0.7, k=1) == cands


def test_prefers_dissimilar_over_near_duplicate():
    seed = _c("a", 0.9, "reset the control board power supply")
    dup = _c("b", 0.8, "reset the control board power supply")
    other = _c("c", 0.8, "replace the ticket dispenser motor")
    assert text_similarity(seed.content, dup.content) >= 0.9

    selected = select_diverse([seed, dup, other], 0.7, k=2)

    assert [c.id for c in selected] == ["a", "c"]


def test_seed_is_highest_relevance_even_if_not_first():
    cands = [_c("low", 0.1, "one"), _c("high", 0.95, "two"), _c("mid", 0.5, "three")]
    selected = select_diverse(cands, 0.7, k=2)
    assert selected[0].id == "high"
    assert selected[1].id == "mid"


def test_ties_keep_original_order():
    cands = [_c("a", 0.5, "alpha"), _c("b", 0.5, "beta"), _c("c", 0.5, "gamma")]
    selected = select_diverse(cands, 0.7, k=2)
    assert [c.id for c in selected] == ["a", "b"]


def test_lambda_one_is_pure_relevance():
    cands = [
        _c("a", 0.9, "same words here"),
        _c("b", 0.8, "same words here"),
        _c("c", 0.1, "totally different text"),
    ]
    selected = select_diverse(cands, 1.0, k=2)
    assert [c.id for c in selected] == ["a", "b"]


def test_out_of_range_lambda_is_clamped():
    cands = [
        _c("a", 0.9, "same words here"),
        _c("b", 0.8, "same words here"),
        _c("c", 0.1, "totally different text"),
    ]
    assert select_diverse(cands, 5.0, k=2) == select_diverse(cands, 1.0, k=2)


def test_jaccard_tokenizes_on_punctuation_and_case():
    a = token_set("Check the J14 harness, then +12V.")
    b = token_set("check THE j14 harness")
    assert jaccard(a, b) == 4 / 6
    assert jaccard(frozenset(), frozenset()) == 0.0

import pytest
from pydantic import ValidationError

from manual_search.config import (
    HealthResponse,
    ResultItem,
    RetrievalResponse,
    RetrievalSettings,
    RetrieveRequest,
    SignalsModel,
)


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("RETRIEVAL_MIN_TOP_SCORE", "0.7")
    monkeypatch.setenv("RETRIEVAL_WEAK_AVG", "0.5")
    monkeypatch.setenv("RETRIEVAL_MIN_STRONG", "3")
    monkeypatch.setenv("MMR_LAMBDA", "0.55")

    s = RetrievalSettings.from_env()

    assert s.min_top_score == 0.7
    assert s.weak_bundle_avg == 0.5
    assert s.min_strong_hits == 3
    assert s.mmr_lambda == 0.55


def test_settings_are_immutable():
    s = RetrievalSettings()
    with pytest.raises(ValidationError):
        s.min_top_score = 0.1


def test_settings_reject_bad_multiplier():
    with pytest.raises(ValidationError):
        RetrievalSettings(dense_fetch_multiplier=0)


def test_retrieve_request_bounds():
    assert RetrieveRequest(query="reset").target_count >= 1
    with pytest.raises(ValidationError):
        RetrieveRequest(query="")
    with pytest.raises(ValidationError):
        RetrieveRequest(query="reset", target_count=0)


def test_retrieval_response_structure():
    item = ResultItem(id="c1", content="Gate motor", score=0.8, source_tier="dense", rank=1)
    resp = RetrievalResponse(
        results=[item],
        signals=SignalsModel(top_score=0.8, avg_top3=0.8, strong_hit_count=1, is_weak=False),
        tier_used="dense",
    )
    assert resp.results[0].locator == {}
    assert resp.model_dump()["signals"]["strong_hit_count"] == 1


def test_health_response():
    health = HealthResponse(status="healthy")
    assert health.status == "healthy"

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
EVAL_QUERIES_PATH = DATA_DIR / "eval_queries.csv"


# ---------------------------
# Providers
# ---------------------------

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_PROJECT_ID = os.getenv("OPENAI_PROJECT_ID", "")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# store RPC names
RPC_VECTOR_SEARCH = "match_chunks_improved"
RPC_LEXICAL_SEARCH = "match_chunks_text"
RPC_SUBSTRING_SEARCH = "simple_search"


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = 3.0
EMBED_READ_TIMEOUT = float(os.getenv("EMBED_READ_TIMEOUT", "8.0"))
STORE_READ_TIMEOUT = float(os.getenv("STORE_READ_TIMEOUT", "6.0"))

HTTP_USER_AGENT = "manual-search/1.0"

# whole-request budget; checked before each tier
REQUEST_BUDGET_S = float(os.getenv("REQUEST_BUDGET_S", "20.0"))


# ---------------------------
# Text processing
# ---------------------------

# text-embedding-3-small accepts 8191 tokens; chars are a cheap proxy
EMBED_MAX_INPUT_CHARS = 8_000
MAX_QUERY_CHARS = 2_000

# Symptom expansion rules: pattern -> synonyms appended to the dense query
QUERY_EXPANSIONS: List[Tuple[str, List[str]]] = [
    (
        r"balls?.*?(won'?t|wont|do'?nt|dont).*?(come\s*out|dispense|release)|balls?.*?(stuck|jam)",
        [
            "ball gate",
            "ball release",
            "gate motor",
            "gate open sensor",
            "gate closed sensor",
            "ball diverter",
        ],
    ),
]

# Part numbers, connectors, voltages, error codes
KEYWORD_PATTERN = r"\b(CR-?2032|CMOS|BIOS|HDMI|VGA|J\d+|pin\s?\d+|[0-9]+V|error\s?E-?\d+)\b"


# ---------------------------
# Fallback tiers
# ---------------------------

DENSE_FETCH_MULTIPLIER = 3
LEXICAL_FETCH_MULTIPLIER = 2
SUBSTRING_FETCH_MULTIPLIER = 1

DENSE_MIN_SCORE = float(os.getenv("RETRIEVAL_DENSE_MIN_SCORE", "0.30"))

# substring hits carry no ranking signal
SUBSTRING_FIXED_SCORE = 0.5


# ---------------------------
# MMR diversification
# ---------------------------

MMR_LAMBDA = float(os.getenv("MMR_LAMBDA", "0.7"))   # 70% relevance / 30% diversity
DEFAULT_TARGET_COUNT = int(os.getenv("RETRIEVAL_TARGET_COUNT", "6"))
MAX_TARGET_COUNT = 50
MMR_MIN_CANDIDATES = int(os.getenv("MMR_MIN_CANDIDATES", "0"))


# ---------------------------
# Confidence signals
# ---------------------------

MIN_TOP_SCORE = float(os.getenv("RETRIEVAL_MIN_TOP_SCORE", "0.62"))
WEAK_BUNDLE_AVG = float(os.getenv("RETRIEVAL_WEAK_AVG", "0.58"))
MIN_STRONG_HITS = int(os.getenv("RETRIEVAL_MIN_STRONG", "2"))

# store-side warning flag embedded in chunk content
LOW_CONFIDENCE_MARKER = "WARN:"


# ---------------------------
# Logging / observability
# ---------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


# ---------------------------
# Settings snapshot
# ---------------------------

class RetrievalSettings(BaseModel):
    """
    Immutable snapshot of every tunable the engine reads.

    Build it once at process start with ``RetrievalSettings.from_env()`` and
    pass it down; tests construct it directly with overrides.
    """

    model_config = ConfigDict(frozen=True)

    dense_fetch_multiplier: int = Field(DENSE_FETCH_MULTIPLIER, ge=1)
    lexical_fetch_multiplier: int = Field(LEXICAL_FETCH_MULTIPLIER, ge=1)
    substring_fetch_multiplier: int = Field(SUBSTRING_FETCH_MULTIPLIER, ge=1)
    dense_min_score: float = DENSE_MIN_SCORE
    substring_fixed_score: float = SUBSTRING_FIXED_SCORE

    embed_max_input_chars: int = Field(EMBED_MAX_INPUT_CHARS, gt=0)
    embed_timeout_s: float = Field(EMBED_READ_TIMEOUT, gt=0)
    store_timeout_s: float = Field(STORE_READ_TIMEOUT, gt=0)
    request_budget_s: float = Field(REQUEST_BUDGET_S, gt=0)

    mmr_lambda: float = MMR_LAMBDA
    target_count: int = Field(DEFAULT_TARGET_COUNT, ge=0)
    mmr_min_candidates: int = Field(MMR_MIN_CANDIDATES, ge=0)

    min_top_score: float = MIN_TOP_SCORE
    weak_bundle_avg: float = WEAK_BUNDLE_AVG
    min_strong_hits: int = Field(MIN_STRONG_HITS, ge=0)
    low_confidence_marker: str = LOW_CONFIDENCE_MARKER

    @classmethod
    def from_env(cls) -> "RetrievalSettings":
        """Read the environment once; unset variables keep the module defaults."""
        return cls(
            dense_min_score=float(os.getenv("RETRIEVAL_DENSE_MIN_SCORE", str(DENSE_MIN_SCORE))),
            embed_timeout_s=float(os.getenv("EMBED_READ_TIMEOUT", str(EMBED_READ_TIMEOUT))),
            store_timeout_s=float(os.getenv("STORE_READ_TIMEOUT", str(STORE_READ_TIMEOUT))),
            request_budget_s=float(os.getenv("REQUEST_BUDGET_S", str(REQUEST_BUDGET_S))),
            mmr_lambda=float(os.getenv("MMR_LAMBDA", str(MMR_LAMBDA))),
            target_count=int(os.getenv("RETRIEVAL_TARGET_COUNT", str(DEFAULT_TARGET_COUNT))),
            mmr_min_candidates=int(os.getenv("MMR_MIN_CANDIDATES", str(MMR_MIN_CANDIDATES))),
            min_top_score=float(os.getenv("RETRIEVAL_MIN_TOP_SCORE", str(MIN_TOP_SCORE))),
            weak_bundle_avg=float(os.getenv("RETRIEVAL_WEAK_AVG", str(WEAK_BUNDLE_AVG))),
            min_strong_hits=int(os.getenv("RETRIEVAL_MIN_STRONG", str(MIN_STRONG_HITS))),
        )


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class ResultItem(BaseModel):
    """
    One ranked passage as returned to callers.
    """

    id: str
    content: str
    score: float
    locator: Dict[str, Any] = Field(default_factory=dict)
    source_tier: str
    rank: int = Field(ge=1)


class SignalsModel(BaseModel):
    top_score: float
    avg_top3: float
    strong_hit_count: int = Field(ge=0)
    is_weak: bool


class RetrievalResponse(BaseModel):
    """
    Response body for POST /retrieve and the return value of ``retrieve``.
    """

    results: List[ResultItem]
    signals: SignalsModel
    tier_used: str


class RetrieveRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=MAX_QUERY_CHARS)
    scope_key: Optional[str] = None
    target_count: int = Field(DEFAULT_TARGET_COUNT, ge=1, le=MAX_TARGET_COUNT)


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str

from __future__ import annotations

"""
FastAPI application exposing the retrieval engine.

- POST /retrieve runs the fallback -> MMR -> signals pipeline
- Adapter failures never surface; only an empty query is a caller error (422)
- tier_used == "none" with is_weak == true means no evidence was found
"""

import sys
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import (
    LOG_LEVEL,
    HealthResponse,
    RetrievalResponse,
    RetrieveRequest,
)
from .errors import InvalidQueryError
from ._singletons import get_engine, get_settings


# -----------------------
# Pipeline
# -----------------------

def run_retrieval(query: str, scope_key: Optional[str], target_count: int) -> RetrievalResponse:
    return get_engine().retrieve(query, scope_key=scope_key, target_count=target_count)


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI(title="manual-search")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event() -> None:
    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)
    settings = get_settings()
    logger.info(
        "Retrieval settings: target={} lambda={} dense_floor={} min_top={} weak_avg={} min_strong={}",
        settings.target_count, settings.mmr_lambda, settings.dense_min_score,
        settings.min_top_score, settings.weak_bundle_avg, settings.min_strong_hits,
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.post("/retrieve", response_model=RetrievalResponse)
def retrieve(req: RetrieveRequest) -> RetrievalResponse:
    query = req.query.strip()
    if not query:
        raise HTTPException(status_code=422, detail="Query must be non-empty")
    try:
        return run_retrieval(query, req.scope_key, req.target_count)
    except InvalidQueryError as e:
        raise HTTPException(status_code=422, detail=str(e))

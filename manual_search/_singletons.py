# manual_search/_singletons.py
from functools import lru_cache
from typing import Optional

from .config import RetrievalResponse, RetrievalSettings
from .pipeline import RetrievalEngine, build_engine

@lru_cache(maxsize=1)
def get_settings() -> RetrievalSettings:
    return RetrievalSettings.from_env()

@lru_cache(maxsize=1)
def get_engine() -> RetrievalEngine:
    return build_engine(get_settings())

def retrieve(query: str, scope_key: Optional[str] = None, target_count: Optional[int] = None) -> RetrievalResponse:
    return get_engine().retrieve(query, scope_key, target_count)

from __future__ import annotations

"""
Document store access.

``DocumentStore`` is the three-primitive contract the candidate sources rely
on; ``SupabaseStore`` implements it over PostgREST RPC endpoints.  Rows come
back as plain dicts and are turned into ``Candidate`` objects here so the
rest of the engine never sees store-specific column names.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from loguru import logger

from .config import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_USER_AGENT,
    RPC_LEXICAL_SEARCH,
    RPC_SUBSTRING_SEARCH,
    RPC_VECTOR_SEARCH,
    STORE_READ_TIMEOUT,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from .errors import ProviderError, ProviderTimeout
from .pipeline_types import Candidate, SourceTier

PROVIDER = "store"

_CONTENT_KEYS = ("content", "chunk_text", "text")
_LOCATOR_SKIP = {"id", "score", *_CONTENT_KEYS}


class DocumentStore(ABC):
    """
    The three search primitives a store must offer.

    ``timeout_s`` is what is left of the caller's request budget; a store
    must not let a single call run past it.  ``None`` means no budget.
    """

    @abstractmethod
    def vector_search(
        self,
        vector: Sequence[float],
        scope_key: Optional[str],
        limit: int,
        min_score: float,
        timeout_s: Optional[float] = None,
    ) -> List[Candidate]:
        ...

    @abstractmethod
    def lexical_search(
        self, query: str, scope_key: Optional[str], limit: int, timeout_s: Optional[float] = None
    ) -> List[Candidate]:
        ...

    @abstractmethod
    def substring_search(
        self, query: str, scope_key: Optional[str], limit: int, timeout_s: Optional[float] = None
    ) -> List[Candidate]:
        ...


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _row_content(row: Dict[str, Any]) -> str:
    for key in _CONTENT_KEYS:
        val = row.get(key)
        if isinstance(val, str):
            return val
    for key in _CONTENT_KEYS:
        if row.get(key) is not None:
            return json.dumps(row[key])
    return ""


def rows_to_candidates(
    rows: Iterable[Dict[str, Any]],
    tier: SourceTier,
) -> List[Candidate]:
    """
    Map store rows to candidates, keeping store order.

    Non-object rows and rows without an id or with blank content are
    dropped.  Every column other than id/score/content is passed through as
    the locator.
    """
    out: List[Candidate] = []
    for row in rows:
        if not isinstance(row, dict):
            logger.debug("Skipping non-object {} row: {!r}", tier.value, row)
            continue
        rid = row.get("id")
        content = _row_content(row)
        if rid is None or not content.strip():
            continue
        try:
            score = float(row.get("score") or 0.0)
        except (TypeError, ValueError):
            score = 0.0
        locator = {k: v for k, v in row.items() if k not in _LOCATOR_SKIP}
        out.append(
            Candidate(
                id=str(rid),
                content=content,
                relevance_score=score,
                source_tier=tier,
                locator=locator,
            )
        )
    return out


# ---------------------------------------------------------------------------
# Supabase / PostgREST
# ---------------------------------------------------------------------------


def _deadline(timeout_s: Optional[float]) -> Optional[float]:
    return None if timeout_s is None else time.monotonic() + timeout_s


def _in_filter(values: Iterable[str]) -> str:
    quoted = ",".join('"{}"'.format(str(v).replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


class SupabaseStore(DocumentStore):
    def __init__(
        self,
        url: str = SUPABASE_URL,
        service_key: str = SUPABASE_SERVICE_ROLE_KEY,
        timeout_s: float = STORE_READ_TIMEOUT,
        tenant_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.tenant_id = tenant_id
        self.timeout_s = timeout_s
        self._client = httpx.Client(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
                "User-Agent": HTTP_USER_AGENT,
            },
            timeout=httpx.Timeout(timeout_s, connect=HTTP_CONNECT_TIMEOUT),
            transport=transport,
        )

    def _timeout(self, timeout_s: Optional[float]) -> httpx.Timeout:
        """Client timeouts, shrunk to whatever is left of the request budget."""
        if timeout_s is None:
            return self._client.timeout
        return httpx.Timeout(
            min(self.timeout_s, timeout_s),
            connect=min(HTTP_CONNECT_TIMEOUT, timeout_s),
        )

    def _request(
        self, name: str, method: str, path: str, timeout_s: Optional[float], **kwargs
    ) -> List[Dict[str, Any]]:
        try:
            r = self._client.request(method, path, timeout=self._timeout(timeout_s), **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(PROVIDER, f"{name} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"{name} transport error: {e}") from e

        if r.status_code >= 400:
            logger.warning("Store {} HTTP {} body: {}", name, r.status_code, r.text[:500])
            raise ProviderError(PROVIDER, f"{name} HTTP {r.status_code}", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise ProviderError(PROVIDER, f"{name} returned non-JSON body") from e
        if data is None:
            return []
        if not isinstance(data, list):
            raise ProviderError(PROVIDER, f"{name} returned {type(data).__name__}, expected list")
        return data

    def _rpc(self, name: str, payload: Dict[str, Any], timeout_s: Optional[float] = None) -> List[Dict[str, Any]]:
        return self._request(name, "POST", f"/rpc/{name}", timeout_s, json=payload)

    def manual_titles(self, manual_ids: Iterable[str], timeout_s: Optional[float] = None) -> Dict[str, str]:
        """manual_id -> title from the documents table; missing titles are left out."""
        ids = sorted({str(m) for m in manual_ids if m})
        if not ids:
            return {}
        rows = self._request(
            "documents",
            "GET",
            "/documents",
            timeout_s,
            params={"select": "manual_id,title", "manual_id": _in_filter(ids)},
        )
        return {
            str(row["manual_id"]): row["title"]
            for row in rows
            if isinstance(row, dict) and row.get("manual_id") and row.get("title")
        }

    def _with_titles(self, cands: List[Candidate], deadline: Optional[float]) -> List[Candidate]:
        """Add ``manual_title`` to every locator, falling back to the manual id."""
        ids = [c.locator.get("manual_id") for c in cands if c.locator.get("manual_id")]
        if not ids:
            return cands
        left = None if deadline is None else deadline - time.monotonic()
        try:
            if left is not None and left <= 0:
                raise ProviderTimeout(PROVIDER, "no budget left for the title lookup")
            titles = self.manual_titles(ids, left)
        except ProviderError as e:
            logger.warning("Manual title lookup failed, using manual ids: {}", e)
            titles = {}
        out = []
        for c in cands:
            manual_id = c.locator.get("manual_id")
            if manual_id:
                locator = {**c.locator, "manual_title": titles.get(str(manual_id)) or manual_id}
                c = replace(c, locator=locator)
            out.append(c)
        return out

    def vector_search(self, vector, scope_key, limit, min_score, timeout_s=None):
        deadline = _deadline(timeout_s)
        rows = self._rpc(
            RPC_VECTOR_SEARCH,
            {
                "query_embedding": list(vector),
                "top_k": limit,
                "min_score": min_score,
                "manual": scope_key,
                "tenant_id": self.tenant_id,
            },
            timeout_s,
        )
        return self._with_titles(rows_to_candidates(rows, SourceTier.DENSE), deadline)

    def lexical_search(self, query, scope_key, limit, timeout_s=None):
        deadline = _deadline(timeout_s)
        rows = self._rpc(
            RPC_LEXICAL_SEARCH,
            {
                "query_text": query,
                "top_k": limit,
                "manual": scope_key,
                "tenant_id": self.tenant_id,
            },
            timeout_s,
        )
        return self._with_titles(rows_to_candidates(rows, SourceTier.LEXICAL), deadline)

    def substring_search(self, query, scope_key, limit, timeout_s=None):
        deadline = _deadline(timeout_s)
        rows = self._rpc(
            RPC_SUBSTRING_SEARCH,
            {
                "search_query": query,
                "search_manual": scope_key,
                "search_tenant": self.tenant_id,
                "search_limit": limit,
            },
            timeout_s,
        )
        return self._with_titles(rows_to_candidates(rows, SourceTier.SUBSTRING), deadline)

    def close(self) -> None:
        self._client.close()

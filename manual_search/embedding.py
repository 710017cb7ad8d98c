from __future__ import annotations

from typing import List, Optional

import httpx
import numpy as np
from loguru import logger

from .config import (
    EMBEDDING_MODEL,
    EMBED_READ_TIMEOUT,
    HTTP_CONNECT_TIMEOUT,
    HTTP_USER_AGENT,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_PROJECT_ID,
)
from .errors import ProviderError, ProviderTimeout

PROVIDER = "embeddings"


class EmbeddingClient:
    """
    Thin client for an OpenAI-compatible ``/embeddings`` endpoint.

    Hardening:
      - httpx with connect/read timeouts
      - timeouts surface as ProviderTimeout, everything else as ProviderError
      - returned vectors are checked for shape and finiteness
    """

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        base_url: str = OPENAI_BASE_URL,
        model: str = EMBEDDING_MODEL,
        timeout_s: float = EMBED_READ_TIMEOUT,
        project_id: str = OPENAI_PROJECT_ID,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": HTTP_USER_AGENT,
        }
        if project_id:
            headers["OpenAI-Project"] = project_id
        self.model = model
        self.timeout_s = timeout_s
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_s, connect=HTTP_CONNECT_TIMEOUT),
            transport=transport,
        )

    def _timeout(self, timeout_s: Optional[float]) -> httpx.Timeout:
        if timeout_s is None:
            return self._client.timeout
        return httpx.Timeout(
            min(self.timeout_s, timeout_s),
            connect=min(HTTP_CONNECT_TIMEOUT, timeout_s),
        )

    def embed(self, text: str, timeout_s: Optional[float] = None) -> List[float]:
        """``timeout_s`` caps this call below the client default (remaining request budget)."""
        try:
            r = self._client.post(
                "/embeddings",
                json={"model": self.model, "input": text},
                timeout=self._timeout(timeout_s),
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeout(PROVIDER, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"transport error: {e}") from e

        if r.status_code >= 400:
            logger.warning("Embedding HTTP {} body: {}", r.status_code, r.text[:500])
            raise ProviderError(PROVIDER, f"HTTP {r.status_code}", status_code=r.status_code)

        try:
            raw = r.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(PROVIDER, f"malformed response: {e}") from e

        try:
            vec = np.asarray(raw, dtype="float64")
        except (TypeError, ValueError) as e:
            raise ProviderError(PROVIDER, f"non-numeric embedding: {e}") from e
        if vec.ndim != 1 or vec.size == 0:
            raise ProviderError(PROVIDER, f"embedding has shape {vec.shape}")
        if not np.all(np.isfinite(vec)):
            raise ProviderError(PROVIDER, "embedding contains non-finite values")
        return vec.tolist()

    def close(self) -> None:
        self._client.close()

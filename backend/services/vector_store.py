"""
Vector store client.

Calls the `match_documents` Postgres function exposed over the store's
REST RPC endpoint and returns the matched documents.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from services.errors import BackendError
from spec import RETRIEVAL_MATCH_COUNT, RETRIEVAL_MATCH_THRESHOLD

_RPC_PATH = "/rest/v1/rpc/match_documents"
_RPC_TIMEOUT_S = 10.0


class VectorStoreClient:
    """Similarity search over the document embeddings."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        match_threshold: float = RETRIEVAL_MATCH_THRESHOLD,
        match_count: int = RETRIEVAL_MATCH_COUNT,
    ) -> None:
        self._endpoint = url.rstrip("/") + _RPC_PATH
        self._api_key = api_key
        self._match_threshold = match_threshold
        self._match_count = match_count

    async def match_documents(self, embedding: list[float]) -> list[dict[str, Any]]:
        """
        Return the documents closest to `embedding`.

        Raises:
            BackendError when the RPC fails.
        """
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        payload = {
            "query_embedding": embedding,
            "match_threshold": self._match_threshold,
            "match_count": self._match_count,
        }

        try:
            async with aiohttp.ClientSession() as s:
                async with s.post(
                    self._endpoint,
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=_RPC_TIMEOUT_S),
                ) as resp:
                    if resp.status != 200:
                        detail = await resp.text()
                        raise BackendError(
                            f"Failed to match documents. HTTP {resp.status}: {detail[:200]}"
                        )
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise BackendError("Failed to match documents. timeout") from e
        except aiohttp.ClientError as e:
            raise BackendError(f"Failed to match documents. {type(e).__name__}") from e

        if not isinstance(data, list):
            return []
        return [doc for doc in data if isinstance(doc, dict)]

"""Client for the HTTP document store API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..core.errors import StoreError
from .base import BinStore, Document

logger = logging.getLogger(__name__)


class HttpStore(BinStore):
    """Talks to the document store's REST endpoints.

    Endpoints:
        GET/POST /api/bins
        GET/POST /api/system-settings

    Every response is wrapped as ``{"success": bool, "data": ..., "error": str}``.
    Requests use a per-call timeout and are retried a bounded number of
    times with exponential backoff before a :class:`StoreError` is raised.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 0.5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Store root, e.g. "http://localhost:3000".
            timeout: Total seconds allowed per request.
            retries: Extra attempts after the first failure.
            backoff: Initial delay between attempts, doubled each retry.
            session: Shared session. Created lazily and owned if None.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._retries = max(retries, 0)
        self._backoff = backoff
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        url = f"{self._base_url}{path}"
        delay = self._backoff
        last_error: Optional[Exception] = None

        for attempt in range(self._retries + 1):
            try:
                async with self._get_session().request(
                    method,
                    url,
                    json=payload,
                    timeout=self._timeout,
                ) as response:
                    body = await response.json(content_type=None)
                    if response.status >= 500:
                        raise aiohttp.ClientResponseError(
                            response.request_info,
                            response.history,
                            status=response.status,
                            message=str(
                                body.get("error", response.reason)
                                if isinstance(body, dict)
                                else response.reason
                            ),
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                last_error = e
                if attempt < self._retries:
                    logger.warning(
                        "%s %s failed (attempt %d/%d): %s",
                        method, path, attempt + 1, self._retries + 1, e,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                continue

            if not isinstance(body, dict) or not body.get("success"):
                error = body.get("error") if isinstance(body, dict) else body
                raise StoreError(f"{method} {path} rejected: {error}")
            return body.get("data")

        raise StoreError(f"{method} {path} failed: {last_error}")

    async def load_bins(self) -> list[Document]:
        data = await self._request("GET", "/api/bins")
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreError("GET /api/bins returned a non-list payload")
        return data

    async def save_bins(self, bins: list[Document]) -> None:
        await self._request("POST", "/api/bins", bins)
        logger.debug("Saved %d bins to %s", len(bins), self._base_url)

    async def load_settings(self) -> Optional[Document]:
        data = await self._request("GET", "/api/system-settings")
        if data is not None and not isinstance(data, dict):
            raise StoreError("GET /api/system-settings returned a non-object payload")
        if data is not None:
            data.pop("_id", None)
        return data

    async def save_settings(self, settings: Document) -> None:
        await self._request("POST", "/api/system-settings", settings)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

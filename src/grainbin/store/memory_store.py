"""In-memory store for testing and dry runs."""

from __future__ import annotations

import copy
import logging
from typing import Optional

from ..core.errors import StoreError
from .base import BinStore, Document

logger = logging.getLogger(__name__)


class MemoryStore(BinStore):
    """Keeps documents in process memory.

    Documents are deep-copied on the way in and out, like a real store.
    Setting ``fail`` makes every call raise, to exercise fallback paths.
    """

    def __init__(
        self,
        bins: Optional[list[Document]] = None,
        settings: Optional[Document] = None,
    ) -> None:
        self._bins: dict[object, Document] = {}
        for doc in bins or []:
            self._bins[doc["id"]] = copy.deepcopy(doc)
        self._settings = copy.deepcopy(settings)
        self.fail = False
        self.save_count = 0

    def _check(self, operation: str) -> None:
        if self.fail:
            raise StoreError(f"[MOCK] {operation} failed")

    async def load_bins(self) -> list[Document]:
        self._check("load_bins")
        return [copy.deepcopy(doc) for doc in self._bins.values()]

    async def save_bins(self, bins: list[Document]) -> None:
        self._check("save_bins")
        for doc in bins:
            self._bins[doc["id"]] = copy.deepcopy(doc)
        self.save_count += 1
        logger.debug("[MOCK] Saved %d bins", len(bins))

    async def load_settings(self) -> Optional[Document]:
        self._check("load_settings")
        return copy.deepcopy(self._settings)

    async def save_settings(self, settings: Document) -> None:
        self._check("save_settings")
        self._settings = copy.deepcopy(settings)

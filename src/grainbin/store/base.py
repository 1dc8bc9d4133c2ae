"""Abstract persistence interface for bins and settings."""

from abc import ABC, abstractmethod
from typing import Any, Optional

# Serialized bin or settings document, as produced by Bin.to_dict()
Document = dict[str, Any]


class BinStore(ABC):
    """Abstract interface for the document store.

    The manager's in-memory state is authoritative; a store is only written
    through to and read once at startup. Implementations raise
    :class:`~grainbin.core.errors.StoreError` on any failure.
    """

    @abstractmethod
    async def load_bins(self) -> list[Document]:
        """Load all bin documents.

        Returns:
            Stored bin documents, empty if none were saved yet.
        """

    @abstractmethod
    async def save_bins(self, bins: list[Document]) -> None:
        """Persist all bin documents, replacing stored bins by id.

        Args:
            bins: Bin documents to store.
        """

    @abstractmethod
    async def load_settings(self) -> Optional[Document]:
        """Load the system settings document.

        Returns:
            Stored settings, or None if none were saved yet.
        """

    @abstractmethod
    async def save_settings(self, settings: Document) -> None:
        """Persist the system settings document.

        Args:
            settings: Settings document to store.
        """

    async def close(self) -> None:
        """Release any resources held by the store."""

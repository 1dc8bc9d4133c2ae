"""Store factory."""

import logging
from typing import TYPE_CHECKING

from .base import BinStore

if TYPE_CHECKING:
    from ..config import GrainbinConfig

logger = logging.getLogger(__name__)


def create_store(config: "GrainbinConfig") -> BinStore:
    """Factory function to create the configured persistence backend.

    Args:
        config: Loaded configuration. ``store_backend`` selects "file",
            "http" or "memory".

    Returns:
        BinStore implementation.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = config.store_backend

    if backend == "file":
        from .file_store import FileStore

        logger.info("Using file store in %s", config.data_dir)
        return FileStore(config.data_dir)

    if backend == "http":
        from .http_store import HttpStore

        logger.info("Using HTTP document store at %s", config.store_url)
        return HttpStore(
            config.store_url,
            timeout=config.store_timeout,
            retries=config.store_retries,
        )

    if backend == "memory":
        from .memory_store import MemoryStore

        logger.info("Using in-memory store (state is not durable)")
        return MemoryStore()

    raise ValueError(f"Unknown store backend: {backend}")

"""File-backed store: bins as JSON, settings as YAML."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from ..core.errors import StoreError
from .base import BinStore, Document

logger = logging.getLogger(__name__)

BINS_FILENAME = "bins.json"
SETTINGS_FILENAME = "system_settings.yaml"


class FileStore(BinStore):
    """Stores documents under a data directory.

    Writes go to a temporary file that replaces the target, so a crash
    mid-write leaves the previous version intact. File I/O runs in a worker
    thread so the event loop keeps serving requests and accrual.
    """

    def __init__(self, data_dir: str | Path = "data") -> None:
        self._data_dir = Path(data_dir)

    def _path(self, filename: str) -> Path:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        return self._data_dir / filename

    @staticmethod
    def _write(path: Path, text: str) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(text)
        tmp_path.replace(path)

    @staticmethod
    def _read_existing_bins(path: Path) -> dict[Any, Document]:
        """Index the bins already on disk by id.

        An unreadable file is overwritten rather than blocking every save.
        """
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
            if not isinstance(data, list):
                raise ValueError("expected a list of bins")
            return {doc["id"]: doc for doc in data}
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Existing bins file %s unreadable, overwriting: %s", path, e)
            return {}

    def _load_bins_sync(self) -> list[Document]:
        try:
            path = self._path(BINS_FILENAME)
            if not path.exists():
                logger.info("No bins file at %s", path)
                return []
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to load bins: {e}") from e

        if not isinstance(data, list):
            raise StoreError(f"Invalid bins file format in {path}")
        return data

    def _save_bins_sync(self, bins: list[Document]) -> None:
        try:
            path = self._path(BINS_FILENAME)
            existing = self._read_existing_bins(path)
            for doc in bins:
                existing[doc["id"]] = doc
            self._write(path, json.dumps(list(existing.values()), indent=2))
        except (OSError, TypeError, ValueError, KeyError) as e:
            raise StoreError(f"Failed to save bins: {e}") from e
        logger.debug("Saved %d bins to %s", len(bins), path)

    def _load_settings_sync(self) -> Optional[Document]:
        try:
            path = self._path(SETTINGS_FILENAME)
            if not path.exists():
                logger.info("No settings file at %s", path)
                return None
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to load settings: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise StoreError(f"Invalid settings file format in {path}")
        return data

    def _save_settings_sync(self, settings: Document) -> None:
        try:
            path = self._path(SETTINGS_FILENAME)
            self._write(path, yaml.safe_dump(settings, default_flow_style=False))
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to save settings: {e}") from e
        logger.info("Saved settings to %s", path)

    async def load_bins(self) -> list[Document]:
        return await asyncio.to_thread(self._load_bins_sync)

    async def save_bins(self, bins: list[Document]) -> None:
        await asyncio.to_thread(self._save_bins_sync, bins)

    async def load_settings(self) -> Optional[Document]:
        return await asyncio.to_thread(self._load_settings_sync)

    async def save_settings(self, settings: Document) -> None:
        await asyncio.to_thread(self._save_settings_sync, settings)

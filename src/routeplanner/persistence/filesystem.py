"""File-backed cache store for distance and geocode entries."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from ..config import settings
from .stores import InMemoryCacheStore, utc_now

logger = logging.getLogger(__name__)


class FileCacheStore(InMemoryCacheStore):
    """In-memory cache mirrored to a single JSON file under the data root."""

    def __init__(self, path: Path | None = None, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(clock=clock)
        self.path = (path or settings.cache_file).resolve()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Could not read cache file %s: %s", self.path, exc)
            return
        self._distances.update(data.get("distances", {}))
        self._geocodes.update(data.get("geocodes", {}))
        logger.info(
            "Loaded %d distance and %d geocode cache entries from %s",
            len(self._distances),
            len(self._geocodes),
            self.path,
        )

    def _persist(self) -> None:
        payload = {"distances": self._distances, "geocodes": self._geocodes}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

"""Device-local JSON key/value storage.

Each device (one per user) gets a directory under
``notifications.storage_dir``; each key is one JSON file in it. File access
runs in a worker thread so the event loop never blocks on disk.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class LocalStore:
    def __init__(self, base_dir: str | Path, device_id: str):
        self._dir = Path(base_dir) / device_id

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _read_sync(self, key: str) -> Any | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            return json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.error("Unreadable local store entry %s, treating as empty", p)
            return None

    def _write_sync(self, key: str, value: Any) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        p = self._path(key)
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, default=str), encoding="utf-8")
        os.replace(tmp, p)

    def _remove_sync(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read_sync, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write_sync, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)

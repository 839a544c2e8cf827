import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import aiofiles
import aiofiles.os
from loguru import logger

from .base import BaseKeyValueStore


class JsonFileStore(BaseKeyValueStore):
    """Backing store keeping one JSON document per key under ``root``.

    Saves go to a temporary file first and are moved into place with
    ``os.replace``, so a reader never observes a half-written value.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}.json"

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path_for(key)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted value for key {key} at {path}: {e}")
            raise ValueError(f"Corrupted value for key {key}") from e

    async def save(self, key: str, value: Dict[str, Any]) -> bool:
        path = self._path_for(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            payload = json.dumps(value, ensure_ascii=False, indent=2)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, path)
            logger.debug(f"Saved {key} -> {path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {key}: {e}")
            if os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            return False

from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path

from bolt.config import settings

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Stores chat uploads on local disk under UPLOAD_DIR.

    The database only keeps the relative key returned by ``save``; the bytes
    live here and nowhere else.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or settings.UPLOAD_DIR).resolve()

    def build_key(self, original_name: str) -> str:
        suffix = Path(original_name or "").suffix.lower()
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes upload dir: {key}")
        return path

    def save(self, *, original_name: str, content: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        key = self.build_key(original_name)
        self.path_for(key).write_bytes(content)
        logger.info("Stored upload", extra={"key": key, "size": len(content)})
        return key

    def read(self, key: str) -> bytes:
        return self.path_for(key).read_bytes()

    def delete(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            logger.warning("Upload already missing on disk", extra={"key": key})
            return False
        return True

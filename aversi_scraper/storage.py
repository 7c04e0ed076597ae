"""Filesystem scratch storage for downloaded documents."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class ScratchStore:
    """Key/value store of raw HTML documents under one directory."""

    def __init__(self, root: Path):
        self.root = root

    def path_for(self, key: str) -> Path:
        safe = re.sub(r"[^\w.-]+", "_", key).strip("_") or "document"
        return self.root / f"{safe}.html"

    def write(self, key: str, content: str | bytes) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def read(self, key: str) -> str:
        return self.path_for(key).read_text(encoding="utf-8")

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def delete(self, key: str) -> bool:
        """Remove a stored document. Returns False (and logs) instead of raising."""
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning(f"Could not delete scratch file {path}: {e}")
            return False

    def clear(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
